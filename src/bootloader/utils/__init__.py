"""Utility modules for logging, errors and AWS client management."""

from bootloader.utils.aws_client import AWSClientManager
from bootloader.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    BootloaderError,
    ConfigurationError,
    CredentialError,
    NetworkError,
    ValidationError,
    FatalPreconditionError,
    VersionMismatchError,
    DirectorNotReachable,
    PreflightError,
    ApplyError,
    StateError,
    DownstreamSyncError,
    ErrorHandler,
    aggregate_errors,
    error_handler
)
from bootloader.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # AWS Client
    'AWSClientManager',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'BootloaderError',
    'ConfigurationError',
    'CredentialError',
    'NetworkError',
    'ValidationError',
    'FatalPreconditionError',
    'VersionMismatchError',
    'DirectorNotReachable',
    'PreflightError',
    'ApplyError',
    'StateError',
    'DownstreamSyncError',
    'ErrorHandler',
    'aggregate_errors',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
