"""Error taxonomy and aggregation for bootloader workflows."""

from typing import Optional, Dict, Any, List, Sequence
from enum import Enum
from dataclasses import dataclass
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from google.api_core import exceptions as google_exceptions
from google.auth.exceptions import DefaultCredentialsError
from bootloader.utils.logging import get_logger

logger = get_logger(__name__)

AGGREGATE_HEADER = "the following errors occurred:\n"


class ErrorCategory(Enum):
    """Categories of errors that can occur during a workflow run."""
    CONFIGURATION = "configuration"
    CLOUD = "cloud"
    NETWORK = "network"
    STATE = "state"
    PRECONDITION = "precondition"
    APPLY = "apply"
    DOWNSTREAM = "downstream"
    CREDENTIAL = "credential"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Nothing was changed; fix and re-run
    ERROR = "error"  # Remote or local state may have changed
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    env_id: Optional[str] = None
    iaas: Optional[str] = None
    operation: Optional[str] = None
    step: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class BootloaderError(Exception):
    """Base exception for bootloader errors.

    ``str(error)`` is always the bare message so that callers comparing
    messages see exactly what the failing collaborator reported.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize bootloader error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []
        # Terminal workflow status, stamped by the orchestrator
        self.status = None

    def __str__(self) -> str:
        return self.message

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.step:
            lines.append(f"   Step: {self.context.step}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause and str(self.cause) != self.message:
            lines.append(f"   Cause: {self.cause}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'status': self.status.value if self.status else None,
            'context': {
                'env_id': self.context.env_id,
                'iaas': self.context.iaas,
                'operation': self.context.operation,
                'step': self.context.step,
                'request_id': self.context.request_id,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(BootloaderError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class CredentialError(BootloaderError):
    """Error related to cloud credentials."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CREDENTIAL,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class NetworkError(BootloaderError):
    """Network-related error."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ValidationError(BootloaderError):
    """Invalid command input, detected before anything runs."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class FatalPreconditionError(BootloaderError):
    """A precondition failed before any state was mutated; safe to re-run."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.PRECONDITION)
        super().__init__(message, severity=ErrorSeverity.CRITICAL, **kwargs)


class VersionMismatchError(FatalPreconditionError):
    """The installed terraform binary is not compatible."""


class DirectorNotReachable(FatalPreconditionError):
    """The platform director could not be reached."""

    DEFAULT_MESSAGE = "director not reachable"

    def __init__(self, message: str = DEFAULT_MESSAGE, **kwargs):
        kwargs.setdefault('suggestions', [
            'Check that the director VM is running',
            'If the director is still being provisioned, re-run once it is up',
        ])
        super().__init__(message, **kwargs)


class PreflightError(FatalPreconditionError):
    """Provider discovery (zones, networks) failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, category=ErrorCategory.CLOUD, **kwargs)


class ApplyError(BootloaderError):
    """The apply step failed without reporting any recovered state."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.APPLY,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StateError(BootloaderError):
    """The local state record could not be read or written."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class DownstreamSyncError(BootloaderError):
    """Cloud-config could not be pushed after a successful persist."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', [
            'Infrastructure and local state are consistent; re-run the command to retry the cloud-config update',
        ])
        super().__init__(
            message,
            category=ErrorCategory.DOWNSTREAM,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


def aggregate_errors(errors: Sequence[Exception]) -> Optional[Exception]:
    """Combine the errors of one workflow run into a single error.

    Args:
        errors: Errors in the order they occurred

    Returns:
        None for no errors, the error itself when there is exactly one,
        otherwise a BootloaderError listing every message in order
    """
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]

    message = AGGREGATE_HEADER + ",\n".join(str(error) for error in errors)
    return BootloaderError(
        message,
        category=ErrorCategory.APPLY,
        severity=ErrorSeverity.ERROR,
        cause=errors[0],
    )


class ErrorHandler:
    """Converts SDK and transport exceptions into BootloaderErrors."""

    AWS_ERROR_MAPPING = {
        'AuthFailure': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials were rejected',
            'suggestions': [
                'Verify credentials using: aws sts get-caller-identity',
                'Check that the configured profile points at the right account',
            ]
        },
        'UnauthorizedOperation': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'Operation not authorized',
            'suggestions': [
                'Grant ec2:DescribeAvailabilityZones to the configured identity',
                'Verify you are operating in the correct AWS region',
            ]
        },
        'InvalidParameterValue': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Invalid parameter value',
            'suggestions': ['Check the region stored in the environment state']
        },
        'RequestLimitExceeded': {
            'category': ErrorCategory.CLOUD,
            'message': 'API rate limit exceeded',
            'suggestions': ['Wait a few moments and re-run the command']
        },
    }

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> BootloaderError:
        """Handle an exception and convert to BootloaderError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            BootloaderError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, BootloaderError):
            return error

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return CredentialError(
                message='No usable AWS credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Set aws.profile in bootloader.yaml',
                ]
            )

        if isinstance(error, DefaultCredentialsError):
            return CredentialError(
                message='No usable GCP credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Set gcp.credentials_file in bootloader.yaml',
                    'Or export GOOGLE_APPLICATION_CREDENTIALS',
                ]
            )

        if isinstance(error, google_exceptions.GoogleAPICallError):
            return self._handle_google_error(error, context)

        if isinstance(error, (ConnectionError, TimeoutError)):
            return NetworkError(
                message=f'Network error: {error}',
                context=context,
                cause=error,
                suggestions=['Check your network connectivity and re-run the command']
            )

        logger.debug(f"Unclassified {type(error).__name__}: {error}")
        return BootloaderError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Re-run with --log-level debug for more details']
        )

    def _handle_aws_error(
        self,
        error: ClientError,
        context: ErrorContext
    ) -> BootloaderError:
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')

        error_info = self.AWS_ERROR_MAPPING.get(error_code)
        if error_info:
            return BootloaderError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return BootloaderError(
            message=f"AWS Error ({error_code}): {error_message}",
            category=ErrorCategory.CLOUD,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=[f'AWS Request ID: {context.request_id}']
        )

    def _handle_google_error(
        self,
        error: google_exceptions.GoogleAPICallError,
        context: ErrorContext
    ) -> BootloaderError:
        if isinstance(error, (google_exceptions.Forbidden, google_exceptions.Unauthorized)):
            return CredentialError(
                message=f'GCP denied the request: {error.message}',
                context=context,
                cause=error,
                suggestions=['Check the IAM roles granted to the service account']
            )

        return BootloaderError(
            message=f'GCP Error ({error.code}): {error.message}',
            category=ErrorCategory.CLOUD,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
        )


# Global error handler instance
error_handler = ErrorHandler()
