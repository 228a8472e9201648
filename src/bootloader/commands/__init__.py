"""Commands exposed by the CLI."""

from .lbs import CreateLBs, DeleteLBs, LBConfig, LBs, UpdateLBs
from .ssh import SSH, FileIO, RandomPort, SSHCmd, SSHError, SSHKeyGetter

__all__ = [
    "CreateLBs",
    "DeleteLBs",
    "LBConfig",
    "LBs",
    "UpdateLBs",
    "SSH",
    "SSHCmd",
    "SSHError",
    "SSHKeyGetter",
    "FileIO",
    "RandomPort",
]
