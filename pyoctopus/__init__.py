"""pyoctopus - run commands and copy files on host groups in parallel"""

__version__ = "0.1.0"

from .core.copy import FileCopier, FilePointerPool
from .core.errors import (
    ConnectError,
    CopyError,
    OctopusError,
    RemoteCommandError,
    ResolutionError,
    UnknownGroupError,
)
from .core.groups import resolve_host_groups, valid_host_groups
from .core.models import CopyFileOptions, Result, SFTPOptions
from .core.octopus import Octopus
from .core.remote import Action, CommandRunner
from .core.ssh import SSHActor, SSHTransport

__all__ = [
    "Octopus",
    "Action",
    "CommandRunner",
    "FileCopier",
    "FilePointerPool",
    "CopyFileOptions",
    "Result",
    "SFTPOptions",
    "SSHTransport",
    "SSHActor",
    "resolve_host_groups",
    "valid_host_groups",
    "OctopusError",
    "ResolutionError",
    "UnknownGroupError",
    "ConnectError",
    "RemoteCommandError",
    "CopyError",
]
