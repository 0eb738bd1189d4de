"""命令行命令模块"""

from .copy import copy_command
from .host_groups import host_groups_command
from .run import run_command
from .version import version_command

__all__ = ["copy_command", "host_groups_command", "run_command", "version_command"]
