"""配置文件加载

按顺序查找第一个存在的 config.yaml：

    ./.octopus/config.yaml
    $HOME/.octopus/config.yaml
    /etc/octopus/config.yaml

配置项使用命令行长选项名，例如 ``host-groups: all``。命令行给出的值优先于
配置文件，配置文件优先于内置默认值。
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from click.core import ParameterSource

from pyoctopus.core.errors import ConfigError
from pyoctopus.core.models import SFTPOptions
from pyoctopus.core.paths import abs_path

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"
CONFIG_SEARCH_DIRS = ["./.octopus", "~/.octopus", "/etc/octopus"]

DEFAULT_GROUPS_FILE = "_node-list"
DEFAULT_IDENTITY_FILE = "$HOME/.ssh/id_rsa"


@dataclass
class OctopusSettings:
    """运行时配置"""

    groups_file: str
    identity_file: str
    host_groups: List[str] = field(default_factory=list)
    port: int = 22
    user: str = "root"
    verbose: bool = False
    max_hosts: int = 256
    sftp_options: SFTPOptions = field(default_factory=SFTPOptions)
    config_path: Optional[str] = None


def find_config_file(search_dirs: Optional[List[str]] = None) -> Optional[Path]:
    for directory in search_dirs or CONFIG_SEARCH_DIRS:
        candidate = Path(directory).expanduser() / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_config(
    config_file: Optional[str] = None, search_dirs: Optional[List[str]] = None
) -> Tuple[Dict[str, Any], Optional[Path]]:
    """读取配置文件，返回 (以参数名为键的配置, 配置文件路径)

    显式指定的配置文件必须存在；未指定且找不到时返回空配置。
    """
    if config_file:
        path = Path(abs_path(config_file))
        if not path.is_file():
            raise ConfigError(f"config file {config_file} does not exist")
    else:
        path = find_config_file(search_dirs)
        if path is None:
            return {}, None

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"error reading config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping of options")

    logger.info("config file used: %s", path)
    return {str(key).replace("-", "_"): value for key, value in data.items()}, path


def apply_config_defaults(ctx: click.Context, config: Dict[str, Any]):
    """用配置文件中的值替换未在命令行给出的参数"""
    for param in ctx.command.params:
        if param.name not in config or param.name not in ctx.params:
            continue
        if ctx.get_parameter_source(param.name) not in (
            ParameterSource.DEFAULT,
            ParameterSource.DEFAULT_MAP,
        ):
            continue

        value = config[param.name]
        if param.multiple and isinstance(value, str):
            value = [value]
        try:
            ctx.params[param.name] = param.type_cast_value(ctx, value)
        except click.BadParameter as e:
            raise ConfigError(f"invalid value for '{param.name}' in config file: {e}")


def split_host_groups(values) -> List[str]:
    """--host-groups 可以重复，也可以用逗号分隔"""
    groups = []
    for value in values or []:
        groups.extend(g.strip() for g in str(value).split(",") if g.strip())
    return groups


def settings_from_params(params: Dict[str, Any], config_path=None) -> OctopusSettings:
    return OctopusSettings(
        groups_file=abs_path(params["groups_file"]),
        identity_file=abs_path(params["identity_file"]),
        host_groups=split_host_groups(params["host_groups"]),
        port=params["port"],
        user=params["user"],
        verbose=params["verbose"],
        max_hosts=params["max_hosts"],
        sftp_options=SFTPOptions(
            block_size_kib=params["sftp_block_size"],
            requests_per_file=params["sftp_requests"],
        ),
        config_path=str(config_path) if config_path else None,
    )
