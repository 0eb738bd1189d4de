"""主机组文件解析

主机组文件是一个 bash 脚本，每个顶层变量赋值定义一个主机组：

    web="10.0.0.1 10.0.0.2"
    export db="db-1
    db-2"
    all="$web $db"

变量值由 bash 展开，因此可以引用其他变量，也可以跨越多行。
"""

import logging
import os
import re
import shlex
import subprocess
from pathlib import Path
from typing import Iterable, List, Set

from pyoctopus.core.errors import (
    GroupsFileError,
    ShellExpansionError,
    UnknownGroupError,
)

logger = logging.getLogger(__name__)

# env 输出中的变量行：变量名后紧跟等号
VAR_LINE_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=")
GROUP_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# env -i 在 mac 上也可用，--ignore-environment 不行
BASE_ENV_COMMAND = ["env", "-i", "bash", "-c", "env"]


def parse_env_names(env_output: str) -> Set[str]:
    """从 env 的输出中解析变量名

    多行变量值的后续行不以变量名开头，这些行会被忽略。
    """
    names = set()
    for line in env_output.splitlines():
        match = VAR_LINE_PATTERN.match(line)
        if match:
            names.add(match.group(1))
    return names


def _run_env(args: List[str], groups_file: str, what: str) -> str:
    try:
        proc = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True,
        )
    except OSError as e:
        raise GroupsFileError(groups_file, f"failed to determine {what}. {e}") from e

    if proc.returncode != 0:
        raise GroupsFileError(
            groups_file,
            f"failed to determine {what}. exit status {proc.returncode}: "
            f"{proc.stderr.strip()}",
        )
    return proc.stdout


def valid_host_groups(groups_file: str) -> List[str]:
    """返回主机组文件中定义的所有主机组名称（已排序）"""

    path = Path(groups_file)
    if not path.is_file():
        raise GroupsFileError(groups_file, "file does not exist or is not a regular file")
    if not os.access(groups_file, os.R_OK):
        raise GroupsFileError(groups_file, "file is not readable")

    # bash 默认会报告的变量，例如 PWD、SHLVL、_
    base_env = _run_env(BASE_ENV_COMMAND, groups_file, "base environment variables")
    base_names = parse_env_names(base_env)

    # set -a 让没有 export 的赋值也出现在 env 中；无效的行（例如 0a=...）只会
    # 让 bash 报错，不影响其他赋值
    file_script = f"set -a; source {shlex.quote(groups_file)} ; env"
    file_env = _run_env(
        ["env", "-i", "bash", "-c", file_script],
        groups_file,
        "host groups file variables",
    )
    file_names = parse_env_names(file_env)

    groups = sorted(
        name
        for name in file_names - base_names
        if GROUP_NAME_PATTERN.match(name)
    )
    logger.info("valid host groups in %s: %s", groups_file, groups)
    return groups


def resolve_host_groups(host_groups: Iterable[str], groups_file: str) -> List[str]:
    """把主机组名称解析为地址列表

    所有组必须存在于文件中，否则不返回任何地址。地址保持组的顺序，
    跨组的重复地址不会被去除。
    """

    host_groups = list(host_groups)
    logger.info("groups file: %s", groups_file)
    logger.info("host groups: %s", host_groups)

    file_groups = set(valid_host_groups(groups_file))

    # 每个组生成一个 ${<group>} 参数
    group_refs = []
    for group in host_groups:
        if group not in file_groups:
            raise UnknownGroupError(group, groups_file)
        group_refs.append("${%s}" % group)

    # set -f 关闭通配符展开，echo 只做分词
    script = f"source {shlex.quote(groups_file)} ; set -f ; echo {' '.join(group_refs)}"
    try:
        proc = subprocess.run(
            ["bash", "-c", script],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True,
        )
    except OSError as e:
        raise ShellExpansionError(host_groups, groups_file, str(e)) from e

    output = proc.stdout
    if output.endswith("\n"):
        output = output[:-1]
    if proc.returncode != 0:
        raise ShellExpansionError(
            host_groups,
            groups_file,
            f"exit status {proc.returncode}",
            (output + "\n" + proc.stderr).strip(),
        )
    if proc.stderr:
        # 文件中的无效行不算错误
        logger.info("bash reported while sourcing %s: %s", groups_file, proc.stderr.strip())

    addresses = output.split()
    logger.info("resolved %d host addresses: %s", len(addresses), addresses)
    return addresses
