"""远程能力接口与动作定义"""

import logging
import os
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class Actor(Protocol):
    """一个到单个远程主机的活动连接

    Actor 只属于创建它的主机任务，但同一个 Actor 上的多个操作可能同时进行。
    """

    async def run_command(self, command: str) -> Tuple[str, str]:
        ...

    async def create_remote_dir(self, dir_path: str, mode: int = 0o755) -> None:
        """创建目录及其不存在的父目录，目录已存在时不报错"""
        ...

    async def copy_file_to_remote(
        self,
        local_file: BinaryIO,
        remote_file_path: str,
        info: Optional[os.stat_result] = None,
    ) -> None:
        ...

    async def close(self) -> None:
        ...


class Transport(Protocol):
    """为主机地址建立连接并返回 Actor

    connect 失败时不会返回 Actor，因此也不需要关闭。
    """

    async def connect(self, host: str) -> Actor:
        ...


class Action(ABC):
    """在 Actor 上执行的一个工作单元

    成功时返回 (stdout, stderr)，失败时抛出异常。携带输出的异常应继承
    OutputError，这样主机结果中仍能保留部分输出。
    """

    @abstractmethod
    async def do(self, actor: Actor) -> Tuple[str, str]:
        ...

    def describe(self) -> str:
        return self.__class__.__name__


class CommandRunner(Action):
    """在远程主机上执行一条命令"""

    def __init__(self, command: str):
        self.command = command

    async def do(self, actor: Actor) -> Tuple[str, str]:
        logger.info("running user command: %s", self.command)
        return await actor.run_command(self.command)

    def describe(self) -> str:
        return f"run command: {self.command}"
