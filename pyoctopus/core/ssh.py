"""基于 asyncssh 的远程连接实现

注意：不校验远程主机密钥（相当于 StrictHostKeyChecking=no）。
"""

import asyncio
import logging
import os
from typing import BinaryIO, List, Optional, Tuple

import asyncssh

from pyoctopus.core.errors import (
    ConfigError,
    ConnectError,
    RemoteCommandError,
    TransportError,
)
from pyoctopus.core.models import SFTPOptions

logger = logging.getLogger(__name__)


class SSHActor:
    """通过一个 SSH 连接在远程主机上执行操作

    SFTP 子系统只有在需要复制文件时才会启动，并且每个 Actor 最多启动一次。
    """

    def __init__(
        self,
        host: str,
        conn: asyncssh.SSHClientConnection,
        sftp_options: Optional[SFTPOptions] = None,
    ):
        self.host = host
        self._conn = conn
        self.sftp_options = sftp_options or SFTPOptions()
        self._sftp: Optional[asyncssh.SFTPClient] = None
        self._sftp_error: Optional[TransportError] = None
        self._sftp_started = False
        self._sftp_lock = asyncio.Lock()

    async def _sftp_client(self) -> asyncssh.SFTPClient:
        async with self._sftp_lock:
            if not self._sftp_started:
                self._sftp_started = True
                logger.info("establishing SFTP connection to host: %s", self.host)
                try:
                    self._sftp = await self._conn.start_sftp_client()
                except (asyncssh.Error, OSError) as e:
                    self._sftp_error = TransportError(
                        f"failed to start SFTP subsystem on host {self.host}: {e}"
                    )
        if self._sftp_error is not None:
            raise self._sftp_error
        return self._sftp

    async def run_command(self, command: str) -> Tuple[str, str]:
        logger.info("running command on host %s: %s", self.host, command)
        try:
            completed = await self._conn.run(command, check=False)
        except (asyncssh.Error, OSError) as e:
            raise RemoteCommandError(self.host, command, cause=e) from e

        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        if completed.exit_status != 0:
            raise RemoteCommandError(
                self.host,
                command,
                exit_status=completed.exit_status,
                stdout=stdout,
                stderr=stderr,
            )
        return stdout, stderr

    async def create_remote_dir(self, dir_path: str, mode: int = 0o755) -> None:
        sftp = await self._sftp_client()
        error_prefix = f"failed to create remote dir {dir_path} on host {self.host}"
        try:
            # 先检查再创建，/dev/null 这类特殊路径不能直接创建
            if await sftp.exists(dir_path):
                if not await sftp.isdir(dir_path):
                    raise TransportError(f"{error_prefix}. dir exists and is a file")
                return
            await sftp.makedirs(dir_path, exist_ok=True)
            await sftp.chmod(dir_path, mode)
        except (asyncssh.Error, OSError) as e:
            raise TransportError(f"{error_prefix}. {e}") from e

    async def copy_file_to_remote(
        self,
        local_file: BinaryIO,
        remote_file_path: str,
        info: Optional[os.stat_result] = None,
    ) -> None:
        """上传本地文件，保留权限位和修改时间

        本地文件由调用方打开并占用文件句柄池中的一个位置，这里按文件名上传。
        """
        sftp = await self._sftp_client()
        size = info.st_size if info is not None else None
        logger.info(
            "copying %s (%s bytes) to %s:%s", local_file.name, size, self.host, remote_file_path
        )
        try:
            await sftp.put(
                local_file.name,
                remote_file_path,
                preserve=True,
                block_size=self.sftp_options.block_size,
                max_requests=self.sftp_options.requests_per_file,
            )
        except (asyncssh.Error, OSError) as e:
            raise TransportError(
                f"failed to copy file to remote at {remote_file_path} on host {self.host}. {e}"
            ) from e

    async def close(self) -> None:
        errors = []
        if self._sftp is not None:
            logger.info("closing SFTP client for host %s", self.host)
            try:
                self._sftp.exit()
                await self._sftp.wait_closed()
            except (asyncssh.Error, OSError) as e:
                errors.append(e)

        logger.info("closing SSH client for host %s", self.host)
        try:
            self._conn.close()
            await self._conn.wait_closed()
        except (asyncssh.Error, OSError) as e:
            errors.append(e)

        if errors:
            details = ". ".join(str(e) for e in errors)
            raise TransportError(f"error closing connection for host {self.host}. {details}")


class SSHTransport:
    """使用相同的配置建立到各个主机的 SSH 连接"""

    def __init__(
        self,
        user: str = "root",
        port: int = 22,
        identity_files: Optional[List[str]] = None,
        sftp_options: Optional[SFTPOptions] = None,
        connect_timeout: Optional[float] = None,
    ):
        self.user = user
        self.port = port
        self.sftp_options = sftp_options or SFTPOptions()
        self.connect_timeout = connect_timeout
        self._client_keys = []
        for path in identity_files or []:
            self.add_identity_file(path)

    def add_identity_file(self, file_path: str):
        """读取私钥，连接时用于公钥认证"""
        logger.info("adding identity file: %s", file_path)
        try:
            key = asyncssh.read_private_key(file_path)
        except OSError as e:
            raise ConfigError(f"could not read identity file {file_path}: {e}") from e
        except asyncssh.KeyImportError as e:
            raise ConfigError(
                f"unable to parse private key from file {file_path}: {e}"
            ) from e
        self._client_keys.append(key)

    async def connect(self, host: str) -> SSHActor:
        if not self._client_keys:
            raise ConnectError(host, "no ssh authorization methods have been specified")

        connect_kwargs = {
            "host": host,
            "port": self.port,
            "username": self.user,
            "client_keys": self._client_keys,
            "known_hosts": None,
        }
        if self.connect_timeout:
            connect_kwargs["connect_timeout"] = self.connect_timeout

        logger.info("dialing host: %s:%d", host, self.port)
        try:
            conn = await asyncssh.connect(**connect_kwargs)
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            raise ConnectError(host, e) from e
        return SSHActor(host, conn, self.sftp_options)
