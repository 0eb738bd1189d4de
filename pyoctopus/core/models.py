from dataclasses import dataclass, field
from typing import List, Optional


# 无法获取主机名时使用的回退名称，包含原始地址以便识别主机
FALLBACK_HOSTNAME_FORMAT = "{address}: could not get hostname"


def fallback_hostname(address: str) -> str:
    return FALLBACK_HOSTNAME_FORMAT.format(address=address)


@dataclass
class Result:
    """单个主机的执行结果"""

    address: str
    hostname: str = ""
    stdout: str = ""
    stderr: str = ""
    error: Optional[BaseException] = None

    def __post_init__(self):
        # 如果 hostname 为空，就回退到原始地址
        if not self.hostname:
            self.hostname = fallback_hostname(self.address)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "hostname": self.hostname,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "error": str(self.error) if self.error is not None else None,
        }


@dataclass
class CopyFileOptions:
    """文件复制选项"""

    recursive: bool = False


@dataclass
class SFTPOptions:
    """SFTP 子系统参数"""

    block_size_kib: int = 32
    requests_per_file: int = 64

    @property
    def block_size(self) -> int:
        return self.block_size_kib * 1024


@dataclass
class CopyJob:
    """一个本地文件到远程路径的复制任务"""

    local_path: str
    remote_path: str
    # 该任务来源于第几个本地源路径
    source_index: int = 0


@dataclass
class CopyOutcome:
    job: CopyJob
    error: Optional[BaseException] = None
    # 面向用户的失败描述，包含出错的路径
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SourceReport:
    """单个本地源路径的复制统计"""

    path: str
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
