"""本地文件并行复制到远程目录"""

import asyncio
import logging
import os
import posixpath
import stat
from typing import List, Optional, Sequence, Tuple

from pyoctopus.core.errors import CopyError
from pyoctopus.core.models import CopyFileOptions, CopyJob, CopyOutcome, SourceReport
from pyoctopus.core.paths import abs_path
from pyoctopus.core.remote import Action, Actor

logger = logging.getLogger(__name__)

# 大多数系统的默认打开文件数上限是 1024，这里留出余量
DEFAULT_MAX_FILE_POINTERS = 512
DEFAULT_MAX_WORKERS = 64

REMOTE_ROOT_DIR_MODE = 0o755


class FilePointerPool:
    """限制本地同时打开文件数的计数信号量

    本地文件句柄是进程级资源，同一个池应由所有主机的复制任务共享。
    """

    def __init__(self, capacity: int = DEFAULT_MAX_FILE_POINTERS):
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self.capacity = capacity
        self.in_use = 0
        self.peak = 0
        self._semaphore = asyncio.Semaphore(capacity)

    async def acquire(self):
        await self._semaphore.acquire()
        self.in_use += 1
        self.peak = max(self.peak, self.in_use)

    def release(self):
        self.in_use -= 1
        self._semaphore.release()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()


class FileCopier(Action):
    """把本地文件和目录复制到远程目录的动作

    单个文件直接复制到远程目录中；目录只有在 recursive 为真时才会被遍历，
    远程会保留相对路径。每个失败的路径单独记录，不影响其他路径。
    """

    def __init__(
        self,
        local_sources: Sequence[str],
        remote_dir: str,
        options: Optional[CopyFileOptions] = None,
        file_pointers: Optional[FilePointerPool] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        if max_workers <= 0:
            raise ValueError(f"max_workers must be > 0, got {max_workers}")
        self.local_sources = list(local_sources)
        self.remote_dir = remote_dir
        self.options = options or CopyFileOptions()
        self.file_pointers = file_pointers or FilePointerPool()
        self.max_workers = max_workers

    def describe(self) -> str:
        return (
            f"copy {len(self.local_sources)} local source(s) "
            f"{self.local_sources} to remote dir {self.remote_dir}"
        )

    async def do(self, actor: Actor) -> Tuple[str, str]:
        # 远程根目录创建失败时不再尝试复制任何文件
        await actor.create_remote_dir(self.remote_dir, REMOTE_ROOT_DIR_MODE)

        reports: List[SourceReport] = []
        jobs: List[CopyJob] = []
        for index, source in enumerate(self.local_sources):
            report = SourceReport(path=abs_path(source))
            reports.append(report)
            jobs.extend(await self._plan_source(actor, index, report))

        for outcome in await self._run_jobs(actor, jobs):
            if not outcome.ok:
                reports[outcome.job.source_index].failures.append(outcome.detail)

        failures = [failure for report in reports for failure in report.failures]
        num_ok = sum(1 for report in reports if report.ok)
        stdout = (
            f"copied {num_ok} of {len(reports)} local source(s) to {self.remote_dir}\n"
        )

        if failures:
            stderr = "".join(f"{failure}\n" for failure in failures)
            raise CopyError(len(failures), stdout=stdout, stderr=stderr)
        return stdout, ""

    async def _plan_source(
        self, actor: Actor, index: int, report: SourceReport
    ) -> List[CopyJob]:
        """单个文件生成一个任务；目录则创建远程目录并为每个文件生成任务"""

        source_path = report.path
        try:
            info = os.stat(source_path)
        except OSError as e:
            report.failures.append(
                f"could not get info about source path {source_path}: {e}"
            )
            return []

        if not stat.S_ISDIR(info.st_mode):
            remote_path = posixpath.join(self.remote_dir, os.path.basename(source_path))
            return [CopyJob(source_path, remote_path, index)]

        if not self.options.recursive:
            report.failures.append(
                f"skipping local path {source_path} because it is a directory "
                "and recursive copy is not enabled"
            )
            return []

        return await self._walk_dir(actor, index, report)

    async def _walk_dir(
        self, actor: Actor, index: int, report: SourceReport
    ) -> List[CopyJob]:
        source_path = report.path
        # 源目录本身也会出现在远程目录中
        source_root = os.path.dirname(source_path)
        walk_errors: List[OSError] = []
        jobs = []

        for dir_path, dir_names, file_names in os.walk(
            source_path, onerror=walk_errors.append
        ):
            rel_path = os.path.relpath(dir_path, source_root)
            remote_dir = posixpath.join(self.remote_dir, *rel_path.split(os.sep))
            try:
                mode = stat.S_IMODE(os.stat(dir_path).st_mode)
                await actor.create_remote_dir(remote_dir, mode)
            except Exception as e:
                report.failures.append(f"{e}")
                # 不再进入该目录
                dir_names[:] = []
                continue

            # os.walk 不进入指向目录的符号链接，单独记为失败
            for name in [n for n in dir_names if os.path.islink(os.path.join(dir_path, n))]:
                dir_names.remove(name)
                report.failures.append(
                    f"skipping local path {os.path.join(dir_path, name)} because it is "
                    "a symlink to a directory"
                )
            dir_names.sort()
            for name in sorted(file_names):
                jobs.append(
                    CopyJob(
                        os.path.join(dir_path, name),
                        posixpath.join(remote_dir, name),
                        index,
                    )
                )

        for e in walk_errors:
            report.failures.append(
                f"could not access local dir or file {e.filename}: {e}"
            )
        return jobs

    async def _run_jobs(self, actor: Actor, jobs: List[CopyJob]) -> List[CopyOutcome]:
        if not jobs:
            return []

        num_workers = min(self.max_workers, self.file_pointers.capacity, len(jobs))
        logger.info("copying %d file(s) with %d worker(s)", len(jobs), num_workers)

        queue: asyncio.Queue = asyncio.Queue()
        for job in jobs:
            queue.put_nowait(job)

        outcomes: List[CopyOutcome] = []

        async def worker():
            while True:
                try:
                    job = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                outcomes.append(await self._copy_file(actor, job))

        await asyncio.gather(*(worker() for _ in range(num_workers)))
        return outcomes

    async def _copy_file(self, actor: Actor, job: CopyJob) -> CopyOutcome:
        # 打开本地文件之前占用一个文件句柄，关闭之后释放
        async with self.file_pointers:
            try:
                local_file = open(job.local_path, "rb")
            except OSError as e:
                return CopyOutcome(
                    job,
                    e,
                    f"could not open local file {job.local_path} for reading: {e}",
                )

            with local_file:
                try:
                    info = os.fstat(local_file.fileno())
                    await actor.copy_file_to_remote(local_file, job.remote_path, info)
                except Exception as e:
                    return CopyOutcome(
                        job,
                        e,
                        f"failed to copy file {job.local_path} to remote at "
                        f"{job.remote_path}: {e}",
                    )

        return CopyOutcome(job)
