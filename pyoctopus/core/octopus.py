"""并行分发引擎

Octopus 用它的许多触手（每个主机一个任务）同时在所有主机上执行同一个动作。
"""

import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from pyoctopus.core.errors import ConnectError, OutputError
from pyoctopus.core.groups import resolve_host_groups, valid_host_groups
from pyoctopus.core.models import Result
from pyoctopus.core.remote import Action, Actor, Transport

HOSTNAME_COMMAND = "hostname"
DEFAULT_MAX_HOSTS = 256

Reporter = Callable[[Result], None]
Resolver = Callable[[List[str], str], List[str]]


class Octopus:
    """在主机组中的每个主机上并行执行动作"""

    def __init__(
        self,
        transport: Optional[Transport],
        host_groups: Iterable[str],
        groups_file: str,
        max_hosts: Optional[int] = DEFAULT_MAX_HOSTS,
        reporter: Optional[Reporter] = None,
        resolver: Resolver = resolve_host_groups,
    ):
        self.transport = transport
        self.host_groups = list(host_groups)
        self.groups_file = groups_file
        self.max_hosts = max_hosts
        self.reporter = reporter
        self.resolver = resolver
        self.results: List[Result] = []
        self.logger = logging.getLogger(__name__)

    def valid_host_groups(self) -> List[str]:
        return valid_host_groups(self.groups_file)

    async def do(self, action: Action) -> int:
        """执行动作并返回出错的主机数

        主机组解析失败时抛出 ResolutionError，此时不会连接任何主机。
        单个主机的失败只会被计数，不会影响其他主机。
        """

        self.logger.info("action: %s", action.describe())
        addresses = self.resolver(self.host_groups, self.groups_file)

        # max_hosts 为 0 或 None 时不限制主机并发数
        slots = asyncio.Semaphore(self.max_hosts or max(len(addresses), 1))
        results: asyncio.Queue = asyncio.Queue()
        tasks = [
            asyncio.create_task(self._tentacle(address, action, results, slots))
            for address in addresses
        ]

        self.results = []
        num_host_errors = 0
        for _ in addresses:
            result = await results.get()
            self.results.append(result)
            if self.reporter:
                self.reporter(result)
            if result.failed:
                num_host_errors += 1

        await asyncio.gather(*tasks)
        return num_host_errors

    async def _tentacle(
        self,
        address: str,
        action: Action,
        results: asyncio.Queue,
        slots: asyncio.Semaphore,
    ):
        result = Result(address=address)
        try:
            async with slots:
                await self._run_on_host(address, action, result)
        except Exception as e:
            self.logger.error(f"Unexpected error for {address}: {e}")
            result.error = e
        finally:
            results.put_nowait(result)

    async def _run_on_host(self, address: str, action: Action, result: Result):
        self.logger.info("dialing host: %s", address)
        try:
            actor = await self.transport.connect(address)
        except Exception as e:
            result.error = e if isinstance(e, ConnectError) else ConnectError(address, e)
            return

        try:
            # 获取主机名与执行动作同时进行，两者都完成后才关闭连接
            hostname, _ = await asyncio.gather(
                self._get_hostname(address, actor, result.hostname),
                self._do_action(action, actor, result),
            )
            result.hostname = hostname
        finally:
            await self._close_actor(address, actor)

    async def _get_hostname(self, address: str, actor: Actor, fallback: str) -> str:
        self.logger.info("running hostname command on host: %s", address)
        try:
            stdout, _ = await actor.run_command(HOSTNAME_COMMAND)
        except Exception as e:
            # 获取主机名失败不算主机出错
            self.logger.info("could not get hostname of %s: %s", address, e)
            return fallback
        return stdout.strip() or fallback

    async def _do_action(self, action: Action, actor: Actor, result: Result):
        try:
            result.stdout, result.stderr = await action.do(actor)
        except OutputError as e:
            result.stdout, result.stderr = e.stdout, e.stderr
            result.error = e
        except Exception as e:
            result.error = e

    async def _close_actor(self, address: str, actor: Actor):
        try:
            await actor.close()
        except Exception as e:
            self.logger.warning(f"error closing connection to {address}: {e}")


async def do(
    host_groups: Iterable[str],
    groups_file: str,
    transport: Transport,
    action: Action,
    **kwargs,
) -> int:
    """Octopus(...).do(action) 的快捷方式"""
    return await Octopus(transport, host_groups, groups_file, **kwargs).do(action)
