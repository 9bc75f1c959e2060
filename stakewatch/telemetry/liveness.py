import asyncio
import time
from typing import Callable, List, Tuple

from stakewatch.config import DEFAULT_OFFLINE_THRESHOLD, DEFAULT_SWEEP_INTERVAL
from stakewatch.logger.base import get_logger

CONNECTED = 'connected'
DISCONNECTED = 'disconnected'
OFFLINE = 'offline'


class NodeLivenessTracker:
    """
    Classifies telemetry nodes as connected, disconnected or offline.

    A node enters ``disconnected_nodes`` when the feed reports it gone and is
    promoted to ``offline_nodes`` by ``check_offline`` once it has stayed
    disconnected for at least ``offline_threshold`` seconds. The offline entry
    keeps the original disconnect time. Any heartbeat clears both.

    ``reporter`` needs ``report_offline(name)`` and, optionally,
    ``report_online(name)``; both may be coroutines returning a bool.
    """
    def __init__(self, reporter=None, offline_threshold: float = DEFAULT_OFFLINE_THRESHOLD,
                 sweep_interval: float = DEFAULT_SWEEP_INTERVAL, clock: Callable = time.time):
        self.reporter = reporter
        self.offline_threshold = offline_threshold
        self.sweep_interval = sweep_interval
        self.clock = clock

        self.disconnected_nodes = {}
        self.offline_nodes = {}
        self.being_reported = set()
        # Back online while their offline report was in flight
        self.returned_while_reporting = set()

        self.lock = asyncio.Lock()

        self.running = False
        self.sweep_task = None
        self.stop_event = asyncio.Event()

    @property
    def is_sweeping(self) -> bool:
        if self.sweep_task is None:
            return False
        return not self.sweep_task.done()

    def log(self, log_type: str, message: str) -> None:
        named_message = f'[LIVENESS] {message}'
        logger = get_logger('LIVENESS')

        if log_type == 'info':
            logger.info(named_message)
        if log_type == 'error':
            logger.error(named_message)
        if log_type == 'warning':
            logger.warning(named_message)

    def status(self, name: str) -> Tuple[str, float]:
        if name in self.offline_nodes:
            return OFFLINE, self.offline_nodes[name]
        if name in self.disconnected_nodes:
            return DISCONNECTED, self.disconnected_nodes[name]
        return CONNECTED, None

    async def node_connected(self, name: str) -> None:
        async with self.lock:
            self.disconnected_nodes.pop(name, None)
            went_offline = self.offline_nodes.pop(name, None)

            if went_offline is not None and name in self.being_reported:
                self.returned_while_reporting.add(name)
                self.log('info', f'{name} is back online, reporting once its offline report completes.')
                return

        if went_offline is not None:
            self.log('info', f'{name} is back online after being offline since {went_offline}.')
            await self.report('report_online', name)

    async def node_disconnected(self, name: str) -> None:
        async with self.lock:
            if name in self.disconnected_nodes or name in self.offline_nodes:
                return

            self.disconnected_nodes[name] = self.clock()

        self.log('info', f'{name} disconnected.')

    async def check_offline(self) -> List[str]:
        now = self.clock()

        async with self.lock:
            expired = [
                (name, disconnected_at) for name, disconnected_at in self.disconnected_nodes.items()
                if now - disconnected_at >= self.offline_threshold and name not in self.being_reported
            ]

            for name, disconnected_at in expired:
                del self.disconnected_nodes[name]
                self.offline_nodes[name] = disconnected_at
                self.being_reported.add(name)

        for name, disconnected_at in expired:
            self.log('info', f'{name} has been disconnected for more than {self.offline_threshold} seconds.')
            try:
                await self.report('report_offline', name)
            finally:
                async with self.lock:
                    self.being_reported.discard(name)
                    came_back = name in self.returned_while_reporting
                    self.returned_while_reporting.discard(name)

            if came_back:
                await self.report('report_online', name)

        return [name for name, _ in expired]

    async def report(self, method: str, name: str) -> bool:
        report = getattr(self.reporter, method, None)
        if report is None:
            return False

        try:
            res = report(name)
            if asyncio.iscoroutine(res):
                res = await res
        except Exception as err:
            self.log('error', f'Could not {method.replace("_", " ")} for {name}: {err}')
            return False

        if not res:
            self.log('warning', f'{method} for {name} was not acknowledged.')

        return bool(res)

    async def sweep(self) -> None:
        while self.running:
            try:
                await self.check_offline()
            except Exception as err:
                self.log('error', f'Offline sweep failed: {err}')

            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.sweep_interval)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self.is_sweeping:
            return

        self.running = True
        self.stop_event.clear()
        self.sweep_task = asyncio.ensure_future(self.sweep())

        self.log('info', f'Sweeping every {self.sweep_interval}s with an offline threshold of {self.offline_threshold}s.')

    async def stop(self) -> None:
        self.running = False
        self.stop_event.set()

        if self.sweep_task is not None:
            await self.sweep_task

        self.log('info', 'Stopped.')
