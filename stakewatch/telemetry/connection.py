import asyncio
import inspect
from typing import Callable

import aiohttp

from stakewatch.config import TelemetryConfig, telemetry_config
from stakewatch.logger.base import get_logger

SUBSCRIBE_PREFIX = 'subscribe:'


class FeedConnectionError(ConnectionError):
    pass


def backoff_delay(attempt: int, base: float = 1.0) -> float:
    return base * (2 ** attempt)


class FeedConnection:
    def __init__(self, config: TelemetryConfig = None, on_message: Callable = None, metrics=None):
        self.config = config or telemetry_config()
        self.on_message = on_message
        self.metrics = metrics

        self.session = None
        self.socket = None
        self.listen_task = None

        self.closing = False
        self.stop_event = asyncio.Event()

        self._connected = False

        if not self.enabled:
            self.log('warning', 'Telemetry feed not enabled.')

    @property
    def enabled(self) -> bool:
        return self.config.enable

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def chains(self) -> tuple:
        return self.config.chains

    @property
    def connected(self) -> bool:
        return self._connected

    @connected.setter
    def connected(self, connected: bool) -> None:
        self._connected = connected
        if self.metrics is not None:
            self.metrics.set_telemetry_connectivity(connected)

    @property
    def is_listening(self) -> bool:
        if self.listen_task is None:
            return False
        return not self.listen_task.done()

    def log(self, log_type: str, message: str) -> None:
        named_message = f'[TELEMETRY] {message}'
        logger = get_logger('TELEMETRY')

        if log_type == 'info':
            logger.info(named_message)
        if log_type == 'error':
            logger.error(named_message)
        if log_type == 'warning':
            logger.warning(named_message)
        if log_type == 'fatal':
            logger.fatal(named_message)

    async def wait(self, delay: float) -> bool:
        # Returns False when interrupted by disconnect()
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def connect(self) -> None:
        self.closing = False
        self.stop_event.clear()

        self.log('info', f'Connecting to {self.host}.')

        session = aiohttp.ClientSession()
        try:
            socket = await session.ws_connect(self.host)
            for chain in self.chains:
                await socket.send_str(f'{SUBSCRIBE_PREFIX}{chain}')
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as err:
            await session.close()
            raise FeedConnectionError(f'Could not connect to {self.host}: {err}') from err

        # disconnect() ran during the handshake
        if self.closing:
            await socket.close()
            await session.close()
            raise FeedConnectionError(f'Disconnected while connecting to {self.host}.')

        self.session = session
        self.socket = socket
        self.connected = True

        self.log('info', f'Connected to {self.host}, subscribed to {", ".join(self.chains)}.')

        self.listen_task = asyncio.ensure_future(self.listen())

    async def start(self, attempt: int = 0, max_retries: int = None) -> bool:
        if not self.enabled:
            self.log('warning', 'Telemetry feed not enabled.')
            return False

        if max_retries is None:
            max_retries = self.config.max_retries

        self.closing = False
        self.stop_event.clear()

        while attempt < max_retries:
            try:
                await self.connect()
                return True
            except FeedConnectionError as err:
                self.log('error', f'Telemetry connection error: {err}')

            attempt += 1
            if attempt >= max_retries:
                break

            delay = backoff_delay(attempt - 1)
            self.log('info', f'Attempt {attempt}/{max_retries} failed, retrying in {delay}s.')
            if not await self.wait(delay):
                self.log('info', 'Start interrupted by disconnect.')
                return False

        self.log('fatal', 'Maximum retry attempts reached, giving up.')
        return False

    async def reconnect(self, max_retries: int = None, base_delay: float = None) -> bool:
        if max_retries is None:
            max_retries = self.config.max_retries
        if base_delay is None:
            base_delay = self.config.base_delay

        for attempt in range(max_retries):
            delay = backoff_delay(attempt, base_delay)
            self.log('info', f'Retrying connection in {delay}s.')

            if not await self.wait(delay):
                self.log('info', 'Reconnect interrupted by disconnect.')
                return False

            try:
                await self.connect()
                return True
            except FeedConnectionError as err:
                self.log('error', f'Telemetry error on retry {attempt + 1}/{max_retries}: {err}')

        self.log('fatal', 'Maximum retry attempts reached, giving up.')
        return False

    async def listen(self) -> None:
        socket = self.socket

        try:
            async for msg in socket:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self.dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self.log('error', f'Feed error: {socket.exception()}')
                    break
        finally:
            if socket is self.socket:
                self.connected = False

        if self.closing:
            return

        self.log('warning', 'Feed connection dropped.')
        await self.close_socket()
        await self.reconnect()

    async def dispatch(self, data: str) -> None:
        if self.on_message is None:
            return

        try:
            res = self.on_message(data)
            if inspect.isawaitable(res):
                await res
        except Exception as err:
            self.log('error', f'Error processing feed message: {err}')

    async def check_health(self) -> bool:
        healthy = self.socket is not None and not self.socket.closed

        if not healthy:
            self.log('warning', 'Telemetry service is unhealthy.')

        return healthy

    async def close_socket(self) -> None:
        socket, self.socket = self.socket, None
        session, self.session = self.session, None

        if socket is not None and not socket.closed:
            await socket.close()
        if session is not None and not session.closed:
            await session.close()

    async def disconnect(self) -> None:
        self.closing = True
        self.stop_event.set()

        if self.is_listening and self.listen_task is not asyncio.current_task():
            self.listen_task.cancel()
            try:
                await self.listen_task
            except asyncio.CancelledError:
                pass

        was_connected = self.connected or self.socket is not None
        await self.close_socket()
        self.connected = False

        if was_connected:
            self.log('info', 'Disconnected.')
