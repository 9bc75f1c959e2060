from stakewatch.config import TelemetryConfig, telemetry_config
from stakewatch.logger.base import get_logger
from stakewatch.telemetry.connection import FeedConnection
from stakewatch.telemetry.liveness import NodeLivenessTracker
from stakewatch.telemetry.messages import NodeDirectory, FeedDecodeError, EVENT_CONNECTED, EVENT_DISCONNECTED

log = get_logger('TELEMETRY_CLIENT')


class TelemetryClient:
    def __init__(self, config: TelemetryConfig = None, reporter=None, metrics=None, connection: FeedConnection = None,
                 tracker: NodeLivenessTracker = None):
        self.config = config or telemetry_config()

        self.directory = NodeDirectory()

        self.tracker = tracker or NodeLivenessTracker(
            reporter=reporter,
            offline_threshold=self.config.offline_threshold,
            sweep_interval=self.config.sweep_interval
        )

        self.connection = connection or FeedConnection(config=self.config, metrics=metrics)
        self.connection.on_message = self.process_message

    @property
    def disconnected_nodes(self) -> dict:
        return self.tracker.disconnected_nodes

    @property
    def offline_nodes(self) -> dict:
        return self.tracker.offline_nodes

    async def process_message(self, data: str) -> None:
        try:
            events = self.directory.events(data)
        except FeedDecodeError as err:
            log.warning(f'Dropping undecodable feed frame: {err}')
            return

        for event, name in events:
            if event == EVENT_CONNECTED:
                await self.tracker.node_connected(name)
            elif event == EVENT_DISCONNECTED:
                await self.tracker.node_disconnected(name)

    async def start(self) -> bool:
        if not self.config.enable:
            log.warning('Telemetry client not enabled.')
            return False

        self.tracker.start()
        return await self.connection.start()

    async def check_health(self) -> bool:
        return await self.connection.check_health()

    async def stop(self) -> None:
        await self.connection.disconnect()
        await self.tracker.stop()
