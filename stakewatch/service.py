import asyncio
import signal

from stakewatch.config import Config
from stakewatch.logger.base import get_logger
from stakewatch.metrics import Metrics
from stakewatch.nodes.reconciler import NominatorReconciler
from stakewatch.storage.candidates import CandidateRegistry
from stakewatch.storage.db import Db
from stakewatch.storage.nominators import NominationLedger
from stakewatch.telemetry.client import TelemetryClient

log = get_logger('SERVICE')


class MonitorService:
    def __init__(self, config: Config, metrics: Metrics = None):
        self.config = config
        self.metrics = metrics or Metrics()

        self.db = None
        self.registry = None
        self.ledger = None
        self.reconciler = None
        self.telemetry = None

        self.stopping = False
        self.stopped = asyncio.Event()

    async def start(self, db: Db = None) -> None:
        if self.config.metrics_port:
            self.metrics.serve(self.config.metrics_port)

        # Raises PersistenceConnectionError when the store is unreachable
        db = db or await Db.create(uri=self.config.mongo_uri, metrics=self.metrics)

        # stop() ran while the store was connecting
        if self.stopping:
            db.close()
            return

        self.db = db

        self.registry = CandidateRegistry(db=self.db)
        self.ledger = NominationLedger(db=self.db, registry=self.registry)
        self.reconciler = NominatorReconciler(ledger=self.ledger, sink=self.registry, era_store=self.db)

        self.telemetry = TelemetryClient(
            config=self.config.telemetry,
            reporter=self.reconciler,
            metrics=self.metrics
        )

        await self.telemetry.start()

    async def stop(self) -> None:
        if self.stopping:
            return

        self.stopping = True

        if self.telemetry is not None:
            await self.telemetry.stop()

        if self.db is not None:
            self.db.close()

        log.info('Stopped.')
        self.stopped.set()

    def setup_signal_handler(self, loop) -> None:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(self.stop()))

    async def run(self) -> None:
        self.setup_signal_handler(asyncio.get_running_loop())

        await self.start()
        await self.stopped.wait()
