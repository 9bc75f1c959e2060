from prometheus_client import CollectorRegistry, Gauge, start_http_server

from stakewatch.logger.base import get_logger

log = get_logger('METRICS')


class Metrics:
    """
    Connectivity gauges for the telemetry feed and the document store.

    Each instance owns its own CollectorRegistry so several instances can
    live in one process.
    """
    def __init__(self, registry: CollectorRegistry = None):
        self.registry = registry or CollectorRegistry()

        self.telemetry_connectivity = Gauge(
            'telemetry_connectivity',
            'Telemetry feed connectivity (1=connected, 0=disconnected)',
            registry=self.registry
        )
        self.db_connectivity = Gauge(
            'db_connectivity',
            'Document store connectivity (1=connected, 0=disconnected)',
            registry=self.registry
        )

    def set_telemetry_connectivity(self, connected: bool) -> None:
        self.telemetry_connectivity.set(1 if connected else 0)

    def set_db_connectivity(self, connected: bool) -> None:
        self.db_connectivity.set(1 if connected else 0)

    def serve(self, port: int) -> None:
        log.info(f'Exposing metrics on port {port}.')
        start_http_server(port, registry=self.registry)
