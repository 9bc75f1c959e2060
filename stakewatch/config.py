import json
import pathlib
from collections import namedtuple

STORAGE_HOME = pathlib.Path().home().joinpath('.stakewatch')
DEFAULT_CONFIG_PATH = STORAGE_HOME.joinpath('config.json')

DEFAULT_TELEMETRY_ENDPOINT = 'wss://telemetry-backend.w3f.community/feed'
DEFAULT_CHAINS = ['Kusama']

# A node disconnected for at least this long is considered offline
DEFAULT_OFFLINE_THRESHOLD = 300.0
# Interval between sweeps promoting disconnected nodes to offline
DEFAULT_SWEEP_INTERVAL = 60.0

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 2.0

DEFAULT_MONGO_URI = 'mongodb://localhost:27017/otv'
DEFAULT_METRICS_PORT = None

TelemetryConfig = namedtuple('TelemetryConfig', [
    'enable',
    'host',
    'chains',
    'offline_threshold',
    'sweep_interval',
    'max_retries',
    'base_delay'
])

Config = namedtuple('Config', ['telemetry', 'mongo_uri', 'metrics_port'])


def telemetry_config(enable: bool = True, host: str = DEFAULT_TELEMETRY_ENDPOINT, chains: list = None,
                     offline_threshold: float = DEFAULT_OFFLINE_THRESHOLD,
                     sweep_interval: float = DEFAULT_SWEEP_INTERVAL, max_retries: int = DEFAULT_MAX_RETRIES,
                     base_delay: float = DEFAULT_BASE_DELAY) -> TelemetryConfig:
    if offline_threshold < 0:
        raise ValueError(f'offline_threshold must not be negative, got {offline_threshold}.')

    if sweep_interval <= 0:
        raise ValueError(f'sweep_interval must be positive, got {sweep_interval}.')

    if not isinstance(max_retries, int) or max_retries < 0:
        raise ValueError(f'max_retries must be a non-negative integer, got {max_retries}.')

    if base_delay < 0:
        raise ValueError(f'base_delay must not be negative, got {base_delay}.')

    return TelemetryConfig(
        enable=bool(enable),
        host=host or DEFAULT_TELEMETRY_ENDPOINT,
        chains=tuple(chains if chains is not None else DEFAULT_CHAINS),
        offline_threshold=float(offline_threshold),
        sweep_interval=float(sweep_interval),
        max_retries=max_retries,
        base_delay=float(base_delay)
    )


def config_from_dict(raw: dict) -> Config:
    telemetry = raw.get('telemetry', {})
    db = raw.get('db', {})
    metrics = raw.get('metrics', {})

    return Config(
        telemetry=telemetry_config(
            enable=telemetry.get('enable', True),
            host=telemetry.get('host', DEFAULT_TELEMETRY_ENDPOINT),
            chains=telemetry.get('chains'),
            offline_threshold=telemetry.get('offlineThreshold', DEFAULT_OFFLINE_THRESHOLD),
            sweep_interval=telemetry.get('sweepInterval', DEFAULT_SWEEP_INTERVAL),
            max_retries=telemetry.get('maxRetries', DEFAULT_MAX_RETRIES),
            base_delay=telemetry.get('baseDelay', DEFAULT_BASE_DELAY)
        ),
        mongo_uri=db.get('mongo', {}).get('uri', DEFAULT_MONGO_URI),
        metrics_port=metrics.get('port', DEFAULT_METRICS_PORT)
    )


def load_config(fp) -> Config:
    path = pathlib.Path(fp).expanduser()

    if not path.exists():
        return config_from_dict({})

    with open(str(path), 'r') as f:
        raw = json.load(f)

    return config_from_dict(raw)
