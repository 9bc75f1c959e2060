from stakewatch.config import DEFAULT_CONFIG_PATH, load_config
from stakewatch.logger.base import get_logger
from stakewatch.service import MonitorService
from stakewatch.storage.db import PersistenceConnectionError

import argparse
import asyncio

logger = get_logger('STARTUP')


def start_service(args) -> int:
    config = load_config(args.config)

    logger.info(f'Telemetry: {config.telemetry.host} ({", ".join(config.telemetry.chains)}), '
                f'enabled={config.telemetry.enable}')

    service = MonitorService(config=config)

    try:
        asyncio.run(service.run())
    except PersistenceConnectionError as err:
        logger.fatal(f'Could not initialize storage: {err}')
        return 1

    return 0


def setup_stakewatch_parser(parser):
    subparser = parser.add_subparsers(title='subcommands', description='stakewatch commands',
                                      help='Shows set of commands', dest='command')

    start_parser = subparser.add_parser('start')
    start_parser.add_argument('-c', '--config', type=str, default=str(DEFAULT_CONFIG_PATH))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="stakewatch Commands", prog='stakewatch')
    setup_stakewatch_parser(parser)
    args = parser.parse_args(argv)

    if vars(args).get('command') is None:
        parser.print_help()
        return 0

    if args.command == 'start':
        return start_service(args)

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
