"""Aleo indexer entry point.

"""
import argparse
import datetime
import logging
import signal
import sys
import typing

from aleo_indexer.config import DEFAULT_CONFIGURATION_FILE
from aleo_indexer.config import load_settings
from aleo_indexer.context import IndexerContext
from aleo_indexer.database.access import get_all_progress
from aleo_indexer.exceptions import BaseError
from aleo_indexer.logging import initialize_logging

_logger = logging.getLogger(__name__)
"""Logger for this module."""


def run(context: IndexerContext, once: bool) -> None:
    """Index the configured programs until stopped.

    """
    context.initialize_database()

    def stop(signal_number, frame):
        _logger.info(f'received signal {signal_number}, stopping')
        context.stop_event.set()

    signal.signal(signal.SIGINT, stop)
    signal.signal(signal.SIGTERM, stop)
    _logger.info(
        f'===========NEW RUN STARTED ON {datetime.datetime.now()}===========')
    context.create_scheduler().run(once=once)
    _logger.info(
        f'===========RUN FINISHED ON {datetime.datetime.now()}===========')


def view_progress(context: IndexerContext) -> None:
    """Print the progress counter of every indexed function.

    """
    progress = get_all_progress(context.database)
    if not progress:
        print('No progress is saved.')
        return
    for program_id, function_name, processed_count in progress:
        print(f'{program_id}/{function_name}: {processed_count}')


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='aleo_indexer',
                                     description='Aleo Program Indexer')
    parser.add_argument('--config', default=DEFAULT_CONFIGURATION_FILE,
                        help='Path of the configuration file')
    commands = parser.add_subparsers(dest='command', required=True)
    run_parser = commands.add_parser('run', help='Index the programs')
    run_parser.add_argument('--once', action='store_true',
                            help='Stop after one indexing cycle')
    commands.add_parser('init-db', help='Create the database tables')
    commands.add_parser('progress',
                        help='View the progress of every function')
    return parser


def main(argv: typing.Optional[typing.Sequence[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except BaseError as error:
        print(f'invalid configuration: {error}', file=sys.stderr)
        return 1
    initialize_logging(settings)
    try:
        context = IndexerContext.create(settings)
    except BaseError:
        _logger.error('unable to start the indexer', exc_info=True)
        return 1
    try:
        if args.command == 'run':
            run(context, args.once)
        elif args.command == 'init-db':
            context.initialize_database()
        else:
            view_progress(context)
    except Exception:
        _logger.error('error', exc_info=True)
        return 1
    finally:
        context.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
