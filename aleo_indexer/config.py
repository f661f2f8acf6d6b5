"""Module for loading the runtime settings of the indexer.

"""
import configparser
import dataclasses
import os
import typing

from aleo_indexer import DEFAULT_BATCH_SIZE
from aleo_indexer import DEFAULT_CYCLE_INTERVAL_SECONDS
from aleo_indexer import DEFAULT_FUNCTION_CONCURRENCY
from aleo_indexer import DEFAULT_MAX_PAGES_PER_FUNCTION
from aleo_indexer import DEFAULT_PROGRAM_CONCURRENCY
from aleo_indexer.exceptions import ConfigurationError

DEFAULT_CONFIGURATION_FILE = 'config.ini'
"""Configuration file path."""

_RPC_URL_ENVIRONMENT_VARIABLE = 'ALEO_RPC_URL'
_DATABASE_URL_ENVIRONMENT_VARIABLE = 'DATABASE_URL'


@dataclasses.dataclass(frozen=True)
class RpcSettings:
    """Settings of the RPC client.

    """
    url: str
    max_tries: int = 5
    initial_delay: float = 1.0
    max_delay: float = 60.0
    timeout: float = 30.0
    permanent_error_code: int = 0


@dataclasses.dataclass(frozen=True)
class IndexerSettings:
    """All runtime settings of the indexer.

    """
    rpc: RpcSettings
    database_url: str
    definitions_path: str = 'programs.json'
    batch_size: int = DEFAULT_BATCH_SIZE
    max_pages_per_function: int = DEFAULT_MAX_PAGES_PER_FUNCTION
    function_concurrency: int = DEFAULT_FUNCTION_CONCURRENCY
    program_concurrency: int = DEFAULT_PROGRAM_CONCURRENCY
    cycle_interval: float = DEFAULT_CYCLE_INTERVAL_SECONDS
    log_level: str = 'INFO'
    log_to_file: bool = False


def read_config(
        path: str = DEFAULT_CONFIGURATION_FILE) -> configparser.ConfigParser:
    """Read the configuration file. A missing file yields an empty
    configuration so that defaults and environment variables apply.

    Parameters
    ----------
    path : str
        The path of the configuration file.

    Returns
    -------
    configparser.ConfigParser
        The configuration object.

    """
    config = configparser.ConfigParser(inline_comment_prefixes=(';', '#'))
    config.read(path)
    return config


def load_settings(
    path: str = DEFAULT_CONFIGURATION_FILE,
    environment: typing.Optional[typing.Mapping[str, str]] = None
) -> IndexerSettings:
    """Load and validate the indexer settings.

    Parameters
    ----------
    path : str
        The path of the configuration file.
    environment : mapping of str to str, optional
        The environment variables to take overrides from. Defaults to
        the process environment.

    Returns
    -------
    IndexerSettings
        The validated settings.

    Raises
    ------
    ConfigurationError
        If a required setting is missing or a setting is invalid.

    """
    return settings_from_config(read_config(path), environment)


def settings_from_config(
    config: configparser.ConfigParser,
    environment: typing.Optional[typing.Mapping[str, str]] = None
) -> IndexerSettings:
    """Build the indexer settings from a parsed configuration.

    Parameters
    ----------
    config : configparser.ConfigParser
        The parsed configuration.
    environment : mapping of str to str, optional
        The environment variables to take overrides from. Defaults to
        the process environment.

    Returns
    -------
    IndexerSettings
        The validated settings.

    Raises
    ------
    ConfigurationError
        If a required setting is missing or a setting is invalid.

    """
    if environment is None:
        environment = os.environ
    for section in ('RPC', 'Database', 'Indexer', 'Logging'):
        if not config.has_section(section):
            config.add_section(section)
    rpc_url = environment.get(_RPC_URL_ENVIRONMENT_VARIABLE,
                              config['RPC'].get('url', ''))
    if not rpc_url:
        raise ConfigurationError('missing RPC url; set [RPC] url or '
                                 f'{_RPC_URL_ENVIRONMENT_VARIABLE}')
    database_url = environment.get(_DATABASE_URL_ENVIRONMENT_VARIABLE,
                                   config['Database'].get('url', ''))
    if not database_url:
        raise ConfigurationError('missing database url; set [Database] url '
                                 f'or {_DATABASE_URL_ENVIRONMENT_VARIABLE}')
    try:
        rpc = RpcSettings(
            url=rpc_url,
            max_tries=config['RPC'].getint('max_tries', 5),
            initial_delay=config['RPC'].getfloat('initial_delay', 1.0),
            max_delay=config['RPC'].getfloat('max_delay', 60.0),
            timeout=config['RPC'].getfloat('timeout', 30.0),
            permanent_error_code=config['RPC'].getint(
                'permanent_error_code', 0))
        indexer = config['Indexer']
        settings = IndexerSettings(
            rpc=rpc, database_url=database_url,
            definitions_path=indexer.get('definitions', 'programs.json'),
            batch_size=indexer.getint('batch_size', DEFAULT_BATCH_SIZE),
            max_pages_per_function=indexer.getint(
                'max_pages_per_function', DEFAULT_MAX_PAGES_PER_FUNCTION),
            function_concurrency=indexer.getint(
                'function_concurrency', DEFAULT_FUNCTION_CONCURRENCY),
            program_concurrency=indexer.getint(
                'program_concurrency', DEFAULT_PROGRAM_CONCURRENCY),
            cycle_interval=indexer.getfloat('cycle_interval',
                                            DEFAULT_CYCLE_INTERVAL_SECONDS),
            log_level=config['Logging'].get('level', 'INFO').upper(),
            log_to_file=config['Logging'].getboolean('file', False))
    except ValueError as error:
        raise ConfigurationError(f'invalid setting: {error}') from error
    _validate_settings(settings)
    return settings


def _validate_settings(settings: IndexerSettings) -> None:
    positive_settings = {
        'batch_size': settings.batch_size,
        'max_pages_per_function': settings.max_pages_per_function,
        'function_concurrency': settings.function_concurrency,
        'program_concurrency': settings.program_concurrency,
        'max_tries': settings.rpc.max_tries
    }
    for name, value in positive_settings.items():
        if value <= 0:
            raise ConfigurationError(f'{name} must be positive, got {value}')
    if settings.cycle_interval < 0:
        raise ConfigurationError('cycle_interval must not be negative')
