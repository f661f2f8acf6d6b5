"""Module for initializing the console or file logging.

"""
import logging

from aleo_indexer.config import IndexerSettings

_LOG_FILE_NAME = 'run.log'
"""Log file name."""

_LOG_FORMAT = '%(asctime)s %(levelname)s [%(service)s] %(message)s'
"""Log line format; every line carries the emitting service."""

_PACKAGE_PREFIX = 'aleo_indexer.'


class ServiceFilter(logging.Filter):
    """Logging filter which tags each record with the service that
    emitted it. The service is the module name inside the package,
    e.g. "rpc" for records of "aleo_indexer.rpc".

    """
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'service'):
            name = record.name
            if name.startswith(_PACKAGE_PREFIX):
                name = name[len(_PACKAGE_PREFIX):]
            record.service = name
        return True


def initialize_logging(settings: IndexerSettings) -> None:
    """Initialize the logging for the application.

    Parameters
    ----------
    settings : IndexerSettings
        The settings holding the log level and the file flag.

    """
    log_file = _LOG_FILE_NAME if settings.log_to_file else None
    logging.basicConfig(level=settings.log_level, filename=log_file,
                        format=_LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(ServiceFilter())
    logging.getLogger('urllib3').setLevel(logging.WARNING)
