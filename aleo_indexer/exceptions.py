"""Module that defines the base exception of the indexer.

"""


class BaseError(Exception):
    """Base exception class for all indexer errors.

    """
    pass


class ConfigurationError(BaseError):
    """Exception class for invalid or missing configuration. These
    errors are fatal and abort the start-up of the indexer.

    """
    pass
