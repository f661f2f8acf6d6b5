"""Module that defines database-specific exceptions.

"""
from aleo_indexer.exceptions import BaseError


class DatabaseError(BaseError):
    """Base exception class for all database errors.

    """
    pass
