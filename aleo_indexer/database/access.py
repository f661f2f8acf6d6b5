"""Module for accessing database records.

"""
import datetime
import typing

import sqlalchemy
import sqlalchemy.dialects.postgresql
import sqlalchemy.dialects.sqlite
import sqlalchemy.exc

from aleo_indexer.database import Database
from aleo_indexer.database.exceptions import DatabaseError
from aleo_indexer.database.models import IndexerStateModel
from aleo_indexer.database.models import TransactionModel
from aleo_indexer.database.registry import FunctionTable
from aleo_indexer.database.registry import MappingTable

_INSERT_CONSTRUCTS = {
    'postgresql': sqlalchemy.dialects.postgresql.insert,
    'sqlite': sqlalchemy.dialects.sqlite.insert
}
"""Dialect-specific INSERT constructs supporting ON CONFLICT."""


def get_function_progress(database: Database,
                          program_id: str) -> dict[str, int]:
    """Get the progress counters of the functions of a program.

    Parameters
    ----------
    database : Database
        The database.
    program_id : str
        The program id.

    Returns
    -------
    dict of str to int
        The number of processed transactions of each function which
        has a counter.

    """
    statement = sqlalchemy.select(
        IndexerStateModel.function_name,
        IndexerStateModel.processed_count).where(
            IndexerStateModel.program_id == program_id)
    with database.get_session() as session:
        return {
            function_name: processed_count
            for function_name, processed_count in session.execute(statement)
        }


def get_all_progress(database: Database) -> list[tuple[str, str, int]]:
    """Get the progress counters of all program functions.

    Returns
    -------
    list of tuple of (str, str, int)
        The program id, function name and processed count of every
        counter, ordered by program and function.

    """
    statement = sqlalchemy.select(
        IndexerStateModel.program_id, IndexerStateModel.function_name,
        IndexerStateModel.processed_count).order_by(
            IndexerStateModel.program_id, IndexerStateModel.function_name)
    with database.get_session() as session:
        return [tuple(row) for row in session.execute(statement)]


def update_function_progress(database: Database, program_id: str,
                             progress: typing.Mapping[str, int]) -> None:
    """Insert or raise the progress counters of program functions. A
    stored counter is never lowered.

    Parameters
    ----------
    database : Database
        The database.
    program_id : str
        The program id.
    progress : mapping of str to int
        The new processed count of each function.

    Raises
    ------
    DatabaseError
        If the counters could not be written.

    """
    if not progress:
        return
    now = datetime.datetime.now(datetime.timezone.utc)
    table = IndexerStateModel.__table__
    statement = _insert(database, table)
    statement = statement.on_conflict_do_update(
        index_elements=[table.c.program_id, table.c.function_name],
        set_={
            'processed_count': statement.excluded['processed_count'],
            'last_updated': statement.excluded['last_updated']
        },
        where=(table.c.processed_count
               < statement.excluded['processed_count']))
    rows = [{
        'program_id': program_id,
        'function_name': function_name,
        'processed_count': processed_count,
        'last_updated': now
    } for function_name, processed_count in progress.items()]
    _execute(database, statement, rows,
             f'unable to update the progress of {program_id}')


def add_transactions(database: Database,
                     rows: typing.Sequence[dict[str, typing.Any]]) -> None:
    """Add base transaction rows; rows whose transaction id is already
    stored are ignored.

    Parameters
    ----------
    database : Database
        The database.
    rows : sequence of dict
        The base rows, keyed by column name.

    Raises
    ------
    DatabaseError
        If the rows could not be inserted.

    """
    if not rows:
        return
    table = TransactionModel.__table__
    statement = _insert(database, table).on_conflict_do_nothing(
        index_elements=[table.c.id])
    _execute(database, statement, _complete_rows(rows, table.columns.keys()),
             'unable to insert base transactions')


def add_function_rows(database: Database, function_table: FunctionTable,
                      rows: typing.Sequence[dict[str, typing.Any]]) -> None:
    """Add rows to a function table; rows of an already stored
    transition are ignored.

    Parameters
    ----------
    database : Database
        The database.
    function_table : FunctionTable
        The descriptor of the target table.
    rows : sequence of dict
        The function rows, keyed by column name. Missing columns are
        stored as NULL.

    Raises
    ------
    DatabaseError
        If the rows could not be inserted.

    """
    if not rows:
        return
    table = function_table.table
    statement = _insert(database, table).on_conflict_do_nothing(
        index_elements=[table.c.transaction_id, table.c.transition_id])
    _execute(database, statement,
             _complete_rows(rows, function_table.data_columns),
             f'unable to insert rows into {table.name}')


def upsert_mapping_value(database: Database, mapping_table: MappingTable,
                         key: typing.Any, value: typing.Any,
                         block_height: int) -> None:
    """Insert or overwrite the current value of a mapping key.

    Parameters
    ----------
    database : Database
        The database.
    mapping_table : MappingTable
        The descriptor of the target table.
    key : any
        The storage value of the key.
    value : any
        The storage value of the mapping value.
    block_height : int
        The block height of the update.

    Raises
    ------
    DatabaseError
        If the row could not be written.

    """
    table = mapping_table.table
    statement = _insert(database, table).values(
        key=key, value=value, last_updated_block=block_height)
    statement = statement.on_conflict_do_update(
        index_elements=[table.c['key']],
        set_={
            'value': statement.excluded['value'],
            'last_updated_block': statement.excluded['last_updated_block']
        })
    _execute(database, statement, None,
             f'unable to upsert key {key} into {table.name}')


def get_mapping_value(
        database: Database, mapping_table: MappingTable,
        key: typing.Any) -> typing.Optional[tuple[typing.Any, int]]:
    """Get the stored value of a mapping key.

    Returns
    -------
    tuple of (any, int) or None
        The value and the block height of its last update, or None if
        the key is not stored.

    """
    table = mapping_table.table
    statement = sqlalchemy.select(
        table.c['value'],
        table.c.last_updated_block).where(table.c['key'] == key)
    with database.get_session() as session:
        row = session.execute(statement).one_or_none()
        return None if row is None else (row[0], row[1])


def _insert(database: Database, table: sqlalchemy.Table):
    try:
        return _INSERT_CONSTRUCTS[database.dialect_name](table)
    except KeyError:
        raise DatabaseError(
            f'unsupported database dialect {database.dialect_name}')


def _complete_rows(rows: typing.Sequence[dict[str, typing.Any]],
                   columns: typing.Sequence[str]) -> list[dict[str, typing.Any]]:
    return [{column: row.get(column) for column in columns} for row in rows]


def _execute(database: Database, statement: typing.Any,
             rows: typing.Optional[list[dict[str, typing.Any]]],
             failure_message: str) -> None:
    try:
        with database.session_maker.begin() as session:
            if rows is None:
                session.execute(statement)
            else:
                session.execute(statement, rows)
    except sqlalchemy.exc.SQLAlchemyError as error:
        raise DatabaseError(f'{failure_message}: {error}') from error
