"""Module for the registry of the function and mapping tables described
by the program definitions.

"""
import dataclasses
import typing

import sqlalchemy

from aleo_indexer.database.models import Base
from aleo_indexer.domain import FunctionDefinition
from aleo_indexer.domain import MappingDefinition
from aleo_indexer.domain import PrimitiveKind
from aleo_indexer.domain import ProgramDefinition
from aleo_indexer.domain import SemanticType
from aleo_indexer.exceptions import ConfigurationError

FUNCTION_BASE_COLUMNS = ('id', 'transaction_id', 'transition_id')
"""Columns every function table carries."""

_PRIMITIVE_COLUMN_TYPES: dict[PrimitiveKind, typing.Callable[[],
                                                             typing.Any]] = {
    PrimitiveKind.ADDRESS: lambda: sqlalchemy.String(63),
    PrimitiveKind.FIELD: lambda: sqlalchemy.String(255),
    PrimitiveKind.BOOLEAN: sqlalchemy.Boolean,
    PrimitiveKind.U8: sqlalchemy.SmallInteger,
    PrimitiveKind.U16: sqlalchemy.Integer,
    PrimitiveKind.U32: sqlalchemy.BigInteger,
    PrimitiveKind.U64: lambda: sqlalchemy.String(40),
    PrimitiveKind.U128: lambda: sqlalchemy.String(40)
}
"""Storage column type of each primitive kind."""

_INTEGER_KEY_KINDS = frozenset(
    [PrimitiveKind.U8, PrimitiveKind.U16, PrimitiveKind.U32])


@dataclasses.dataclass(frozen=True)
class FunctionTable:
    """Table descriptor of a function.

    """
    program_id: str
    definition: FunctionDefinition
    table: sqlalchemy.Table

    @property
    def data_columns(self) -> list[str]:
        """The columns written from a function row."""
        return [
            column.name for column in self.table.columns
            if column.name != 'id'
        ]


@dataclasses.dataclass(frozen=True)
class MappingTable:
    """Table descriptor of a mapping.

    """
    program_id: str
    definition: MappingDefinition
    table: sqlalchemy.Table


def column_type(semantic_type: typing.Optional[SemanticType]) -> typing.Any:
    """Get the storage column type of a semantic type. Primitives map
    to scalar columns, structs, records, arrays and untyped values to
    JSON.

    """
    if semantic_type is None or not semantic_type.is_primitive:
        return sqlalchemy.JSON
    return _PRIMITIVE_COLUMN_TYPES[typing.cast(PrimitiveKind,
                                               semantic_type.primitive)]()


class TableRegistry:
    """Registry of the function and mapping tables. It is built once
    from the program definitions and validated eagerly, so an unknown
    table reference fails at start-up rather than at first use.

    Attributes
    ----------
    metadata : sqlalchemy.MetaData
        Metadata holding the indexer tables and every registry table.

    """
    def __init__(self, programs: typing.Sequence[ProgramDefinition]):
        """Construct an instance.

        Parameters
        ----------
        programs : sequence of ProgramDefinition
            The validated program definitions.

        Raises
        ------
        ConfigurationError
            If a function declares the same column twice or a column
            named like one of the base columns.

        """
        self.metadata = sqlalchemy.MetaData()
        for table in Base.metadata.tables.values():
            table.to_metadata(self.metadata)
        self.__function_tables: dict[tuple[str, str], FunctionTable] = {}
        self.__mapping_tables: dict[tuple[str, str], MappingTable] = {}
        for program in programs:
            for function in program.functions:
                self.__function_tables[(program.program_id, function.name)] = \
                    FunctionTable(program.program_id, function,
                                  self.__build_function_table(function))
            for mapping in program.mappings:
                self.__mapping_tables[(program.program_id, mapping.name)] = \
                    MappingTable(program.program_id, mapping,
                                 self.__build_mapping_table(mapping))

    def function_table(self, program_id: str,
                       function_name: str) -> FunctionTable:
        """Get the table descriptor of a function.

        Raises
        ------
        KeyError
            If the function is not registered.

        """
        return self.__function_tables[(program_id, function_name)]

    def mapping_table(self, program_id: str,
                      mapping_name: str) -> typing.Optional[MappingTable]:
        """Get the table descriptor of a mapping, None if the mapping is
        not registered.

        """
        return self.__mapping_tables.get((program_id, mapping_name))

    def __build_function_table(
            self, function: FunctionDefinition) -> sqlalchemy.Table:
        columns: list[sqlalchemy.Column] = []
        names = list(FUNCTION_BASE_COLUMNS)
        for field in (*function.inputs, *function.outputs):
            names.append(field.name)
            columns.append(
                sqlalchemy.Column(field.name, column_type(field.type),
                                  nullable=True))
        for column_name in function.extract:
            names.append(column_name)
            columns.append(
                sqlalchemy.Column(column_name, sqlalchemy.JSON,
                                  nullable=True))
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(
                f'table {function.table_name} declares duplicate or reserved'
                f' column(s) {duplicates}')
        return sqlalchemy.Table(
            function.table_name, self.metadata,
            sqlalchemy.Column('id', sqlalchemy.Integer, primary_key=True,
                              autoincrement=True),
            sqlalchemy.Column('transaction_id', sqlalchemy.String(255),
                              sqlalchemy.ForeignKey('transactions.id'),
                              nullable=False, index=True),
            sqlalchemy.Column('transition_id', sqlalchemy.String(255),
                              nullable=False), *columns,
            sqlalchemy.UniqueConstraint(
                'transaction_id', 'transition_id',
                name=f'uq_{function.table_name}_transition'))

    def __build_mapping_table(
            self, mapping: MappingDefinition) -> sqlalchemy.Table:
        key_type = mapping.key.type
        if key_type.is_primitive and key_type.primitive in _INTEGER_KEY_KINDS:
            key_column_type = column_type(key_type)
        else:
            key_column_type = sqlalchemy.String(255)
        return sqlalchemy.Table(
            mapping.table_name, self.metadata,
            sqlalchemy.Column('key', key_column_type, primary_key=True,
                              autoincrement=False),
            sqlalchemy.Column('value', column_type(mapping.value_type)),
            sqlalchemy.Column('last_updated_block', sqlalchemy.BigInteger,
                              nullable=False))
