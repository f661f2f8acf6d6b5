"""Module for loading the declarative description of the programs to
index.

"""
import json
import logging
import typing

from aleo_indexer.domain import FieldDefinition
from aleo_indexer.domain import FunctionDefinition
from aleo_indexer.domain import MappingDefinition
from aleo_indexer.domain import MappingKey
from aleo_indexer.domain import MappingTrigger
from aleo_indexer.domain import PrimitiveKind
from aleo_indexer.domain import ProgramDefinition
from aleo_indexer.domain import SemanticType
from aleo_indexer.domain import TypeKind
from aleo_indexer.exceptions import ConfigurationError

_logger = logging.getLogger(__name__)
"""Logger for this module."""

RESERVED_TABLE_NAMES = frozenset(['transactions', 'indexer_state'])
"""Tables owned by the indexer itself."""


def load_definitions(path: str) -> tuple[ProgramDefinition, ...]:
    """Load and validate the program definitions from a JSON file.

    Parameters
    ----------
    path : str
        The path of the JSON file.

    Returns
    -------
    tuple of ProgramDefinition
        The program definitions.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or the definitions are invalid.

    """
    try:
        with open(path, 'r', encoding='utf-8') as definitions_file:
            document = json.load(definitions_file)
    except (OSError, json.JSONDecodeError) as error:
        raise ConfigurationError(
            f'unable to read program definitions {path}: {error}') from error
    programs = parse_definitions(document)
    _logger.info(f'loaded {len(programs)} program definition(s) from {path}')
    return programs


def parse_definitions(
        document: typing.Mapping[str, typing.Any]
) -> tuple[ProgramDefinition, ...]:
    """Parse and validate the program definitions.

    Parameters
    ----------
    document : mapping
        The decoded JSON document with a "programs" list.

    Returns
    -------
    tuple of ProgramDefinition
        The program definitions.

    Raises
    ------
    ConfigurationError
        If the definitions are invalid.

    """
    try:
        programs = tuple(
            _parse_program(program) for program in document['programs'])
    except (KeyError, TypeError, ValueError, NameError) as error:
        raise ConfigurationError(
            f'invalid program definitions: {error!r}') from error
    validate_definitions(programs)
    return programs


def parse_semantic_type(
        description: typing.Mapping[str, typing.Any]) -> SemanticType:
    """Parse the JSON description of a semantic type.

    Parameters
    ----------
    description : mapping
        E.g. {"kind": "primitive", "type": "u64"}.

    Returns
    -------
    SemanticType
        The semantic type.

    Raises
    ------
    ConfigurationError
        If the kind or the primitive type is unknown.

    """
    try:
        kind = TypeKind(description['kind'])
    except ValueError:
        raise ConfigurationError(f'unknown type kind {description["kind"]}')
    if kind is TypeKind.PRIMITIVE:
        try:
            return SemanticType.of_primitive(
                PrimitiveKind.from_name(description['type']))
        except NameError:
            raise ConfigurationError(
                f'unknown primitive type {description["type"]}')
    if kind is TypeKind.ARRAY:
        element = description.get('elementType', description.get('arrayType'))
        return SemanticType.of_array(parse_semantic_type(element),
                                     int(description.get('length', 0)))
    fields = {
        name: parse_semantic_type(member)
        for name, member in description.get('fields', {}).items()
    }
    if kind is TypeKind.STRUCT:
        return SemanticType.of_struct(
            description.get('name', description.get('structName', '')),
            fields)
    return SemanticType.of_record(
        description.get('name', description.get('recordName', '')), fields)


def validate_definitions(programs: typing.Sequence[ProgramDefinition]) -> None:
    """Validate the cross references of the program definitions.

    Raises
    ------
    ConfigurationError
        On duplicate programs, functions, mappings or tables, on tables
        named like an indexer table, and on triggers referencing an
        undefined mapping.

    """
    program_ids = _ensure_unique([program.program_id for program in programs],
                                 'program')
    table_names: list[str] = []
    for program in programs:
        _ensure_unique([function.name for function in program.functions],
                       f'function of {program.program_id}')
        _ensure_unique([mapping.name for mapping in program.mappings],
                       f'mapping of {program.program_id}')
        table_names.extend(function.table_name
                           for function in program.functions)
        table_names.extend(mapping.table_name for mapping in program.mappings)
    _ensure_unique(table_names, 'table')
    reserved = RESERVED_TABLE_NAMES.intersection(table_names)
    if reserved:
        raise ConfigurationError(
            f'table name(s) reserved by the indexer: {sorted(reserved)}')
    programs_by_id = dict(zip(program_ids, programs))
    for program in programs:
        for function in program.functions:
            for trigger in function.triggers:
                target = programs_by_id.get(trigger.program_id)
                if target is None:
                    raise ConfigurationError(
                        f'function {program.program_id}/{function.name} '
                        f'triggers unknown program {trigger.program_id}')
                if target.find_mapping(trigger.mapping_name) is None:
                    raise ConfigurationError(
                        f'function {program.program_id}/{function.name} '
                        f'triggers unknown mapping '
                        f'{trigger.program_id}/{trigger.mapping_name}')


def _parse_program(
        description: typing.Mapping[str, typing.Any]) -> ProgramDefinition:
    program_id = description['programId']
    return ProgramDefinition(
        program_id=program_id,
        functions=tuple(
            _parse_function(function, program_id)
            for function in description.get('functions', [])),
        mappings=tuple(
            _parse_mapping(mapping)
            for mapping in description.get('mappings', [])))


def _parse_function(description: typing.Mapping[str, typing.Any],
                    program_id: str) -> FunctionDefinition:
    return FunctionDefinition(
        name=description['name'], table_name=description['tableName'],
        inputs=tuple(
            _parse_field(field) for field in description.get('inputs', [])),
        outputs=tuple(
            _parse_field(field) for field in description.get('outputs', [])),
        extract=dict(description.get('extract', {})),
        triggers=tuple(
            _parse_trigger(trigger, program_id)
            for trigger in description.get('triggersMappingUpdates', [])))


def _parse_field(
        description: typing.Mapping[str, typing.Any]) -> FieldDefinition:
    return FieldDefinition(name=description['name'],
                           type=parse_semantic_type(_type_of(description)),
                           rpc_path=description.get('rpcPath'),
                           parsed_path=description.get('parsedPath'))


def _parse_trigger(description: typing.Mapping[str, typing.Any],
                   program_id: str) -> MappingTrigger:
    type_description = description.get('type', description.get('aleoType'))
    return MappingTrigger(
        program_id=description.get('programId', program_id),
        mapping_name=description['mappingName'],
        key_source=description['keySource'],
        key_type=(parse_semantic_type(type_description)
                  if type_description is not None else None),
        value_source=description.get('valueSource'))


def _parse_mapping(
        description: typing.Mapping[str, typing.Any]) -> MappingDefinition:
    key = description['key']
    return MappingDefinition(
        name=description['name'], table_name=description['tableName'],
        key=MappingKey(name=key['name'],
                       type=parse_semantic_type(_type_of(key)),
                       rpc_path=key.get('rpcPath')),
        value_type=parse_semantic_type(description['value']),
        rpc_value_path=description.get('rpcValuePath'))


def _type_of(
    description: typing.Mapping[str, typing.Any]
) -> typing.Mapping[str, typing.Any]:
    return description.get('type', description.get('aleoType'))


def _ensure_unique(names: list[str], what: str) -> list[str]:
    seen = set()
    for name in names:
        if name in seen:
            raise ConfigurationError(f'duplicate {what} {name}')
        seen.add(name)
    return names
