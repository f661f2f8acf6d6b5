"""Module for transforming fetched transactions into table rows and
mapping update candidates.

"""
import dataclasses
import datetime
import logging
import re
import typing

from aleo_indexer.codec import CodecError
from aleo_indexer.codec import decode_value
from aleo_indexer.codec import encode_literal
from aleo_indexer.codec import parse_loose_json
from aleo_indexer.codec import to_storage_value
from aleo_indexer.domain import FieldDefinition
from aleo_indexer.domain import FunctionDefinition
from aleo_indexer.domain import MappingUpdateCandidate
from aleo_indexer.domain import ProgramDefinition
from aleo_indexer.domain import Transaction
from aleo_indexer.domain import Transition
from aleo_indexer.domain import get_finalized_at
from aleo_indexer.domain import get_transaction_id

_logger = logging.getLogger(__name__)
"""Logger for this module."""

_PATH_SEGMENT = re.compile(r'^([^\[\]]*)((?:\[\d+\])*)$')
_PATH_INDEX = re.compile(r'\[(\d+)\]')

_DEFAULT_FINALIZE_KEY_PATH = 'key_id'
_DEFAULT_FINALIZE_VALUE_PATH = 'value_id'


@dataclasses.dataclass
class TransformResult:
    """Rows and mapping update candidates produced from one transition.

    Attributes
    ----------
    base_row : dict
        The row of the transactions table.
    function_row : dict
        The row of the function's table.
    candidates : list of MappingUpdateCandidate
        The mapping update candidates emitted by the function's
        triggers.

    """
    base_row: dict[str, typing.Any]
    function_row: dict[str, typing.Any]
    candidates: list[MappingUpdateCandidate] = dataclasses.field(
        default_factory=list)


def get_nested_value(obj: typing.Any, path: str) -> typing.Any:
    """Look up a value by a dot-separated path which may index lists,
    e.g. "transaction.execution.transitions[0].inputs[1].value".

    Parameters
    ----------
    obj : any
        The object to search.
    path : str
        The path of the value.

    Returns
    -------
    any
        The value, or None if any segment of the path is missing.

    """
    current = obj
    for segment in path.split('.'):
        match = _PATH_SEGMENT.match(segment)
        if match is None:
            return None
        name, indexes = match.groups()
        if name:
            if not isinstance(current, dict) or name not in current:
                return None
            current = current[name]
        for index in _PATH_INDEX.findall(indexes):
            position = int(index)
            if not isinstance(current, list) or position >= len(current):
                return None
            current = current[position]
    return current


def get_transitions(transaction: Transaction) -> list[Transition]:
    """Get the transitions of a transaction's execution, an empty list
    for transactions without an execution.

    """
    execution = transaction.get('transaction', {}).get('execution') or {}
    return list(execution.get('transitions') or [])


def transform_transition(transaction: Transaction, transition: Transition,
                         function: FunctionDefinition) -> TransformResult:
    """Transform one transition of a transaction into its rows and
    mapping update candidates.

    Fields whose configured path is missing are omitted with a warning,
    fields holding an unsupported literal are omitted with an error
    logged; in both cases the rest of the row is still produced.

    Parameters
    ----------
    transaction : Transaction
        The raw transaction.
    transition : Transition
        The transition of the transaction invoking the function.
    function : FunctionDefinition
        The configuration of the invoked function.

    Returns
    -------
    TransformResult
        The base row, the function row and the trigger candidates.

    """
    transaction_id = get_transaction_id(transaction)
    block_height = get_finalized_at(transaction)
    base_row = _create_base_row(transaction, transition, block_height)
    function_row: dict[str, typing.Any] = {
        'transaction_id': transaction_id,
        'transition_id': transition.get('id', transaction_id)
    }
    for field in function.inputs:
        _resolve_field(transaction, transition.get('inputs') or [], field,
                       function_row)
    for field in function.outputs:
        _resolve_field(transaction, transition.get('outputs') or [], field,
                       function_row)
    for column_name, path in function.extract.items():
        value = get_nested_value(transaction, path)
        if value is None:
            _logger.warning(f'extract path {path} of {function.name} not found'
                            f' in transaction {transaction_id}')
            continue
        function_row[column_name] = value
    candidates = _evaluate_triggers(transaction_id, function, function_row,
                                    block_height)
    return TransformResult(base_row, function_row, candidates)


def scan_finalize_log(
        transaction: Transaction,
        program: ProgramDefinition) -> list[MappingUpdateCandidate]:
    """Collect the mapping update candidates of a transaction's
    finalize log entries which write a mapping of the program.

    Parameters
    ----------
    transaction : Transaction
        The raw transaction.
    program : ProgramDefinition
        The program whose mappings are matched against the entries.

    Returns
    -------
    list of MappingUpdateCandidate
        The candidates, in finalize log order.

    """
    candidates = []
    block_height = get_finalized_at(transaction)
    for entry in transaction.get('finalize') or []:
        mapping_id = str(entry.get('mapping_id', ''))
        mapping = program.find_mapping(mapping_id.split('/')[-1])
        if mapping is None:
            continue
        key = get_nested_value(
            entry, mapping.key.rpc_path or _DEFAULT_FINALIZE_KEY_PATH)
        value = get_nested_value(
            entry, mapping.rpc_value_path or _DEFAULT_FINALIZE_VALUE_PATH)
        if key is None or value is None:
            _logger.warning(
                f'finalize entry of mapping {mapping.name} in transaction '
                f'{get_transaction_id(transaction)} has no key or value')
            continue
        candidates.append(
            MappingUpdateCandidate(program.program_id, mapping.name, str(key),
                                   block_height, value=str(value)))
    return candidates


def _create_base_row(transaction: Transaction, transition: Transition,
                     block_height: int) -> dict[str, typing.Any]:
    now = datetime.datetime.now(datetime.timezone.utc)
    timestamp = (datetime.datetime.fromtimestamp(block_height,
                                                 datetime.timezone.utc)
                 if block_height > 0 else now)
    return {
        'id': get_transaction_id(transaction),
        'program_id': transition.get('program', 'unknown'),
        'function_name': transition.get('function', 'unknown'),
        'block_height': block_height,
        'timestamp': timestamp,
        'inserted_at': now,
        'raw': transaction
    }


def _resolve_field(transaction: Transaction,
                   entries: typing.Sequence[dict[str, typing.Any]],
                   field: FieldDefinition,
                   row: dict[str, typing.Any]) -> None:
    transaction_id = get_transaction_id(transaction)
    if field.rpc_path is not None:
        raw_value = get_nested_value(transaction, field.rpc_path)
        location = field.rpc_path
    else:
        raw_value = next((entry.get('value')
                          for entry in entries if entry.get('id') == field.name),
                         None)
        location = f'transition entry {field.name}'
    if raw_value is None:
        _logger.warning(f'value of {field.name} not found at {location} in '
                        f'transaction {transaction_id}')
        return
    try:
        if field.parsed_path is not None:
            parsed = (parse_loose_json(raw_value)
                      if isinstance(raw_value, str) else raw_value)
            raw_value = get_nested_value(parsed, field.parsed_path)
            if raw_value is None:
                _logger.warning(
                    f'parsed path {field.parsed_path} of {field.name} not '
                    f'found in transaction {transaction_id}')
                return
        row[field.name] = to_storage_value(decode_value(raw_value), field.type)
    except CodecError:
        _logger.error(
            f'unable to decode {field.name} of transaction {transaction_id}',
            exc_info=True)


def _evaluate_triggers(transaction_id: str, function: FunctionDefinition,
                       row: dict[str, typing.Any],
                       block_height: int) -> list[MappingUpdateCandidate]:
    candidates = []
    for trigger in function.triggers:
        key = get_nested_value(row, trigger.key_source)
        if key is None:
            _logger.warning(
                f'trigger of mapping {trigger.mapping_name} in {function.name}'
                f' found no key at {trigger.key_source} in transaction '
                f'{transaction_id}')
            continue
        try:
            encoded_key = encode_literal(key, trigger.key_type)
        except CodecError:
            _logger.error(
                f'unable to encode key of mapping {trigger.mapping_name} in '
                f'transaction {transaction_id}', exc_info=True)
            continue
        value = (get_nested_value(row, trigger.value_source)
                 if trigger.value_source is not None else None)
        candidates.append(
            MappingUpdateCandidate(trigger.program_id, trigger.mapping_name,
                                   encoded_key, block_height, value=value))
    return candidates
