import logging
import typing

import pytest

from aleo_indexer.database import Database
from aleo_indexer.database.registry import TableRegistry
from aleo_indexer.definitions import parse_definitions
from aleo_indexer.rpc import RpcError

PROGRAM_ID = 'token_registry.aleo'

_FIELD = {'kind': 'primitive', 'type': 'field'}
_U8 = {'kind': 'primitive', 'type': 'u8'}
_U128 = {'kind': 'primitive', 'type': 'u128'}
_ADDRESS = {'kind': 'primitive', 'type': 'address'}

DEFINITIONS = {
    'programs': [{
        'programId': PROGRAM_ID,
        'functions': [{
            'name': 'register_token',
            'tableName': 'token_registrations',
            'inputs': [{
                'name': 'r0',
                'type': _FIELD
            }, {
                'name': 'r1',
                'type': _U8
            }],
            'triggersMappingUpdates': [{
                'mappingName': 'balances',
                'keySource': 'r0',
                'type': _FIELD,
                'valueSource': 'r1'
            }]
        }, {
            'name': 'transfer_public',
            'tableName': 'public_transfers',
            'inputs': [{
                'name': 'r0',
                'type': _ADDRESS
            }, {
                'name': 'r1',
                'type': _U128
            }],
            'outputs': [{
                'name': 'token_id',
                'type': _FIELD,
                'rpcPath': 'transaction.execution.transitions[0].outputs[0].value',
                'parsedPath': 'arguments[0]'
            }],
            'extract': {
                'fee_payer': 'transaction.fee.transition.program'
            },
            'triggersMappingUpdates': [{
                'mappingName': 'supplies',
                'keySource': 'token_id',
                'type': _FIELD
            }]
        }],
        'mappings': [{
            'name': 'balances',
            'tableName': 'balances',
            'key': {
                'name': 'token_id',
                'type': _FIELD
            },
            'value': _U8
        }, {
            'name': 'supplies',
            'tableName': 'supplies',
            'key': {
                'name': 'token_id',
                'type': _FIELD
            },
            'value': {
                'kind': 'struct',
                'name': 'Supply',
                'fields': {
                    'amount': _U128,
                    'frozen': {
                        'kind': 'primitive',
                        'type': 'boolean'
                    }
                }
            }
        }]
    }]
}


def make_transaction(transaction_id: str, function_name: str,
                     finalized_at: typing.Optional[int] = None,
                     inputs: typing.Sequence[tuple[str, str]] = (),
                     outputs: typing.Sequence[tuple[str, str]] = (),
                     status: str = 'finalized',
                     program_id: str = PROGRAM_ID,
                     finalize: typing.Optional[list] = None) -> dict:
    transaction = {
        'status': status,
        'type': 'execute',
        'transaction': {
            'id': transaction_id,
            'type': 'execute',
            'execution': {
                'transitions': [{
                    'id': f'au1{transaction_id}',
                    'program': program_id,
                    'function': function_name,
                    'inputs': [{
                        'type': 'public',
                        'id': input_id,
                        'value': value
                    } for input_id, value in inputs],
                    'outputs': [{
                        'type': 'future',
                        'id': output_id,
                        'value': value
                    } for output_id, value in outputs]
                }]
            },
            'fee': {
                'transition': {
                    'program': 'credits.aleo'
                }
            }
        }
    }
    if finalized_at is not None:
        transaction['finalizedAt'] = str(finalized_at)
    if finalize is not None:
        transaction['finalize'] = finalize
    return transaction


class FakeRpcClient:
    """Scripted stand-in for AleoRpcClient which serves pages from a
    list of transactions per function.

    """
    def __init__(self):
        self.transactions: dict[tuple[str, str], list[dict]] = {}
        self.mapping_values: dict[tuple[str, str, str], typing.Any] = {}
        self.transaction_calls: list[tuple[str, str, int, int]] = []
        self.mapping_calls: list[tuple[str, str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}

    def get_transactions_for_program(self, program_id, function_name, page,
                                     max_transactions):
        self.transaction_calls.append(
            (program_id, function_name, page, max_transactions))
        failure = self.failures.get((program_id, function_name))
        if failure is not None:
            raise failure
        transactions = self.transactions.get((program_id, function_name), [])
        start = page * max_transactions
        return transactions[start:start + max_transactions]

    def get_mapping_value(self, program_id, mapping_name, key):
        self.mapping_calls.append((program_id, mapping_name, key))
        value = self.mapping_values.get((program_id, mapping_name, key))
        if isinstance(value, RpcError):
            raise value
        return value


@pytest.fixture(autouse=True)
def configure_logging():
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    yield


@pytest.fixture
def programs():
    return parse_definitions(DEFINITIONS)


@pytest.fixture
def registry(programs):
    return TableRegistry(programs)


@pytest.fixture
def database(tmp_path, registry):
    database = Database(f'sqlite:///{tmp_path / "index.db"}')
    database.create_all(registry.metadata)
    yield database
    database.dispose()


@pytest.fixture
def rpc_client():
    return FakeRpcClient()
