import threading
from unittest.mock import patch

import sqlalchemy

from aleo_indexer.coordinator import ProgramCoordinator
from aleo_indexer.database.access import get_function_progress
from aleo_indexer.database.access import get_mapping_value
from aleo_indexer.database.access import update_function_progress
from aleo_indexer.database.exceptions import DatabaseError
from aleo_indexer.database.models import IndexerStateModel
from aleo_indexer.database.models import TransactionModel
from aleo_indexer.rpc import RpcPermanentError

from conftest import PROGRAM_ID
from conftest import make_transaction

REGISTER = 'register_token'
TRANSFER = 'transfer_public'


def create_coordinator(programs, database, registry, rpc_client, **kwargs):
    return ProgramCoordinator(programs[0], database, registry, rpc_client,
                              batch_size=kwargs.pop('batch_size', 5),
                              **kwargs)


def count_rows(database, table):
    with database.get_session() as session:
        return session.execute(
            sqlalchemy.select(sqlalchemy.func.count()).select_from(
                table)).scalar_one()


def register(transaction_id, finalized_at, key='5field', amount='1u8'):
    return make_transaction(transaction_id, REGISTER, finalized_at,
                            inputs=[('r0', key), ('r1', amount)])


class TestProgramCoordinator:

    def test_cycle_writes_rows_and_progress(self, programs, database,
                                            registry, rpc_client):
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [
            register('at1', 100),
            register('at2', 110, key='6field')
        ]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        result = coordinator.run_cycle()
        assert result.transactions == 2
        assert result.write_failures == 0
        assert result.progress == {REGISTER: 2}
        assert get_function_progress(database, PROGRAM_ID) == {REGISTER: 2}
        assert count_rows(database, TransactionModel.__table__) == 2
        table = registry.function_table(PROGRAM_ID, REGISTER).table
        assert count_rows(database, table) == 2
        assert get_mapping_value(
            database, registry.mapping_table(PROGRAM_ID, 'balances'),
            '6field') == (1, 110)

    def test_replay_creates_no_duplicates(self, programs, database, registry,
                                          rpc_client):
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [
            register('at1', 100), register('at2', 110)
        ]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        coordinator.run_cycle()
        with database.session_maker.begin() as session:
            session.execute(sqlalchemy.delete(IndexerStateModel))
        coordinator.run_cycle()
        table = registry.function_table(PROGRAM_ID, REGISTER).table
        assert count_rows(database, TransactionModel.__table__) == 2
        assert count_rows(database, table) == 2
        assert get_function_progress(database, PROGRAM_ID) == {REGISTER: 2}

    def test_progress_resumes_from_stored_count(self, programs, database,
                                                registry, rpc_client):
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [
            register(f'at{index}', 100 + index) for index in range(7)
        ]
        update_function_progress(database, PROGRAM_ID, {REGISTER: 6})
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        result = coordinator.run_cycle()
        assert result.transactions == 1
        assert [
            call[2] for call in rpc_client.transaction_calls
            if call[1] == REGISTER
        ] == [1]
        assert get_function_progress(database, PROGRAM_ID) == {REGISTER: 7}

    def test_progress_never_decreases(self, programs, database, registry,
                                      rpc_client):
        update_function_progress(database, PROGRAM_ID, {REGISTER: 4})
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        result = coordinator.run_cycle()
        assert result.progress == {}
        assert get_function_progress(database, PROGRAM_ID) == {REGISTER: 4}

    def test_write_failure_blocks_progress(self, programs, database,
                                           registry, rpc_client):
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [register('at1', 1)]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        with patch('aleo_indexer.coordinator.add_function_rows',
                   side_effect=DatabaseError('disk full')):
            result = coordinator.run_cycle()
        assert result.write_failures == 1
        assert result.progress == {}
        assert get_function_progress(database, PROGRAM_ID) == {}

    def test_undecodable_input_does_not_stall_progress(self, programs,
                                                       database, registry,
                                                       rpc_client):
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [
            register('at1', 100, amount='ciphertext1qgqxyz')
        ]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        result = coordinator.run_cycle()
        assert result.write_failures == 0
        assert get_function_progress(database, PROGRAM_ID) == {REGISTER: 1}
        table = registry.function_table(PROGRAM_ID, REGISTER).table
        with database.get_session() as session:
            row = session.execute(sqlalchemy.select(table)).one()
        assert row.r0 == '5'
        assert row.r1 is None

    def test_later_transaction_wins_mapping(self, programs, database,
                                            registry, rpc_client):
        first = register('at1', 100, amount='1u8')
        second = register('at2', 200, amount='2u8')
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [second, first]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        coordinator.run_cycle()
        assert get_mapping_value(
            database, registry.mapping_table(PROGRAM_ID, 'balances'),
            '5field') == (2, 200)

    def test_mapping_value_fetched_from_rpc(self, programs, database,
                                            registry, rpc_client):
        rpc_client.transactions[(PROGRAM_ID, TRANSFER)] = [
            make_transaction('at1', TRANSFER, 300,
                             outputs=[('f0', '{arguments: [77field]}')]),
            make_transaction('at2', TRANSFER, 310,
                             outputs=[('f0', '{arguments: [77field]}')])
        ]
        rpc_client.mapping_values[(PROGRAM_ID, 'supplies', '77field')] = \
            '{amount: 5000u128, frozen: false}'
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        coordinator.run_cycle()
        assert rpc_client.mapping_calls == [(PROGRAM_ID, 'supplies',
                                             '77field')]
        assert get_mapping_value(
            database, registry.mapping_table(PROGRAM_ID, 'supplies'),
            '77field') == ({
                'amount': '5000',
                'frozen': False
            }, 310)

    def test_finalize_log_updates_mapping(self, programs, database,
                                          registry, rpc_client):
        transaction = make_transaction(
            'at1', REGISTER, 400, finalize=[{
                'type': 'update_key_value',
                'mapping_id': f'{PROGRAM_ID}/balances',
                'key_id': '9field',
                'value_id': '3u8'
            }])
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [transaction]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        coordinator.run_cycle()
        assert get_mapping_value(
            database, registry.mapping_table(PROGRAM_ID, 'balances'),
            '9field') == (3, 400)

    def test_unconfigured_transition_is_skipped(self, programs, database,
                                                registry, rpc_client):
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [
            make_transaction('at1', 'burn_public', 100)
        ]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        result = coordinator.run_cycle()
        assert result.transactions == 1
        assert count_rows(database, TransactionModel.__table__) == 0
        assert get_function_progress(database, PROGRAM_ID) == {REGISTER: 1}

    def test_failing_function_does_not_stop_siblings(self, programs,
                                                     database, registry,
                                                     rpc_client):
        rpc_client.failures[(PROGRAM_ID, TRANSFER)] = RpcPermanentError(
            'aleoTransactionsForProgram', 0, 'invalid function')
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [register('at1', 1)]
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client)
        result = coordinator.run_cycle()
        assert result.progress == {REGISTER: 1}

    def test_cancelled_cycle_writes_nothing(self, programs, database,
                                            registry, rpc_client):
        rpc_client.transactions[(PROGRAM_ID, REGISTER)] = [register('at1', 1)]
        cancel_event = threading.Event()
        cancel_event.set()
        coordinator = create_coordinator(programs, database, registry,
                                         rpc_client,
                                         cancel_event=cancel_event)
        result = coordinator.run_cycle()
        assert result.cancelled is True
        assert count_rows(database, TransactionModel.__table__) == 0
        assert get_function_progress(database, PROGRAM_ID) == {}
