"""Module for running one indexing cycle of a program.

"""
import concurrent.futures
import dataclasses
import logging
import threading
import typing

from aleo_indexer import DEFAULT_BATCH_SIZE
from aleo_indexer import DEFAULT_FUNCTION_CONCURRENCY
from aleo_indexer import DEFAULT_MAX_PAGES_PER_FUNCTION
from aleo_indexer.database import Database
from aleo_indexer.database.access import add_function_rows
from aleo_indexer.database.access import add_transactions
from aleo_indexer.database.access import get_function_progress
from aleo_indexer.database.access import update_function_progress
from aleo_indexer.database.exceptions import DatabaseError
from aleo_indexer.database.registry import TableRegistry
from aleo_indexer.domain import MappingUpdateCandidate
from aleo_indexer.domain import ProgramDefinition
from aleo_indexer.domain import Transaction
from aleo_indexer.domain import get_finalized_at
from aleo_indexer.domain import get_transaction_id
from aleo_indexer.fetcher import FetchOutcome
from aleo_indexer.fetcher import FetchState
from aleo_indexer.fetcher import FunctionFetchLoop
from aleo_indexer.fetcher import TransactionCollector
from aleo_indexer.mappings import MappingResolver
from aleo_indexer.rpc import AleoRpcClient
from aleo_indexer.transform import get_transitions
from aleo_indexer.transform import scan_finalize_log
from aleo_indexer.transform import transform_transition

_logger = logging.getLogger(__name__)
"""Logger for this module."""


@dataclasses.dataclass
class CycleResult:
    """Summary of one program cycle.

    Attributes
    ----------
    program_id : str
        The program id.
    transactions : int
        The number of unique transactions collected.
    progress : dict of str to int
        The progress counters persisted in this cycle.
    write_failures : int
        The number of failed table writes.
    cancelled : bool
        Whether the cycle was abandoned before writing.

    """
    program_id: str
    transactions: int = 0
    progress: dict[str, int] = dataclasses.field(default_factory=dict)
    write_failures: int = 0
    cancelled: bool = False


@dataclasses.dataclass
class _ExtractedRows:
    base_rows: list[dict[str, typing.Any]] = dataclasses.field(
        default_factory=list)
    function_rows: dict[str, list[dict[str, typing.Any]]] = dataclasses.field(
        default_factory=dict)
    candidates: list[MappingUpdateCandidate] = dataclasses.field(
        default_factory=list)


class ProgramCoordinator:
    """Runs the fetch loops of every function of a program, writes the
    resulting rows, advances the progress counters, and updates the
    mapping tables.

    """
    def __init__(self, program: ProgramDefinition, database: Database,
                 registry: TableRegistry, rpc_client: AleoRpcClient,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 max_pages_per_function: int = DEFAULT_MAX_PAGES_PER_FUNCTION,
                 function_concurrency: int = DEFAULT_FUNCTION_CONCURRENCY,
                 cancel_event: typing.Optional[threading.Event] = None):
        """Construct an instance.

        Parameters
        ----------
        program : ProgramDefinition
            The program to index.
        database : Database
            The database.
        registry : TableRegistry
            The registry of the function and mapping tables.
        rpc_client : AleoRpcClient
            The RPC client.
        batch_size : int
            The number of transactions requested per page.
        max_pages_per_function : int
            The page limit of one fetch loop run.
        function_concurrency : int
            The number of fetch loops running at once.
        cancel_event : threading.Event, optional
            Event which abandons the cycle once set.

        """
        self.__program = program
        self.__database = database
        self.__registry = registry
        self.__rpc_client = rpc_client
        self.__batch_size = batch_size
        self.__max_pages_per_function = max_pages_per_function
        self.__function_concurrency = function_concurrency
        self.__cancel_event = cancel_event
        self.__mapping_resolver = MappingResolver(database, registry,
                                                  rpc_client)

    @property
    def program_id(self) -> str:
        return self.__program.program_id

    def run_cycle(self) -> CycleResult:
        """Run one indexing cycle of the program.

        Returns
        -------
        CycleResult
            The summary of the cycle.

        Raises
        ------
        DatabaseError
            If the progress counters could not be read or written.

        """
        program_id = self.__program.program_id
        result = CycleResult(program_id)
        if not self.__program.functions:
            _logger.info(f'program {program_id} has no functions to index')
            return result
        stored_progress = get_function_progress(self.__database, program_id)
        collector = TransactionCollector()
        outcomes = self.__fetch(stored_progress, collector)
        if any(outcome.state is FetchState.CANCELLED for outcome in outcomes):
            _logger.info(f'cycle of {program_id} cancelled, nothing written')
            result.cancelled = True
            return result
        transactions = sorted(collector.transactions, key=get_finalized_at)
        result.transactions = len(transactions)
        _logger.info(f'collected {len(transactions)} unique transaction(s) '
                     f'for {program_id}')
        extracted = self.__extract(transactions)
        result.write_failures = self.__write(extracted)
        advanced = {
            outcome.function_name: outcome.processed_count
            for outcome in outcomes if outcome.processed_count >
            stored_progress.get(outcome.function_name, 0)
        }
        if result.write_failures:
            _logger.error(f'{result.write_failures} write(s) of {program_id} '
                          'failed, progress not advanced')
        elif advanced:
            update_function_progress(self.__database, program_id, advanced)
            result.progress = advanced
            _logger.info(f'progress of {program_id} advanced: {advanced}')
        self.__mapping_resolver.resolve(extracted.candidates)
        return result

    def __fetch(self, stored_progress: dict[str, int],
                collector: TransactionCollector) -> list[FetchOutcome]:
        outcomes = []
        with concurrent.futures.ThreadPoolExecutor(
                max_workers=self.__function_concurrency) as executor:
            futures = [
                executor.submit(
                    FunctionFetchLoop(self.__rpc_client,
                                      self.__program.program_id, function.name,
                                      collector, self.__batch_size,
                                      self.__max_pages_per_function,
                                      self.__cancel_event).run,
                    stored_progress.get(function.name, 0))
                for function in self.__program.functions
            ]
            for function, future in zip(self.__program.functions, futures):
                try:
                    outcomes.append(future.result())
                except Exception:
                    _logger.error(
                        f'fetch loop of {self.__program.program_id}/'
                        f'{function.name} failed', exc_info=True)
        return outcomes

    def __extract(self,
                  transactions: typing.Sequence[Transaction]) -> _ExtractedRows:
        extracted = _ExtractedRows()
        base_row_ids = set()
        for transaction in transactions:
            transaction_id = get_transaction_id(transaction)
            for transition in get_transitions(transaction):
                if transition.get('program') != self.__program.program_id:
                    continue
                function = self.__program.find_function(
                    transition.get('function'))
                if function is None:
                    _logger.warning(
                        f'skipping transition {transition.get("id")} of '
                        f'transaction {transaction_id}: function '
                        f'{transition.get("function")} is not configured')
                    continue
                transformed = transform_transition(transaction, transition,
                                                   function)
                if transaction_id not in base_row_ids:
                    base_row_ids.add(transaction_id)
                    extracted.base_rows.append(transformed.base_row)
                extracted.function_rows.setdefault(function.name, []).append(
                    transformed.function_row)
                extracted.candidates.extend(transformed.candidates)
            extracted.candidates.extend(
                scan_finalize_log(transaction, self.__program))
        return extracted

    def __write(self, extracted: _ExtractedRows) -> int:
        failures = 0
        try:
            add_transactions(self.__database, extracted.base_rows)
        except DatabaseError:
            _logger.error(
                f'unable to write {len(extracted.base_rows)} base row(s): '
                f'{[row["id"] for row in extracted.base_rows]}',
                exc_info=True)
            return 1
        for function_name, rows in extracted.function_rows.items():
            function_table = self.__registry.function_table(
                self.__program.program_id, function_name)
            try:
                add_function_rows(self.__database, function_table, rows)
            except DatabaseError:
                failures += 1
                _logger.error(
                    f'unable to write {len(rows)} row(s) into '
                    f'{function_table.table.name}: '
                    f'{[row["transaction_id"] for row in rows]}',
                    exc_info=True)
        return failures
