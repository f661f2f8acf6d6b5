"""Module for paging through the transactions of one program function.

"""
import dataclasses
import enum
import logging
import threading
import typing

from aleo_indexer import DEFAULT_BATCH_SIZE
from aleo_indexer import DEFAULT_MAX_PAGES_PER_FUNCTION
from aleo_indexer.domain import Transaction
from aleo_indexer.domain import get_transaction_id
from aleo_indexer.domain import is_indexable
from aleo_indexer.rpc import AleoRpcClient
from aleo_indexer.rpc import RpcError
from aleo_indexer.rpc import RpcPermanentError

_logger = logging.getLogger(__name__)
"""Logger for this module."""


class FetchState(enum.Enum):
    """Enumeration of the states a fetch loop can end in.

    """
    EXHAUSTED = 'exhausted'
    PAGE_LIMIT_REACHED = 'page_limit_reached'
    ABORTED = 'aborted'
    CANCELLED = 'cancelled'


@dataclasses.dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch loop run.

    Attributes
    ----------
    function_name : str
        The name of the fetched function.
    processed_count : int
        The progress counter after the run; it counts every fetched
        entry past the previous counter, whether or not another
        function already collected the same transaction.
    state : FetchState
        The state the loop ended in.
    pages : int
        The number of pages requested from the RPC.

    """
    function_name: str
    processed_count: int
    state: FetchState
    pages: int


class TransactionCollector:
    """Per-program set of fetched transactions, deduplicated by
    transaction id. Safe to fill from several fetch loops at once.

    """
    def __init__(self):
        """Construct an instance.

        """
        self.__lock = threading.Lock()
        self.__transactions: dict[str, Transaction] = {}

    def add(self, transaction: Transaction) -> bool:
        """Add a transaction unless one with the same id was already
        added.

        Returns
        -------
        bool
            True if the transaction was added.

        """
        transaction_id = get_transaction_id(transaction)
        with self.__lock:
            if transaction_id in self.__transactions:
                return False
            self.__transactions[transaction_id] = transaction
            return True

    @property
    def transactions(self) -> list[Transaction]:
        """The collected transactions in insertion order."""
        with self.__lock:
            return list(self.__transactions.values())

    def __len__(self) -> int:
        with self.__lock:
            return len(self.__transactions)


class FunctionFetchLoop:
    """Fetch loop of one program function. Each run requests the pages
    following the persisted progress counter until the RPC runs out of
    transactions or the page limit of a cycle is reached.

    """
    def __init__(self, rpc_client: AleoRpcClient, program_id: str,
                 function_name: str, collector: TransactionCollector,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 max_pages: int = DEFAULT_MAX_PAGES_PER_FUNCTION,
                 cancel_event: typing.Optional[threading.Event] = None):
        """Construct an instance.

        Parameters
        ----------
        rpc_client : AleoRpcClient
            The RPC client.
        program_id : str
            The program id.
        function_name : str
            The function name.
        collector : TransactionCollector
            The collector shared by the fetch loops of the program.
        batch_size : int
            The number of transactions requested per page.
        max_pages : int
            The maximum number of pages requested per run.
        cancel_event : threading.Event, optional
            Event which stops the loop before the next page once set.

        """
        self.__rpc_client = rpc_client
        self.__program_id = program_id
        self.__function_name = function_name
        self.__collector = collector
        self.__batch_size = batch_size
        self.__max_pages = max_pages
        self.__cancel_event = cancel_event

    def run(self, processed_count: int) -> FetchOutcome:
        """Fetch the transactions following the progress counter.

        Parameters
        ----------
        processed_count : int
            The persisted progress counter of the function.

        Returns
        -------
        FetchOutcome
            The advanced counter and the state the loop ended in.

        """
        name = f'{self.__program_id}/{self.__function_name}'
        _logger.info(f'fetching {name} from processed count '
                     f'{processed_count}')
        count = processed_count
        pages = 0
        state = FetchState.PAGE_LIMIT_REACHED
        while pages < self.__max_pages:
            if (self.__cancel_event is not None
                    and self.__cancel_event.is_set()):
                state = FetchState.CANCELLED
                break
            page, offset = divmod(count, self.__batch_size)
            pages += 1
            try:
                response = self.__rpc_client.get_transactions_for_program(
                    self.__program_id, self.__function_name, page,
                    self.__batch_size)
            except RpcPermanentError as error:
                _logger.error(f'permanent error fetching page {page} of '
                              f'{name}: {error}')
                state = FetchState.ABORTED
                break
            except RpcError as error:
                _logger.warning(f'error fetching page {page} of {name}: '
                                f'{error}')
                state = FetchState.ABORTED
                break
            batch = [
                transaction for transaction in response
                if is_indexable(transaction)
            ]
            if not batch:
                _logger.info(f'no new transactions for {name} on page {page}')
                state = FetchState.EXHAUSTED
                break
            new_transactions = batch[offset:]
            if not new_transactions:
                _logger.info(f'page {page} of {name} already processed '
                             f'(offset {offset})')
                state = FetchState.EXHAUSTED
                break
            added = sum(
                self.__collect(transaction, name)
                for transaction in new_transactions)
            count += len(new_transactions)
            _logger.debug(f'collected {added} of {len(new_transactions)} '
                          f'transactions of {name} on page {page}')
            if len(batch) < self.__batch_size:
                state = FetchState.EXHAUSTED
                break
        _logger.info(f'fetching {name} ended {state.value} at processed count'
                     f' {count} after {pages} page(s)')
        return FetchOutcome(self.__function_name, count, state, pages)

    def __collect(self, transaction: Transaction, name: str) -> bool:
        try:
            return self.__collector.add(transaction)
        except (KeyError, TypeError):
            _logger.warning(f'skipping a transaction of {name} without an id')
            return False
