"""Module for assembling the components of the indexer.

"""
import dataclasses
import logging
import threading
import typing

from aleo_indexer.config import IndexerSettings
from aleo_indexer.coordinator import ProgramCoordinator
from aleo_indexer.database import Database
from aleo_indexer.database.registry import TableRegistry
from aleo_indexer.definitions import load_definitions
from aleo_indexer.domain import ProgramDefinition
from aleo_indexer.rpc import AleoRpcClient
from aleo_indexer.scheduler import Scheduler

_logger = logging.getLogger(__name__)
"""Logger for this module."""


@dataclasses.dataclass
class IndexerContext:
    """Components shared by the whole indexer for the lifetime of the
    process.

    """
    settings: IndexerSettings
    programs: tuple[ProgramDefinition, ...]
    database: Database
    registry: TableRegistry
    rpc_client: AleoRpcClient
    stop_event: threading.Event = dataclasses.field(
        default_factory=threading.Event)

    @staticmethod
    def create(
        settings: IndexerSettings,
        programs: typing.Optional[typing.Sequence[ProgramDefinition]] = None
    ) -> 'IndexerContext':
        """Create the context from the settings.

        Parameters
        ----------
        settings : IndexerSettings
            The indexer settings.
        programs : sequence of ProgramDefinition, optional
            The program definitions; loaded from the configured
            definitions file if not given.

        Raises
        ------
        ConfigurationError
            If the program definitions are invalid.

        """
        if programs is None:
            programs = load_definitions(settings.definitions_path)
        programs = tuple(programs)
        registry = TableRegistry(programs)
        return IndexerContext(settings, programs,
                              Database(settings.database_url), registry,
                              AleoRpcClient(settings.rpc))

    def initialize_database(self) -> None:
        """Create the indexer and registry tables which do not exist
        yet.

        """
        self.database.create_all(self.registry.metadata)

    def create_scheduler(self) -> Scheduler:
        """Create the scheduler driving one coordinator per program.

        """
        coordinators = [
            ProgramCoordinator(
                program, self.database, self.registry, self.rpc_client,
                batch_size=self.settings.batch_size,
                max_pages_per_function=self.settings.max_pages_per_function,
                function_concurrency=self.settings.function_concurrency,
                cancel_event=self.stop_event) for program in self.programs
        ]
        return Scheduler(coordinators,
                         program_concurrency=self.settings.program_concurrency,
                         cycle_interval=self.settings.cycle_interval,
                         stop_event=self.stop_event)

    def close(self) -> None:
        """Release the database connections.

        """
        self.database.dispose()
        _logger.debug('indexer context closed')
