"""Module for driving the programs through repeated indexing cycles.

"""
import concurrent.futures
import logging
import threading
import typing

from aleo_indexer import DEFAULT_CYCLE_INTERVAL_SECONDS
from aleo_indexer import DEFAULT_PROGRAM_CONCURRENCY
from aleo_indexer.coordinator import CycleResult
from aleo_indexer.coordinator import ProgramCoordinator

_logger = logging.getLogger(__name__)
"""Logger for this module."""


class Scheduler:
    """Runs one cycle of every program coordinator, waits until all of
    them have settled, sleeps, and repeats.

    """
    def __init__(self, coordinators: typing.Sequence[ProgramCoordinator],
                 program_concurrency: int = DEFAULT_PROGRAM_CONCURRENCY,
                 cycle_interval: float = DEFAULT_CYCLE_INTERVAL_SECONDS,
                 stop_event: typing.Optional[threading.Event] = None):
        """Construct an instance.

        Parameters
        ----------
        coordinators : sequence of ProgramCoordinator
            The coordinators of the configured programs.
        program_concurrency : int
            The number of programs indexed at once.
        cycle_interval : float
            The pause between two cycles in seconds.
        stop_event : threading.Event, optional
            Event which ends the loop once set; the coordinators should
            share it as their cancellation event.

        """
        self.__coordinators = list(coordinators)
        self.__program_concurrency = program_concurrency
        self.__cycle_interval = cycle_interval
        self.stop_event = (stop_event
                           if stop_event is not None else threading.Event())

    def run_cycle(self) -> list[CycleResult]:
        """Run one cycle of every program. A failing program is logged
        and does not affect the others.

        Returns
        -------
        list of CycleResult
            The results of the programs which completed their cycle.

        """
        results = []
        with concurrent.futures.ThreadPoolExecutor(
                max_workers=self.__program_concurrency) as executor:
            futures = {
                executor.submit(coordinator.run_cycle):
                coordinator.program_id
                for coordinator in self.__coordinators
            }
            for future in concurrent.futures.as_completed(futures):
                try:
                    results.append(future.result())
                except Exception:
                    _logger.error(
                        f'indexing cycle of program {futures[future]} failed',
                        exc_info=True)
        return results

    def run(self, once: bool = False) -> None:
        """Run cycles until the stop event is set.

        Parameters
        ----------
        once : bool
            Whether to stop after the first cycle.

        """
        cycle = 0
        while not self.stop_event.is_set():
            cycle += 1
            _logger.info(f'starting indexing cycle {cycle} for '
                         f'{len(self.__coordinators)} program(s)')
            results = self.run_cycle()
            _logger.info(f'indexing cycle {cycle} finished: '
                         f'{sum(result.transactions for result in results)} '
                         'transaction(s) collected')
            if once:
                break
            self.stop_event.wait(self.__cycle_interval)
        _logger.info('scheduler stopped')
