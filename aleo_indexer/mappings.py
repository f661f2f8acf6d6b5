"""Module for resolving mapping update candidates into current state
rows of the mapping tables.

"""
import dataclasses
import logging
import typing

from aleo_indexer.codec import CodecError
from aleo_indexer.codec import decode_key
from aleo_indexer.codec import decode_value
from aleo_indexer.codec import to_storage_value
from aleo_indexer.database import Database
from aleo_indexer.database.access import upsert_mapping_value
from aleo_indexer.database.exceptions import DatabaseError
from aleo_indexer.database.registry import TableRegistry
from aleo_indexer.domain import MappingUpdateCandidate
from aleo_indexer.rpc import AleoRpcClient
from aleo_indexer.rpc import RpcError

_logger = logging.getLogger(__name__)
"""Logger for this module."""


@dataclasses.dataclass(frozen=True)
class ResolutionSummary:
    """Counts of one mapping resolution run.

    """
    updated: int = 0
    skipped: int = 0
    failed: int = 0


def deduplicate_candidates(
    candidates: typing.Iterable[MappingUpdateCandidate]
) -> list[MappingUpdateCandidate]:
    """Keep one candidate per (program, mapping, key).

    The candidates are expected in processing order, i.e. ordered by
    ascending block height. The last candidate of a key survives. When
    it carries no value it is resolved through the RPC, and its block
    height is raised to the highest one observed for the key.

    Parameters
    ----------
    candidates : iterable of MappingUpdateCandidate
        The candidates in processing order.

    Returns
    -------
    list of MappingUpdateCandidate
        One candidate per key, in order of the first occurrence of the
        key.

    """
    survivors: dict[tuple[str, str, str], MappingUpdateCandidate] = {}
    heights: dict[tuple[str, str, str], int] = {}
    for candidate in candidates:
        identity = candidate.identity
        survivors[identity] = candidate
        heights[identity] = max(heights.get(identity, 0),
                                candidate.block_height)
    return [
        candidate if candidate.value is not None else dataclasses.replace(
            candidate, block_height=heights[identity])
        for identity, candidate in survivors.items()
    ]


class MappingResolver:
    """Resolves mapping update candidates and upserts the resulting
    values.

    """
    def __init__(self, database: Database, registry: TableRegistry,
                 rpc_client: AleoRpcClient):
        """Construct an instance.

        Parameters
        ----------
        database : Database
            The database.
        registry : TableRegistry
            The registry holding the mapping tables.
        rpc_client : AleoRpcClient
            The client used to fetch values not carried by a candidate.

        """
        self.__database = database
        self.__registry = registry
        self.__rpc_client = rpc_client

    def resolve(
        self, candidates: typing.Iterable[MappingUpdateCandidate]
    ) -> ResolutionSummary:
        """Deduplicate the candidates, resolve their values and write
        them into the mapping tables. A failing key is logged and does
        not stop the other keys.

        Parameters
        ----------
        candidates : iterable of MappingUpdateCandidate
            The candidates in processing order.

        Returns
        -------
        ResolutionSummary
            The number of updated, skipped and failed keys.

        """
        updated = skipped = failed = 0
        for candidate in deduplicate_candidates(candidates):
            try:
                if self.__resolve_candidate(candidate):
                    updated += 1
                else:
                    skipped += 1
            except (RpcError, CodecError, DatabaseError):
                failed += 1
                _logger.error(
                    f'unable to update {candidate.program_id}/'
                    f'{candidate.mapping_name} key {candidate.key}',
                    exc_info=True)
        if updated or failed:
            _logger.info(f'mapping update: {updated} updated, {skipped} '
                         f'skipped, {failed} failed')
        return ResolutionSummary(updated, skipped, failed)

    def __resolve_candidate(self, candidate: MappingUpdateCandidate) -> bool:
        mapping_table = self.__registry.mapping_table(candidate.program_id,
                                                      candidate.mapping_name)
        if mapping_table is None:
            _logger.warning(f'no table registered for mapping '
                            f'{candidate.program_id}/{candidate.mapping_name}')
            return False
        raw_value = candidate.value
        if raw_value is None:
            raw_value = self.__rpc_client.get_mapping_value(
                candidate.program_id, candidate.mapping_name, candidate.key)
            if raw_value is None:
                _logger.debug(f'no value for {candidate.program_id}/'
                              f'{candidate.mapping_name} key {candidate.key}')
                return False
        definition = mapping_table.definition
        key = decode_key(candidate.key, definition.key.type)
        value = to_storage_value(decode_value(raw_value),
                                 definition.value_type)
        upsert_mapping_value(self.__database, mapping_table, key, value,
                             candidate.block_height)
        _logger.debug(f'updated {mapping_table.table.name} key {key} at '
                      f'block {candidate.block_height}')
        return True
