"""Module for interacting with an Aleo JSON-RPC node.

"""
import itertools
import logging
import typing

import backoff
import requests

from aleo_indexer.config import RpcSettings
from aleo_indexer.domain import Transaction
from aleo_indexer.exceptions import BaseError

_logger = logging.getLogger(__name__)
"""Logger for this module."""

TRANSACTIONS_FOR_PROGRAM_METHOD = 'aleoTransactionsForProgram'
MAPPING_VALUE_METHOD = 'getMappingValue'


class RpcError(BaseError):
    """Exception class for RPC errors which persisted after all
    retries (network, HTTP, or non-permanent JSON-RPC errors).

    """
    pass


class RpcPermanentError(RpcError):
    """Exception class for JSON-RPC errors flagged as permanent
    (e.g. invalid parameters). These are never retried.

    """
    def __init__(self, method: str, code: int, message: str):
        super().__init__(f'RPC permanent error for {method}: {message}')
        self.code = code


class AleoRpcClient:
    """Aleo JSON-RPC client with exponential backoff.

    Attributes
    ----------
    settings : RpcSettings
        The URL, retry and timeout settings.

    """
    def __init__(self, settings: RpcSettings,
                 session: typing.Optional[requests.Session] = None):
        """Construct an instance.

        Parameters
        ----------
        settings : RpcSettings
            The URL, retry and timeout settings.
        session : requests.Session, optional
            The HTTP session to use.

        """
        self.settings = settings
        # Using the same request session for connection pooling.
        self.__session = session if session is not None else \
            requests.Session()
        self.__request_ids = itertools.count(1)

    def call(self, method: str, params: typing.Any) -> typing.Any:
        """Call a JSON-RPC method. Failures are retried with exponential
        backoff unless the node flags them as permanent.

        Parameters
        ----------
        method : str
            The name of the RPC method.
        params : any
            The parameters of the RPC method.

        Returns
        -------
        any
            The result of the call; None when the node answered with
            neither a result nor an error.

        Raises
        ------
        RpcPermanentError
            If the node answered with the permanent error code.
        RpcError
            If the call still failed after the last attempt.

        """
        post_with_retry = backoff.on_exception(
            backoff.expo, RpcError, max_tries=self.settings.max_tries,
            giveup=_is_permanent, on_backoff=_log_retry,
            on_giveup=_log_failure, logger=None, jitter=None, base=2,
            factor=self.settings.initial_delay,
            max_value=self.settings.max_delay)(self.__post)
        return post_with_retry(method, params)

    def get_transactions_for_program(self, program_id: str,
                                     function_name: str, page: int,
                                     max_transactions: int
                                     ) -> list[Transaction]:
        """Fetch one page of transactions of a program function.

        Parameters
        ----------
        program_id : str
            The program id, e.g. "token_registry.aleo".
        function_name : str
            The name of the function.
        page : int
            The zero-based page number.
        max_transactions : int
            The page size.

        Returns
        -------
        list of Transaction
            The transactions of the page; empty if the node has none.

        """
        result = self.call(
            TRANSACTIONS_FOR_PROGRAM_METHOD, {
                'programId': program_id,
                'functionName': function_name,
                'page': page,
                'maxTransactions': max_transactions
            })
        return list(result or [])

    def get_mapping_value(self, program_id: str, mapping_name: str,
                          key: str) -> typing.Optional[str]:
        """Fetch the current value of a mapping key.

        Returns
        -------
        str or None
            The value literal, or None if the key holds no value.

        """
        return self.call(MAPPING_VALUE_METHOD, {
            'program_id': program_id,
            'mapping_name': mapping_name,
            'key': key
        })

    def __post(self, method: str, params: typing.Any) -> typing.Any:
        payload = {
            'jsonrpc': '2.0',
            'id': next(self.__request_ids),
            'method': method,
            'params': params
        }
        try:
            response = self.__session.post(self.settings.url, json=payload,
                                           timeout=self.settings.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as error:
            raise RpcError(f'RPC call {method} to {self.settings.url} '
                           f'failed: {error}') from error
        if not isinstance(data, dict):
            raise RpcError(f'RPC call {method} returned a malformed '
                           f'response: {data!r}')
        error = data.get('error')
        if error:
            code = error.get('code') if isinstance(error, dict) else None
            message = error.get('message') if isinstance(error,
                                                         dict) else error
            if code == self.settings.permanent_error_code:
                raise RpcPermanentError(method, code, str(message))
            raise RpcError(f'RPC call {method} failed with code {code}: '
                           f'{message}')
        return data.get('result')


def _is_permanent(error: Exception) -> bool:
    return isinstance(error, RpcPermanentError)


def _log_retry(details: dict) -> None:
    method = details['args'][0] if details['args'] else '?'
    _logger.warning(f'retrying RPC call {method} (attempt {details["tries"]})'
                    f' in {details["wait"]:.1f}s; error reason: '
                    f'{details.get("exception")}')


def _log_failure(details: dict) -> None:
    method = details['args'][0] if details['args'] else '?'
    _logger.error(f'RPC call {method} failed after {details["tries"]} '
                  f'attempt(s); error reason: {details.get("exception")}')
