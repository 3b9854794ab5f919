"""Async JSON-RPC client for Hive API nodes with failover and retry."""

import asyncio
import itertools
from typing import Any, Dict, List, Optional, Sequence

import httpx

from common.constants import (
    CUSTOM_JSON_OPERATION_FILTER_LOW,
    DEFAULT_RPC_NODES,
    RPC_TIMEOUT_SECONDS,
)
from common.exceptions import RetrievalError
from common.logging_config import get_logger

logger = get_logger(__name__)


class HiveRpcClient:
    """JSON-RPC client that rotates through API nodes on transient failures."""

    def __init__(
        self,
        nodes: Sequence[str] = DEFAULT_RPC_NODES,
        timeout: float = RPC_TIMEOUT_SECONDS,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        base_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize RPC client.

        Args:
            nodes: API node URLs, tried in order
            timeout: Per-request timeout in seconds
            max_retries: Extra attempts after the first failure
            retry_backoff_multiplier: Exponential backoff base
            base_delay: Delay before the first retry in seconds
            transport: Optional httpx transport (tests)
        """
        if not nodes:
            raise ValueError("At least one RPC node is required")
        self.nodes = list(nodes)
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.base_delay = base_delay
        self.session = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._request_ids = itertools.count(1)
        logger.info(f"Initialized HiveRpcClient [nodes={len(self.nodes)}]")

    async def close(self) -> None:
        await self.session.aclose()

    async def call(self, method: str, params: Any) -> Any:
        """
        Make a JSON-RPC call, retrying on 5xx responses and network failures.

        Args:
            method: Fully qualified API method (e.g. condenser_api.get_account_history)
            params: Positional list or named dict

        Returns:
            The 'result' member of the response

        Raises:
            RetrievalError: On RPC error or when every attempt fails
        """
        request_id = next(self._request_ids)
        body = {"jsonrpc": "2.0", "method": method, "params": params, "id": request_id}
        last_error: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            node = self.nodes[attempt % len(self.nodes)]
            try:
                response = await self.session.post(node, json=body)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"Network error (attempt {attempt + 1}/{self.max_retries + 1}): {method} node={node} error={type(e).__name__}"
                )
            else:
                if response.status_code >= 500:
                    last_error = f"HTTP {response.status_code} from {node}"
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{self.max_retries + 1}): {method} node={node} status={response.status_code}"
                    )
                elif response.status_code >= 400:
                    raise RetrievalError(f"{method} rejected by {node}: HTTP {response.status_code}")
                else:
                    return self._unwrap(method, response)

            if attempt < self.max_retries:
                delay = self.base_delay * (self.retry_backoff_multiplier ** attempt)
                await asyncio.sleep(delay)

        logger.error(f"RPC failed (max retries exceeded): {method} error={last_error}")
        raise RetrievalError(f"{method} failed after {self.max_retries + 1} attempts: {last_error}")

    @staticmethod
    def _unwrap(method: str, response: httpx.Response) -> Any:
        try:
            data = response.json()
        except ValueError as e:
            raise RetrievalError(f"{method} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise RetrievalError(f"{method} returned a non-object response")
        if data.get("error"):
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RetrievalError(f"{method} error: {message}")
        if "result" not in data:
            raise RetrievalError(f"{method} response has no result")
        return data["result"]

    async def get_account_history(
        self,
        account: str,
        start: int,
        limit: int,
        operation_filter_low: int = CUSTOM_JSON_OPERATION_FILTER_LOW,
    ) -> List[Any]:
        """
        Fetch account history entries ending at sequence start (-1 for latest).

        Returns:
            List of [sequence, entry] pairs in ascending sequence order
        """
        result = await self.call(
            "condenser_api.get_account_history",
            [account, start, limit, operation_filter_low],
        )
        if not isinstance(result, list):
            raise RetrievalError("get_account_history returned a non-list result")
        return result

    async def find_rc_accounts(self, accounts: Sequence[str]) -> List[Dict[str, Any]]:
        result = await self.call("rc_api.find_rc_accounts", {"accounts": list(accounts)})
        if not isinstance(result, dict):
            raise RetrievalError("find_rc_accounts returned a non-object result")
        return result.get("rc_accounts") or []
