"""Minimal async JSON-RPC 2.0 transport.

Both EVM nodes and the Zilliqa API speak JSON-RPC 2.0 over HTTP, so every
chain client shares this one transport. There are no retries: failures
surface to the caller, which owns backoff policy.
"""

import itertools
import logging
from typing import Any, Optional, Sequence

import httpx

from swthbridge.errors import RPCError

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class JsonRpcClient:
    """JSON-RPC client bound to a single endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _payload(method: str, params: Sequence[Any]) -> dict:
        return {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(params),
            "id": next(_request_ids),
        }

    @staticmethod
    def _unwrap(method: str, data: Any) -> Any:
        if not isinstance(data, dict):
            raise RPCError(method, f"malformed response {data!r}")
        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise RPCError(method, str(error.get("message", error)), error.get("code"))
            raise RPCError(method, str(error))
        if "result" not in data:
            raise RPCError(method, "response has no result")
        return data["result"]

    async def call(self, method: str, *params: Any) -> Any:
        """Perform one call and return its `result`.

        Raises:
            httpx.HTTPError: transport failure or non-2xx status
            RPCError: JSON-RPC error object or malformed reply
        """
        payload = self._payload(method, params)
        logger.debug(f"RPC {self.url} {method}")
        async with self._client() as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()
            return self._unwrap(method, response.json())

    async def batch(self, calls: Sequence[tuple[str, Sequence[Any]]]) -> list[Any]:
        """Send several calls in one HTTP request; results keep call order."""
        if not calls:
            return []

        payloads = [self._payload(method, params) for method, params in calls]
        logger.debug(f"RPC {self.url} batch of {len(payloads)}")
        async with self._client() as client:
            response = await client.post(self.url, json=payloads)
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, list):
            raise RPCError("batch", f"expected list response, got {type(data).__name__}")

        by_id = {item.get("id"): item for item in data if isinstance(item, dict)}
        results = []
        for payload in payloads:
            item = by_id.get(payload["id"])
            if item is None:
                raise RPCError(payload["method"], "missing from batch response")
            results.append(self._unwrap(payload["method"], item))
        return results
