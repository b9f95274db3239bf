"""Async client for the platform REST API.

Only the calls the bridge consumes are implemented: the token catalog and
the wrapped/source coin mapping.
"""

import logging
from typing import Any, Optional

import httpx

from swthbridge.api.endpoints import get_endpoint
from swthbridge.models import Token

logger = logging.getLogger(__name__)


class TradeHubAPIClient:
    """REST API client.

    Errors are not swallowed: transport failures and non-2xx responses
    propagate as httpx exceptions.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _get(self, endpoint_key: str, params: Optional[dict] = None) -> Any:
        url = self.base_url + get_endpoint(endpoint_key)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    async def get_tokens(self) -> list[Token]:
        """Get the full token catalog."""
        data = await self._get("tradehub/get_tokens")
        tokens = [Token.model_validate(item) for item in data or []]
        logger.debug(f"Fetched {len(tokens)} tokens from {self.base_url}")
        return tokens

    async def get_token(self, denom: str) -> Token:
        data = await self._get("tradehub/get_token", params={"token": denom})
        return Token.model_validate(data)

    async def get_coin_mapping(self) -> dict[str, Any]:
        """Get wrapped -> source denom associations.

        Returns the raw response, ``{"result": {wrapped_denom: source_denom}}``.
        """
        data = await self._get("coin/wrapper_mappings")
        return data if isinstance(data, dict) else {}
