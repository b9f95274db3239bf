"""USD price lookups via CoinGecko."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

import httpx

logger = logging.getLogger(__name__)

COINGECKO_API_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoPriceSource:
    """Batched USD price lookup by CoinGecko coin id."""

    def __init__(
        self,
        base_url: str = COINGECKO_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def get_usd_prices(self, coin_ids: Iterable[str]) -> dict[str, Optional[Decimal]]:
        """Fetch USD prices for many coins in one request.

        Coins missing from the response, or with unparseable prices, map to None.
        """
        ids = list(dict.fromkeys(coin_ids))
        if not ids:
            return {}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(
                f"{self.base_url}/simple/price",
                params={"ids": ",".join(ids), "vs_currencies": "usd"},
            )
            response.raise_for_status()
            data = response.json() or {}

        prices: dict[str, Optional[Decimal]] = {}
        for coin_id in ids:
            raw = (data.get(coin_id) or {}).get("usd")
            prices[coin_id] = _parse_price(coin_id, raw)
        return prices


def _parse_price(coin_id: str, raw) -> Optional[Decimal]:
    if raw is None:
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        logger.warning(f"Unparseable price for {coin_id}: {raw!r}")
        return None
