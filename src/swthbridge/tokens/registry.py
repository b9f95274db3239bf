"""Token catalog, wrapped/source resolution and USD price cache.

The registry is populated from the platform REST API and read by the
chain clients. Reloads never mutate a published map in place: each reload
builds new tables and swaps them in with a single assignment, so readers
see either the previous or the new snapshot.
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

from swthbridge.chains import Blockchain
from swthbridge.config import get_settings
from swthbridge.models import Token
from swthbridge.tokens.aliases import COINGECKO_IDS, COMMON_ASSET_NAME, SYMBOL_OVERRIDE
from swthbridge.tokens.pricing import CoinGeckoPriceSource

logger = logging.getLogger(__name__)

# {denomA}-{weightA}-{denomB}-{weightB}-lp{N}
POOL_TOKEN_PATTERN = re.compile(r"^([a-z\d.-]+)-(\d+)-([a-z\d.-]+)-(\d+)-lp\d+$", re.IGNORECASE)


class TokenSource(Protocol):
    """The REST calls the registry needs."""

    async def get_tokens(self) -> list[Token]:
        ...

    async def get_coin_mapping(self) -> dict[str, Any]:
        ...


class PriceSource(Protocol):
    async def get_usd_prices(self, coin_ids) -> dict[str, Optional[Decimal]]:
        ...


@dataclass(frozen=True)
class _Catalog:
    tokens: Mapping[str, Token] = field(default_factory=dict)
    pool_tokens: Mapping[str, Token] = field(default_factory=dict)
    symbols: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PoolTokenParts:
    denom_a: str
    weight_a: str
    denom_b: str
    weight_b: str


def is_pool_token(denom: str) -> bool:
    """Check whether a denom encodes a two-asset weighted pool."""
    return isinstance(denom, str) and POOL_TOKEN_PATTERN.match(denom) is not None


def parse_pool_token(denom: str) -> Optional[PoolTokenParts]:
    match = POOL_TOKEN_PATTERN.match(denom)
    if match is None:
        return None
    return PoolTokenParts(
        denom_a=match.group(1).lower(),
        weight_a=match.group(2),
        denom_b=match.group(3).lower(),
        weight_b=match.group(4),
    )


def get_common_denom(denom: str) -> str:
    """Resolve historical/alias denoms to one canonical denom."""
    return COMMON_ASSET_NAME.get(denom, denom)


def _reaches(mapping: Mapping[str, str], start: str, target: str) -> bool:
    """True when following mapping from start arrives at target."""
    seen = set()
    denom = start
    while denom in mapping and denom not in seen:
        seen.add(denom)
        denom = mapping[denom]
        if denom == target:
            return True
    return False


class TokenRegistry:
    """Canonical token catalog owned by one SDK instance.

    Lookups return read-only views; `reload_*` methods are the only way to
    change state.
    """

    def __init__(self, api: TokenSource, price_source: Optional[PriceSource] = None):
        self.api = api
        if price_source is None:
            settings = get_settings()
            price_source = CoinGeckoPriceSource(settings.coingecko_api_url, timeout=settings.http_timeout)
        self.price_source = price_source

        self._catalog = _Catalog()
        self._wrapper_map: Mapping[str, str] = {}
        self._usd_values: Mapping[str, Decimal] = {}
        self._gecko_ids: Mapping[str, str] = dict(COINGECKO_IDS)
        self._write_lock = threading.Lock()

    # ======================
    # Views
    # ======================

    @property
    def tokens(self) -> Mapping[str, Token]:
        return MappingProxyType(self._catalog.tokens)

    @property
    def pool_tokens(self) -> Mapping[str, Token]:
        return MappingProxyType(self._catalog.pool_tokens)

    @property
    def symbols(self) -> Mapping[str, str]:
        return MappingProxyType(self._catalog.symbols)

    @property
    def wrapper_map(self) -> Mapping[str, str]:
        return MappingProxyType(self._wrapper_map)

    @property
    def usd_values(self) -> Mapping[str, Decimal]:
        return MappingProxyType(self._usd_values)

    # ======================
    # Loading
    # ======================

    async def initialize(self) -> None:
        """Load tokens, wrapper mappings and USD prices, in that order."""
        await self.reload_tokens()
        await self.reload_wrapper_map()
        await self.reload_usd_values()

    async def reload_tokens(self) -> Mapping[str, Token]:
        """Replace the catalog with the platform's current token list."""
        token_list = await self.api.get_tokens()

        tokens: dict[str, Token] = {}
        pool_tokens: dict[str, Token] = {}
        symbols: dict[str, str] = {}
        for token in token_list:
            if is_pool_token(token.denom):
                pool_tokens[token.denom] = token
            else:
                tokens[token.denom] = token
                symbols[get_common_denom(token.denom)] = token.symbol

        self._catalog = _Catalog(tokens=tokens, pool_tokens=pool_tokens, symbols=symbols)
        logger.info(f"Token catalog loaded: {len(tokens)} tokens, {len(pool_tokens)} pool tokens")
        return self.tokens

    async def reload_wrapper_map(self) -> Mapping[str, str]:
        """Merge the platform's wrapped -> source associations into the map.

        Merging is additive: entries from earlier reloads are kept. An incoming
        entry that would close a cycle is skipped.
        """
        response = await self.api.get_coin_mapping()
        incoming = (response or {}).get("result") or {}

        with self._write_lock:
            merged = dict(self._wrapper_map)
            for wrapped, source in incoming.items():
                if wrapped == source:
                    logger.warning(f"Ignoring self-referencing wrapper mapping for {wrapped}")
                    continue
                if _reaches(merged, source, wrapped):
                    logger.warning(f"Ignoring cyclic wrapper mapping {wrapped} -> {source}")
                    continue
                merged[wrapped] = source
            self._wrapper_map = merged

        logger.debug(f"Wrapper map has {len(self._wrapper_map)} entries")
        return self.wrapper_map

    def register_gecko_id_map(self, mapping: Mapping[str, str]) -> None:
        """Add or override canonical denom -> CoinGecko id entries."""
        with self._write_lock:
            self._gecko_ids = {**self._gecko_ids, **mapping}

    def get_gecko_id(self, denom: str) -> str:
        return self._gecko_ids.get(denom, denom)

    async def reload_usd_values(self, denoms: Optional[list[str]] = None) -> Mapping[str, Decimal]:
        """Refresh USD prices for the given denoms (default: every non-pool token).

        Only positive prices are stored; a denom whose refresh fails keeps its
        previously cached price.
        """
        if denoms is None:
            denoms = list(self._catalog.tokens.keys())

        common_denoms: list[str] = []
        for denom in denoms:
            if is_pool_token(denom):
                continue
            common = get_common_denom(denom)
            if common not in common_denoms:
                common_denoms.append(common)

        if not common_denoms:
            return self.usd_values

        coin_ids = {denom: self.get_gecko_id(denom) for denom in common_denoms}
        prices = await self.price_source.get_usd_prices(coin_ids.values())

        updates: dict[str, Decimal] = {}
        for denom, coin_id in coin_ids.items():
            price = prices.get(coin_id)
            if price is not None and price > 0:
                updates[denom] = price
            else:
                logger.debug(f"No USD price for {denom} ({coin_id}), keeping cached value")

        with self._write_lock:
            self._usd_values = {**self._usd_values, **updates}

        logger.info(f"USD prices refreshed: {len(updates)}/{len(common_denoms)} denoms")
        return self.usd_values

    # ======================
    # Lookups
    # ======================

    @staticmethod
    def get_common_denom(denom: str) -> str:
        return get_common_denom(denom)

    @staticmethod
    def is_pool_token(denom: str) -> bool:
        return is_pool_token(denom)

    def get_token(self, denom: str) -> Optional[Token]:
        catalog = self._catalog
        return catalog.tokens.get(denom) or catalog.pool_tokens.get(denom)

    def get_decimals(self, denom: str) -> Optional[int]:
        catalog = self._catalog
        for key in (denom, get_common_denom(denom.lower())):
            token = catalog.tokens.get(key) or catalog.pool_tokens.get(key)
            if token is not None:
                return token.decimals
        return None

    def get_symbol(self, denom: str) -> str:
        common_denom = get_common_denom(denom)
        return self._catalog.symbols.get(common_denom) or common_denom.upper()

    def get_usd_value(self, denom: str) -> Optional[Decimal]:
        return self._usd_values.get(get_common_denom(denom))

    def get_token_name(self, denom: str) -> str:
        """Display name: pool tokens render as "{nameA}-{nameB}"."""
        if not isinstance(denom, str):
            return ""
        denom = denom.lower()

        symbol = self.get_symbol(denom)
        if is_pool_token(denom):
            parts = parse_pool_token(denom)
            if parts is None:
                logger.warning(f"Malformed pool token denom {denom!r}, showing symbol")
                return symbol
            return f"{self.get_token_name(parts.denom_a)}-{self.get_token_name(parts.denom_b)}"

        return SYMBOL_OVERRIDE.get(symbol, symbol)

    def get_token_desc(self, denom: str) -> str:
        """Description: pool tokens render as "{wA}% {nameA} / {wB}% {nameB}"."""
        if not isinstance(denom, str):
            return ""
        denom = denom.lower()

        if is_pool_token(denom):
            parts = parse_pool_token(denom)
            if parts is None:
                logger.warning(f"Malformed pool token denom {denom!r}, showing symbol")
                return self.get_symbol(denom)
            name_a = self.get_token_name(parts.denom_a)
            name_b = self.get_token_name(parts.denom_b)
            return f"{parts.weight_a}% {name_a} / {parts.weight_b}% {name_b}"

        token = self._catalog.tokens.get(denom)
        if token is not None and token.name:
            return token.name
        return self.get_symbol(denom)

    def get_wrapped_token(self, denom: str, blockchain: Optional[Blockchain | str] = None) -> Optional[Token]:
        """Find the wrapped representation of a denom, optionally on one chain.

        A denom that is itself a wrapped denom resolves to its own token.
        """
        tokens = self._catalog.tokens
        wrapper_map = self._wrapper_map

        if denom in wrapper_map:
            return tokens.get(denom)

        chain = None
        if blockchain:
            chain = blockchain.value if isinstance(blockchain, Blockchain) else str(blockchain).lower()
        for wrapped_denom, source_denom in wrapper_map.items():
            if source_denom != denom:
                continue
            token = tokens.get(wrapped_denom)
            if token is None:
                continue
            if chain is None or token.blockchain == chain:
                return token

        return None

    def get_source_token(self, denom: str) -> Optional[Token]:
        """Find the source token of a wrapped denom (a source resolves to itself)."""
        tokens = self._catalog.tokens
        wrapper_map = self._wrapper_map

        if denom in wrapper_map.values():
            return tokens.get(denom)

        source_denom = wrapper_map.get(denom)
        if source_denom is not None:
            return tokens.get(source_denom)

        return None
