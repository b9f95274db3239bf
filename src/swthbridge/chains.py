"""Supported external blockchains and their static metadata.

The platform bridges assets from:
- Ethereum and Binance Smart Chain (EVM lock proxy with per-user deposit wallets)
- Zilliqa (Scilla lock proxy, ZRC-2 tokens)

NEO is listed for catalog completeness; it has no bridge client.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from swthbridge.errors import UnsupportedBlockchainError


class Blockchain(str, Enum):
    """Blockchain identifiers as used by the platform token catalog."""

    NEO = "neo"
    ETHEREUM = "eth"
    BINANCE_SMART_CHAIN = "bsc"
    ZILLIQA = "zil"

    @classmethod
    def parse(cls, value: "str | Blockchain") -> "Blockchain":
        """Parse a catalog blockchain string (case-insensitive)."""
        if isinstance(value, Blockchain):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedBlockchainError(str(value)) from None


@dataclass(frozen=True)
class ChainFamily:
    """Static description of a bridged chain."""

    blockchain: Blockchain
    name: str
    config_key: Optional[str]  # key into NetworkConfig ("Eth", "Bsc", "Zil")
    native_symbol: str
    native_asset_id: str  # placeholder asset id used for the native currency
    address_hex_length: int = 40


ZERO_ADDRESS = "0000000000000000000000000000000000000000"

CHAINS: dict[Blockchain, ChainFamily] = {
    Blockchain.ETHEREUM: ChainFamily(
        blockchain=Blockchain.ETHEREUM,
        name="Ethereum",
        config_key="Eth",
        native_symbol="ETH",
        native_asset_id=ZERO_ADDRESS,
    ),
    Blockchain.BINANCE_SMART_CHAIN: ChainFamily(
        blockchain=Blockchain.BINANCE_SMART_CHAIN,
        name="Binance Smart Chain",
        config_key="Bsc",
        native_symbol="BNB",
        native_asset_id=ZERO_ADDRESS,
    ),
    Blockchain.ZILLIQA: ChainFamily(
        blockchain=Blockchain.ZILLIQA,
        name="Zilliqa",
        config_key="Zil",
        native_symbol="ZIL",
        native_asset_id=ZERO_ADDRESS,
    ),
    Blockchain.NEO: ChainFamily(
        blockchain=Blockchain.NEO,
        name="NEO",
        config_key=None,
        native_symbol="NEO",
        native_asset_id="",
    ),
}


def get_chain(blockchain: "str | Blockchain") -> ChainFamily:
    """Get static metadata for a blockchain."""
    return CHAINS[Blockchain.parse(blockchain)]
