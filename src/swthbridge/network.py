"""Per-network deployment configuration.

Each platform deployment (mainnet, testnet, devnet, localhost) has its own
custody contracts, fee service and relayer on every bridged chain. Chain
clients never own this configuration; they read it through a
NetworkConfigProvider on every call so that config swaps take effect
immediately.
"""

import logging
import threading
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from swthbridge.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Network(str, Enum):
    """Platform deployments."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"
    LOCALHOST = "localhost"


def parse_network(value: Optional[str], default: Optional[Network] = Network.MAINNET) -> Optional[Network]:
    """Parse a loose network name ("main", "TestNet", "local", ...)."""
    if isinstance(value, Network):
        return value

    aliases = {
        "main": Network.MAINNET,
        "mainnet": Network.MAINNET,
        "test": Network.TESTNET,
        "testnet": Network.TESTNET,
        "dev": Network.DEVNET,
        "devnet": Network.DEVNET,
        "local": Network.LOCALHOST,
        "localhost": Network.LOCALHOST,
    }
    if not isinstance(value, str):
        return default
    return aliases.get(value.strip().lower(), default)


class ChainNetworkConfig(BaseModel):
    """Endpoints and contracts of one bridged chain for one deployment."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    rpc_url: str = Field(..., alias="RpcURL", description="Chain JSON-RPC endpoint")
    lock_proxy_address: str = Field(..., alias="LockProxyAddr", description="Custody (lock proxy) contract")
    balance_reader_address: Optional[str] = Field(
        None, alias="BalanceReader", description="Batch balance reader contract (EVM only)"
    )
    payer_url: Optional[str] = Field(None, alias="PayerURL", description="Deposit relayer base URL")
    fee_url: str = Field(..., alias="FeeURL", description="Fee service base URL")
    bytecode_hash: Optional[str] = Field(
        None, alias="ByteCodeHash", description="Deposit wallet init code hash (EVM only)"
    )
    chain_id: Optional[int] = Field(None, alias="ChainId", description="Chain id used when signing")


class NetworkConfig(BaseModel):
    """Complete configuration of a platform deployment."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    network: Network = Field(..., alias="Network")
    rest_url: Optional[str] = Field(None, alias="RestURL", description="Platform REST API base URL")
    fee_address: Optional[str] = Field(
        None, alias="FeeAddress", description="Platform address receiving bridge fees (hex)"
    )
    eth: Optional[ChainNetworkConfig] = Field(None, alias="Eth")
    bsc: Optional[ChainNetworkConfig] = Field(None, alias="Bsc")
    zil: Optional[ChainNetworkConfig] = Field(None, alias="Zil")

    def get_chain_config(self, config_key: str) -> Optional[ChainNetworkConfig]:
        """Get chain section by wire key ("Eth", "Bsc", "Zil")."""
        return {"Eth": self.eth, "Bsc": self.bsc, "Zil": self.zil}.get(config_key)


NETWORK_CONFIGS: dict[Network, dict[str, Any]] = {
    # Public deployments carry no built-in endpoints or contracts; callers
    # inject them through overrides or NETWORK_CONFIG_FILE.
    Network.MAINNET: {"Network": Network.MAINNET},
    Network.TESTNET: {"Network": Network.TESTNET},
    Network.DEVNET: {"Network": Network.DEVNET},
    Network.LOCALHOST: {
        "Network": Network.LOCALHOST,
        "RestURL": "http://localhost:5001",
        "FeeAddress": "989761fb0c0eb0c05605e849cae77d239f98ac7f",
        "Eth": {
            "RpcURL": "http://localhost:8545",
            "LockProxyAddr": "0x0000000000000000000000000000000000000001",
            "BalanceReader": "0x0000000000000000000000000000000000000002",
            "PayerURL": "http://localhost:8001",
            "FeeURL": "http://localhost:9001",
            "ByteCodeHash": "0x" + "00" * 32,
            "ChainId": 1337,
        },
        "Bsc": {
            "RpcURL": "http://localhost:8546",
            "LockProxyAddr": "0x0000000000000000000000000000000000000001",
            "BalanceReader": "0x0000000000000000000000000000000000000002",
            "PayerURL": "http://localhost:8001/bsc",
            "FeeURL": "http://localhost:9001",
            "ByteCodeHash": "0x" + "00" * 32,
            "ChainId": 1337,
        },
        "Zil": {
            "RpcURL": "http://localhost:5555",
            "LockProxyAddr": "0x0000000000000000000000000000000000000001",
            "FeeURL": "http://localhost:9001",
            "ChainId": 1,
        },
    },
}


def build_network_config(
    network: Network = Network.MAINNET,
    overrides: Optional[dict[str, Any]] = None,
) -> NetworkConfig:
    """Build a NetworkConfig from the built-in table plus partial overrides.

    Overrides use the wire keys. Chain sections are merged key by key, so
    ``{"Eth": {"RpcURL": "..."}}`` replaces only the Ethereum RPC endpoint.

    Raises:
        ConfigurationError: a chain section is incomplete after merging
    """
    data: dict[str, Any] = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in NETWORK_CONFIGS[network].items()
    }
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key].update(value)
        else:
            data[key] = value
    try:
        return NetworkConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"incomplete {network.value} network config: {e}") from e


@runtime_checkable
class NetworkConfigProvider(Protocol):
    """Anything that can hand out the active deployment configuration."""

    def get_config(self) -> NetworkConfig:
        ...


class StaticConfigProvider:
    """Holds one NetworkConfig; `update` swaps it for all readers at once."""

    def __init__(self, config: NetworkConfig):
        self._config = config
        self._lock = threading.Lock()

    @classmethod
    def for_network(
        cls, network: Network = Network.MAINNET, overrides: Optional[dict[str, Any]] = None
    ) -> "StaticConfigProvider":
        return cls(build_network_config(network, overrides))

    def get_config(self) -> NetworkConfig:
        return self._config

    def update(self, config: NetworkConfig) -> None:
        with self._lock:
            logger.info(f"Network config switched: {self._config.network.value} -> {config.network.value}")
            self._config = config
