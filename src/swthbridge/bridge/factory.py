"""Factory for creating chain bridge clients."""

import logging
from typing import Optional

import httpx

from swthbridge.bridge.base import ChainBridgeClient
from swthbridge.bridge.eth import EVMBridgeClient
from swthbridge.bridge.zil import ZILBridgeClient
from swthbridge.chains import Blockchain
from swthbridge.config import get_settings
from swthbridge.errors import UnsupportedBlockchainError
from swthbridge.network import NetworkConfigProvider

logger = logging.getLogger(__name__)

CLIENT_TYPES: dict[Blockchain, type[ChainBridgeClient]] = {
    Blockchain.ETHEREUM: EVMBridgeClient,
    Blockchain.BINANCE_SMART_CHAIN: EVMBridgeClient,
    Blockchain.ZILLIQA: ZILBridgeClient,
}


def get_bridge_client(
    blockchain: Blockchain | str,
    config_provider: NetworkConfigProvider,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChainBridgeClient:
    """Create the bridge client for a blockchain.

    Raises:
        UnsupportedBlockchainError: no client exists for the chain family
    """
    chain = Blockchain.parse(blockchain)
    client_type = CLIENT_TYPES.get(chain)
    if client_type is None:
        raise UnsupportedBlockchainError(chain.value)

    if timeout is None:
        timeout = get_settings().http_timeout
    return client_type(config_provider, chain, timeout=timeout, transport=transport)


def get_supported_blockchains() -> list[Blockchain]:
    return list(CLIENT_TYPES)


def create_bridge_clients(
    config_provider: NetworkConfigProvider,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[Blockchain, ChainBridgeClient]:
    """One client per supported chain that the active network configures."""
    config = config_provider.get_config()
    clients = {}
    for chain in CLIENT_TYPES:
        client = get_bridge_client(chain, config_provider, timeout=timeout, transport=transport)
        if config.get_chain_config(client.chain.config_key) is None:
            logger.debug(f"Skipping {chain.value}: not configured on {config.network.value}")
            continue
        clients[chain] = client
    return clients
