"""Cross-chain bridge client for depositing external assets into the platform."""

from swthbridge.bridge import DepositFlowCoordinator, get_bridge_client
from swthbridge.chains import Blockchain
from swthbridge.network import Network, StaticConfigProvider, build_network_config
from swthbridge.tokens import TokenRegistry

__version__ = "0.1.0"

__all__ = [
    "Blockchain",
    "DepositFlowCoordinator",
    "Network",
    "StaticConfigProvider",
    "TokenRegistry",
    "build_network_config",
    "get_bridge_client",
]
