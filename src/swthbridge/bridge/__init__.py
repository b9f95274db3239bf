"""Bridge clients for locking external-chain assets into the platform.

Chains:
- Ethereum, Binance Smart Chain: EVMBridgeClient
- Zilliqa: ZILBridgeClient
"""

from swthbridge.bridge.base import (
    ApproveParams,
    ChainBridgeClient,
    DepositResult,
    DepositStatus,
    LockParams,
    MessageSignature,
    PendingTransaction,
)
from swthbridge.bridge.deposit_flow import DepositFlowCoordinator
from swthbridge.bridge.eth import EVMBridgeClient, make_local_sign_callback, split_signature
from swthbridge.bridge.factory import create_bridge_clients, get_bridge_client
from swthbridge.bridge.zil import ZILBridgeClient

__all__ = [
    "ApproveParams",
    "ChainBridgeClient",
    "DepositFlowCoordinator",
    "DepositResult",
    "DepositStatus",
    "EVMBridgeClient",
    "LockParams",
    "MessageSignature",
    "PendingTransaction",
    "ZILBridgeClient",
    "create_bridge_clients",
    "get_bridge_client",
    "make_local_sign_callback",
    "split_signature",
]
