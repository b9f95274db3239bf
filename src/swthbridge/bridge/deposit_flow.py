"""Off-chain deposit orchestration.

The order is fixed: the fee quote depends on whether the derived deposit
wallet is already deployed, so the address must be derived first and the
authorization signed last.
"""

import logging
from typing import Mapping

from swthbridge.bridge.base import ChainBridgeClient, DepositResult, DepositStatus, SignCallback
from swthbridge.chains import Blockchain
from swthbridge.errors import UnsupportedBlockchainError
from swthbridge.models import TokenWithBalance

logger = logging.getLogger(__name__)


class DepositFlowCoordinator:
    """Runs derive address -> quote fee -> authorize for a token's chain."""

    def __init__(self, clients: Mapping[Blockchain, ChainBridgeClient]):
        self.clients = dict(clients)

    def client_for(self, token: TokenWithBalance) -> ChainBridgeClient:
        chain = Blockchain.parse(token.token.blockchain)
        client = self.clients.get(chain)
        if client is None:
            raise UnsupportedBlockchainError(chain.value)
        return client

    async def deposit(
        self,
        token: TokenWithBalance,
        platform_address: str,
        owner_address: str,
        sign_callback: SignCallback,
    ) -> DepositResult:
        """Deposit the token's full external balance through the relayer.

        Errors from any step propagate unchanged.
        """
        client = self.client_for(token)

        deposit_address = await client.get_deposit_contract_address(platform_address, owner_address)
        fee_amount = await client.get_deposit_fee_amount(token.token, deposit_address)
        result = await client.send_deposit(
            token,
            platform_address,
            owner_address,
            sign_callback,
            deposit_address=deposit_address,
            fee_amount=fee_amount,
        )

        if result.status == DepositStatus.SUBMITTED:
            logger.info(f"Deposit of {result.amount} {token.denom} submitted from {deposit_address}")
        else:
            logger.info(f"Deposit of {token.denom} not submitted: {result.message}")
        return result
