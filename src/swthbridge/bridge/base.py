"""Base interface for chain bridge clients.

Deposit flow (authorization-based, no owner-sent transaction):
1. Derive the owner's deposit wallet address from the custody contract
2. Quote the deposit fee (adds wallet creation fee if not yet deployed)
3. Hash the deposit parameters and have the owner sign the hash
4. POST the signed authorization to the chain's relayer

Direct deposit flow:
1. Approve the lock proxy to spend the token (ERC20/ZRC2 only)
2. Lock the amount in the lock proxy
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Iterable, Optional

import httpx

from swthbridge.address import get_address_bytes, same_hex, strip_hex_prefix
from swthbridge.chains import ZERO_ADDRESS, Blockchain, ChainFamily, get_chain
from swthbridge.errors import (
    BridgeValidationError,
    ConfigurationError,
    UnsupportedBlockchainError,
    UnsupportedTokenError,
)
from swthbridge.models import FeeQuote, Token, TokenInfo, TokenWithBalance
from swthbridge.network import ChainNetworkConfig, NetworkConfig, NetworkConfigProvider
from swthbridge.rpc import JsonRpcClient

logger = logging.getLogger(__name__)

MIN_LOCK_GAS_LIMIT = 150_000

# Owner balance must cover this many times the quoted fee before we ask the
# relayer to sweep a deposit wallet.
FEE_MULTIPLIER = 2


@dataclass
class ApproveParams:
    """Raise the lock proxy allowance over an ERC20/ZRC2 token."""
    token: Token
    gas_price: Decimal  # gwei on EVM chains, Qa on Zilliqa
    gas_limit: int
    owner_address: str
    signer: Any


@dataclass
class LockParams:
    """Lock an amount of a token for a platform address."""
    token: Token
    amount: Decimal  # base units
    platform_address: str  # bech32
    gas_price: Decimal  # gwei on EVM chains, Qa on Zilliqa
    gas_limit: int
    owner_address: str
    signer: Any


@dataclass
class MessageSignature:
    """Owner signature returned by a sign callback."""
    address: str
    signature: str  # 65-byte r || s || v, hex


SignCallback = Callable[[str], Awaitable[MessageSignature]]


class DepositStatus(str, Enum):
    SUBMITTED = "submitted"
    REJECTED = "rejected"
    INSUFFICIENT_BALANCE = "insufficient_balance"


@dataclass
class DepositResult:
    """Outcome of an authorization-based deposit."""
    success: bool
    status: DepositStatus
    denom: str
    amount: Decimal
    fee_amount: Decimal
    deposit_address: Optional[str] = None
    nonce: Optional[int] = None
    status_code: Optional[int] = None
    response: Any = None
    message: str = ""


@dataclass
class PendingTransaction:
    """A submitted, not yet confirmed, chain transaction."""
    tx_hash: str
    blockchain: Blockchain
    nonce: int
    client: "ChainBridgeClient" = field(repr=False, compare=False)
    submitted_at: float = field(default_factory=time.time)

    async def wait(self, timeout: float = 300.0, poll_interval: float = 3.0) -> dict:
        """Poll until the transaction has a receipt.

        Raises:
            asyncio.TimeoutError: no receipt within timeout
        """
        return await self.client.wait_for_receipt(self.tx_hash, timeout, poll_interval)


class ChainBridgeClient(ABC):
    """Bridge operations against one external chain family.

    Construction fails for chains the concrete client does not support.
    All configuration is read through the injected provider on every call.
    """

    SUPPORTED_BLOCKCHAINS: ClassVar[tuple[Blockchain, ...]] = ()

    def __init__(
        self,
        config_provider: NetworkConfigProvider,
        blockchain: Blockchain | str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            config_provider: Supplies the active NetworkConfig
            blockchain: Chain this client operates on
            timeout: Timeout for RPC, fee service and relayer calls
            transport: Optional httpx transport (tests, proxies)
        """
        chain = Blockchain.parse(blockchain)
        if chain not in self.SUPPORTED_BLOCKCHAINS:
            raise UnsupportedBlockchainError(chain.value)

        self.config_provider = config_provider
        self.blockchain = chain
        self.timeout = timeout
        self.transport = transport

    @property
    def chain(self) -> ChainFamily:
        return get_chain(self.blockchain)

    # ======================
    # Configuration
    # ======================

    def get_network_config(self) -> NetworkConfig:
        return self.config_provider.get_config()

    def get_chain_config(self) -> ChainNetworkConfig:
        config = self.get_network_config().get_chain_config(self.chain.config_key)
        if config is None:
            raise ConfigurationError(
                f"network {self.get_network_config().network.value} has no {self.chain.name} config"
            )
        return config

    def get_provider_url(self) -> str:
        return self.get_chain_config().rpc_url

    def get_lock_proxy_address(self) -> str:
        return self.get_chain_config().lock_proxy_address

    def get_balance_reader_address(self) -> str:
        address = self.get_chain_config().balance_reader_address
        if not address:
            raise ConfigurationError(f"no balance reader configured for {self.chain.name}")
        return address

    def get_payer_url(self) -> str:
        url = self.get_chain_config().payer_url
        if not url:
            raise ConfigurationError(f"no payer URL configured for {self.chain.name}")
        return url.rstrip("/")

    def get_fee_url(self) -> str:
        return self.get_chain_config().fee_url.rstrip("/")

    def get_wallet_bytecode_hash(self) -> str:
        bytecode_hash = self.get_chain_config().bytecode_hash
        if not bytecode_hash:
            raise ConfigurationError(f"no wallet bytecode hash configured for {self.chain.name}")
        return bytecode_hash

    def get_fee_address(self) -> str:
        """Platform fee address as hex without prefix."""
        network_config = self.get_network_config()
        if not network_config.fee_address:
            raise ConfigurationError(f"no fee address configured for {network_config.network.value}")
        return strip_hex_prefix(network_config.fee_address)

    def get_rpc(self) -> JsonRpcClient:
        return JsonRpcClient(self.get_provider_url(), timeout=self.timeout, transport=self.transport)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    # ======================
    # Shared logic
    # ======================

    def get_target_proxy_hash(self, token: Token) -> str:
        """Hex (no prefix) of the token originator's platform address bytes.

        The lock proxy identifies the platform-side asset registration by it.
        """
        network = self.get_network_config().network
        return get_address_bytes(token.originator, network).hex()

    def filter_bridge_tokens(
        self, tokens: Iterable[Token], whitelist_denoms: Optional[Iterable[str]] = None
    ) -> list[Token]:
        """Tokens native to this chain and locked through the configured lock proxy."""
        lock_proxy = self.get_lock_proxy_address()
        whitelist = set(whitelist_denoms) if whitelist_denoms is not None else None
        return [
            token
            for token in tokens
            if token.blockchain == self.blockchain.value
            and token.is_evm_asset
            and same_hex(token.lock_proxy_hash, lock_proxy)
            and (whitelist is None or token.denom in whitelist)
        ]

    async def get_external_balances(
        self,
        tokens: Iterable[Token],
        holder_address: str,
        whitelist_denoms: Optional[Iterable[str]] = None,
    ) -> list[TokenWithBalance]:
        """Read the holder's balance of every bridgeable token in one batched call."""
        bridge_tokens = self.filter_bridge_tokens(tokens, whitelist_denoms)
        if not bridge_tokens:
            return []

        balances = await self._fetch_balances(holder_address, bridge_tokens)
        return [
            TokenWithBalance(token=token, external_balance=balance)
            for token, balance in zip(bridge_tokens, balances)
        ]

    async def get_fee_info(self, denom: str) -> FeeQuote:
        """Fetch the fee schedule for a denom from the fee service."""
        url = f"{self.get_fee_url()}/fees"
        async with self.http_client() as client:
            response = await client.get(url, params={"denom": denom})
            response.raise_for_status()
            data = response.json() or {}
        quote = FeeQuote.model_validate(data)
        if quote.denom is None:
            quote = quote.model_copy(update={"denom": denom})
        return quote

    async def get_deposit_fee_amount(self, token: Token, deposit_address: str) -> Decimal:
        """Deposit fee in base units, plus wallet creation if the wallet is not deployed.

        The deployment probe and a later deposit submission are separate
        calls; a wallet deployed in between is still charged creation.

        Raises:
            UnsupportedTokenError: token of another chain, or no deposit fee configured
        """
        if token.blockchain != self.blockchain.value:
            raise UnsupportedTokenError(token.denom, f"token is not on {self.blockchain.value}")

        fee_info = await self.get_fee_info(token.denom)
        fee_amount = fee_info.deposit_fee
        if fee_amount is None:
            raise UnsupportedTokenError(token.denom, "no deposit fee configured")

        if not await self.is_contract(deposit_address):
            fee_amount += fee_info.create_wallet_fee
            logger.debug(f"Deposit wallet {deposit_address} not deployed, adding creation fee")

        logger.debug(f"Deposit fee for {token.denom}: {fee_amount}")
        return fee_amount

    @staticmethod
    def check_lock_gas_limit(gas_limit: int) -> None:
        if gas_limit < MIN_LOCK_GAS_LIMIT:
            raise BridgeValidationError(f"Minimum gas required: {MIN_LOCK_GAS_LIMIT:,}")

    @staticmethod
    def is_native_asset(token: Token) -> bool:
        """True when the token is the chain's native currency (zero-address placeholder)."""
        return strip_hex_prefix(token.asset_id) == ZERO_ADDRESS

    # ======================
    # Chain-specific operations
    # ======================

    @abstractmethod
    async def _fetch_balances(self, holder_address: str, tokens: list[Token]) -> list[Decimal]:
        """Balances of holder for tokens, in token order."""
        pass

    @abstractmethod
    async def approve_allowance(self, params: ApproveParams) -> PendingTransaction:
        """Set the lock proxy's allowance over the owner's token to the maximum."""
        pass

    @abstractmethod
    async def check_allowance(self, token: Token, owner: str, spender: str) -> Decimal:
        pass

    @abstractmethod
    async def lock_deposit(self, params: LockParams) -> PendingTransaction:
        """Lock tokens into the custody contract for a platform address."""
        pass

    @abstractmethod
    async def get_deposit_contract_address(self, platform_address: str, owner_address: str) -> str:
        pass

    @abstractmethod
    async def send_deposit(
        self,
        token: TokenWithBalance,
        platform_address: str,
        owner_address: str,
        sign_callback: SignCallback,
        deposit_address: Optional[str] = None,
        fee_amount: Optional[Decimal] = None,
    ) -> DepositResult:
        pass

    @abstractmethod
    async def retrieve_token_info(self, asset_address: str) -> TokenInfo:
        pass

    @abstractmethod
    async def is_contract(self, address: str) -> bool:
        pass

    @abstractmethod
    def get_eth_signer(self, private_key: str) -> Any:
        pass

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        """Receipt of a transaction, or None while it is pending."""
        pass

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 300.0, poll_interval: float = 3.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                logger.info(f"{self.chain.name} tx {tx_hash} confirmed")
                return receipt
            if time.monotonic() >= deadline:
                raise asyncio.TimeoutError(f"{self.chain.name} tx {tx_hash} not confirmed after {timeout}s")
            await asyncio.sleep(poll_interval)
