"""EVM bridge client for Ethereum and Binance Smart Chain.

Contract calls are ABI-encoded locally and sent over plain JSON-RPC;
transactions are signed with an eth_account local account.
"""

import logging
import secrets
from decimal import Decimal
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from swthbridge.address import append_hex_prefix, get_address_bytes, strip_hex_prefix
from swthbridge.bridge.abis import (
    BALANCE_READER_GET_BALANCES,
    ERC20_ALLOWANCE,
    ERC20_APPROVE,
    ERC20_DECIMALS,
    ERC20_NAME,
    ERC20_SYMBOL,
    LOCK_PROXY_GET_WALLET_ADDRESS,
    LOCK_PROXY_LOCK,
    MAX_UINT256,
    SEND_TOKENS_MESSAGE_TYPES,
    SEND_TOKENS_TAG,
    ContractFunction,
)
from swthbridge.bridge.base import (
    FEE_MULTIPLIER,
    ApproveParams,
    ChainBridgeClient,
    DepositResult,
    DepositStatus,
    LockParams,
    MessageSignature,
    PendingTransaction,
    SignCallback,
)
from swthbridge.chains import Blockchain
from swthbridge.errors import BridgeValidationError
from swthbridge.models import Token, TokenInfo, TokenWithBalance
from swthbridge.rpc import JsonRpcClient

logger = logging.getLogger(__name__)

GWEI = Decimal(10**9)


def split_signature(signature: str | bytes) -> tuple[int, str, str]:
    """Split a 65-byte r || s || v signature into (v, r, s).

    v is normalised to 27/28; r and s are 0x-prefixed 32-byte hex.
    """
    raw = bytes.fromhex(strip_hex_prefix(signature)) if isinstance(signature, str) else bytes(signature)
    if len(raw) != 65:
        raise BridgeValidationError(f"invalid signature length {len(raw)}, expected 65")

    v = raw[64]
    if v < 27:
        v += 27
    return v, "0x" + raw[:32].hex(), "0x" + raw[32:64].hex()


def make_local_sign_callback(account: LocalAccount) -> SignCallback:
    """Sign deposit authorization hashes with a local account (EIP-191 personal message)."""

    async def sign(message: str) -> MessageSignature:
        signed = account.sign_message(encode_defunct(hexstr=message))
        return MessageSignature(address=account.address, signature="0x" + bytes(signed.signature).hex())

    return sign


class EVMBridgeClient(ChainBridgeClient):
    """Bridge client for EVM chains with a Switcheo lock proxy."""

    SUPPORTED_BLOCKCHAINS = (Blockchain.ETHEREUM, Blockchain.BINANCE_SMART_CHAIN)

    # ======================
    # RPC helpers
    # ======================

    async def _call(self, rpc: JsonRpcClient, to: str, function: ContractFunction, *args):
        data = function.encode_call(*args)
        result = await rpc.call("eth_call", {"to": Web3.to_checksum_address(to), "data": data}, "latest")
        return function.decode_result(result)

    async def _get_chain_id(self, rpc: JsonRpcClient) -> int:
        chain_id = self.get_chain_config().chain_id
        if chain_id is not None:
            return chain_id
        return int(await rpc.call("eth_chainId"), 16)

    async def _get_nonce(self, rpc: JsonRpcClient, address: str) -> int:
        return int(await rpc.call("eth_getTransactionCount", Web3.to_checksum_address(address), "pending"), 16)

    async def _sign_and_send(
        self,
        rpc: JsonRpcClient,
        signer: LocalAccount,
        to: str,
        data: str,
        nonce: int,
        gas_price: Decimal,
        gas_limit: int,
        value: int = 0,
    ) -> PendingTransaction:
        tx = {
            "nonce": nonce,
            "gasPrice": int(Decimal(gas_price) * GWEI),
            "gas": int(gas_limit),
            "to": Web3.to_checksum_address(to),
            "value": value,
            "data": data,
            "chainId": await self._get_chain_id(rpc),
        }
        signed = signer.sign_transaction(tx)
        raw_tx = "0x" + bytes(signed.raw_transaction).hex()
        tx_hash = await rpc.call("eth_sendRawTransaction", raw_tx)

        logger.info(f"{self.chain.name} tx submitted: {tx_hash} (nonce {nonce})")
        return PendingTransaction(tx_hash=tx_hash, blockchain=self.blockchain, nonce=nonce, client=self)

    # ======================
    # Reads
    # ======================

    async def _fetch_balances(self, holder_address: str, tokens: list[Token]) -> list[Decimal]:
        asset_ids = [Web3.to_checksum_address(append_hex_prefix(token.asset_id)) for token in tokens]
        balances = await self._call(
            self.get_rpc(),
            self.get_balance_reader_address(),
            BALANCE_READER_GET_BALANCES,
            Web3.to_checksum_address(holder_address),
            asset_ids,
        )
        return [Decimal(balance) for balance in balances]

    async def check_allowance(self, token: Token, owner: str, spender: str) -> Decimal:
        allowance = await self._call(
            self.get_rpc(),
            append_hex_prefix(token.asset_id),
            ERC20_ALLOWANCE,
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender),
        )
        return Decimal(allowance)

    async def is_contract(self, address: str) -> bool:
        code = await self.get_rpc().call("eth_getCode", Web3.to_checksum_address(address), "latest")
        # non-contract addresses return "0x"
        return code not in ("0x", "0x0", "", None)

    async def retrieve_token_info(self, asset_address: str) -> TokenInfo:
        rpc = self.get_rpc()
        decimals = await self._call(rpc, asset_address, ERC20_DECIMALS)
        name = await self._call(rpc, asset_address, ERC20_NAME)
        symbol = await self._call(rpc, asset_address, ERC20_SYMBOL)
        return TokenInfo(address=asset_address, decimals=int(decimals), name=name, symbol=symbol)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        return await self.get_rpc().call("eth_getTransactionReceipt", tx_hash)

    async def get_deposit_contract_address(self, platform_address: str, owner_address: str) -> str:
        """Per-user deposit wallet address, as computed by the lock proxy (CREATE2)."""
        network = self.get_network_config().network
        platform_bytes = get_address_bytes(platform_address, network)
        bytecode_hash = bytes.fromhex(strip_hex_prefix(self.get_wallet_bytecode_hash()))

        wallet_address = await self._call(
            self.get_rpc(),
            self.get_lock_proxy_address(),
            LOCK_PROXY_GET_WALLET_ADDRESS,
            Web3.to_checksum_address(owner_address),
            platform_bytes,
            bytecode_hash,
        )
        wallet_address = Web3.to_checksum_address(wallet_address)
        logger.debug(f"Deposit wallet for {platform_address}/{owner_address}: {wallet_address}")
        return wallet_address

    # ======================
    # Transactions
    # ======================

    async def approve_allowance(self, params: ApproveParams) -> PendingTransaction:
        token = params.token
        rpc = self.get_rpc()
        nonce = await self._get_nonce(rpc, params.owner_address)
        data = ERC20_APPROVE.encode_call(
            Web3.to_checksum_address(append_hex_prefix(token.lock_proxy_hash)),
            MAX_UINT256,
        )
        logger.info(f"Approving {token.denom} for lock proxy {token.lock_proxy_hash}")
        return await self._sign_and_send(
            rpc,
            params.signer,
            to=append_hex_prefix(token.asset_id),
            data=data,
            nonce=nonce,
            gas_price=params.gas_price,
            gas_limit=params.gas_limit,
        )

    async def lock_deposit(self, params: LockParams) -> PendingTransaction:
        self.check_lock_gas_limit(params.gas_limit)

        token = params.token
        network_config = self.get_network_config()
        amount = int(params.amount)

        asset_id = Web3.to_checksum_address(append_hex_prefix(token.asset_id))
        target_proxy_hash = bytes.fromhex(self.get_target_proxy_hash(token))
        to_address = get_address_bytes(params.platform_address, network_config.network)
        to_asset_hash = token.denom.encode("utf-8")
        fee_address = bytes.fromhex(self.get_fee_address())

        data = LOCK_PROXY_LOCK.encode_call(
            asset_id,
            target_proxy_hash,
            to_address,
            to_asset_hash,
            fee_address,
            [amount, 0, amount],  # amount, feeAmount, callAmount
        )
        # native currency travels as tx value, tokens via the call arguments
        value = amount if self.is_native_asset(token) else 0

        rpc = self.get_rpc()
        nonce = await self._get_nonce(rpc, params.owner_address)
        logger.info(f"Locking {amount} {token.denom} for {params.platform_address}")
        return await self._sign_and_send(
            rpc,
            params.signer,
            to=self.get_lock_proxy_address(),
            data=data,
            nonce=nonce,
            gas_price=params.gas_price,
            gas_limit=params.gas_limit,
            value=value,
        )

    async def send_deposit(
        self,
        token: TokenWithBalance,
        platform_address: str,
        owner_address: str,
        sign_callback: SignCallback,
        deposit_address: Optional[str] = None,
        fee_amount: Optional[Decimal] = None,
    ) -> DepositResult:
        """Authorize the relayer to sweep the owner's deposit wallet into the lock proxy.

        The nonce is random (not a sequence number); it only keeps a signed
        authorization from being replayed.
        """
        logger.debug(f"send_deposit {token.denom} {platform_address} {owner_address}")
        if fee_amount is None:
            if deposit_address is None:
                deposit_address = await self.get_deposit_contract_address(platform_address, owner_address)
            fee_amount = await self.get_deposit_fee_amount(token.token, deposit_address)

        amount = token.external_balance
        if amount < fee_amount * FEE_MULTIPLIER:
            logger.info(f"Deposit of {token.denom} skipped: balance {amount} < {FEE_MULTIPLIER} x fee {fee_amount}")
            return DepositResult(
                success=False,
                status=DepositStatus.INSUFFICIENT_BALANCE,
                denom=token.denom,
                amount=amount,
                fee_amount=fee_amount,
                deposit_address=deposit_address,
                message="insufficient balance",
            )

        network_config = self.get_network_config()
        asset_id = append_hex_prefix(token.token.asset_id)
        target_proxy_hash = append_hex_prefix(self.get_target_proxy_hash(token.token))
        fee_address = append_hex_prefix(self.get_fee_address())
        to_asset_hash = "0x" + token.denom.encode("utf-8").hex()
        nonce = secrets.randbelow(1_000_000_000)

        message = "0x" + bytes(
            Web3.solidity_keccak(
                SEND_TOKENS_MESSAGE_TYPES,
                [
                    SEND_TOKENS_TAG,
                    Web3.to_checksum_address(asset_id),
                    bytes.fromhex(strip_hex_prefix(target_proxy_hash)),
                    token.denom.encode("utf-8"),
                    bytes.fromhex(strip_hex_prefix(fee_address)),
                    int(amount),
                    int(fee_amount),
                    nonce,
                ],
            )
        ).hex()
        logger.debug(f"send_deposit message {message}")

        signature = await sign_callback(message)
        v, r, s = split_signature(signature.signature)

        body = {
            "OwnerAddress": signature.address,
            "SwthAddress": "0x" + get_address_bytes(platform_address, network_config.network).hex(),
            "AssetHash": asset_id,
            "TargetProxyHash": target_proxy_hash,
            "ToAssetHash": to_asset_hash,
            "Amount": str(int(amount)),
            "FeeAmount": str(int(fee_amount)),
            "FeeAddress": fee_address,
            "Nonce": str(nonce),
            "V": str(v),
            "R": r,
            "S": s,
        }

        async with self.http_client() as client:
            response = await client.post(f"{self.get_payer_url()}/deposit", json=body)

        logger.info(f"Relayer deposit {token.denom}: HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        return DepositResult(
            success=response.is_success,
            status=DepositStatus.SUBMITTED if response.is_success else DepositStatus.REJECTED,
            denom=token.denom,
            amount=amount,
            fee_amount=fee_amount,
            deposit_address=deposit_address,
            nonce=nonce,
            status_code=response.status_code,
            response=payload,
            message="" if response.is_success else f"relayer rejected deposit: HTTP {response.status_code}",
        )

    def get_eth_signer(self, private_key: str) -> LocalAccount:
        """Local signer for this chain's transactions.

        The account is not bound to an endpoint; approve_allowance and
        lock_deposit send what it signs to get_provider_url() and sign with
        this chain's chain id.
        """
        return Account.from_key(private_key)
