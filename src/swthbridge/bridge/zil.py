"""Zilliqa bridge client.

Talks to the Zilliqa JSON-RPC API directly. ZRC-2 token state is read with
GetSmartContractSubState; contract calls are Scilla transitions carried in
the `data` field of a CreateTransaction payload.

Zilliqa transactions are Schnorr-signed over a protobuf encoding. Signing
belongs to the wallet, so callers pass a ZilSigner that fills in `pubKey`
and `signature` for a prepared payload.
"""

import hashlib
import json
import logging
from decimal import Decimal
from typing import Any, Optional, Protocol

from bip_utils import Bech32ChecksumError, Bech32Decoder

from swthbridge.address import append_hex_prefix, get_address_bytes, strip_hex_prefix
from swthbridge.bridge.base import (
    ApproveParams,
    ChainBridgeClient,
    DepositResult,
    LockParams,
    PendingTransaction,
    SignCallback,
)
from swthbridge.chains import Blockchain
from swthbridge.errors import BridgeValidationError, RPCError, UnsupportedOperationError
from swthbridge.models import Token, TokenInfo, TokenWithBalance
from swthbridge.rpc import JsonRpcClient

logger = logging.getLogger(__name__)

MAX_UINT128 = 2**128 - 1
MSG_VERSION = 1

# GetTransaction error code while a transaction is not yet in a block
TXN_NOT_PRESENT_CODE = -20
ADDRESS_NOT_CONTRACT_CODE = -5


class ZilSigner(Protocol):
    """Wallet-side signer for Zilliqa transactions."""

    async def sign(self, tx: dict[str, Any]) -> dict[str, Any]:
        """Return the payload with `pubKey` and `signature` filled in."""
        ...


def to_base16_address(address: str) -> str:
    """Normalise a zil1... bech32 or hex address to lowercase hex without prefix."""
    if address.lower().startswith("zil1"):
        try:
            return bytes(Bech32Decoder.Decode("zil", address)).hex()
        except (Bech32ChecksumError, ValueError) as e:
            raise BridgeValidationError(f"invalid Zilliqa address {address!r}: {e}") from e

    hex_address = strip_hex_prefix(address).lower()
    if len(hex_address) != 40:
        raise BridgeValidationError(f"invalid Zilliqa address {address!r}")
    return hex_address


def to_checksum_address(address: str) -> str:
    """Zilliqa checksum address (sha256-based, differs from EIP-55)."""
    hex_address = to_base16_address(address)
    v = int.from_bytes(hashlib.sha256(bytes.fromhex(hex_address)).digest(), "big")
    out = []
    for i, char in enumerate(hex_address):
        if char.isdigit():
            out.append(char)
        elif v & (1 << (255 - 6 * i)):
            out.append(char.upper())
        else:
            out.append(char)
    return "0x" + "".join(out)


def scilla_param(vname: str, type_: str, value: Any) -> dict[str, Any]:
    return {"vname": vname, "type": type_, "value": value}


class ZILBridgeClient(ChainBridgeClient):
    """Bridge client for Zilliqa's Scilla lock proxy."""

    SUPPORTED_BLOCKCHAINS = (Blockchain.ZILLIQA,)

    # ======================
    # RPC helpers
    # ======================

    def _get_version(self) -> int:
        chain_id = self.get_chain_config().chain_id or 1
        return (chain_id << 16) + MSG_VERSION

    async def _get_nonce(self, rpc: JsonRpcClient, address: str) -> int:
        account = await rpc.call("GetBalance", to_base16_address(address))
        return int(account.get("nonce", 0)) + 1

    async def _call_transition(
        self,
        rpc: JsonRpcClient,
        signer: ZilSigner,
        owner_address: str,
        contract: str,
        tag: str,
        params: list[dict[str, Any]],
        gas_price: Decimal,
        gas_limit: int,
        amount: int = 0,
    ) -> PendingTransaction:
        nonce = await self._get_nonce(rpc, owner_address)
        tx = {
            "version": self._get_version(),
            "nonce": nonce,
            "toAddr": to_checksum_address(contract),
            "amount": str(amount),
            "gasPrice": str(int(gas_price)),
            "gasLimit": str(int(gas_limit)),
            "code": "",
            "data": json.dumps({"_tag": tag, "params": params}),
            "priority": False,
        }
        signed = await signer.sign(tx)
        result = await rpc.call("CreateTransaction", signed)
        tx_hash = result.get("TranID") if isinstance(result, dict) else None
        if not tx_hash:
            raise RPCError("CreateTransaction", f"no transaction id in {result!r}")

        logger.info(f"Zilliqa {tag} tx submitted: {tx_hash} (nonce {nonce})")
        return PendingTransaction(tx_hash=tx_hash, blockchain=self.blockchain, nonce=nonce, client=self)

    # ======================
    # Reads
    # ======================

    async def _fetch_balances(self, holder_address: str, tokens: list[Token]) -> list[Decimal]:
        holder = to_base16_address(holder_address)
        calls = []
        for token in tokens:
            if self.is_native_asset(token):
                calls.append(("GetBalance", [holder]))
            else:
                calls.append(("GetSmartContractSubState", [token.asset_id.lower(), "balances", ["0x" + holder]]))

        results = await self.get_rpc().batch(calls)

        balances = []
        for token, result in zip(tokens, results):
            if self.is_native_asset(token):
                balances.append(Decimal((result or {}).get("balance", "0")))
            else:
                raw = ((result or {}).get("balances") or {}).get("0x" + holder, "0")
                balances.append(Decimal(raw))
        return balances

    async def check_allowance(self, token: Token, owner: str, spender: str) -> Decimal:
        owner_hex = "0x" + to_base16_address(owner)
        spender_hex = "0x" + to_base16_address(spender)
        result = await self.get_rpc().call(
            "GetSmartContractSubState", token.asset_id.lower(), "allowances", [owner_hex, spender_hex]
        )
        allowances = (result or {}).get("allowances") or {}
        return Decimal((allowances.get(owner_hex) or {}).get(spender_hex, "0"))

    async def is_contract(self, address: str) -> bool:
        try:
            result = await self.get_rpc().call("GetSmartContractCode", to_base16_address(address))
        except RPCError as e:
            # plain accounts are reported as an invalid-address error
            if e.code != ADDRESS_NOT_CONTRACT_CODE:
                raise
            logger.debug(f"{address} is not a contract: {e}")
            return False
        return bool((result or {}).get("code"))

    async def retrieve_token_info(self, asset_address: str) -> TokenInfo:
        init = await self.get_rpc().call("GetSmartContractInit", to_base16_address(asset_address))
        fields = {item["vname"]: item["value"] for item in init or []}
        return TokenInfo(
            address=asset_address,
            decimals=int(fields.get("decimals", 0)),
            name=fields.get("name", ""),
            symbol=fields.get("symbol", ""),
        )

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        try:
            result = await self.get_rpc().call("GetTransaction", strip_hex_prefix(tx_hash))
        except RPCError as e:
            if e.code == TXN_NOT_PRESENT_CODE:
                return None
            raise
        return (result or {}).get("receipt")

    # ======================
    # Transactions
    # ======================

    async def approve_allowance(self, params: ApproveParams) -> PendingTransaction:
        token = params.token
        logger.info(f"Increasing {token.denom} allowance for lock proxy {token.lock_proxy_hash}")
        return await self._call_transition(
            self.get_rpc(),
            params.signer,
            params.owner_address,
            contract=token.asset_id,
            tag="IncreaseAllowance",
            params=[
                scilla_param("spender", "ByStr20", append_hex_prefix(token.lock_proxy_hash).lower()),
                scilla_param("amount", "Uint128", str(MAX_UINT128)),
            ],
            gas_price=params.gas_price,
            gas_limit=params.gas_limit,
        )

    async def lock_deposit(self, params: LockParams) -> PendingTransaction:
        self.check_lock_gas_limit(params.gas_limit)

        token = params.token
        network_config = self.get_network_config()
        amount = int(params.amount)
        to_address = get_address_bytes(params.platform_address, network_config.network)

        logger.info(f"Locking {amount} {token.denom} for {params.platform_address}")
        return await self._call_transition(
            self.get_rpc(),
            params.signer,
            params.owner_address,
            contract=self.get_lock_proxy_address(),
            tag="lock",
            params=[
                scilla_param("tokenAddr", "ByStr20", append_hex_prefix(token.asset_id).lower()),
                scilla_param("targetProxyHash", "ByStr", append_hex_prefix(self.get_target_proxy_hash(token))),
                scilla_param("toAddress", "ByStr", "0x" + to_address.hex()),
                scilla_param("toAssetHash", "ByStr", "0x" + token.denom.encode("utf-8").hex()),
                scilla_param("feeAddr", "ByStr", append_hex_prefix(self.get_fee_address())),
                scilla_param("amount", "Uint256", str(amount)),
                scilla_param("feeAmount", "Uint256", "0"),
            ],
            gas_price=params.gas_price,
            gas_limit=params.gas_limit,
            # native ZIL travels as tx amount, ZRC-2 tokens via the transition
            amount=amount if self.is_native_asset(token) else 0,
        )

    # ======================
    # Not offered by the Zilliqa lock proxy
    # ======================

    async def get_deposit_contract_address(self, platform_address: str, owner_address: str) -> str:
        raise UnsupportedOperationError(self.blockchain.value, "deposit wallet derivation")

    async def send_deposit(
        self,
        token: TokenWithBalance,
        platform_address: str,
        owner_address: str,
        sign_callback: SignCallback,
        deposit_address: Optional[str] = None,
        fee_amount: Optional[Decimal] = None,
    ) -> DepositResult:
        raise UnsupportedOperationError(self.blockchain.value, "authorization-based deposit")

    def get_eth_signer(self, private_key: str) -> Any:
        raise UnsupportedOperationError(self.blockchain.value, "local signer")
