"""Tests for the EVM bridge client."""

import asyncio
import json
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from conftest import (
    ERC20_ASSET_ID,
    LOCALHOST_LOCK_PROXY,
    ORIGINATOR_ADDRESS_BYTES,
    OWNER_ADDRESS,
    PLATFORM_ADDRESS_BYTES,
)
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
)
from swthbridge.bridge.base import (
    ApproveParams,
    DepositStatus,
    LockParams,
    PendingTransaction,
)
from swthbridge.bridge.eth import EVMBridgeClient, make_local_sign_callback, split_signature
from swthbridge.errors import (
    BridgeValidationError,
    RPCError,
    UnsupportedBlockchainError,
    UnsupportedTokenError,
)
from swthbridge.models import TokenInfo, TokenWithBalance

LOCALHOST_FEE_ADDRESS = "989761fb0c0eb0c05605e849cae77d239f98ac7f"
DEPOSIT_WALLET = "0x" + "ab" * 20

FEE_RESPONSE = {
    "denom": "eth1",
    "details": {
        "deposit": {"fee": "1000"},
        "withdraw": {"fee": "3000"},
        "createWallet": {"fee": "500"},
    },
}


@pytest.fixture
def client(config_provider, fake_server) -> EVMBridgeClient:
    return EVMBridgeClient(config_provider, "eth", transport=fake_server.transport)


@pytest.fixture
def tx_signer() -> MagicMock:
    """Stand-in for a LocalAccount; records the unsigned transaction."""
    signer = MagicMock()
    signer.sign_transaction.return_value = MagicMock(raw_transaction=b"\x02\xf8")
    return signer


def decode_call(function, data: str):
    return function.decode_call(data)


class TestConstruction:
    """Tests for client construction."""

    def test_accepts_evm_chains(self, config_provider):
        """Test that Ethereum and BSC are accepted."""
        assert EVMBridgeClient(config_provider, "eth").chain.name == "Ethereum"
        assert EVMBridgeClient(config_provider, "BSC").chain.name == "Binance Smart Chain"

    @pytest.mark.parametrize("chain", ["zil", "neo", "solana"])
    def test_rejects_other_chains(self, config_provider, chain):
        """Test that non-EVM chains fail at construction."""
        with pytest.raises(UnsupportedBlockchainError) as exc_info:
            EVMBridgeClient(config_provider, chain)

        assert str(exc_info.value) == f"unsupported blockchain - {chain}"


class TestExternalBalances:
    """Tests for batched balance reads."""

    @pytest.mark.asyncio
    async def test_reads_only_bridgeable_tokens(
        self, client, fake_server, eth_token, usdc_token, zil_token
    ):
        """Test that tokens of other chains or other lock proxies are skipped."""
        other_proxy = usdc_token.model_copy(update={"denom": "usdc2", "lock_proxy_hash": "99" * 20})
        not_evm = usdc_token.model_copy(update={"denom": "usdc3", "asset_id": "abc"})
        fake_server.on_eth_call(BALANCE_READER_GET_BALANCES, [100, 250])

        balances = await client.get_external_balances(
            [eth_token, zil_token, usdc_token, other_proxy, not_evm], OWNER_ADDRESS
        )

        assert [b.denom for b in balances] == ["eth1", "usdc1"]
        assert [b.external_balance for b in balances] == [Decimal(100), Decimal(250)]

        params = fake_server.rpc_params("eth_call")[0]
        assert params[0]["to"] == Web3.to_checksum_address("0x" + "00" * 19 + "02")
        holder, assets = decode_call(BALANCE_READER_GET_BALANCES, params[0]["data"])
        assert holder == Web3.to_checksum_address(OWNER_ADDRESS)
        assert list(assets) == [
            Web3.to_checksum_address("0x" + "00" * 20),
            Web3.to_checksum_address("0x" + ERC20_ASSET_ID),
        ]

    @pytest.mark.asyncio
    async def test_whitelist(self, client, fake_server, eth_token, usdc_token):
        """Test that a whitelist restricts the queried denoms."""
        fake_server.on_eth_call(BALANCE_READER_GET_BALANCES, [42])

        balances = await client.get_external_balances([eth_token, usdc_token], OWNER_ADDRESS, ["usdc1"])

        assert [(b.denom, b.external_balance) for b in balances] == [("usdc1", Decimal(42))]

    @pytest.mark.asyncio
    async def test_no_bridgeable_tokens_makes_no_call(self, client, fake_server, zil_token):
        """Test that an empty selection returns without touching the node."""
        balances = await client.get_external_balances([zil_token], OWNER_ADDRESS)

        assert balances == []
        assert fake_server.calls == []


class TestReads:
    """Tests for allowance, contract and token info reads."""

    @pytest.mark.asyncio
    async def test_check_allowance(self, client, fake_server, usdc_token):
        """Test allowance is returned as a Decimal."""
        fake_server.on_eth_call(ERC20_ALLOWANCE, 12345)

        allowance = await client.check_allowance(usdc_token, OWNER_ADDRESS, "0x" + LOCALHOST_LOCK_PROXY)

        assert allowance == Decimal(12345)
        params = fake_server.rpc_params("eth_call")[0]
        assert params[0]["to"] == Web3.to_checksum_address("0x" + ERC20_ASSET_ID)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code, expected", [("0x", False), ("0x6080604052", True)])
    async def test_is_contract(self, client, fake_server, code, expected):
        """Test contract detection from eth_getCode."""
        fake_server.on_rpc("eth_getCode", code)

        assert await client.is_contract(DEPOSIT_WALLET) is expected

    @pytest.mark.asyncio
    async def test_retrieve_token_info(self, client, fake_server):
        """Test ERC20 metadata lookup."""
        fake_server.on_eth_call(ERC20_DECIMALS, 6)
        fake_server.on_eth_call(ERC20_NAME, "USD Coin")
        fake_server.on_eth_call(ERC20_SYMBOL, "USDC")

        info = await client.retrieve_token_info("0x" + ERC20_ASSET_ID)

        assert info == TokenInfo(address="0x" + ERC20_ASSET_ID, decimals=6, name="USD Coin", symbol="USDC")

    @pytest.mark.asyncio
    async def test_rpc_error_propagates(self, client, fake_server):
        """Test that node errors surface as RPCError."""
        with pytest.raises(RPCError) as exc_info:
            await client.retrieve_token_info("0x" + ERC20_ASSET_ID)

        assert exc_info.value.code == -32000


class TestDepositAddress:
    """Tests for deposit wallet derivation."""

    @pytest.mark.asyncio
    async def test_get_deposit_contract_address(self, client, fake_server, platform_address):
        """Test the lock proxy is asked with owner, platform bytes and bytecode hash."""
        fake_server.on_eth_call(LOCK_PROXY_GET_WALLET_ADDRESS, DEPOSIT_WALLET)

        address = await client.get_deposit_contract_address(platform_address, OWNER_ADDRESS)

        assert address == Web3.to_checksum_address(DEPOSIT_WALLET)
        params = fake_server.rpc_params("eth_call")[0]
        assert params[0]["to"] == Web3.to_checksum_address("0x" + LOCALHOST_LOCK_PROXY)
        owner, platform_bytes, bytecode_hash = decode_call(LOCK_PROXY_GET_WALLET_ADDRESS, params[0]["data"])
        assert owner == Web3.to_checksum_address(OWNER_ADDRESS)
        assert platform_bytes == PLATFORM_ADDRESS_BYTES
        assert bytecode_hash == b"\x00" * 32

    def test_decoded_addresses_are_checksummed(self):
        """Test address outputs come back checksummed whatever case the decoder yields."""
        wallet = LOCK_PROXY_GET_WALLET_ADDRESS.decode_result("0x" + "00" * 12 + "ab" * 20)

        assert wallet == Web3.to_checksum_address("0x" + "ab" * 20)
        assert wallet != "0x" + "ab" * 20

    @pytest.mark.asyncio
    async def test_invalid_platform_address(self, client, fake_server):
        """Test that a malformed platform address fails before any call."""
        with pytest.raises(BridgeValidationError):
            await client.get_deposit_contract_address("swth1notanaddress", OWNER_ADDRESS)

        assert fake_server.calls == []


class TestDepositFee:
    """Tests for fee quoting."""

    @pytest.mark.asyncio
    async def test_adds_creation_fee_for_undeployed_wallet(self, client, fake_server, eth_token):
        """Test deposit fee plus wallet creation fee when the wallet has no code."""
        fake_server.on_http("GET", "/fees", payload=FEE_RESPONSE)
        fake_server.on_rpc("eth_getCode", "0x")

        fee = await client.get_deposit_fee_amount(eth_token, DEPOSIT_WALLET)

        assert fee == Decimal(1500)
        assert fake_server.http_requests[0].url.params["denom"] == "eth1"

    @pytest.mark.asyncio
    async def test_deployed_wallet_pays_deposit_fee_only(self, client, fake_server, eth_token):
        """Test that an existing wallet is not charged creation."""
        fake_server.on_http("GET", "/fees", payload=FEE_RESPONSE)
        fake_server.on_rpc("eth_getCode", "0x6080")

        assert await client.get_deposit_fee_amount(eth_token, DEPOSIT_WALLET) == Decimal(1000)

    @pytest.mark.asyncio
    async def test_token_of_other_chain(self, client, fake_server, zil_token):
        """Test that a chain mismatch fails before any network call."""
        with pytest.raises(UnsupportedTokenError):
            await client.get_deposit_fee_amount(zil_token, DEPOSIT_WALLET)

        assert fake_server.calls == []

    @pytest.mark.asyncio
    async def test_missing_deposit_fee(self, client, fake_server, eth_token):
        """Test that a token without a deposit fee is unsupported."""
        fake_server.on_http("GET", "/fees", payload={"denom": "eth1", "details": {"withdraw": {"fee": "1"}}})

        with pytest.raises(UnsupportedTokenError):
            await client.get_deposit_fee_amount(eth_token, DEPOSIT_WALLET)

        assert "eth_getCode" not in fake_server.calls

    @pytest.mark.asyncio
    async def test_fee_service_error(self, client, fake_server, eth_token):
        """Test that fee service HTTP errors propagate."""
        fake_server.on_http("GET", "/fees", status=503, payload={})

        with pytest.raises(httpx.HTTPStatusError):
            await client.get_deposit_fee_amount(eth_token, DEPOSIT_WALLET)


class TestApproveAndLock:
    """Tests for owner-signed approve and lock transactions."""

    @pytest.mark.asyncio
    async def test_approve_uses_max_allowance_for_lock_proxy(self, client, fake_server, usdc_token, tx_signer):
        """Test approve targets the token with the lock proxy as spender."""
        fake_server.on_rpc("eth_getTransactionCount", "0x7")
        fake_server.on_rpc("eth_sendRawTransaction", "0x" + "cd" * 32)

        pending = await client.approve_allowance(
            ApproveParams(
                token=usdc_token,
                gas_price=Decimal("5"),
                gas_limit=60_000,
                owner_address=OWNER_ADDRESS,
                signer=tx_signer,
            )
        )

        tx = tx_signer.sign_transaction.call_args[0][0]
        assert tx["to"] == Web3.to_checksum_address("0x" + ERC20_ASSET_ID)
        assert tx["nonce"] == 7
        assert tx["gas"] == 60_000
        assert tx["gasPrice"] == 5 * 10**9
        assert tx["value"] == 0
        spender, amount = decode_call(ERC20_APPROVE, tx["data"])
        assert spender == Web3.to_checksum_address("0x" + LOCALHOST_LOCK_PROXY)
        assert amount == MAX_UINT256

        assert pending.tx_hash == "0x" + "cd" * 32
        assert pending.nonce == 7
        assert fake_server.rpc_params("eth_sendRawTransaction") == [["0x02f8"]]

    @pytest.mark.asyncio
    async def test_lock_rejects_low_gas_before_any_call(
        self, client, fake_server, eth_token, platform_address, tx_signer
    ):
        """Test the gas minimum is enforced before touching the node."""
        params = LockParams(
            token=eth_token,
            amount=Decimal(10**18),
            platform_address=platform_address,
            gas_price=Decimal("20"),
            gas_limit=149_999,
            owner_address=OWNER_ADDRESS,
            signer=tx_signer,
        )

        with pytest.raises(BridgeValidationError, match="Minimum gas required: 150,000"):
            await client.lock_deposit(params)

        assert fake_server.calls == []
        tx_signer.sign_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_lock_native_currency_sends_value(
        self, client, fake_server, eth_token, platform_address, tx_signer
    ):
        """Test native ETH is attached as value and encoded in the lock call."""
        fake_server.on_rpc("eth_getTransactionCount", "0x5")
        fake_server.on_rpc("eth_sendRawTransaction", "0x" + "ab" * 32)
        amount = 10**18

        pending = await client.lock_deposit(
            LockParams(
                token=eth_token,
                amount=Decimal(amount),
                platform_address=platform_address,
                gas_price=Decimal("20"),
                gas_limit=200_000,
                owner_address=OWNER_ADDRESS,
                signer=tx_signer,
            )
        )

        tx = tx_signer.sign_transaction.call_args[0][0]
        assert tx["to"] == Web3.to_checksum_address("0x" + LOCALHOST_LOCK_PROXY)
        assert tx["value"] == amount
        assert tx["chainId"] == 1337
        assert tx["gasPrice"] == 20 * 10**9

        asset, target_proxy, to_address, to_asset, fee_address, values = decode_call(LOCK_PROXY_LOCK, tx["data"])
        assert asset == Web3.to_checksum_address("0x" + "00" * 20)
        assert target_proxy == ORIGINATOR_ADDRESS_BYTES
        assert to_address == PLATFORM_ADDRESS_BYTES
        assert to_asset == b"eth1"
        assert fee_address == bytes.fromhex(LOCALHOST_FEE_ADDRESS)
        assert list(values) == [amount, 0, amount]

        assert isinstance(pending, PendingTransaction)
        assert pending.nonce == 5

    @pytest.mark.asyncio
    async def test_lock_token_sends_no_value(self, client, fake_server, usdc_token, platform_address, tx_signer):
        """Test ERC20 locks carry the amount in call data only."""
        fake_server.on_rpc("eth_getTransactionCount", "0x0")
        fake_server.on_rpc("eth_sendRawTransaction", "0x" + "ab" * 32)

        await client.lock_deposit(
            LockParams(
                token=usdc_token,
                amount=Decimal(2_000_000),
                platform_address=platform_address,
                gas_price=Decimal("1.5"),
                gas_limit=150_000,
                owner_address=OWNER_ADDRESS,
                signer=tx_signer,
            )
        )

        tx = tx_signer.sign_transaction.call_args[0][0]
        assert tx["value"] == 0
        assert tx["gasPrice"] == 1_500_000_000
        *_, values = decode_call(LOCK_PROXY_LOCK, tx["data"])
        assert list(values) == [2_000_000, 0, 2_000_000]


class TestSendDeposit:
    """Tests for relayer-submitted deposits."""

    @pytest.fixture
    def account(self):
        return Account.from_key("0x" + "42" * 32)

    @pytest.fixture
    def relayer_bodies(self, fake_server) -> list[dict]:
        bodies = []

        def relayer(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"result": "ok"})

        fake_server.on_http("POST", "/deposit", relayer)
        return bodies

    @pytest.mark.asyncio
    async def test_insufficient_balance_skips_relayer(self, client, fake_server, eth_token, platform_address, account):
        """Test that a balance below twice the fee is not submitted."""
        result = await client.send_deposit(
            TokenWithBalance(token=eth_token, external_balance=Decimal(1999)),
            platform_address,
            account.address,
            make_local_sign_callback(account),
            deposit_address=DEPOSIT_WALLET,
            fee_amount=Decimal(1000),
        )

        assert result.success is False
        assert result.status == DepositStatus.INSUFFICIENT_BALANCE
        assert result.fee_amount == Decimal(1000)
        assert fake_server.calls == []

    @pytest.mark.asyncio
    async def test_submits_signed_authorization(
        self, client, fake_server, relayer_bodies, eth_token, platform_address, account
    ):
        """Test the relayer body and that its signature recovers to the owner."""
        result = await client.send_deposit(
            TokenWithBalance(token=eth_token, external_balance=Decimal(2000)),
            platform_address,
            account.address,
            make_local_sign_callback(account),
            deposit_address=DEPOSIT_WALLET,
            fee_amount=Decimal(1000),
        )

        assert result.success is True
        assert result.status == DepositStatus.SUBMITTED
        assert result.status_code == 200
        assert result.response == {"result": "ok"}
        assert fake_server.calls == ["POST /deposit"]

        body = relayer_bodies[0]
        assert body["OwnerAddress"] == account.address
        assert body["SwthAddress"] == "0x" + PLATFORM_ADDRESS_BYTES.hex()
        assert body["AssetHash"] == "0x" + "00" * 20
        assert body["TargetProxyHash"] == "0x" + ORIGINATOR_ADDRESS_BYTES.hex()
        assert body["ToAssetHash"] == "0x" + b"eth1".hex()
        assert body["FeeAddress"] == "0x" + LOCALHOST_FEE_ADDRESS
        assert body["Amount"] == "2000"
        assert body["FeeAmount"] == "1000"
        assert body["V"] in ("27", "28")
        assert int(body["Nonce"]) == result.nonce
        assert 0 <= result.nonce < 1_000_000_000

        message = Web3.solidity_keccak(
            SEND_TOKENS_MESSAGE_TYPES,
            [
                "sendTokens",
                Web3.to_checksum_address(body["AssetHash"]),
                ORIGINATOR_ADDRESS_BYTES,
                b"eth1",
                bytes.fromhex(LOCALHOST_FEE_ADDRESS),
                2000,
                1000,
                int(body["Nonce"]),
            ],
        )
        recovered = Account.recover_message(
            encode_defunct(primitive=bytes(message)),
            vrs=(int(body["V"]), int(body["R"], 16), int(body["S"], 16)),
        )
        assert recovered == account.address

    @pytest.mark.asyncio
    async def test_relayer_rejection(self, client, fake_server, eth_token, platform_address, account):
        """Test a non-2xx relayer reply is reported, not raised."""
        fake_server.on_http("POST", "/deposit", status=400, payload={"error": "bad nonce"})

        result = await client.send_deposit(
            TokenWithBalance(token=eth_token, external_balance=Decimal(5000)),
            platform_address,
            account.address,
            make_local_sign_callback(account),
            deposit_address=DEPOSIT_WALLET,
            fee_amount=Decimal(1000),
        )

        assert result.success is False
        assert result.status == DepositStatus.REJECTED
        assert result.status_code == 400
        assert result.response == {"error": "bad nonce"}

    @pytest.mark.asyncio
    async def test_quotes_fee_when_not_given(
        self, client, fake_server, relayer_bodies, eth_token, platform_address, account
    ):
        """Test address derivation and fee quote happen before submission."""
        fake_server.on_eth_call(LOCK_PROXY_GET_WALLET_ADDRESS, DEPOSIT_WALLET)
        fake_server.on_http("GET", "/fees", payload=FEE_RESPONSE)
        fake_server.on_rpc("eth_getCode", "0x")

        result = await client.send_deposit(
            TokenWithBalance(token=eth_token, external_balance=Decimal(10_000)),
            platform_address,
            account.address,
            make_local_sign_callback(account),
        )

        assert fake_server.calls == ["eth_call", "GET /fees", "eth_getCode", "POST /deposit"]
        assert result.fee_amount == Decimal(1500)
        assert result.deposit_address == Web3.to_checksum_address(DEPOSIT_WALLET)
        assert relayer_bodies[0]["FeeAmount"] == "1500"

    @pytest.mark.asyncio
    async def test_bsc_uses_bsc_relayer(self, config_provider, fake_server, eth_token, platform_address, account):
        """Test each EVM chain posts to its own relayer."""
        fake_server.on_http("POST", "/bsc/deposit", payload={"result": "ok"})
        client = EVMBridgeClient(config_provider, "bsc", transport=fake_server.transport)
        bnb = eth_token.model_copy(update={"denom": "bnb1", "blockchain": "bsc"})

        result = await client.send_deposit(
            TokenWithBalance(token=bnb, external_balance=Decimal(5000)),
            platform_address,
            account.address,
            make_local_sign_callback(account),
            deposit_address=DEPOSIT_WALLET,
            fee_amount=Decimal(1000),
        )

        assert result.status == DepositStatus.SUBMITTED
        assert fake_server.calls == ["POST /bsc/deposit"]


class TestSignatures:
    """Tests for signature helpers."""

    def test_split_signature_normalises_v(self):
        """Test v below 27 is shifted into the 27/28 range."""
        r = bytes([1]) * 32
        s = bytes([2]) * 32

        v, r_hex, s_hex = split_signature("0x" + (r + s + bytes([1])).hex())

        assert v == 28
        assert r_hex == "0x" + r.hex()
        assert s_hex == "0x" + s.hex()

    def test_split_signature_keeps_standard_v(self):
        """Test v of 27/28 is kept."""
        v, _, _ = split_signature(bytes(64) + bytes([27]))

        assert v == 27

    def test_split_signature_rejects_bad_length(self):
        """Test a signature that is not 65 bytes is rejected."""
        with pytest.raises(BridgeValidationError):
            split_signature("0x" + "00" * 64)

    @pytest.mark.asyncio
    async def test_local_sign_callback(self):
        """Test the local callback signs as the account."""
        account = Account.from_key("0x" + "42" * 32)
        sign = make_local_sign_callback(account)

        signature = await sign("0x" + "11" * 32)

        assert signature.address == account.address
        assert len(bytes.fromhex(signature.signature[2:])) == 65

    def test_get_eth_signer(self, client):
        """Test a local signer is built from a private key."""
        key = "0x" + "42" * 32

        assert client.get_eth_signer(key).address == Account.from_key(key).address

    @pytest.mark.asyncio
    async def test_signer_transactions_go_to_chain_endpoint(self, client, fake_server, usdc_token):
        """Test what the signer signs is sent to this chain's RPC node."""
        key = "0x" + "42" * 32
        signer = client.get_eth_signer(key)
        fake_server.on_rpc("eth_getTransactionCount", "0x0")
        fake_server.on_rpc("eth_sendRawTransaction", "0x" + "cd" * 32)
        sent_to = []

        def record(request: httpx.Request) -> httpx.Response:
            sent_to.append((request.url.host, request.url.port))
            return fake_server.handle(request)

        client.transport = httpx.MockTransport(record)

        await client.approve_allowance(
            ApproveParams(
                token=usdc_token, gas_price=Decimal("1"), gas_limit=60_000, owner_address=signer.address, signer=signer
            )
        )

        raw_tx = fake_server.rpc_params("eth_sendRawTransaction")[0][0]
        assert Account.recover_transaction(raw_tx) == signer.address
        assert set(sent_to) == {("localhost", 8545)}


class TestReceipts:
    """Tests for waiting on submitted transactions."""

    @pytest.mark.asyncio
    async def test_wait_polls_until_receipt(self, client, fake_server):
        """Test pending receipts are polled until present."""
        replies = iter([None, None, {"status": "0x1"}])
        fake_server.on_rpc("eth_getTransactionReceipt", handler=lambda params: next(replies))
        pending = PendingTransaction(tx_hash="0xab", blockchain=client.blockchain, nonce=1, client=client)

        receipt = await pending.wait(timeout=5, poll_interval=0)

        assert receipt == {"status": "0x1"}
        assert fake_server.calls.count("eth_getTransactionReceipt") == 3

    @pytest.mark.asyncio
    async def test_wait_times_out(self, client, fake_server):
        """Test a missing receipt times out."""
        fake_server.on_rpc("eth_getTransactionReceipt", None)
        pending = PendingTransaction(tx_hash="0xab", blockchain=client.blockchain, nonce=1, client=client)

        with pytest.raises(asyncio.TimeoutError):
            await pending.wait(timeout=0, poll_interval=0)
