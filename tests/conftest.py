"""Pytest configuration and fixtures."""

import json
import os
from typing import Any, Callable

import httpx
import pytest
from bip_utils import Bech32Encoder
from eth_abi import encode

# Keep developer .env overrides out of the tests
os.environ["NETWORK"] = "localhost"
os.environ["DEBUG"] = "true"

from swthbridge.bridge.abis import ContractFunction
from swthbridge.config import get_settings
from swthbridge.models import Token
from swthbridge.network import Network, StaticConfigProvider

LOCALHOST_LOCK_PROXY = "0000000000000000000000000000000000000001"
ERC20_ASSET_ID = "a0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
ZRC2_ASSET_ID = "ba11eb7bcc0a02e947acf03cc651bfaf19c9ec00"
OWNER_ADDRESS = "0x5b38da6a701c568545dcfcb03fcb875f56beddc4"

PLATFORM_ADDRESS_BYTES = bytes(range(1, 21))
ORIGINATOR_ADDRESS_BYTES = bytes(range(101, 121))


class RpcFault(Exception):
    """Raised by a fake handler to answer with a JSON-RPC error object."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


RouteHandler = Callable[[httpx.Request], httpx.Response]


class FakeChainServer:
    """In-process stand-in for chain nodes, the fee service and the relayer.

    JSON-RPC requests are answered per method (batches included); any other
    request is routed on (HTTP method, path). Every call is logged in
    order: RPC calls by method name, REST calls as "GET /path".
    """

    def __init__(self):
        self.calls: list[str] = []
        self.rpc_requests: list[dict] = []
        self.http_requests: list[httpx.Request] = []
        self.rpc_handlers: dict[str, Callable[[list], Any]] = {}
        self.eth_call_results: dict[str, str] = {}
        self.routes: dict[tuple[str, str], RouteHandler] = {}

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def on_rpc(self, method: str, result: Any = None, handler: Callable[[list], Any] | None = None) -> None:
        self.rpc_handlers[method] = handler or (lambda params: result)

    def on_eth_call(self, function: ContractFunction, *values: Any) -> None:
        """Answer eth_call for one contract function with ABI-encoded values."""
        self.eth_call_results[function.selector.hex()] = "0x" + encode(list(function.outputs), list(values)).hex()

    def on_http(
        self, method: str, path: str, handler: RouteHandler | None = None, status: int = 200, payload: Any = None
    ) -> None:
        self.routes[(method, path)] = handler or (lambda request: httpx.Response(status, json=payload))

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        if isinstance(body, list) or (isinstance(body, dict) and "jsonrpc" in body):
            if isinstance(body, list):
                return httpx.Response(200, json=[self._answer(item) for item in body])
            return httpx.Response(200, json=self._answer(body))

        self.calls.append(f"{request.method} {request.url.path}")
        self.http_requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        return route(request)

    def _answer(self, payload: dict) -> dict:
        method = payload["method"]
        self.calls.append(method)
        self.rpc_requests.append(payload)
        try:
            result = self._dispatch(method, payload["params"])
        except RpcFault as e:
            return {"jsonrpc": "2.0", "id": payload["id"], "error": {"code": e.code, "message": e.message}}
        return {"jsonrpc": "2.0", "id": payload["id"], "result": result}

    def _dispatch(self, method: str, params: list) -> Any:
        if method == "eth_call" and method not in self.rpc_handlers:
            selector = params[0]["data"][2:10]
            if selector not in self.eth_call_results:
                raise RpcFault(-32000, f"execution reverted: unknown selector {selector}")
            return self.eth_call_results[selector]

        handler = self.rpc_handlers.get(method)
        if handler is None:
            raise RpcFault(-32601, f"method {method} not found")
        return handler(params)

    def rpc_params(self, method: str) -> list[list]:
        return [req["params"] for req in self.rpc_requests if req["method"] == method]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; rebuild them for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def config_provider() -> StaticConfigProvider:
    return StaticConfigProvider.for_network(Network.LOCALHOST)


@pytest.fixture
def fake_server() -> FakeChainServer:
    return FakeChainServer()


@pytest.fixture
def platform_address() -> str:
    return Bech32Encoder.Encode("swth", PLATFORM_ADDRESS_BYTES)


@pytest.fixture
def originator_address() -> str:
    return Bech32Encoder.Encode("swth", ORIGINATOR_ADDRESS_BYTES)


@pytest.fixture
def eth_token(originator_address) -> Token:
    """Native ETH locked through the localhost lock proxy."""
    return Token(
        name="Ethereum",
        symbol="ETH",
        denom="eth1",
        decimals=18,
        blockchain="eth",
        chain_id=2,
        asset_id="0x" + "00" * 20,
        lock_proxy_hash="0x" + LOCALHOST_LOCK_PROXY,
        originator=originator_address,
    )


@pytest.fixture
def usdc_token(originator_address) -> Token:
    """An ERC20 locked through the localhost lock proxy."""
    return Token(
        name="USD Coin",
        symbol="USDC",
        denom="usdc1",
        decimals=6,
        blockchain="eth",
        chain_id=2,
        asset_id=ERC20_ASSET_ID,
        lock_proxy_hash=LOCALHOST_LOCK_PROXY,
        originator=originator_address,
    )


@pytest.fixture
def zil_token(originator_address) -> Token:
    """Native ZIL locked through the localhost Zilliqa lock proxy."""
    return Token(
        name="Zilliqa",
        symbol="ZIL",
        denom="zil1",
        decimals=12,
        blockchain="zil",
        chain_id=9,
        asset_id="00" * 20,
        lock_proxy_hash=LOCALHOST_LOCK_PROXY,
        originator=originator_address,
    )


@pytest.fixture
def zwap_token(originator_address) -> Token:
    """A ZRC-2 token locked through the localhost Zilliqa lock proxy."""
    return Token(
        name="ZilSwap",
        symbol="ZWAP",
        denom="zwap1",
        decimals=12,
        blockchain="zil",
        chain_id=9,
        asset_id=ZRC2_ASSET_ID,
        lock_proxy_hash=LOCALHOST_LOCK_PROXY,
        originator=originator_address,
    )
