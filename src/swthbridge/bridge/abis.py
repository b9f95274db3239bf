"""Contract function ABIs used by the EVM bridge client.

Each entry is (signature, input types, output types). Selectors are the
first 4 bytes of keccak256(signature).
"""

from dataclasses import dataclass

from eth_abi import decode, encode
from web3 import Web3

MAX_UINT256 = 2**256 - 1


@dataclass(frozen=True)
class ContractFunction:
    name: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])

    def encode_call(self, *args) -> str:
        """Encode calldata as 0x-prefixed hex."""
        if len(args) != len(self.inputs):
            raise TypeError(f"{self.signature} takes {len(self.inputs)} arguments, got {len(args)}")
        return "0x" + (self.selector + encode(list(self.inputs), list(args))).hex()

    def decode_result(self, data: str):
        """Decode return data; a single output is returned unwrapped."""
        raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
        values = checksum_addresses(self.outputs, decode(list(self.outputs), raw))
        return values[0] if len(values) == 1 else values

    def decode_call(self, data: str) -> tuple:
        """Decode calldata produced by encode_call."""
        raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
        if raw[:4] != self.selector:
            raise ValueError(f"calldata is not a {self.signature} call")
        return checksum_addresses(self.inputs, decode(list(self.inputs), raw[4:]))


def checksum_addresses(types, values) -> tuple:
    """Checksum address and address[] values; eth-abi releases differ in case."""
    normalized = []
    for abi_type, value in zip(types, values):
        if abi_type == "address":
            value = Web3.to_checksum_address(value)
        elif abi_type == "address[]":
            value = tuple(Web3.to_checksum_address(item) for item in value)
        normalized.append(value)
    return tuple(normalized)


# ERC20
ERC20_APPROVE = ContractFunction("approve", ("address", "uint256"), ("bool",))
ERC20_ALLOWANCE = ContractFunction("allowance", ("address", "address"), ("uint256",))
ERC20_DECIMALS = ContractFunction("decimals", (), ("uint8",))
ERC20_NAME = ContractFunction("name", (), ("string",))
ERC20_SYMBOL = ContractFunction("symbol", (), ("string",))

# Balance reader
BALANCE_READER_GET_BALANCES = ContractFunction("getBalances", ("address", "address[]"), ("uint256[]",))

# Lock proxy
LOCK_PROXY_LOCK = ContractFunction(
    "lock",
    ("address", "bytes", "bytes", "bytes", "bytes", "uint256[]"),
    ("bool",),
)
LOCK_PROXY_GET_WALLET_ADDRESS = ContractFunction(
    "getWalletAddress", ("address", "bytes", "bytes32"), ("address",)
)

# Deposit authorization message: keccak256(abi.encodePacked(...))
SEND_TOKENS_MESSAGE_TYPES = ["string", "address", "bytes", "bytes", "bytes", "uint256", "uint256", "uint256"]
SEND_TOKENS_TAG = "sendTokens"
