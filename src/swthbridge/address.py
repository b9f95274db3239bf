"""Address helpers.

Platform (TradeHub) addresses are bech32 strings whose human-readable
prefix depends on the deployment: "tswth" on testnet, "swth" elsewhere.
The bridge contracts identify a platform account by the raw 20 address
bytes behind that encoding.
"""

from bip_utils import Bech32ChecksumError, Bech32Decoder

from swthbridge.errors import BridgeValidationError
from swthbridge.network import Network

MAINNET_PREFIX = "swth"
TESTNET_PREFIX = "tswth"


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2].lower() == "0x" else value


def append_hex_prefix(value: str) -> str:
    return value if value[:2].lower() == "0x" else f"0x{value}"


def same_hex(a: str, b: str) -> bool:
    """Compare two hex strings ignoring case and 0x prefix."""
    return strip_hex_prefix(a).lower() == strip_hex_prefix(b).lower()


def get_bech32_prefix(network: Network) -> str:
    return TESTNET_PREFIX if network == Network.TESTNET else MAINNET_PREFIX


def get_address_bytes(bech32_address: str, network: Network) -> bytes:
    """Decode a platform bech32 address to its 20 address bytes.

    Raises:
        BridgeValidationError: malformed address or wrong prefix for network
    """
    prefix = get_bech32_prefix(network)
    try:
        data = Bech32Decoder.Decode(prefix, bech32_address)
    except (Bech32ChecksumError, ValueError) as e:
        raise BridgeValidationError(
            f"invalid {network.value} address {bech32_address!r}: {e}"
        ) from e

    if len(data) != 20:
        raise BridgeValidationError(f"invalid address length {len(data)} for {bech32_address!r}")
    return bytes(data)


def get_address_hex(bech32_address: str, network: Network) -> str:
    """Platform address bytes as 0x-prefixed hex."""
    return "0x" + get_address_bytes(bech32_address, network).hex()
