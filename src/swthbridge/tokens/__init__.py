"""Token catalog and resolution."""

from swthbridge.tokens.registry import (
    TokenRegistry,
    get_common_denom,
    is_pool_token,
    parse_pool_token,
)

__all__ = [
    "TokenRegistry",
    "get_common_denom",
    "is_pool_token",
    "parse_pool_token",
]
