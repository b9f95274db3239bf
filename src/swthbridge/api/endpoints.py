"""Platform REST endpoints consumed by the bridge."""

TRADEHUB_ENDPOINTS: dict[str, str] = {
    "tradehub/get_token": "/get_token",
    "tradehub/get_tokens": "/get_tokens",
    "coin/wrapper_mappings": "/coin/wrapper_mappings",
}


def get_endpoint(key: str) -> str:
    """Resolve an endpoint key to its path."""
    try:
        return TRADEHUB_ENDPOINTS[key]
    except KeyError:
        raise KeyError(f"unknown endpoint: {key}") from None
