"""Platform REST API client."""

from swthbridge.api.client import TradeHubAPIClient

__all__ = ["TradeHubAPIClient"]
