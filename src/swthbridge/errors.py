"""Exceptions raised by the bridge client.

Configuration and validation errors are raised before any network call.
Transport errors wrap JSON-RPC failures; HTTP failures from httpx are
propagated as-is. Expected business outcomes (e.g. insufficient balance
for a deposit) are returned as values, never raised.
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigurationError(BridgeError):
    """The client or network configuration cannot serve the request."""


class UnsupportedBlockchainError(ConfigurationError):
    """Raised when a client is requested for a chain family we cannot bridge."""

    def __init__(self, blockchain: str):
        self.blockchain = blockchain
        super().__init__(f"unsupported blockchain - {blockchain}")


class UnsupportedTokenError(ConfigurationError):
    """Raised when a token has no fee configuration or belongs to another chain."""

    def __init__(self, denom: str, reason: str = "unsupported token"):
        self.denom = denom
        self.reason = reason
        super().__init__(f"{reason}: {denom}")


class UnsupportedOperationError(ConfigurationError):
    """Raised when a chain family's custody contract does not offer an operation."""

    def __init__(self, blockchain: str, operation: str):
        self.blockchain = blockchain
        self.operation = operation
        super().__init__(f"{operation} is not supported on {blockchain}")


class BridgeValidationError(BridgeError, ValueError):
    """Request parameters failed validation before submission."""


class TransportError(BridgeError):
    """A remote call returned an unusable response."""


class RPCError(TransportError):
    """JSON-RPC call returned an error object or a malformed reply."""

    def __init__(self, method: str, message: str, code: int | None = None):
        self.method = method
        self.code = code
        super().__init__(f"{method} failed: {message}" + (f" (code {code})" if code is not None else ""))
