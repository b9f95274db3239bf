"""Application configuration using pydantic-settings.

Selects the platform deployment and lets individual endpoints be
overridden from the environment without editing the network tables.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from swthbridge.errors import ConfigurationError
from swthbridge.network import Network, NetworkConfig, build_network_config, parse_network


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Deployment
    # ======================
    network: str = Field(default="mainnet", description="Platform deployment (mainnet/testnet/devnet/localhost)")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # HTTP
    # ======================
    http_timeout: float = Field(default=30.0, description="Timeout for REST, RPC and relayer calls (seconds)")
    coingecko_api_url: str = Field(
        default="https://api.coingecko.com/api/v3", description="CoinGecko API base URL"
    )

    # ======================
    # Endpoint overrides
    # ======================
    network_config_file: Optional[str] = Field(
        default=None, description="JSON file with deployment endpoints and contracts (NetworkConfig wire keys)"
    )
    rest_url: Optional[str] = Field(default=None, description="Override platform REST URL")
    eth_rpc_url: Optional[str] = Field(default=None, description="Override Ethereum RPC URL")
    bsc_rpc_url: Optional[str] = Field(default=None, description="Override BSC RPC URL")
    zil_rpc_url: Optional[str] = Field(default=None, description="Override Zilliqa RPC URL")

    @property
    def network_enum(self) -> Network:
        """Parsed deployment; unknown names fall back to mainnet."""
        return parse_network(self.network)

    def load_config_file(self) -> dict[str, Any]:
        """Read the deployment config file, if one is set."""
        if not self.network_config_file:
            return {}
        try:
            data = json.loads(Path(self.network_config_file).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"cannot read network config file {self.network_config_file}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"network config file {self.network_config_file} must hold a JSON object")
        return data

    def get_config_overrides(self) -> dict[str, Any]:
        """Collect the config file and endpoint overrides in NetworkConfig wire form.

        Environment endpoint overrides win over the file.
        """
        overrides: dict[str, Any] = self.load_config_file()
        if self.rest_url:
            overrides["RestURL"] = self.rest_url
        for key, url in (("Eth", self.eth_rpc_url), ("Bsc", self.bsc_rpc_url), ("Zil", self.zil_rpc_url)):
            if url:
                section = overrides.get(key)
                overrides[key] = {**section, "RpcURL": url} if isinstance(section, dict) else {"RpcURL": url}
        return overrides

    def build_network_config(self) -> NetworkConfig:
        return build_network_config(self.network_enum, self.get_config_overrides())

    def get_safe_dict(self) -> dict:
        """Return a summary suitable for logs (RPC URLs may embed API keys)."""
        return {
            "network": self.network_enum.value,
            "debug": self.debug,
            "http_timeout": self.http_timeout,
            "network_config_file": self.network_config_file or "(none)",
            "rest_url": self._redact_url(self.rest_url) if self.rest_url else "(default)",
            "rpc_overrides": {
                "ETH": self._redact_url(self.eth_rpc_url) if self.eth_rpc_url else "(default)",
                "BSC": self._redact_url(self.bsc_rpc_url) if self.bsc_rpc_url else "(default)",
                "ZIL": self._redact_url(self.zil_rpc_url) if self.zil_rpc_url else "(default)",
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials and path-embedded API keys from a URL."""
        if "://" not in url:
            return url
        proto, rest = url.split("://", 1)
        if "@" in rest:
            rest = "***@" + rest.rsplit("@", 1)[1]
        host, _, path = rest.partition("/")
        return f"{proto}://{host}/***" if path else f"{proto}://{host}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(debug: Optional[bool] = None) -> None:
    """Configure root logging for scripts; the library itself never does this."""
    if debug is None:
        debug = get_settings().debug
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
