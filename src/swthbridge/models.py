"""Data models shared by the token registry and the chain clients."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from swthbridge.address import strip_hex_prefix


class Token(BaseModel):
    """A tradable asset as registered on the platform."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., description="Full asset name")
    symbol: str = Field(..., description="Display symbol")
    denom: str = Field(..., description="Unique canonical id (lowercase)")
    decimals: int = Field(..., ge=0, description="Token decimals")
    blockchain: str = Field(..., description="Native blockchain (eth, bsc, zil, neo, ...)")
    chain_id: int = Field(default=0, description="Bridge chain id")
    asset_id: str = Field(default="", description="Chain-native contract/asset id, hex without 0x")
    is_active: bool = True
    is_collateral: bool = False
    lock_proxy_hash: str = Field(default="", description="Custody contract the token is locked through")
    delegated_supply: str = Field(default="0", description="Delegated supply (decimal string)")
    originator: str = Field(default="", description="Platform address that registered the token")

    @field_validator("asset_id", "lock_proxy_hash")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        return strip_hex_prefix(value or "")

    @property
    def is_evm_asset(self) -> bool:
        """True when asset_id looks like a 20-byte EVM/Zilliqa address."""
        return len(self.asset_id) == 40


@dataclass(frozen=True)
class TokenWithBalance:
    """A catalog token annotated with its balance on the external chain."""

    token: Token
    external_balance: Decimal  # base units

    @property
    def denom(self) -> str:
        return self.token.denom


class FeeDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    fee: Optional[str] = None


class FeeDetails(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    deposit: Optional[FeeDetail] = None
    withdraw: Optional[FeeDetail] = None
    create_wallet: Optional[FeeDetail] = Field(None, alias="createWallet")


class FeeQuote(BaseModel):
    """Fee schedule for one denom, as returned by the fee service."""

    model_config = ConfigDict(extra="ignore")

    denom: Optional[str] = None
    details: FeeDetails = Field(default_factory=FeeDetails)

    @property
    def deposit_fee(self) -> Optional[Decimal]:
        return _to_decimal(self.details.deposit)

    @property
    def withdraw_fee(self) -> Optional[Decimal]:
        return _to_decimal(self.details.withdraw)

    @property
    def create_wallet_fee(self) -> Decimal:
        return _to_decimal(self.details.create_wallet) or Decimal("0")


def _to_decimal(detail: Optional[FeeDetail]) -> Optional[Decimal]:
    if detail is None or not detail.fee:
        return None
    return Decimal(detail.fee)


@dataclass(frozen=True)
class TokenInfo:
    """On-chain metadata of an asset that may not be registered yet."""

    address: str
    decimals: int
    name: str
    symbol: str
