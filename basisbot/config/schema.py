from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


ContractQuantityMode = Literal["auto", "quantity", "notional"]


class VenueConfig(BaseModel):
    api_key: str | None = None
    api_secret: str | None = None
    futures_api_url: str = "https://fapi.asterdex.com"
    spot_api_url: str = "https://sapi.asterdex.com"
    recv_window_ms: int = Field(5000, ge=1, le=60000)
    timeout_s: float = Field(10.0, gt=0.0)

    @field_validator("futures_api_url", "spot_api_url")
    @classmethod
    def _normalise_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("api url must start with http:// or https://")
        return value.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key) and bool(self.api_secret)


class EngineConfig(BaseModel):
    max_price_diff_percent: float = Field(0.1, gt=0.0)
    retry_delay_ms: int = Field(5000, ge=0)
    min_order_usd: float = Field(5.0, gt=0.0)
    dust_usd: float = Field(0.01, ge=0.0)
    dust_quantity: float = Field(1e-8, ge=0.0)
    position_retry_attempts: int = Field(10, ge=1)
    order_followup_delay_ms: int = Field(2000, ge=0)
    balance_share_per_leg: float = Field(0.5, gt=0.0, le=1.0)
    quote_asset: str = "USDT"

    @model_validator(mode="after")
    def _validate_dust(self) -> "EngineConfig":
        if self.dust_usd >= self.min_order_usd:
            raise ValueError("dust_usd must be below min_order_usd")
        return self

    @property
    def retry_delay_s(self) -> float:
        return self.retry_delay_ms / 1000.0

    @property
    def order_followup_delay_s(self) -> float:
        return self.order_followup_delay_ms / 1000.0


class SpreadConfig(BaseModel):
    # None keeps polling until the spread is acceptable
    max_attempts: int | None = Field(None, ge=1)


class ContractsConfig(BaseModel):
    default_mode: ContractQuantityMode = "auto"
    overrides: Dict[str, ContractQuantityMode] = Field(default_factory=dict)

    @field_validator("overrides")
    @classmethod
    def _upper_symbols(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {str(symbol).upper(): mode for symbol, mode in value.items()}

    def mode_for(self, symbol: str) -> ContractQuantityMode:
        return self.overrides.get(str(symbol).upper(), self.default_mode)


class AppConfig(BaseModel):
    venue: VenueConfig = Field(default_factory=VenueConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    spread: SpreadConfig = Field(default_factory=SpreadConfig)
    contracts: ContractsConfig = Field(default_factory=ContractsConfig)


@dataclass
class LoadedConfig:
    path: Path | None
    data: AppConfig


__all__ = [
    "AppConfig",
    "ContractQuantityMode",
    "ContractsConfig",
    "EngineConfig",
    "LoadedConfig",
    "SpreadConfig",
    "VenueConfig",
]
