"""Application settings and configuration management."""
from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..monitoring.findings import FindingSeverity, FindingType, parse_enum_name
from .exceptions import ConfigurationError


RESERVE_DATA_FIELDS = (
    "available_liquidity",
    "total_stable_debt",
    "total_variable_debt",
    "total_debt",
    "total_value_locked",
)

LENDING_POOL_EVENTS = ("Borrow", "Deposit", "Repay", "Withdraw")


class ContractAddresses(BaseModel):
    """Aave V2 mainnet deployment."""

    lending_pool: str = "0x7d2768dE32b0b80b7a3454c06BdAc94A69DDc7A9"
    protocol_data_provider: str = "0x057835Ad21a177dbdd3090bB1CAE03EaCF78Fc6d"
    price_oracle: str = "0xA50ba011c48153De246E5192C8f9258A2ba79Ca9"
    lending_pool_addresses_provider: str = "0xB53C1a33016B2DC2fF3653530bfF1848a515c8c5"


class AlertSettings(BaseModel):
    console_enabled: bool = True
    webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = Field(10.0, gt=0)
    history_size: int = Field(500, gt=0)


class DetectorSettings(BaseModel):
    """Settings shared by every statistics-driven bot."""

    enabled: bool = True
    num_std_deviations: Decimal = Field(Decimal("3"), gt=0)
    min_elements: Optional[int] = Field(None, ge=0)
    severity: FindingSeverity = FindingSeverity.MEDIUM
    type: FindingType = FindingType.SUSPICIOUS

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v: Any) -> FindingSeverity:
        return parse_enum_name(FindingSeverity, v)

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, v: Any) -> FindingType:
        return parse_enum_name(FindingType, v)


class WindowedDetectorSettings(DetectorSettings):
    """Detector backed by a rolling window of `window_size` observations."""

    window_size: int = Field(100, gt=0)

    @model_validator(mode="after")
    def validate_min_elements(self) -> "WindowedDetectorSettings":
        # history must fill a whole window before alerting
        if self.min_elements is None:
            self.min_elements = self.window_size
        # a window never holds more than window_size elements
        if self.min_elements > self.window_size:
            raise ValueError(
                f"min_elements ({self.min_elements}) exceeds window_size ({self.window_size})"
            )
        return self


class AnomalousValueSettings(WindowedDetectorSettings):
    """Large Borrow/Deposit/Repay/Withdraw amounts per reserve."""

    events: List[str] = Field(default_factory=lambda: list(LENDING_POOL_EVENTS))

    @field_validator("events")
    @classmethod
    def validate_events(cls, v: List[str]) -> List[str]:
        unknown = [name for name in v if name not in LENDING_POOL_EVENTS]
        if unknown:
            raise ValueError(f"Unsupported LendingPool events: {unknown}")
        return v


class ReserveWatchSettings(WindowedDetectorSettings):
    """Reserve price moves per asset symbol. Alerts once a full window of prices exists."""


class TotalValueSettings(WindowedDetectorSettings):
    """Liquidity, debt and TVL changes per reserve."""

    min_elements: Optional[int] = Field(10, ge=0)
    severity: FindingSeverity = FindingSeverity.HIGH
    data_fields: List[str] = Field(default_factory=lambda: list(RESERVE_DATA_FIELDS))

    @field_validator("data_fields")
    @classmethod
    def validate_fields(cls, v: List[str]) -> List[str]:
        unknown = [name for name in v if name not in RESERVE_DATA_FIELDS]
        if unknown:
            raise ValueError(f"Unknown reserve data fields: {unknown}")
        return v


class StaleReserveSettings(WindowedDetectorSettings):
    """Age of each reserve's last state update, in seconds. Off unless enabled."""

    enabled: bool = False


class TreasuryFeesSettings(DetectorSettings):
    """Flash loan premiums paid to the treasury, in ETH."""

    min_elements: Optional[int] = Field(0, ge=0)
    severity: FindingSeverity = FindingSeverity.HIGH
    data_set: Optional[Path] = None
    low_threshold_eth: Decimal = Field(Decimal("10"), ge=0)
    low_severity: FindingSeverity = FindingSeverity.LOW
    low_type: FindingType = FindingType.INFO

    @field_validator("low_severity", mode="before")
    @classmethod
    def parse_low_severity(cls, v: Any) -> FindingSeverity:
        return parse_enum_name(FindingSeverity, v)

    @field_validator("low_type", mode="before")
    @classmethod
    def parse_low_type(cls, v: Any) -> FindingType:
        return parse_enum_name(FindingType, v)


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    app_name: str = "LendWatch"
    version: str = "1.0.0"
    debug: bool = False

    # Protocol identity used in finding names and alert ids
    protocol_name: str = "Aave"
    protocol_abbreviation: str = "AAVE"
    developer_abbreviation: str = "AE"

    # Chain
    rpc_url: str = "https://eth.llamarpc.com"
    rpc_timeout_seconds: float = Field(30.0, gt=0)
    poll_interval_seconds: float = Field(12.0, gt=0)
    start_block: Optional[int] = Field(None, ge=0)
    contracts: ContractAddresses = Field(default_factory=ContractAddresses)

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    # Status API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    alerts: AlertSettings = Field(default_factory=AlertSettings)

    anomalous_value: AnomalousValueSettings = Field(default_factory=AnomalousValueSettings)
    reserve_watch: ReserveWatchSettings = Field(default_factory=ReserveWatchSettings)
    total_value: TotalValueSettings = Field(default_factory=TotalValueSettings)
    treasury_fees: TreasuryFeesSettings = Field(default_factory=TreasuryFeesSettings)
    stale_reserve: StaleReserveSettings = Field(default_factory=StaleReserveSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    model_config = SettingsConfigDict(
        env_prefix="LENDWATCH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


_settings: Optional[Settings] = None


def load_settings(**overrides: Any) -> Settings:
    """
    Build settings from environment, .env and explicit overrides.

    Raises:
        ConfigurationError: If any value fails validation
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            details={"errors": [
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]},
        ) from e


def get_settings() -> Settings:
    """
    Get the process-wide settings instance, loading it on first use.

    Returns:
        Settings: The global settings instance
    """
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


__all__ = [
    "AlertSettings",
    "AnomalousValueSettings",
    "ContractAddresses",
    "RESERVE_DATA_FIELDS",
    "ReserveWatchSettings",
    "Settings",
    "StaleReserveSettings",
    "TotalValueSettings",
    "TreasuryFeesSettings",
    "get_settings",
    "load_settings",
]
