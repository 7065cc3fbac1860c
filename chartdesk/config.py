"""Pydantic Settings configuration models.

Config hierarchy (lowest to highest priority):
1. Pydantic defaults (in code below)
2. .env file (loaded by Pydantic Settings)
3. Environment variables (e.g., CHARTDESK_FETCH__MIN_BARS=20)
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
VALID_LOG_FORMATS = frozenset({"console", "json"})
KNOWN_CRYPTO_PROVIDERS = frozenset({"cryptocompare", "binance", "coingecko"})


class FetchConfig(BaseModel):
    """Fallback, retry and cache policy shared by every provider."""

    min_bars: int = Field(default=10, ge=1, le=1000)
    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_base_seconds: float = Field(default=1.0, ge=0.0, le=10.0)
    max_backoff_seconds: float = Field(default=30.0, ge=0.0, le=300.0)
    network_retry_delay_seconds: float = Field(default=1.0, ge=0.0, le=30.0)
    request_timeout_seconds: float = Field(default=15.0, gt=0.0, le=120.0)
    candle_ttl_seconds: float = Field(default=300.0, ge=0.0)
    symbol_ttl_seconds: float = Field(default=3600.0, ge=0.0)
    history_batches: int = Field(default=2, ge=1, le=10)
    batch_delay_seconds: float = Field(default=0.1, ge=0.0, le=5.0)

    @model_validator(mode="after")
    def validate_backoff(self) -> FetchConfig:
        if self.max_backoff_seconds < self.backoff_base_seconds:
            raise ValueError(
                "max_backoff_seconds must be >= backoff_base_seconds, "
                f"got {self.max_backoff_seconds} < {self.backoff_base_seconds}"
            )
        return self


class ProvidersConfig(BaseModel):
    """Provider endpoints, request spacing and the crypto fallback order."""

    crypto_chain: list[str] = Field(
        default=["cryptocompare", "binance", "coingecko"],
    )
    cryptocompare_url: str = "https://min-api.cryptocompare.com/data/v2"
    binance_url: str = "https://api.binance.com/api/v3"
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    yahoo_url: str = "https://query1.finance.yahoo.com"
    blockchain_info_url: str = "https://api.blockchain.info"
    cryptocompare_min_interval_seconds: float = Field(default=0.0, ge=0.0)
    binance_min_interval_seconds: float = Field(default=0.0, ge=0.0)
    coingecko_min_interval_seconds: float = Field(default=1.5, ge=0.0)
    yahoo_min_interval_seconds: float = Field(default=0.0, ge=0.0)

    @field_validator("crypto_chain")
    @classmethod
    def validate_crypto_chain(cls, v: list[str]) -> list[str]:
        if len(v) == 0:
            raise ValueError("crypto_chain must not be empty")
        for name in v:
            if name not in KNOWN_CRYPTO_PROVIDERS:
                raise ValueError(
                    f"Unknown crypto provider: {name}, expected one of "
                    f"{sorted(KNOWN_CRYPTO_PROVIDERS)}"
                )
        if len(set(v)) != len(v):
            raise ValueError(f"crypto_chain contains duplicates: {v}")
        return v


class IndicatorConfig(BaseModel):
    """Default indicator periods."""

    rsi_period: int = Field(default=14, ge=2, le=200)
    hull_period: int = Field(default=55, ge=2, le=500)


class VolumeProfileConfig(BaseModel):
    """Visible-range volume profile parameters."""

    rows: int = Field(default=200, ge=1, le=2000)
    value_area_pct: float = Field(default=0.70, gt=0.0, le=1.0)


class MiningCostConfig(BaseModel):
    """Electricity Hash Valuation inputs for the BTC cost bands."""

    electricity_cost_per_kwh: float = Field(default=0.05, gt=0.0, le=1.0)
    miner_efficiency_j_per_th: float = Field(default=22.0, gt=0.0, le=500.0)
    overhead_multiplier: float = Field(default=1.67, ge=1.0, le=5.0)


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Env var examples:
        CHARTDESK_LOG_LEVEL=DEBUG
        CHARTDESK_FETCH__MIN_BARS=20
        CHARTDESK_PROVIDERS__CRYPTO_CHAIN='["binance","coingecko"]'
    """

    model_config = SettingsConfigDict(
        env_prefix="CHARTDESK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    fetch: FetchConfig = FetchConfig()
    providers: ProvidersConfig = ProvidersConfig()
    indicators: IndicatorConfig = IndicatorConfig()
    volume_profile: VolumeProfileConfig = VolumeProfileConfig()
    mining_cost: MiningCostConfig = MiningCostConfig()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v}"
            )
        return v
