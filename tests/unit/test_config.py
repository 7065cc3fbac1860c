"""Tests for Pydantic Settings configuration models."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from chartdesk.config import (
    AppConfig,
    FetchConfig,
    IndicatorConfig,
    MiningCostConfig,
    ProvidersConfig,
    VolumeProfileConfig,
)


class TestDefaults:
    """Defaults load without any environment."""

    def test_app_config_defaults(self) -> None:
        config = AppConfig()
        assert config.log_level == "INFO"
        assert config.log_format == "console"

    def test_fetch_defaults(self) -> None:
        config = FetchConfig()
        assert config.min_bars == 10
        assert config.max_attempts == 3
        assert config.backoff_base_seconds == 1.0
        assert config.max_backoff_seconds == 30.0
        assert config.candle_ttl_seconds == 300.0

    def test_provider_defaults(self) -> None:
        config = ProvidersConfig()
        assert config.crypto_chain == ["cryptocompare", "binance", "coingecko"]
        assert config.coingecko_min_interval_seconds == 1.5

    def test_indicator_and_profile_defaults(self) -> None:
        assert IndicatorConfig().rsi_period == 14
        assert IndicatorConfig().hull_period == 55
        assert VolumeProfileConfig().rows == 200
        assert VolumeProfileConfig().value_area_pct == pytest.approx(0.70)

    def test_mining_cost_defaults(self) -> None:
        config = MiningCostConfig()
        assert config.electricity_cost_per_kwh == 0.05
        assert config.overhead_multiplier == 1.67


class TestFetchValidation:
    def test_min_bars_too_low(self) -> None:
        with pytest.raises(ValidationError):
            FetchConfig(min_bars=0)

    def test_max_attempts_bounds(self) -> None:
        with pytest.raises(ValidationError):
            FetchConfig(max_attempts=0)
        with pytest.raises(ValidationError):
            FetchConfig(max_attempts=11)

    def test_max_backoff_below_base_rejected(self) -> None:
        with pytest.raises(ValidationError, match="max_backoff_seconds"):
            FetchConfig(backoff_base_seconds=5.0, max_backoff_seconds=2.0)

    def test_max_backoff_equal_to_base_allowed(self) -> None:
        config = FetchConfig(backoff_base_seconds=2.0, max_backoff_seconds=2.0)
        assert config.max_backoff_seconds == 2.0


class TestCryptoChainValidation:
    def test_empty_chain_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProvidersConfig(crypto_chain=[])

    def test_unknown_provider_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Unknown crypto provider"):
            ProvidersConfig(crypto_chain=["binance", "kraken"])

    def test_duplicate_provider_rejected(self) -> None:
        with pytest.raises(ValidationError, match="duplicates"):
            ProvidersConfig(crypto_chain=["binance", "binance"])

    def test_reordered_chain_accepted(self) -> None:
        config = ProvidersConfig(crypto_chain=["coingecko", "binance"])
        assert config.crypto_chain == ["coingecko", "binance"]


class TestProfileValidation:
    def test_value_area_pct_bounds(self) -> None:
        with pytest.raises(ValidationError):
            VolumeProfileConfig(value_area_pct=0.0)
        with pytest.raises(ValidationError):
            VolumeProfileConfig(value_area_pct=1.5)

    def test_rows_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            VolumeProfileConfig(rows=0)


class TestLogLevelValidation:
    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            AppConfig(log_level="TRACE")

    def test_log_level_is_upper_cased(self) -> None:
        assert AppConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_format(self) -> None:
        with pytest.raises(ValidationError):
            AppConfig(log_format="xml")

    def test_valid_log_formats(self) -> None:
        for fmt in ["console", "json"]:
            assert AppConfig(log_format=fmt).log_format == fmt


class TestEnvVarOverride:
    def test_env_var_overrides_default(self) -> None:
        with patch.dict(os.environ, {"CHARTDESK_LOG_LEVEL": "DEBUG"}):
            assert AppConfig().log_level == "DEBUG"

    def test_nested_env_var_override(self) -> None:
        with patch.dict(os.environ, {"CHARTDESK_FETCH__MIN_BARS": "20"}):
            assert AppConfig().fetch.min_bars == 20

    def test_chain_env_var_json(self) -> None:
        with patch.dict(
            os.environ,
            {"CHARTDESK_PROVIDERS__CRYPTO_CHAIN": '["binance","coingecko"]'},
        ):
            assert AppConfig().providers.crypto_chain == ["binance", "coingecko"]

    def test_invalid_env_value_rejected(self) -> None:
        with patch.dict(os.environ, {"CHARTDESK_INDICATORS__RSI_PERIOD": "1"}):
            with pytest.raises(ValidationError):
                AppConfig()
