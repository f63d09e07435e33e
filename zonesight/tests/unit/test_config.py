"""
Test suite for settings loading.
"""

import pytest

from zonesight.shared.config.defaults import DEFAULT_SETTINGS, Settings


def test_defaults():
    settings = Settings()
    assert settings.trading_pairs == ("XAUUSD", "EURUSD", "GBPUSD")
    assert settings.active_strategies == ("swing", "scalping")
    assert settings.zones.min_pips == 20
    assert settings.zones.max_pips == 30
    assert settings.retry.max_retries == 3
    assert settings.retry.delay_seconds == 2.0
    assert settings.geometry.max_overlays == 3
    assert settings.analysis.enable_local_fallback is True
    assert DEFAULT_SETTINGS == settings


def test_from_env_reads_variables():
    env = {
        "TRADING_PAIRS": "EURUSD, USDJPY",
        "ACTIVE_STRATEGIES": "Swing",
        "ZONE_MIN_PIPS": "15",
        "ZONE_MAX_PIPS": "25",
        "SWING_ENTRY_TIMEFRAME": "60",
        "SCALPING_CONFIDENCE_THRESHOLD": "0.7",
        "MAX_RETRIES": "5",
        "RETRY_DELAY": "500",
        "ENABLE_LOCAL_FALLBACK": "false",
        "OPENAI_API_KEY": "sk-env",
        "REPORTS_DIR": "/tmp/reports",
        "LOG_LEVEL": "debug",
    }
    settings = Settings.from_env(env)

    assert settings.trading_pairs == ("EURUSD", "USDJPY")
    assert settings.active_strategies == ("swing",)
    assert settings.zones.min_pips == 15
    assert settings.zones.max_pips == 25
    assert settings.swing.entry_timeframe == "60"
    assert settings.scalping.confidence_threshold == pytest.approx(0.7)
    assert settings.retry.max_retries == 5
    assert settings.retry.delay_seconds == pytest.approx(0.5)
    assert settings.analysis.enable_local_fallback is False
    assert settings.openai.api_key == "sk-env"
    assert settings.directories.reports == "/tmp/reports"
    assert settings.log_level == "DEBUG"


def test_from_env_empty_keeps_defaults():
    assert Settings.from_env({}) == Settings()


def test_with_overrides_returns_copy():
    base = Settings()
    changed = base.with_overrides(retry={"max_retries": 1}, exchange="kraken")

    assert changed.retry.max_retries == 1
    assert changed.retry.delay_seconds == base.retry.delay_seconds
    assert changed.exchange == "kraken"
    assert base.retry.max_retries == 3


def test_with_overrides_rejects_unknown_group():
    with pytest.raises(ValueError, match="Unknown settings group"):
        Settings().with_overrides(telegram={"token": "x"})
