"""Tests for marketengine.config — environment loading and duration parsing."""

import os
from datetime import timedelta

import pytest

from marketengine.config import (
    BacktestConfig,
    ConfigError,
    format_duration,
    load_config,
    parse_duration,
)

_ENV_VARS = [
    "SYMBOL",
    "HTTP_HOST",
    "HTTP_PORT",
    "LOG_LEVEL",
    "EMA_FAST",
    "EMA_SLOW",
    "TREND_CONFIRM",
    "TREND_MIN_DIFF",
    "TREND_COOLDOWN",
    "CANDLE_INTERVAL",
    "BREAKOUT_LOOKBACK",
    "BREAKOUT_PCT",
    "BREAKOUT_COOLDOWN",
    "BINANCE_WS_URL",
    "BINANCE_REST_URL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure engine env vars are cleared between tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def no_dotenv(tmp_path):
    """Path to a .env file that does not exist."""
    return str(tmp_path / "missing.env")


class TestLoadConfig:

    def test_defaults(self, no_dotenv):
        cfg = load_config(env_path=no_dotenv)
        assert cfg.symbol == "BTCUSDT"
        assert cfg.http_host == "0.0.0.0"
        assert cfg.http_port == 8080
        assert cfg.log_level == "INFO"
        assert (cfg.ema_fast, cfg.ema_slow, cfg.confirm_ticks) == (20, 50, 3)
        assert cfg.trend_min_diff == pytest.approx(0.00005)
        assert cfg.trend_cooldown == timedelta(seconds=10)
        assert cfg.candle_interval == timedelta(seconds=5)
        assert cfg.breakout_lookback == timedelta(minutes=5)
        assert cfg.breakout_pct == pytest.approx(0.001)
        assert cfg.breakout_cooldown == timedelta(seconds=30)
        assert cfg.binance_ws_url == "wss://stream.binance.com:9443"
        assert cfg.binance_rest_url == "https://api.binance.com"

    def test_overrides(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("SYMBOL", "ethusdt")
        monkeypatch.setenv("HTTP_PORT", "9090")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("EMA_FAST", "8")
        monkeypatch.setenv("TREND_COOLDOWN", "1m30s")
        monkeypatch.setenv("CANDLE_INTERVAL", "500ms")
        monkeypatch.setenv("BREAKOUT_PCT", "0.002")
        cfg = load_config(env_path=no_dotenv)
        assert cfg.symbol == "ETHUSDT"
        assert cfg.http_port == 9090
        assert cfg.log_level == "DEBUG"
        assert cfg.ema_fast == 8
        assert cfg.trend_cooldown == timedelta(seconds=90)
        assert cfg.candle_interval == timedelta(milliseconds=500)
        assert cfg.breakout_pct == pytest.approx(0.002)

    def test_empty_value_uses_default(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("EMA_SLOW", "")
        assert load_config(env_path=no_dotenv).ema_slow == 50

    def test_invalid_number(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("HTTP_PORT", "eighty")
        with pytest.raises(ValueError, match="HTTP_PORT"):
            load_config(env_path=no_dotenv)

    def test_invalid_duration(self, monkeypatch, no_dotenv):
        monkeypatch.setenv("BREAKOUT_LOOKBACK", "five minutes")
        with pytest.raises(ValueError, match="Invalid duration for BREAKOUT_LOOKBACK"):
            load_config(env_path=no_dotenv)

    def test_reads_dotenv_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SYMBOL=solusdt\nBREAKOUT_COOLDOWN=2m\n")
        try:
            cfg = load_config(env_path=str(env_file))
        finally:
            # load_dotenv writes straight into os.environ
            os.environ.pop("SYMBOL", None)
            os.environ.pop("BREAKOUT_COOLDOWN", None)
        assert cfg.symbol == "SOLUSDT"
        assert cfg.breakout_cooldown == timedelta(minutes=2)

    def test_config_is_frozen(self, no_dotenv):
        cfg = load_config(env_path=no_dotenv)
        with pytest.raises(AttributeError):
            cfg.symbol = "ETHUSDT"


class TestDurations:

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("10s", timedelta(seconds=10)),
            ("5m", timedelta(minutes=5)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("250ms", timedelta(milliseconds=250)),
            ("1.5s", timedelta(seconds=1.5)),
            ("15", timedelta(seconds=15)),
            ("0", timedelta(0)),
            ("-2s", timedelta(seconds=-2)),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "5x", "5m junk", "m5"])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)

    @pytest.mark.parametrize(
        "value, expected",
        [
            (timedelta(0), "0s"),
            (timedelta(minutes=5), "5m0s"),
            (timedelta(seconds=30), "30s"),
            (timedelta(hours=1, minutes=30), "1h30m0s"),
            (timedelta(milliseconds=500), "500ms"),
        ],
    )
    def test_format(self, value, expected):
        assert format_duration(value) == expected


class TestBacktestConfig:

    def test_defaults(self):
        cfg = BacktestConfig()
        assert cfg.initial_equity == 1000.0
        assert cfg.fee_rate == pytest.approx(0.001)
        assert cfg.slippage_rate == pytest.approx(0.0002)
        assert cfg.allow_short is False

    def test_normalized_keeps_valid_values(self):
        cfg = BacktestConfig(ema_fast=5, ema_slow=10)
        assert cfg.normalized() == cfg

    def test_normalized_clamps_cooldowns(self):
        cfg = BacktestConfig(breakout_cooldown=timedelta(seconds=-5)).normalized()
        assert cfg.breakout_cooldown == timedelta(0)

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)
