"""Market engine — application configuration.

Loads .env variables into a typed config object for the live engine and
defines the backtest parameter set.  All live variables are optional;
values that cannot be parsed raise ``ValueError`` naming the variable.
"""

import os
import re
from dataclasses import dataclass, replace
from datetime import timedelta

from dotenv import load_dotenv


class ConfigError(ValueError):
    """Fatal configuration problem (e.g. not enough historical data)."""


_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration string such as ``"500ms"``, ``"10s"`` or ``"1h30m"``.

    A bare number is read as seconds.  Raises ``ValueError`` on anything
    else.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    try:
        return timedelta(seconds=sign * float(text))
    except (ValueError, OverflowError):
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * total)


def format_duration(value: timedelta) -> str:
    """Render *value* compactly, e.g. ``5m0s`` or ``1h30m0s``."""
    seconds = value.total_seconds()
    if seconds == 0:
        return "0s"
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    if seconds < 1:
        return f"{sign}{seconds * 1000:g}ms"
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    out = ""
    if hours:
        out += f"{int(hours)}h"
    if hours or minutes:
        out += f"{int(minutes)}m"
    return f"{sign}{out}{secs:g}s"


@dataclass(frozen=True)
class Config:
    """Typed configuration for the live engine, loaded from the environment."""

    symbol: str
    http_host: str
    http_port: int
    log_level: str
    ema_fast: int
    ema_slow: int
    confirm_ticks: int
    trend_min_diff: float
    trend_cooldown: timedelta
    candle_interval: timedelta
    breakout_lookback: timedelta
    breakout_pct: float
    breakout_cooldown: timedelta
    binance_ws_url: str
    binance_rest_url: str


@dataclass(frozen=True)
class BacktestConfig:
    """Parameters for one backtest run.

    Non-positive values are replaced by defaults in ``normalized()``
    rather than rejected.
    """

    initial_equity: float = 1000.0
    fee_rate: float = 0.001
    slippage_rate: float = 0.0002
    allow_short: bool = False
    stop_loss_pct: float = 0.003
    take_profit_pct: float = 0.006
    ema_fast: int = 20
    ema_slow: int = 50
    trend_confirm: int = 3
    trend_min_diff: float = 0.0
    trend_cooldown: timedelta = timedelta(0)
    breakout_lookback: timedelta = timedelta(minutes=5)
    breakout_pct: float = 0.001
    breakout_cooldown: timedelta = timedelta(0)

    def normalized(self) -> "BacktestConfig":
        """Return a copy with defaults applied to non-positive parameters."""
        defaults = BacktestConfig()
        changes = {}
        for name in (
            "initial_equity",
            "stop_loss_pct",
            "take_profit_pct",
            "ema_fast",
            "ema_slow",
            "trend_confirm",
        ):
            if getattr(self, name) <= 0:
                changes[name] = getattr(defaults, name)
        if self.breakout_lookback <= timedelta(0):
            changes["breakout_lookback"] = defaults.breakout_lookback
        if self.trend_cooldown < timedelta(0):
            changes["trend_cooldown"] = timedelta(0)
        if self.breakout_cooldown < timedelta(0):
            changes["breakout_cooldown"] = timedelta(0)
        return replace(self, **changes) if changes else self


def _env(name: str, default: str) -> str:
    return os.environ.get(name) or default


def _env_number(name: str, default: str, cast):
    raw = _env(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


def _env_duration(name: str, default: str) -> timedelta:
    raw = _env(name, default)
    try:
        return parse_duration(raw)
    except ValueError:
        raise ValueError(f"Invalid duration for {name}: {raw!r}") from None


def load_config(env_path: str | None = None) -> Config:
    """Load the live configuration from environment variables.

    Reads an optional ``.env`` file first.  Every variable has a default.
    """
    load_dotenv(dotenv_path=env_path)

    return Config(
        symbol=_env("SYMBOL", "BTCUSDT").upper(),
        http_host=_env("HTTP_HOST", "0.0.0.0"),
        http_port=_env_number("HTTP_PORT", "8080", int),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        ema_fast=_env_number("EMA_FAST", "20", int),
        ema_slow=_env_number("EMA_SLOW", "50", int),
        confirm_ticks=_env_number("TREND_CONFIRM", "3", int),
        trend_min_diff=_env_number("TREND_MIN_DIFF", "0.00005", float),
        trend_cooldown=_env_duration("TREND_COOLDOWN", "10s"),
        candle_interval=_env_duration("CANDLE_INTERVAL", "5s"),
        breakout_lookback=_env_duration("BREAKOUT_LOOKBACK", "5m"),
        breakout_pct=_env_number("BREAKOUT_PCT", "0.001", float),
        breakout_cooldown=_env_duration("BREAKOUT_COOLDOWN", "30s"),
        binance_ws_url=_env("BINANCE_WS_URL", "wss://stream.binance.com:9443"),
        binance_rest_url=_env("BINANCE_REST_URL", "https://api.binance.com"),
    )
