"""Signal data models — ticks, candles, and the events derived from them."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Direction(str, Enum):
    """Trend or breakout direction."""

    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class PriceTick:
    """A single timestamped price observation."""

    symbol: str
    price: float
    timestamp: datetime
    source: str  # "binance", "backtest", ...

    def as_message(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }


@dataclass(frozen=True)
class Candle:
    """An OHLC summary of ticks inside one ``[start, end)`` bucket.

    ``timestamp`` is the time of the last tick folded into the candle.
    """

    symbol: str
    start: datetime
    end: datetime
    open: float
    high: float
    low: float
    close: float
    timestamp: datetime


@dataclass(frozen=True)
class TrendChange:
    """A confirmed flip of the EMA crossover direction."""

    symbol: str
    direction: Direction
    fast_ema: float
    slow_ema: float
    price: float
    timestamp: datetime

    def as_message(self) -> dict:
        return {
            "type": "trend_change",
            "symbol": self.symbol,
            "trend": self.direction.value,
            "fastEma": self.fast_ema,
            "slowEma": self.slow_ema,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class BreakoutEvent:
    """A candle close beyond the recent high/low by at least ``pct``."""

    symbol: str
    direction: Direction
    price: float
    level: float
    pct: float
    lookback: str
    candle_end: datetime
    timestamp: datetime

    def as_message(self) -> dict:
        return {
            "type": "breakout",
            "symbol": self.symbol,
            "dir": self.direction.value,
            "price": self.price,
            "level": self.level,
            "pct": self.pct,
            "lookback": self.lookback,
            "candleEnd": self.candle_end.isoformat(),
            "timestamp": self.timestamp.isoformat(),
        }
