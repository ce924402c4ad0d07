"""Breakout detection over a rolling window of completed candles."""

from datetime import timedelta
from typing import Optional

from marketengine.config import format_duration
from marketengine.signals.models import BreakoutEvent, Candle, Direction

_DEFAULT_LOOKBACK = timedelta(minutes=5)


class BreakoutDetector:
    """Flags a candle that closes beyond the window's prior high or low.

    The window keeps candles whose ``end`` is no earlier than
    ``latest.end - lookback``.  The newest candle is compared against the
    extremes of the candles before it.

    Args:
        lookback: Window length (default 5 minutes when non-positive).
        pct: Required margin beyond the level, as a fraction.
        cooldown: Minimum spacing between signals, measured on candle ends.
    """

    def __init__(
        self,
        lookback: timedelta = _DEFAULT_LOOKBACK,
        pct: float = 0.0,
        cooldown: timedelta = timedelta(0),
    ) -> None:
        if lookback <= timedelta(0):
            lookback = _DEFAULT_LOOKBACK
        if pct < 0:
            pct = 0.0
        if cooldown < timedelta(0):
            cooldown = timedelta(0)
        self.lookback = lookback
        self.pct = pct
        self.cooldown = cooldown

        self._candles: list[Candle] = []
        self._last_signal_at = None

    @property
    def window(self) -> list[Candle]:
        return list(self._candles)

    def push(self, candle: Candle) -> tuple[Optional[BreakoutEvent], bool]:
        """Add a completed candle; returns ``(event, True)`` on a breakout."""
        self._candles.append(candle)
        cut = candle.end - self.lookback

        start = 0
        while start < len(self._candles) and self._candles[start].end < cut:
            start += 1
        if start:
            del self._candles[:start]

        if len(self._candles) < 2:
            return None, False

        if self.cooldown > timedelta(0) and self._last_signal_at is not None:
            if candle.end - self._last_signal_at < self.cooldown:
                return None, False

        prior = self._candles[:-1]
        high = max(c.high for c in prior)
        low = min(c.low for c in prior)

        price = candle.close
        if price > high * (1 + self.pct):
            return self._signal(candle, Direction.UP, high), True
        if price < low * (1 - self.pct):
            return self._signal(candle, Direction.DOWN, low), True
        return None, False

    def _signal(self, candle: Candle, direction: Direction, level: float) -> BreakoutEvent:
        self._last_signal_at = candle.end
        return BreakoutEvent(
            symbol=candle.symbol,
            direction=direction,
            price=candle.close,
            level=level,
            pct=self.pct,
            lookback=format_duration(self.lookback),
            candle_end=candle.end,
            timestamp=candle.timestamp,
        )
