"""Candle aggregation — folds ticks into fixed-interval OHLC candles.

Buckets are aligned to multiples of the interval counted from the Unix
epoch.  Ticks are expected in non-decreasing timestamp order; a stale
tick from an already-closed bucket simply opens a new candle at its own
bucket.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from marketengine.signals.models import Candle, PriceTick

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DEFAULT_INTERVAL = timedelta(seconds=5)


def bucket_start(ts: datetime, interval: timedelta) -> datetime:
    """Truncate *ts* down to a multiple of *interval* since the epoch."""
    epoch = _EPOCH if ts.tzinfo is not None else _EPOCH.replace(tzinfo=None)
    return epoch + ((ts - epoch) // interval) * interval


class CandleAggregator:
    """Builds candles from a tick stream, one open candle at a time.

    Args:
        interval: Bucket width.  Non-positive values fall back to 5 seconds.
    """

    def __init__(self, interval: timedelta = _DEFAULT_INTERVAL) -> None:
        if interval <= timedelta(0):
            interval = _DEFAULT_INTERVAL
        self._interval = interval
        self._current: Optional[Candle] = None

    @property
    def interval(self) -> timedelta:
        return self._interval

    @property
    def current(self) -> Optional[Candle]:
        """The candle still being built, if any."""
        return self._current

    def push(self, tick: PriceTick) -> tuple[Optional[Candle], bool]:
        """Fold *tick* into the open candle.

        Returns ``(completed_candle, True)`` when the tick starts a new
        bucket, otherwise ``(None, False)``.
        """
        start = bucket_start(tick.timestamp, self._interval)

        if self._current is None:
            self._current = self._open(tick, start)
            return None, False

        if self._current.start == start:
            self._current = replace(
                self._current,
                high=max(self._current.high, tick.price),
                low=min(self._current.low, tick.price),
                close=tick.price,
                timestamp=tick.timestamp,
            )
            return None, False

        completed = self._current
        self._current = self._open(tick, start)
        return completed, True

    def _open(self, tick: PriceTick, start: datetime) -> Candle:
        return Candle(
            symbol=tick.symbol,
            start=start,
            end=start + self._interval,
            open=tick.price,
            high=tick.price,
            low=tick.price,
            close=tick.price,
            timestamp=tick.timestamp,
        )
