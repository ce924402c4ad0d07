"""Trend detection — streaming dual-EMA crossover with hysteresis.

The detector keeps a fast and a slow exponential moving average over the
tick stream and reports a ``TrendChange`` only when the crossover
direction has held for ``confirm_ticks`` consecutive qualifying ticks.

Rules per tick:
    - Non-finite prices are ignored outright.
    - The first tick seeds both EMAs; nothing else happens.
    - While a cooldown since the last flip is running, the EMAs still
      update but the hysteresis counters are frozen.
    - Ticks whose relative EMA separation ``|fast - slow| / |price|`` is
      below ``min_rel_diff`` do not count.
    - The first qualifying direction becomes the trend silently.
"""

import math
from datetime import timedelta
from typing import Optional

from marketengine.signals.models import Direction, PriceTick, TrendChange


class EMACrossoverDetector:
    """Confirmed EMA-crossover trend detector for a single symbol.

    Args:
        fast_period: Fast EMA window in ticks (default 20).
        slow_period: Slow EMA window in ticks (default 50).  Forced to
            ``fast_period + 1`` when not strictly greater.
        confirm_ticks: Consecutive opposite ticks needed to flip (min 1).
        min_rel_diff: Minimum relative EMA separation for a tick to count.
        cooldown: Minimum spacing between reported flips.
    """

    def __init__(
        self,
        fast_period: int = 20,
        slow_period: int = 50,
        confirm_ticks: int = 1,
        min_rel_diff: float = 0.0,
        cooldown: timedelta = timedelta(0),
    ) -> None:
        if fast_period <= 0:
            fast_period = 20
        if slow_period <= 0:
            slow_period = 50
        if fast_period >= slow_period:
            slow_period = fast_period + 1
        if confirm_ticks <= 0:
            confirm_ticks = 1
        if min_rel_diff < 0:
            min_rel_diff = 0.0
        if cooldown < timedelta(0):
            cooldown = timedelta(0)

        self.fast_period = fast_period
        self.slow_period = slow_period
        self.confirm_ticks = confirm_ticks
        self.min_rel_diff = min_rel_diff
        self.cooldown = cooldown

        self._alpha_fast = 2.0 / (fast_period + 1.0)
        self._alpha_slow = 2.0 / (slow_period + 1.0)

        self._fast_ema = 0.0
        self._slow_ema = 0.0
        self._has_ema = False

        self._trend: Optional[Direction] = None
        self._pending_trend: Optional[Direction] = None
        self._pending_count = 0
        self._last_change_at = None

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def ready(self) -> bool:
        """``True`` once the EMAs have been seeded."""
        return self._has_ema

    @property
    def trend(self) -> Optional[Direction]:
        """Last confirmed direction, or ``None`` before the first one."""
        return self._trend

    def emas(self) -> Optional[tuple[float, float]]:
        """``(fast, slow)`` EMA values, or ``None`` before the first tick."""
        if not self._has_ema:
            return None
        return self._fast_ema, self._slow_ema

    def current_direction(self) -> Optional[Direction]:
        """Raw crossover direction right now (fast >= slow is up)."""
        if not self._has_ema:
            return None
        if self._fast_ema >= self._slow_ema:
            return Direction.UP
        return Direction.DOWN

    # ── Mutation ─────────────────────────────────────────────────────────

    def push(self, tick: PriceTick) -> tuple[Optional[TrendChange], bool]:
        """Feed one tick; returns ``(event, True)`` on a confirmed flip."""
        price = tick.price
        if math.isnan(price) or math.isinf(price):
            return None, False

        if not self._has_ema:
            self._fast_ema = price
            self._slow_ema = price
            self._has_ema = True
            return None, False

        self._fast_ema += self._alpha_fast * (price - self._fast_ema)
        self._slow_ema += self._alpha_slow * (price - self._slow_ema)

        if self.cooldown > timedelta(0) and self._last_change_at is not None:
            if tick.timestamp - self._last_change_at < self.cooldown:
                return None, False

        current = Direction.UP if self._fast_ema >= self._slow_ema else Direction.DOWN

        rel_sep = 0.0
        if price != 0:
            rel_sep = abs(self._fast_ema - self._slow_ema) / abs(price)
        if rel_sep < self.min_rel_diff:
            return None, False

        if self._trend is None:
            self._trend = current
            self._pending_count = 0
            return None, False

        if current == self._trend:
            self._pending_count = 0
            return None, False

        if self._pending_count == 0 or self._pending_trend != current:
            self._pending_trend = current
            self._pending_count = 1
        else:
            self._pending_count += 1

        if self._pending_count < self.confirm_ticks:
            return None, False

        self._trend = current
        self._pending_count = 0
        self._last_change_at = tick.timestamp

        return TrendChange(
            symbol=tick.symbol,
            direction=current,
            fast_ema=self._fast_ema,
            slow_ema=self._slow_ema,
            price=price,
            timestamp=tick.timestamp,
        ), True

    def __str__(self) -> str:
        if not self._has_ema:
            return "EMA(n/a)"
        if self._trend is None:
            return f"EMA fast={self._fast_ema:.6f} slow={self._slow_ema:.6f}"
        return (
            f"EMA fast={self._fast_ema:.6f} slow={self._slow_ema:.6f} "
            f"trend={self._trend.value}"
        )
