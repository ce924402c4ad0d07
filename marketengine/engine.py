"""Market engine — live signal loop.

Drains the tick stream for one symbol and runs every tick through the
price store, the broadcast hub, the candle aggregator → breakout
detector, and the trend detector, in that order.  One engine owns one
set of detectors; run one engine per symbol.
"""

import logging
from collections.abc import AsyncIterator

from marketengine.api.hub import Hub
from marketengine.config import Config
from marketengine.signals.breakout import BreakoutDetector
from marketengine.signals.candle import CandleAggregator
from marketengine.signals.models import PriceTick
from marketengine.signals.trend import EMACrossoverDetector
from marketengine.store import PriceStore

logger = logging.getLogger("marketengine")


class SignalEngine:
    """Single-writer pipeline from ticks to published signal messages.

    Args:
        config: Live configuration (detector parameters, symbol).
        store: Latest-price table updated on every tick.
        hub: Broadcast hub receiving ticks and signal events.
    """

    def __init__(self, config: Config, store: PriceStore, hub: Hub) -> None:
        self.symbol = config.symbol
        self._store = store
        self._hub = hub
        self._running = False
        self._tick_count = 0

        self.trend = EMACrossoverDetector(
            config.ema_fast,
            config.ema_slow,
            config.confirm_ticks,
            config.trend_min_diff,
            config.trend_cooldown,
        )
        self.aggregator = CandleAggregator(config.candle_interval)
        self.breakout = BreakoutDetector(
            config.breakout_lookback,
            config.breakout_pct,
            config.breakout_cooldown,
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def stop(self) -> None:
        """Signal the loop to exit after the current tick."""
        self._running = False

    # ── Per-tick processing ──────────────────────────────────────────────

    def process_tick(self, tick: PriceTick) -> list[dict]:
        """Run one tick through the pipeline.

        Returns the signal messages published for this tick (the tick
        itself is published too but not returned).
        """
        self._tick_count += 1
        self._store.update(tick)
        self._hub.publish(tick.as_message())

        events: list[dict] = []

        candle, completed = self.aggregator.push(tick)
        if completed:
            breakout, fired = self.breakout.push(candle)
            if fired:
                message = breakout.as_message()
                self._hub.publish(message)
                events.append(message)
                logger.info(
                    "breakout: %s %s", breakout.symbol, breakout.direction.value,
                )

        change, fired = self.trend.push(tick)
        if fired:
            message = change.as_message()
            self._hub.publish(message)
            events.append(message)
            logger.info("trend change: %s", change.direction.value)

        return events

    # ── Main loop ────────────────────────────────────────────────────────

    async def run(self, ticks: AsyncIterator[PriceTick], max_ticks: int = 0) -> int:
        """Consume *ticks* until exhausted, stopped, or *max_ticks* reached.

        Returns the number of ticks processed during this call.
        """
        self._running = True
        processed = 0
        logger.info("Signal engine started for %s", self.symbol)
        try:
            async for tick in ticks:
                self.process_tick(tick)
                processed += 1
                if not self._running:
                    break
                if max_ticks > 0 and processed >= max_ticks:
                    break
        finally:
            self._running = False
            logger.info(
                "Signal engine stopped for %s after %d ticks", self.symbol, processed,
            )
        return processed
