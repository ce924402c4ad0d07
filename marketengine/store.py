"""In-memory latest-price table, keyed by symbol."""

import threading
from typing import Optional

from marketengine.signals.models import PriceTick


class PriceStore:
    """Holds the most recent tick per symbol.

    Written by the signal engine and read by the HTTP handlers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._prices: dict[str, PriceTick] = {}

    def update(self, tick: PriceTick) -> None:
        with self._lock:
            self._prices[tick.symbol] = tick

    def get(self, symbol: str) -> Optional[PriceTick]:
        with self._lock:
            return self._prices.get(symbol)
