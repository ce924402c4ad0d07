"""Binance aggTrade WebSocket listener.

Yields one ``PriceTick`` per aggregated trade.  The connection is
re-established with exponential backoff (0.2 s doubling up to 5 s),
after errors and clean closes alike, until the consumer stops iterating;
the backoff resets after every successful connect.
"""

import asyncio
import json
import logging
import math
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Optional

import websockets
from websockets.exceptions import WebSocketException

from marketengine.signals.models import PriceTick

logger = logging.getLogger("marketengine")

_INITIAL_BACKOFF = 0.2
_MAX_BACKOFF = 5.0


def agg_trade_url(symbol: str, base_url: str = "wss://stream.binance.com:9443") -> str:
    return f"{base_url.rstrip('/')}/ws/{symbol.lower()}@aggTrade"


def parse_agg_trade(raw: str | bytes) -> Optional[PriceTick]:
    """Map an aggTrade payload to a ``PriceTick``.

    Accepts both the raw stream form (``{"e": "aggTrade", "s": ..., "p":
    ..., "T": ...}``) and the combined-stream envelope (``{"stream": ...,
    "data": {...}}``).  Returns ``None`` for anything malformed.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", "ignore")
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("binance json error: %s", exc)
        return None

    if not isinstance(msg, dict):
        return None
    data = msg.get("data", msg)
    if not isinstance(data, dict):
        return None

    try:
        price = float(data["p"])
        trade_ms = int(data["T"])
        symbol = str(data["s"])
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("binance price parse error: %s", exc)
        return None

    if math.isnan(price) or math.isinf(price):
        return None

    return PriceTick(
        symbol=symbol,
        price=price,
        timestamp=datetime.fromtimestamp(trade_ms / 1000, tz=timezone.utc),
        source="binance",
    )


async def iter_agg_trades(
    symbol: str,
    base_url: str = "wss://stream.binance.com:9443",
    *,
    connect=websockets.connect,
) -> AsyncIterator[PriceTick]:
    """Stream aggTrade ticks for *symbol*, reconnecting on failure.

    Args:
        symbol: Binance symbol, e.g. ``"BTCUSDT"``.
        base_url: WebSocket base URL.
        connect: Connection factory (``websockets.connect`` signature).
    """
    url = agg_trade_url(symbol, base_url)
    backoff = _INITIAL_BACKOFF

    while True:
        try:
            async with connect(url, ping_interval=20, ping_timeout=10) as ws:
                backoff = _INITIAL_BACKOFF
                logger.info("connected to Binance aggTrade: %s", symbol)
                async for raw in ws:
                    tick = parse_agg_trade(raw)
                    if tick is not None:
                        yield tick
            logger.info(
                "Binance aggTrade stream closed: %s — reconnecting in %.1fs",
                symbol, backoff,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.warning(
                "binance stream error (%s) — reconnecting in %.1fs", exc, backoff,
            )
        await asyncio.sleep(backoff)
        backoff = min(backoff * 2, _MAX_BACKOFF)
