"""Binance spot REST async client.

Fetches historical klines for backtests, paging through the requested
time range 1000 rows at a time.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from marketengine.signals.models import Candle

logger = logging.getLogger("marketengine")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

_KLINE_LIMIT = 1000
_PAGE_PAUSE = 0.15  # seconds between pages


def _to_ms(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)


def _from_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def parse_kline_row(symbol: str, row: list) -> Optional[Candle]:
    """Convert one ``/api/v3/klines`` row into a ``Candle``.

    Row layout: ``[openTime, open, high, low, close, volume, closeTime, ...]``.
    Returns ``None`` for short or unparsable rows.
    """
    if not isinstance(row, list) or len(row) < 7:
        return None
    open_ms = _to_int(row[0])
    close_ms = _to_int(row[6])
    prices = [_to_float(v) for v in row[1:5]]
    if open_ms is None or close_ms is None or any(p is None for p in prices):
        return None
    o, h, l, c = prices
    end = _from_ms(close_ms)
    return Candle(
        symbol=symbol,
        start=_from_ms(open_ms),
        end=end,
        open=o,
        high=h,
        low=l,
        close=c,
        timestamp=end,
    )


class BinanceClient:
    """Async client wrapping the public Binance spot REST API."""

    def __init__(self, base_url: str = "https://api.binance.com") -> None:
        self._base_url = base_url.rstrip("/")

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        timeout=20.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Binance %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Binance %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    # ── Klines ───────────────────────────────────────────────────────────

    async def fetch_klines(
        self,
        symbol: str,
        interval: str,
        start: datetime,
        end: datetime,
    ) -> list[Candle]:
        """Fetch all klines for *symbol* between *start* and *end*.

        Args:
            symbol: e.g. ``"BTCUSDT"``
            interval: Binance kline interval, e.g. ``"1m"``, ``"5m"``
            start: Range start (UTC).
            end: Range end (UTC), must be after *start*.

        Returns:
            List of ``Candle`` objects ordered oldest-first.
        """
        if not symbol:
            raise ValueError("symbol required")
        if not interval:
            raise ValueError("interval required")

        start_ms = _to_ms(start)
        end_ms = _to_ms(end)
        if end_ms <= start_ms:
            raise ValueError("end must be after start")

        url = f"{self._base_url}/api/v3/klines"
        candles: list[Candle] = []

        while True:
            params = {
                "symbol": symbol,
                "interval": interval,
                "limit": _KLINE_LIMIT,
                "startTime": start_ms,
                "endTime": end_ms,
            }
            resp = await self._request_with_retry("get", url, params=params)
            rows = resp.json()
            if not rows:
                break

            last_close_ms = 0
            for row in rows:
                candle = parse_kline_row(symbol, row)
                if candle is None:
                    continue
                candles.append(candle)
                last_close_ms = _to_int(row[6])

            if last_close_ms == 0:
                break

            next_start = last_close_ms + 1
            if next_start >= end_ms:
                break
            start_ms = next_start

            if len(rows) < _KLINE_LIMIT:
                break

            await asyncio.sleep(_PAGE_PAUSE)

        logger.info("Fetched %d %s %s klines", len(candles), symbol, interval)
        return candles
