"""Tests for the rolling-window breakout detector."""

from datetime import datetime, timedelta, timezone

from marketengine.signals.breakout import BreakoutDetector
from marketengine.signals.models import Candle, Direction


# ── Helpers ──────────────────────────────────────────────────────────────

_BASE = datetime(2026, 1, 5, 12, 0, 0, tzinfo=timezone.utc)


def _make_candle(minute: int, h: float, l: float, c: float, o: float = None) -> Candle:
    start = _BASE + timedelta(minutes=minute)
    end = start + timedelta(minutes=1)
    return Candle(
        symbol="BTCUSDT",
        start=start,
        end=end,
        open=c if o is None else o,
        high=h,
        low=l,
        close=c,
        timestamp=end - timedelta(seconds=1),
    )


def _detector(**kwargs) -> BreakoutDetector:
    params = {"lookback": timedelta(minutes=5), "pct": 0.0, "cooldown": timedelta(0)}
    params.update(kwargs)
    return BreakoutDetector(**params)


# ── Signals ──────────────────────────────────────────────────────────────


class TestBreakoutSignals:

    def test_single_candle_never_fires(self):
        d = _detector()
        assert d.push(_make_candle(0, 200.0, 1.0, 500.0)) == (None, False)

    def test_up_breakout_over_prior_high(self):
        d = _detector()
        d.push(_make_candle(0, 10.0, 9.0, 9.5))
        d.push(_make_candle(1, 12.0, 9.5, 11.0))
        event, fired = d.push(_make_candle(2, 13.0, 12.5, 13.0))
        assert fired is True
        assert event.direction == Direction.UP
        assert event.level == 12.0
        assert event.price == 13.0

    def test_close_inside_range_fires_nothing(self):
        d = _detector()
        d.push(_make_candle(0, 10.0, 9.0, 9.5))
        d.push(_make_candle(1, 12.0, 9.5, 11.0))
        assert d.push(_make_candle(2, 11.5, 10.5, 11.0)) == (None, False)

    def test_down_breakout_under_prior_low(self):
        d = _detector()
        d.push(_make_candle(0, 10.0, 9.0, 9.5))
        d.push(_make_candle(1, 12.0, 9.5, 11.0))
        event, fired = d.push(_make_candle(2, 9.0, 7.5, 8.0))
        assert fired is True
        assert event.direction == Direction.DOWN
        assert event.level == 9.0

    def test_newest_candle_excluded_from_levels(self):
        """The pushed candle's own high does not raise the bar."""
        d = _detector()
        d.push(_make_candle(0, 10.0, 9.0, 9.5))
        event, fired = d.push(_make_candle(1, 50.0, 9.5, 11.0))
        assert fired is True
        assert event.level == 10.0

    def test_threshold_margin(self):
        d = _detector(pct=0.1)
        d.push(_make_candle(0, 12.0, 10.0, 11.0))
        assert d.push(_make_candle(1, 13.0, 12.0, 13.0)) == (None, False)

        d = _detector(pct=0.1)
        d.push(_make_candle(0, 12.0, 10.0, 11.0))
        event, fired = d.push(_make_candle(1, 13.5, 12.0, 13.3))
        assert fired is True
        assert event.direction == Direction.UP
        assert event.pct == 0.1


# ── Window maintenance ───────────────────────────────────────────────────


class TestBreakoutWindow:

    def test_old_candles_trimmed(self):
        d = _detector()
        d.push(_make_candle(0, 20.0, 9.0, 15.0))   # ends at +1m
        d.push(_make_candle(6, 12.0, 9.0, 11.0))   # ends at +7m
        event, fired = d.push(_make_candle(7, 13.0, 11.0, 13.0))  # cut = +3m
        assert fired is True
        assert event.level == 12.0
        assert len(d.window) == 2

    def test_candle_on_cut_boundary_kept(self):
        d = _detector()
        d.push(_make_candle(0, 20.0, 9.0, 15.0))   # ends at +1m
        d.push(_make_candle(5, 12.0, 9.0, 11.0))   # ends at +6m, cut = +1m
        assert len(d.window) == 2

    def test_isolated_candle_after_gap(self):
        d = _detector()
        d.push(_make_candle(0, 10.0, 9.0, 9.5))
        assert d.push(_make_candle(30, 50.0, 40.0, 45.0)) == (None, False)
        assert len(d.window) == 1


# ── Cooldown ─────────────────────────────────────────────────────────────


class TestBreakoutCooldown:

    def test_cooldown_measured_on_candle_end(self):
        d = _detector(cooldown=timedelta(minutes=2))
        d.push(_make_candle(0, 10.0, 9.0, 9.5))
        _, fired = d.push(_make_candle(1, 11.0, 10.0, 11.0))    # ends +2m
        assert fired is True
        _, fired = d.push(_make_candle(2, 12.0, 11.0, 12.0))    # +3m: 1m since
        assert fired is False
        event, fired = d.push(_make_candle(3, 13.0, 12.0, 13.0))  # +4m: 2m since
        assert fired is True
        assert event.level == 12.0

    def test_defaults(self):
        d = BreakoutDetector(timedelta(0), -1.0, timedelta(seconds=-1))
        assert d.lookback == timedelta(minutes=5)
        assert d.pct == 0.0
        assert d.cooldown == timedelta(0)


class TestBreakoutMessage:

    def test_as_message(self):
        d = _detector()
        d.push(_make_candle(0, 10.0, 9.0, 9.5))
        event, _ = d.push(_make_candle(1, 12.0, 10.0, 11.0))
        msg = event.as_message()
        assert msg["type"] == "breakout"
        assert msg["dir"] == "up"
        assert msg["level"] == 10.0
        assert msg["lookback"] == "5m0s"
        assert msg["candleEnd"] == (_BASE + timedelta(minutes=2)).isoformat()
