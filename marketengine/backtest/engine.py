"""Backtest engine — replays historical candles through the signal detectors.

Each candle's close is fed to the trend detector as a synthetic tick and
the candle itself to the breakout detector, so the same detector code
runs in live and backtest modes.  A long is opened on an up breakout in
an up trend (a short on down/down when shorts are allowed); positions
exit on stop, take-profit, or end of data.  No real orders are placed.
"""

import logging
from typing import Optional

from marketengine.backtest.models import (
    BacktestResult,
    ExitReason,
    Position,
    Side,
    Trade,
)
from marketengine.backtest.stats import profit_factor, win_rate
from marketengine.config import BacktestConfig, ConfigError
from marketengine.risk.drawdown import DrawdownTracker
from marketengine.risk.position_sizer import (
    apply_slippage,
    calculate_fee,
    calculate_quantity,
)
from marketengine.risk.sl_tp import calculate_sl, calculate_tp
from marketengine.signals.breakout import BreakoutDetector
from marketengine.signals.models import Candle, Direction, PriceTick
from marketengine.signals.trend import EMACrossoverDetector

logger = logging.getLogger("marketengine")

MIN_CANDLES = 10


class BacktestEngine:
    """Simulates the trend + breakout strategy on historical candles.

    Args:
        config: Backtest parameters; non-positive values get defaults.
    """

    def __init__(self, config: Optional[BacktestConfig] = None) -> None:
        self._config = (config or BacktestConfig()).normalized()

    @property
    def config(self) -> BacktestConfig:
        return self._config

    # ── Public API ───────────────────────────────────────────────────────

    def run(self, candles: list[Candle]) -> BacktestResult:
        """Execute a full backtest over *candles* (oldest first).

        Raises:
            ConfigError: If fewer than 10 candles are supplied.
        """
        if len(candles) < MIN_CANDLES:
            raise ConfigError(
                f"not enough candles: need at least {MIN_CANDLES}, "
                f"got {len(candles)}"
            )

        cfg = self._config
        equity = cfg.initial_equity
        tracker = DrawdownTracker(equity)
        equity_curve: list[float] = []

        trend = EMACrossoverDetector(
            cfg.ema_fast,
            cfg.ema_slow,
            cfg.trend_confirm,
            cfg.trend_min_diff,
            cfg.trend_cooldown,
        )
        breakout = BreakoutDetector(
            cfg.breakout_lookback, cfg.breakout_pct, cfg.breakout_cooldown,
        )

        trend_dir = Direction.UP
        position: Optional[Position] = None
        trades: list[Trade] = []

        for candle in candles:
            # 1 — Intrabar stop / take-profit
            if position is not None:
                hit = self._check_exit(position, candle)
                if hit is not None:
                    exit_price, reason = hit
                    trade = self._close(position, candle, exit_price, reason)
                    trades.append(trade)
                    equity += trade.net_pnl
                    position = None

            # 2 — Trend on the candle close
            trend.push(
                PriceTick(
                    symbol=candle.symbol,
                    price=candle.close,
                    timestamp=candle.end,
                    source="backtest",
                )
            )
            direction = trend.current_direction()
            if direction is not None:
                trend_dir = direction

            # 3 — Breakout on the completed candle
            event, fired = breakout.push(candle)

            # 4 — Entry (nothing left to size once equity is gone)
            if fired and position is None and equity > 0:
                if event.direction == Direction.UP and trend_dir == Direction.UP:
                    position = self._open(Side.LONG, candle, equity)
                elif (
                    cfg.allow_short
                    and event.direction == Direction.DOWN
                    and trend_dir == Direction.DOWN
                ):
                    position = self._open(Side.SHORT, candle, equity)

            # 5 — Bookkeeping
            tracker.update(equity)
            equity_curve.append(equity)

        if position is not None:
            last = candles[-1]
            trade = self._close(position, last, last.close, ExitReason.END_OF_DATA)
            trades.append(trade)
            equity += trade.net_pnl
            equity_curve.append(equity)

        return BacktestResult(
            trades=trades,
            initial_equity=cfg.initial_equity,
            final_equity=equity,
            total_return=(equity - cfg.initial_equity) / cfg.initial_equity,
            max_drawdown=tracker.max_drawdown,
            win_rate=win_rate(trades),
            profit_factor=profit_factor(trades),
            equity_curve=equity_curve,
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _open(self, side: Side, candle: Candle, equity: float) -> Position:
        cfg = self._config
        entry = apply_slippage(candle.close, side, True, cfg.slippage_rate)
        position = Position(
            side=side,
            entry_price=entry,
            entry_time=candle.end,
            quantity=calculate_quantity(equity, entry),
            stop_price=calculate_sl(entry, side, cfg.stop_loss_pct),
            take_profit_price=calculate_tp(entry, side, cfg.take_profit_pct),
        )
        logger.debug(
            "backtest open %s @ %.6f qty=%.6f at %s",
            side.value, entry, position.quantity, candle.end.isoformat(),
        )
        return position

    def _close(
        self,
        position: Position,
        candle: Candle,
        price: float,
        reason: ExitReason,
    ) -> Trade:
        cfg = self._config
        exit_price = apply_slippage(price, position.side, False, cfg.slippage_rate)
        notional_in = position.entry_price * position.quantity
        notional_out = exit_price * position.quantity
        gross = self._calc_pnl(position, exit_price)
        net = (
            gross
            - calculate_fee(notional_in, cfg.fee_rate)
            - calculate_fee(notional_out, cfg.fee_rate)
        )
        logger.debug(
            "backtest close %s @ %.6f (%s) net=%.4f",
            position.side.value, exit_price, reason.value, net,
        )
        return Trade(
            side=position.side,
            entry_time=position.entry_time,
            entry_price=position.entry_price,
            exit_time=candle.end,
            exit_price=exit_price,
            exit_reason=reason,
            gross_pnl=gross,
            net_pnl=net,
        )

    @staticmethod
    def _check_exit(
        position: Position, candle: Candle,
    ) -> Optional[tuple[float, ExitReason]]:
        """Check if *candle* touches the stop or take-profit.

        Returns ``(touched_price, reason)`` or ``None``.  When both are
        touched in the same candle, the stop is assumed first.
        """
        if position.side == Side.LONG:
            if candle.low <= position.stop_price:
                return position.stop_price, ExitReason.STOP
            if candle.high >= position.take_profit_price:
                return position.take_profit_price, ExitReason.TAKE_PROFIT
        else:
            if candle.high >= position.stop_price:
                return position.stop_price, ExitReason.STOP
            if candle.low <= position.take_profit_price:
                return position.take_profit_price, ExitReason.TAKE_PROFIT
        return None

    @staticmethod
    def _calc_pnl(position: Position, exit_price: float) -> float:
        """Gross P&L for *position* exiting at *exit_price*."""
        if position.side == Side.LONG:
            return (exit_price - position.entry_price) * position.quantity
        return (position.entry_price - exit_price) * position.quantity
