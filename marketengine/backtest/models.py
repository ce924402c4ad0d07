"""Backtest data models — positions, closed trades, and run results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


class ExitReason(str, Enum):
    STOP = "stop"
    TAKE_PROFIT = "take_profit"
    END_OF_DATA = "end_of_data"


@dataclass
class Position:
    """The single open simulated position."""

    side: Side
    entry_price: float
    entry_time: datetime
    quantity: float
    stop_price: float
    take_profit_price: float


@dataclass(frozen=True)
class Trade:
    """A closed position."""

    side: Side
    entry_time: datetime
    entry_price: float
    exit_time: datetime
    exit_price: float
    exit_reason: ExitReason
    gross_pnl: float
    net_pnl: float


@dataclass(frozen=True)
class BacktestResult:
    """Outcome of one backtest run.

    ``total_return``, ``max_drawdown`` and ``win_rate`` are fractions;
    ``profit_factor`` is 0.0 when no losing trade was recorded.
    """

    trades: list[Trade]
    initial_equity: float
    final_equity: float
    total_return: float
    max_drawdown: float
    win_rate: float
    profit_factor: float
    equity_curve: list[float] = field(default_factory=list)

    def as_summary(self) -> dict:
        return {
            "trades": len(self.trades),
            "final_equity": self.final_equity,
            "total_return": self.total_return,
            "max_drawdown": self.max_drawdown,
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
        }
