"""Backtest statistics — pure functions for trade-series analysis."""

from marketengine.backtest.models import Trade


def win_rate(trades: list[Trade]) -> float:
    """Fraction of trades with positive net P&L (0.0 for no trades)."""
    if not trades:
        return 0.0
    wins = sum(1 for t in trades if t.net_pnl > 0)
    return wins / len(trades)


def profit_factor(trades: list[Trade]) -> float:
    """Sum of winning net P&L over the absolute sum of losing net P&L.

    Zero-P&L trades count as neither.  Returns 0.0 when there is no
    losing trade.
    """
    gross_win = sum(t.net_pnl for t in trades if t.net_pnl > 0)
    gross_loss = sum(-t.net_pnl for t in trades if t.net_pnl < 0)
    if gross_loss <= 0:
        return 0.0
    return gross_win / gross_loss


def calculate_stats(trades: list[Trade]) -> dict:
    """Summary statistics for a list of closed trades.

    Returns:
        Dict with ``total_trades``, ``winning_trades``, ``losing_trades``,
        ``win_rate``, ``profit_factor``, ``gross_pnl``, ``net_pnl``.
    """
    return {
        "total_trades": len(trades),
        "winning_trades": sum(1 for t in trades if t.net_pnl > 0),
        "losing_trades": sum(1 for t in trades if t.net_pnl < 0),
        "win_rate": win_rate(trades),
        "profit_factor": profit_factor(trades),
        "gross_pnl": sum(t.gross_pnl for t in trades),
        "net_pnl": sum(t.net_pnl for t in trades),
    }
