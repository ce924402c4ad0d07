"""Stop-loss and take-profit calculation — pure math, no I/O.

Both levels are fixed fractions away from the entry price:

- **Long**:  SL = entry × (1 − sl_pct),  TP = entry × (1 + tp_pct)
- **Short**: SL = entry × (1 + sl_pct),  TP = entry × (1 − tp_pct)
"""

from marketengine.backtest.models import Side


def calculate_sl(entry_price: float, side: Side, stop_loss_pct: float) -> float:
    """Return the stop-loss price for a position opened at *entry_price*.

    Raises:
        ValueError: If *side* is not a ``Side``.
    """
    if side == Side.LONG:
        return entry_price * (1 - stop_loss_pct)
    if side == Side.SHORT:
        return entry_price * (1 + stop_loss_pct)
    raise ValueError(f"side must be 'long' or 'short', got '{side}'")


def calculate_tp(entry_price: float, side: Side, take_profit_pct: float) -> float:
    """Return the take-profit price for a position opened at *entry_price*.

    Raises:
        ValueError: If *side* is not a ``Side``.
    """
    if side == Side.LONG:
        return entry_price * (1 + take_profit_pct)
    if side == Side.SHORT:
        return entry_price * (1 - take_profit_pct)
    raise ValueError(f"side must be 'long' or 'short', got '{side}'")
