"""Position sizing and execution costs — pure math, no I/O.

Sizing puts all available equity into one position (no leverage cap, no
partial sizing).  Slippage always works against the trader: fills are
worse than the reference price on entry and on exit.
"""

from marketengine.backtest.models import Side


def calculate_quantity(equity: float, entry_price: float) -> float:
    """Quantity bought with the whole of *equity* at *entry_price*.

    Raises:
        ValueError: If any input is non-positive.
    """
    if equity <= 0:
        raise ValueError(f"equity must be positive, got {equity}")
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    return equity / entry_price


def apply_slippage(price: float, side: Side, is_entry: bool, rate: float) -> float:
    """Adjust a fill price by *rate* against the trader.

    Long entries and short exits pay up (``price × (1 + rate)``); long
    exits and short entries give up (``price × (1 − rate)``).
    """
    if rate <= 0:
        return price
    buying = (side == Side.LONG) == is_entry
    return price * (1 + rate) if buying else price * (1 - rate)


def calculate_fee(notional: float, fee_rate: float) -> float:
    """Fee charged on one fill: ``|notional| × fee_rate``."""
    if fee_rate <= 0:
        return 0.0
    return abs(notional) * fee_rate
