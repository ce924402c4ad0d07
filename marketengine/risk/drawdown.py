"""Drawdown tracking — pure math, no I/O.

Tracks peak equity, the current drawdown and the worst drawdown seen,
all as fractions of the running peak.
"""


class DrawdownTracker:
    """Tracks equity peaks and computes drawdown metrics.

    Args:
        initial_equity: Starting equity; becomes the first peak.
    """

    def __init__(self, initial_equity: float) -> None:
        if initial_equity <= 0:
            raise ValueError(
                f"initial_equity must be positive, got {initial_equity}"
            )
        self._peak_equity: float = initial_equity
        self._current_equity: float = initial_equity
        self._max_drawdown: float = 0.0

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> None:
        """Record the latest equity, raising the peak and worst drawdown."""
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        dd = self.drawdown
        if dd > self._max_drawdown:
            self._max_drawdown = dd

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def current_equity(self) -> float:
        """Most recently recorded equity."""
        return self._current_equity

    @property
    def drawdown(self) -> float:
        """Current drawdown as a fraction of peak equity."""
        if self._peak_equity == 0:
            return 0.0
        return (self._peak_equity - self._current_equity) / self._peak_equity

    @property
    def max_drawdown(self) -> float:
        """Largest drawdown fraction observed so far."""
        return self._max_drawdown
