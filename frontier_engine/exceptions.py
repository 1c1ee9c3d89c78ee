"""
Exception hierarchy for the Monte Carlo Frontier Engine.

Only ``InsufficientHistory``, ``SimulationCancelled`` and ``NoValidPortfolio``
ever reach callers of the optimizer. ``DataUnavailable`` is recovered inside
the data provider by substituting synthetic prices.
"""

from typing import Optional


class PortfolioEngineError(Exception):
    """Base class for all engine errors."""


class DataUnavailable(PortfolioEngineError):
    """
    Raised when price history cannot be obtained from the upstream source.

    Covers invalid symbols, rate limiting, transport failures and malformed
    responses.
    """

    def __init__(self, symbol: str, reason: str) -> None:
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"No data available for {symbol}: {reason}")


class InsufficientHistory(PortfolioEngineError, ValueError):
    """Raised when a price series has fewer than two observations."""

    def __init__(self, length: int, symbol: Optional[str] = None) -> None:
        self.length = length
        self.symbol = symbol
        label = symbol if symbol is not None else "series"
        super().__init__(
            f"{label} has {length} price point(s); at least 2 are required "
            f"to compute returns"
        )


class SimulationCancelled(PortfolioEngineError):
    """Raised when a running simulation is cancelled between batches."""


class NoValidPortfolio(PortfolioEngineError):
    """Raised when no sampled portfolio has a finite Sharpe ratio."""
