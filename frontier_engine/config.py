"""
Central configuration for the Monte Carlo Frontier Engine.

This module contains all configurable parameters including financial
constants, simulation sizes, data provider settings and the parameters of
the synthetic price generator used when market data is unavailable.
"""

from typing import Dict, Optional, Tuple

# =============================================================================
# Financial Constants
# =============================================================================
# Risk-free rate (annualized) used for the Sharpe ratio
RISK_FREE_RATE: float = 0.04

# Trading days per year (US market standard)
TRADING_DAYS_PER_YEAR: int = 252

# =============================================================================
# Simulation Parameters
# =============================================================================
# Random portfolios drawn by the lightweight diagnostic simulation
DEFAULT_NUM_SIMULATIONS: int = 5000

# Random portfolios drawn by the full optimization path. Kept separate from
# DEFAULT_NUM_SIMULATIONS: preview runs are cheaper than full runs.
OPTIMIZATION_NUM_SIMULATIONS: int = 10000

# Portfolios evaluated per batch; cancellation is checked between batches
SIMULATION_BATCH_SIZE: int = 1000

# Worker threads used to evaluate batches
SIMULATION_MAX_WORKERS: int = 4

# =============================================================================
# Weight Constraints
# =============================================================================
DEFAULT_MIN_WEIGHT: float = 0.0
DEFAULT_MAX_WEIGHT: float = 1.0

# Maximum number of (risk, return) points returned for display.
# None returns every sampled portfolio.
FRONTIER_DISPLAY_LIMIT: Optional[int] = None

# =============================================================================
# Market Data
# =============================================================================
# "compact" is roughly the last 100 trading days, "full" the whole history
DEFAULT_OUTPUT_SIZE: str = "compact"

OUTPUT_SIZE_PERIODS: Dict[str, str] = {
    "compact": "6mo",
    "full": "max",
}

COMPACT_OUTPUT_POINTS: int = 100

# Concurrent downloads when fetching several symbols
FETCH_MAX_WORKERS: int = 8

# =============================================================================
# Cache
# =============================================================================
# Downloaded series are reused for one hour
CACHE_TTL_SECONDS: float = 3600.0

# Least recently used series are evicted beyond this many entries
CACHE_MAX_ENTRIES: int = 256

# =============================================================================
# Synthetic Fallback Data
# =============================================================================
# One simulated trading year
SYNTHETIC_TRADING_DAYS: int = 252

# (base price, daily volatility, daily trend) per symbol
SYNTHETIC_SERIES_PARAMETERS: Dict[str, Tuple[float, float, float]] = {
    "AAPL": (150.0, 0.02, 0.0003),
    "GOOGL": (130.0, 0.025, 0.0002),
    "MSFT": (300.0, 0.018, 0.0004),
    "AMZN": (140.0, 0.03, 0.0001),
    "TSLA": (250.0, 0.05, 0.0005),
    "DEFAULT": (100.0, 0.025, 0.0002),
}
