"""
Monte Carlo Frontier Engine - Source Package

This package approximates the Modern Portfolio Theory (MPT) efficient
frontier by random sampling of long-only portfolios.

Modules:
    - config: Module-level constants
    - cache: Time-bounded LRU cache for price series
    - data_loader: Price history acquisition with synthetic fallback
    - mathematics: Returns, correlation and portfolio metrics
    - sampler: Monte Carlo portfolio generation
    - selector: Maximum Sharpe, minimum variance and constrained selection
    - optimizer: End-to-end optimization facade
"""

from frontier_engine.cache import TTLCache
from frontier_engine.data_loader import (
    HistoricalDataProvider,
    SyntheticSeriesGenerator,
    YahooFinanceFetcher,
    price_series_to_records,
)
from frontier_engine.exceptions import (
    DataUnavailable,
    InsufficientHistory,
    NoValidPortfolio,
    PortfolioEngineError,
    SimulationCancelled,
)
from frontier_engine.mathematics import QuantMetrics
from frontier_engine.optimizer import (
    OptimizationResult,
    PortfolioOptimizer,
    SimulationResult,
)
from frontier_engine.sampler import MonteCarloSampler, PortfolioSample
from frontier_engine.selector import Constraints, FrontierSelector

__all__ = [
    "TTLCache",
    "HistoricalDataProvider",
    "SyntheticSeriesGenerator",
    "YahooFinanceFetcher",
    "price_series_to_records",
    "DataUnavailable",
    "InsufficientHistory",
    "NoValidPortfolio",
    "PortfolioEngineError",
    "SimulationCancelled",
    "QuantMetrics",
    "OptimizationResult",
    "PortfolioOptimizer",
    "SimulationResult",
    "MonteCarloSampler",
    "PortfolioSample",
    "Constraints",
    "FrontierSelector",
]

__version__ = "1.0.0"
