"""
Portfolio Optimization Module.

This module orchestrates the Monte Carlo frontier search: it fetches price
history, derives return statistics and the correlation/covariance structure,
samples random portfolios and selects the maximum Sharpe ratio, minimum
variance and constrained portfolios.

Key Concepts:
    - Efficient Frontier: The set of portfolios offering the highest expected
      return for each level of risk, approximated here by random sampling.
    - Maximum Sharpe Ratio Portfolio: The sampled portfolio with the highest
      risk-adjusted return.
    - Minimum Variance Portfolio: The sampled portfolio with the lowest risk.

Optimization Approach:
    Random sampling gives no convergence guarantee to the analytic optimum;
    larger sample counts improve frontier coverage.
    - Long-only, fully invested (weights >= 0, sum of weights = 1)
    - Optional bounds: min_weight <= weight <= max_weight for each asset
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from frontier_engine.config import (
    DEFAULT_NUM_SIMULATIONS,
    DEFAULT_OUTPUT_SIZE,
    FRONTIER_DISPLAY_LIMIT,
    OPTIMIZATION_NUM_SIMULATIONS,
)
from frontier_engine.data_loader import HistoricalDataProvider
from frontier_engine.exceptions import InsufficientHistory, NoValidPortfolio
from frontier_engine.mathematics import QuantMetrics
from frontier_engine.sampler import MonteCarloSampler, PortfolioSample
from frontier_engine.selector import Constraints, FrontierSelector

logger = logging.getLogger(__name__)


@dataclass
class MarketStatistics:
    """
    Per-period statistics of a set of assets, in request order.

    Attributes:
        assets: Asset symbols.
        mean_returns: Mean daily return per asset.
        std_devs: Sample standard deviation of daily returns per asset.
        correlation_matrix: n x n correlation matrix.
        covariance_matrix: n x n covariance matrix.
    """
    assets: List[str]
    mean_returns: np.ndarray
    std_devs: np.ndarray
    correlation_matrix: np.ndarray
    covariance_matrix: np.ndarray


@dataclass
class SimulationResult:
    """
    Container for a Monte Carlo simulation run.

    Attributes:
        portfolios: Every sampled portfolio, in generation order.
        optimal_portfolio: Maximum Sharpe ratio sample.
        min_variance_portfolio: Minimum risk sample.
        correlation_matrix: Correlation of asset returns.
        covariance_matrix: Covariance of daily asset returns.
        assets: Asset symbols in matrix order.
        mean_returns: Annualized mean return per asset.
        volatilities: Annualized volatility per asset.
    """
    portfolios: List[PortfolioSample]
    optimal_portfolio: PortfolioSample
    min_variance_portfolio: PortfolioSample
    correlation_matrix: np.ndarray
    covariance_matrix: np.ndarray
    assets: List[str]
    mean_returns: np.ndarray
    volatilities: np.ndarray

    def statistics_dict(self) -> Dict:
        return {
            "meanReturns": self.mean_returns.tolist(),
            "volatilities": self.volatilities.tolist(),
            "assets": list(self.assets),
        }

    def to_dict(self) -> Dict:
        return {
            "optimalPortfolio": self.optimal_portfolio.to_dict(),
            "minVariancePortfolio": self.min_variance_portfolio.to_dict(),
            "efficientFrontier": [p.to_dict() for p in self.portfolios],
            "correlationMatrix": self.correlation_matrix.tolist(),
            "statistics": self.statistics_dict(),
        }


@dataclass
class OptimizationResult:
    """
    Container for portfolio optimization results.

    Attributes:
        weights: Dictionary mapping symbol to weight, in request order.
        expected_return: Annualized expected portfolio return.
        expected_volatility: Annualized portfolio volatility.
        sharpe_ratio: Risk-adjusted return metric.
        constraints_satisfied: False when no sample met the weight bounds
            and the unconstrained optimum was used instead.
        correlation_matrix: Correlation of asset returns.
        efficient_frontier: (risk, return) of the displayed samples.
        min_variance_portfolio: Minimum risk sample.
        statistics: Annualized per-asset statistics.
    """
    weights: Dict[str, float]
    expected_return: float
    expected_volatility: float
    sharpe_ratio: float
    constraints_satisfied: bool
    correlation_matrix: np.ndarray
    efficient_frontier: List[Dict[str, float]]
    min_variance_portfolio: PortfolioSample
    statistics: Dict

    def to_dict(self) -> Dict:
        """Render the result with the camelCase keys of the public API."""
        return {
            "optimizedWeights": [
                {"symbol": symbol, "weight": weight}
                for symbol, weight in self.weights.items()
            ],
            "expectedReturn": self.expected_return,
            "risk": self.expected_volatility,
            "sharpeRatio": self.sharpe_ratio,
            "correlationMatrix": self.correlation_matrix.tolist(),
            "efficientFrontier": list(self.efficient_frontier),
            "minVariancePortfolio": {
                "weights": list(self.min_variance_portfolio.weights),
                "return": self.min_variance_portfolio.expected_return,
                "risk": self.min_variance_portfolio.risk,
            },
            "statistics": self.statistics,
        }


class PortfolioOptimizer:
    """
    Runs the Monte Carlo efficient frontier search for a list of symbols.

    Index i refers to the i-th requested symbol in every matrix, statistic
    and weight vector of a run.

    Attributes:
        provider: Source of historical price series.
        sampler: Monte Carlo portfolio sampler.
        output_size: History length requested from the provider.
        optimization_simulations: Samples drawn by optimize_portfolio.
        frontier_limit: Maximum frontier points returned, None for all.

    Example:
        >>> optimizer = PortfolioOptimizer()
        >>> result = optimizer.optimize_portfolio(
        ...     ["AAPL", "MSFT", "GOOGL"], {"minWeight": 0.1, "maxWeight": 0.6}
        ... )
        >>> print(f"Optimal weights: {result.weights}")
        >>> print(f"Expected Sharpe: {result.sharpe_ratio:.2f}")
    """

    def __init__(
        self,
        provider: Optional[HistoricalDataProvider] = None,
        sampler: Optional[MonteCarloSampler] = None,
        output_size: str = DEFAULT_OUTPUT_SIZE,
        optimization_simulations: int = OPTIMIZATION_NUM_SIMULATIONS,
        frontier_limit: Optional[int] = FRONTIER_DISPLAY_LIMIT
    ) -> None:
        if frontier_limit is not None and frontier_limit < 1:
            raise ValueError(f"frontier_limit must be at least 1, got {frontier_limit}")

        self.provider = provider if provider is not None else HistoricalDataProvider()
        self.sampler = sampler if sampler is not None else MonteCarloSampler()
        self.output_size = output_size
        self.optimization_simulations = optimization_simulations
        self.frontier_limit = frontier_limit

    def compute_market_statistics(self, assets: Sequence[str]) -> MarketStatistics:
        """
        Fetch prices and derive per-period statistics for ``assets``.

        Raises:
            ValueError: If no assets are given.
            InsufficientHistory: If any asset has fewer than 2 prices.

        An asset with exactly 2 prices has one return and an undefined
        sample standard deviation; its volatility is taken as 0.
        """
        assets = list(assets)
        if not assets:
            raise ValueError("At least one asset is required.")

        price_series = self.provider.fetch_many(assets, self.output_size)

        returns_list = []
        for symbol, prices in zip(assets, price_series):
            try:
                returns_list.append(QuantMetrics.compute_returns(prices))
            except InsufficientHistory as e:
                raise InsufficientHistory(e.length, symbol=symbol) from e

        mean_returns = np.array([QuantMetrics.mean_return(r) for r in returns_list])
        std_devs = np.array([QuantMetrics.sample_std(r) for r in returns_list])

        # A single return has no sample spread; treat it as riskless
        for symbol, std in zip(assets, std_devs):
            if np.isnan(std):
                logger.warning(f"Volatility of {symbol} is undefined; using 0.0")
        std_devs = np.where(np.isnan(std_devs), 0.0, std_devs)

        correlation = QuantMetrics.correlation_matrix(returns_list, labels=assets)
        covariance = QuantMetrics.covariance_matrix(correlation, std_devs)

        return MarketStatistics(
            assets=assets,
            mean_returns=mean_returns,
            std_devs=std_devs,
            correlation_matrix=correlation,
            covariance_matrix=covariance,
        )

    def monte_carlo_simulation(
        self,
        assets: Sequence[str],
        num_simulations: int = DEFAULT_NUM_SIMULATIONS,
        cancel_event: Optional[threading.Event] = None
    ) -> SimulationResult:
        """
        Sample random portfolios over ``assets`` and locate the extremes.

        Args:
            assets: Asset symbols.
            num_simulations: Number of random portfolios.
            cancel_event: Optional cancellation token for the sampler.

        Returns:
            SimulationResult with every sample, the maximum Sharpe ratio and
            minimum variance samples, and annualized asset statistics.

        Raises:
            NoValidPortfolio: If no sample has a finite Sharpe ratio.
        """
        stats = self.compute_market_statistics(assets)

        portfolios = self.sampler.sample(
            stats.mean_returns,
            stats.covariance_matrix,
            num_simulations,
            cancel_event=cancel_event,
        )

        optimal = FrontierSelector.max_sharpe(portfolios)
        min_variance = FrontierSelector.min_variance(portfolios)
        if optimal is None or min_variance is None:
            raise NoValidPortfolio(
                f"None of {len(portfolios)} sampled portfolios has a finite "
                f"Sharpe ratio for {stats.assets}"
            )

        annual_means, annual_vols = QuantMetrics.annualize_statistics(
            stats.mean_returns, stats.std_devs, self.sampler.trading_days
        )

        logger.info(
            f"Simulation complete: max Sharpe {optimal.sharpe_ratio:.3f}, "
            f"min risk {min_variance.risk:.4f}"
        )

        return SimulationResult(
            portfolios=portfolios,
            optimal_portfolio=optimal,
            min_variance_portfolio=min_variance,
            correlation_matrix=stats.correlation_matrix,
            covariance_matrix=stats.covariance_matrix,
            assets=stats.assets,
            mean_returns=annual_means,
            volatilities=annual_vols,
        )

    def optimize_portfolio(
        self,
        assets: Sequence[str],
        constraints: Union[Constraints, Dict, None] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> OptimizationResult:
        """
        Find the best sampled portfolio subject to per-asset weight bounds.

        Args:
            assets: Asset symbols.
            constraints: Constraints or ``{"minWeight", "maxWeight"}`` dict.
                Defaults to [0, 1].
            cancel_event: Optional cancellation token for the sampler.

        Returns:
            OptimizationResult with optimized weights and expected metrics.

        Note:
            If no sampled portfolio satisfies the bounds, the unconstrained
            maximum Sharpe ratio portfolio is returned and
            ``constraints_satisfied`` is False.
        """
        if not isinstance(constraints, Constraints):
            constraints = Constraints.from_dict(constraints)

        simulation = self.monte_carlo_simulation(
            assets, self.optimization_simulations, cancel_event=cancel_event
        )

        selected = FrontierSelector.constrained_optimum(
            simulation.portfolios, constraints, simulation.optimal_portfolio
        )
        satisfied = constraints.admits(selected.weights)

        weights_dict = {
            symbol: weight
            for symbol, weight in zip(simulation.assets, selected.weights)
        }

        return OptimizationResult(
            weights=weights_dict,
            expected_return=selected.expected_return,
            expected_volatility=selected.risk,
            sharpe_ratio=selected.sharpe_ratio,
            constraints_satisfied=satisfied,
            correlation_matrix=simulation.correlation_matrix,
            efficient_frontier=self._frontier_points(simulation.portfolios),
            min_variance_portfolio=simulation.min_variance_portfolio,
            statistics=simulation.statistics_dict(),
        )

    def _frontier_points(self, portfolios: List[PortfolioSample]) -> List[Dict[str, float]]:
        """
        Reduce the sample cloud to (return, risk) pairs for display.

        When ``frontier_limit`` is set, samples are taken at an even stride.
        """
        selected = portfolios
        if self.frontier_limit is not None and len(portfolios) > self.frontier_limit:
            step = int(np.ceil(len(portfolios) / self.frontier_limit))
            selected = portfolios[::step][:self.frontier_limit]

        return [{"return": p.expected_return, "risk": p.risk} for p in selected]

    def calculate_portfolio_metrics(
        self,
        assets: Sequence[str],
        weights: Sequence[float]
    ) -> PortfolioSample:
        """
        Evaluate a caller-supplied allocation over ``assets``.

        Returns:
            PortfolioSample with annualized return, risk and Sharpe ratio.
        """
        stats = self.compute_market_statistics(assets)
        return self.sampler.calculate_portfolio_metrics(
            weights, stats.mean_returns, stats.covariance_matrix
        )

    def get_price_history(self, symbol: str) -> pd.Series:
        """Price series used for ``symbol`` (real or synthetic)."""
        return self.provider.fetch_historical_data(symbol, self.output_size)
