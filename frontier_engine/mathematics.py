"""
Quantitative Metrics Module for Portfolio Optimization.

This module provides the statistics used by the Monte Carlo frontier search:
simple periodic returns, per-asset mean and sample standard deviation, the
pairwise correlation matrix, the derived covariance matrix and the portfolio
return, volatility and Sharpe ratio.

Key Formulas:
    - Periodic Return: r_i = (p_i - p_{i-1}) / p_{i-1}
    - Covariance: Cov[i][j] = Corr[i][j] * σ_i * σ_j
    - Portfolio Return: R_p = Σ(w_i * r_i) * 252
    - Portfolio Volatility: σ_p = √(w^T * Σ * w) * √252
    - Sharpe Ratio: SR = (R_p - R_f) / σ_p
"""

import logging
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.stats import pearsonr

from frontier_engine.config import RISK_FREE_RATE, TRADING_DAYS_PER_YEAR
from frontier_engine.exceptions import InsufficientHistory

logger = logging.getLogger(__name__)

ArrayLike = Union[pd.Series, np.ndarray, Sequence[float]]


class QuantMetrics:
    """
    A collection of static methods for calculating quantitative financial metrics.

    All methods are static to allow for easy testing and standalone usage.
    Matrices are indexed in the order the return series are passed in, so
    index i refers to the same asset everywhere.
    """

    @staticmethod
    def compute_returns(prices: ArrayLike) -> pd.Series:
        """
        Calculate simple periodic returns from a price series.

        Formula: r_i = (p_i - p_{i-1}) / p_{i-1}, for i = 1..n-1

        Args:
            prices: Ordered prices. A pandas Series keeps its index and name.

        Returns:
            Series of n-1 returns, indexed by the later date of each pair.

        Raises:
            InsufficientHistory: If fewer than 2 prices are given.
        """
        name = prices.name if isinstance(prices, pd.Series) else None
        values = np.asarray(prices, dtype=float)

        if values.size < 2:
            raise InsufficientHistory(int(values.size), symbol=name)

        returns = (values[1:] - values[:-1]) / values[:-1]

        if isinstance(prices, pd.Series):
            return pd.Series(returns, index=prices.index[1:], name=name)
        return pd.Series(returns)

    @staticmethod
    def mean_return(returns: ArrayLike) -> float:
        """Arithmetic mean of a return series."""
        values = np.asarray(returns, dtype=float)
        if values.size == 0:
            return float("nan")
        return float(values.mean())

    @staticmethod
    def sample_std(returns: ArrayLike) -> float:
        """
        Sample standard deviation (n - 1 denominator) of a return series.

        Returns NaN when fewer than two returns are available.
        """
        values = np.asarray(returns, dtype=float)
        if values.size < 2:
            return float("nan")
        return float(values.std(ddof=1))

    @staticmethod
    def _aligned_tail(a: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Trim two series to their most recent common length."""
        length = min(a.size, b.size)
        return a[a.size - length:], b[b.size - length:]

    @staticmethod
    def pairwise_correlation(a: ArrayLike, b: ArrayLike) -> float:
        """
        Sample correlation coefficient of two return series.

        Series of different length are compared over their most recent
        common-length tail. Returns NaN when the coefficient is undefined
        (fewer than 2 points, or either side has no variance).
        """
        x, y = QuantMetrics._aligned_tail(
            np.asarray(a, dtype=float), np.asarray(b, dtype=float)
        )
        if x.size < 2:
            return float("nan")
        if not (np.isfinite(x).all() and np.isfinite(y).all()):
            return float("nan")
        if np.ptp(x) == 0 or np.ptp(y) == 0:
            return float("nan")

        correlation = pearsonr(x, y)[0]
        return float(np.clip(correlation, -1.0, 1.0))

    @staticmethod
    def correlation_matrix(
        returns_list: Sequence[ArrayLike],
        labels: Optional[Sequence[str]] = None
    ) -> np.ndarray:
        """
        Build the correlation matrix of several return series.

        Only the upper triangle (i < j) is computed; each value is mirrored
        into the lower triangle and the diagonal is 1 by construction.
        Undefined pairs are set to 0.0.

        Args:
            returns_list: One return series per asset.
            labels: Optional asset names used in log messages.

        Returns:
            Symmetric n x n matrix with unit diagonal and entries in [-1, 1].
        """
        n = len(returns_list)
        matrix = np.eye(n)

        for i in range(n):
            for j in range(i + 1, n):
                correlation = QuantMetrics.pairwise_correlation(
                    returns_list[i], returns_list[j]
                )
                if np.isnan(correlation):
                    name_i = labels[i] if labels else i
                    name_j = labels[j] if labels else j
                    logger.warning(
                        f"Correlation of {name_i} and {name_j} is undefined; using 0.0"
                    )
                    correlation = 0.0
                matrix[i, j] = correlation
                matrix[j, i] = correlation

        return matrix

    @staticmethod
    def covariance_matrix(
        correlation_matrix: np.ndarray,
        standard_deviations: ArrayLike
    ) -> np.ndarray:
        """
        Derive the covariance matrix from correlations and volatilities.

        Formula: Cov[i][j] = Corr[i][j] * σ_i * σ_j

        Args:
            correlation_matrix: n x n correlation matrix.
            standard_deviations: Per-asset standard deviations (length n).

        Returns:
            Symmetric n x n covariance matrix with variances on the diagonal.

        Raises:
            ValueError: If the dimensions don't match.
        """
        corr = np.asarray(correlation_matrix, dtype=float)
        stds = np.asarray(standard_deviations, dtype=float)

        if corr.shape != (stds.size, stds.size):
            raise ValueError(
                f"Correlation matrix shape {corr.shape} doesn't match "
                f"{stds.size} standard deviations"
            )

        return corr * np.outer(stds, stds)

    @staticmethod
    def portfolio_return(
        weights: np.ndarray,
        mean_returns: np.ndarray,
        trading_days: int = TRADING_DAYS_PER_YEAR
    ) -> float:
        """
        Calculate the annualized expected portfolio return.

        Formula: R_p = Σ(w_i * r_i) * trading_days

        Args:
            weights: Array of portfolio weights (must sum to 1).
            mean_returns: Array of mean daily returns for each asset.
            trading_days: Number of trading days per year (default: 252).

        Returns:
            Annualized expected portfolio return as a decimal.

        Example:
            >>> weights = np.array([0.5, 0.5])
            >>> mean_returns = np.array([0.001, 0.002])
            >>> QuantMetrics.portfolio_return(weights, mean_returns)
            0.378
        """
        daily_return = np.dot(weights, mean_returns)
        return float(daily_return * trading_days)

    @staticmethod
    def portfolio_variance(weights: np.ndarray, cov_matrix: np.ndarray) -> float:
        """
        Per-period portfolio variance, the quadratic form w^T * Σ * w.

        For a one-hot weight vector selecting asset i this equals Σ[i][i].
        """
        weights = np.asarray(weights, dtype=float)
        return float(np.dot(weights.T, np.dot(cov_matrix, weights)))

    @staticmethod
    def portfolio_volatility(
        weights: np.ndarray,
        cov_matrix: np.ndarray,
        trading_days: int = TRADING_DAYS_PER_YEAR
    ) -> float:
        """
        Calculate the annualized portfolio volatility (standard deviation).

        Formula: σ_p = √(w^T * Σ * w) * √(trading_days)

        Args:
            weights: Array of portfolio weights (must sum to 1).
            cov_matrix: Covariance matrix of daily returns (n x n).
            trading_days: Number of trading days per year (default: 252).

        Returns:
            Annualized portfolio volatility as a decimal.

        Note:
            Rounding can make the variance of a perfectly hedged portfolio
            slightly negative; it is clipped to zero.
        """
        variance = QuantMetrics.portfolio_variance(weights, cov_matrix)
        daily_volatility = np.sqrt(max(variance, 0.0)) if np.isfinite(variance) else np.nan
        return float(daily_volatility * np.sqrt(trading_days))

    @staticmethod
    def sharpe_ratio(
        portfolio_return: float,
        portfolio_volatility: float,
        risk_free_rate: float = RISK_FREE_RATE
    ) -> float:
        """
        Calculate the Sharpe Ratio of a portfolio.

        Formula: SR = (R_p - R_f) / σ_p

        Args:
            portfolio_return: Annualized portfolio return (decimal).
            portfolio_volatility: Annualized portfolio volatility (decimal).
            risk_free_rate: Annualized risk-free rate (decimal, default: 4%).

        Returns:
            Sharpe Ratio (dimensionless).

        Note:
            The ratio is undefined for a zero-volatility allocation; NaN is
            returned so that selection can skip it.
        """
        if not np.isfinite(portfolio_volatility) or portfolio_volatility <= 0:
            return float("nan")
        return float((portfolio_return - risk_free_rate) / portfolio_volatility)

    @staticmethod
    def annualize_statistics(
        mean_returns: ArrayLike,
        standard_deviations: ArrayLike,
        trading_days: int = TRADING_DAYS_PER_YEAR
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Scale per-period statistics to a yearly basis.

        Mean returns scale linearly (x 252); volatilities by the square root
        of time (x √252).
        """
        means = np.asarray(mean_returns, dtype=float) * trading_days
        stds = np.asarray(standard_deviations, dtype=float) * np.sqrt(trading_days)
        return means, stds
