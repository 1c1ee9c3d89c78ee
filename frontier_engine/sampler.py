"""
Monte Carlo Portfolio Sampler.

Draws random long-only weight vectors and evaluates the annualized return,
risk and Sharpe ratio of each. The sampled cloud approximates the
risk/return efficient frontier; it is not an exact optimizer.

Sampling Law:
    Each weight vector is n independent U(0, 1) draws divided by their sum.
    This is NOT a uniform distribution over the weight simplex (a flat
    Dirichlet would be): it places more mass near equal weights and less in
    the corners. The law is kept as is so results stay comparable with
    earlier runs. Anyone extending the sampler should keep this bias in mind.

Parallelism:
    The requested count is split into batches. Every batch draws from its
    own generator spawned from a single SeedSequence, so no random state is
    shared between threads and a seeded run produces identical samples
    whatever the number of workers.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from frontier_engine.config import (
    RISK_FREE_RATE,
    SIMULATION_BATCH_SIZE,
    SIMULATION_MAX_WORKERS,
    TRADING_DAYS_PER_YEAR,
)
from frontier_engine.exceptions import SimulationCancelled
from frontier_engine.mathematics import QuantMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortfolioSample:
    """
    One randomly drawn portfolio.

    Attributes:
        weights: Non-negative weights summing to 1, in asset order.
        expected_return: Annualized expected return.
        risk: Annualized volatility.
        sharpe_ratio: Annualized Sharpe ratio; NaN when risk is zero.
    """
    weights: Tuple[float, ...]
    expected_return: float
    risk: float
    sharpe_ratio: float

    def to_dict(self) -> Dict:
        return {
            "weights": list(self.weights),
            "return": self.expected_return,
            "risk": self.risk,
            "sharpeRatio": self.sharpe_ratio,
        }


class MonteCarloSampler:
    """
    Generates and evaluates random portfolios.

    Attributes:
        risk_free_rate: Annual risk-free rate for the Sharpe ratio.
        trading_days: Periods per year used for annualization.
        batch_size: Portfolios evaluated per batch.
        max_workers: Threads evaluating batches concurrently.
        seed: Root seed; None draws fresh entropy on every call.

    Example:
        >>> sampler = MonteCarloSampler(seed=42)
        >>> samples = sampler.sample(mean_returns, cov_matrix, count=5000)
    """

    def __init__(
        self,
        risk_free_rate: float = RISK_FREE_RATE,
        trading_days: int = TRADING_DAYS_PER_YEAR,
        batch_size: int = SIMULATION_BATCH_SIZE,
        max_workers: int = SIMULATION_MAX_WORKERS,
        seed: Optional[int] = None
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.risk_free_rate = risk_free_rate
        self.trading_days = trading_days
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.seed = seed

    @staticmethod
    def random_weights(
        n_assets: int,
        rng: np.random.Generator,
        size: int = 1
    ) -> np.ndarray:
        """
        Draw ``size`` weight vectors of length ``n_assets``.

        Each row is n independent U(0, 1) values normalized by their sum.

        Returns:
            Array of shape (size, n_assets); every row is non-negative and
            sums to 1.
        """
        draws = rng.random((size, n_assets))
        return draws / draws.sum(axis=1, keepdims=True)

    def evaluate(
        self,
        weights: np.ndarray,
        mean_returns: np.ndarray,
        cov_matrix: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Evaluate a matrix of weight rows.

        Formulas (per row w):
            return = Σ w_i * μ_i * 252
            risk = √(Σ_i Σ_j w_i w_j Cov[i][j]) * √252
            sharpe = (return - rf) / risk

        Args:
            weights: Array of shape (m, n).
            mean_returns: Mean periodic return per asset (length n).
            cov_matrix: Periodic covariance matrix (n x n).

        Returns:
            Tuple of (annualized returns, annualized risks, Sharpe ratios),
            each of length m. Zero-risk rows get a NaN Sharpe ratio.
        """
        weights = np.atleast_2d(np.asarray(weights, dtype=float))

        returns = weights @ mean_returns * self.trading_days
        variances = np.einsum("ij,jk,ik->i", weights, cov_matrix, weights)

        # Rounding on hedged allocations can dip just below zero
        variances = np.where(variances < 0, 0.0, variances)
        risks = np.sqrt(variances) * np.sqrt(self.trading_days)

        with np.errstate(divide="ignore", invalid="ignore"):
            sharpes = np.where(
                risks > 0, (returns - self.risk_free_rate) / risks, np.nan
            )

        return returns, risks, sharpes

    def calculate_portfolio_metrics(
        self,
        weights: Sequence[float],
        mean_returns: np.ndarray,
        cov_matrix: np.ndarray
    ) -> PortfolioSample:
        """
        Evaluate a single caller-supplied allocation.

        Uses the scalar QuantMetrics formulas; ``evaluate`` is their
        vectorized counterpart for whole batches.

        Args:
            weights: Portfolio weights in asset order.
            mean_returns: Mean periodic return per asset.
            cov_matrix: Periodic covariance matrix.

        Returns:
            PortfolioSample with annualized metrics.
        """
        mean_returns, cov_matrix = self._validate_inputs(mean_returns, cov_matrix)
        weights = np.asarray(weights, dtype=float)
        if weights.shape != mean_returns.shape:
            raise ValueError(
                f"Expected {mean_returns.size} weights, got {weights.size}"
            )

        expected_return = QuantMetrics.portfolio_return(
            weights, mean_returns, self.trading_days
        )
        risk = QuantMetrics.portfolio_volatility(weights, cov_matrix, self.trading_days)
        return PortfolioSample(
            weights=tuple(weights.tolist()),
            expected_return=expected_return,
            risk=risk,
            sharpe_ratio=QuantMetrics.sharpe_ratio(
                expected_return, risk, self.risk_free_rate
            ),
        )

    @staticmethod
    def _validate_inputs(
        mean_returns: np.ndarray,
        cov_matrix: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        mean_returns = np.asarray(mean_returns, dtype=float).ravel()
        cov_matrix = np.asarray(cov_matrix, dtype=float)
        n_assets = mean_returns.size

        if n_assets == 0:
            raise ValueError("At least one asset is required.")
        if cov_matrix.shape != (n_assets, n_assets):
            raise ValueError(
                f"Covariance matrix shape {cov_matrix.shape} doesn't match "
                f"number of assets {n_assets}"
            )
        return mean_returns, cov_matrix

    def _batch_sizes(self, count: int) -> List[int]:
        full, remainder = divmod(count, self.batch_size)
        sizes = [self.batch_size] * full
        if remainder:
            sizes.append(remainder)
        return sizes

    def sample(
        self,
        mean_returns: np.ndarray,
        cov_matrix: np.ndarray,
        count: int,
        cancel_event: Optional[threading.Event] = None
    ) -> List[PortfolioSample]:
        """
        Draw and evaluate ``count`` random portfolios.

        Args:
            mean_returns: Mean periodic return per asset (length n).
            cov_matrix: Periodic covariance matrix (n x n), same asset order.
            count: Number of portfolios to draw.
            cancel_event: Optional token; when set, sampling stops before the
                next batch.

        Returns:
            List of PortfolioSample in generation order.

        Raises:
            ValueError: If count < 1 or the inputs' shapes disagree.
            SimulationCancelled: If ``cancel_event`` is set during the run.
        """
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")
        mean_returns, cov_matrix = self._validate_inputs(mean_returns, cov_matrix)
        n_assets = mean_returns.size

        sizes = self._batch_sizes(count)
        seeds = np.random.SeedSequence(self.seed).spawn(len(sizes))

        def run_batch(batch: Tuple[int, np.random.SeedSequence]):
            size, seed_seq = batch
            if cancel_event is not None and cancel_event.is_set():
                raise SimulationCancelled("Simulation cancelled between batches.")
            rng = np.random.default_rng(seed_seq)
            weights = self.random_weights(n_assets, rng, size)
            return (weights,) + self.evaluate(weights, mean_returns, cov_matrix)

        batches = list(zip(sizes, seeds))
        workers = min(self.max_workers, len(batches))
        logger.info(
            f"Sampling {count} portfolios over {n_assets} assets "
            f"({len(batches)} batches, {workers} workers)"
        )

        if workers == 1:
            results = [run_batch(batch) for batch in batches]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sampler") as executor:
                results = list(executor.map(run_batch, batches))

        samples: List[PortfolioSample] = []
        for weights, returns, risks, sharpes in results:
            for w, r, s, sr in zip(weights.tolist(), returns, risks, sharpes):
                samples.append(
                    PortfolioSample(
                        weights=tuple(w),
                        expected_return=float(r),
                        risk=float(s),
                        sharpe_ratio=float(sr),
                    )
                )
        return samples
