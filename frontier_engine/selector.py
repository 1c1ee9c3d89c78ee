"""
Frontier Selection Module.

Picks portfolios out of a Monte Carlo sample set:
    - Maximum Sharpe Ratio Portfolio: best risk-adjusted return.
    - Minimum Variance Portfolio: lowest risk regardless of return.
    - Constrained Optimum: best Sharpe ratio among portfolios whose every
      weight lies within [min_weight, max_weight].

Every selection is a single left-to-right scan with a strict comparison, so
ties always keep the first sample encountered. Samples with an undefined
Sharpe ratio or risk are skipped.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from frontier_engine.config import DEFAULT_MAX_WEIGHT, DEFAULT_MIN_WEIGHT
from frontier_engine.sampler import PortfolioSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Constraints:
    """
    Per-asset weight bounds.

    Attributes:
        min_weight: Lowest weight allowed for every asset.
        max_weight: Highest weight allowed for every asset.
    """
    min_weight: float = DEFAULT_MIN_WEIGHT
    max_weight: float = DEFAULT_MAX_WEIGHT

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "Constraints":
        """Build from ``{"minWeight", "maxWeight"}`` or snake_case keys."""
        if not data:
            return cls()
        min_weight = data.get("minWeight", data.get("min_weight", DEFAULT_MIN_WEIGHT))
        max_weight = data.get("maxWeight", data.get("max_weight", DEFAULT_MAX_WEIGHT))
        return cls(min_weight=float(min_weight), max_weight=float(max_weight))

    def admits(self, weights: Sequence[float]) -> bool:
        """True if every weight lies within [min_weight, max_weight]."""
        return all(self.min_weight <= w <= self.max_weight for w in weights)


class FrontierSelector:
    """
    Static selection rules over a list of PortfolioSample.

    Each method returns None when no sample qualifies.
    """

    @staticmethod
    def max_sharpe(samples: Sequence[PortfolioSample]) -> Optional[PortfolioSample]:
        """Return the first sample with the highest finite Sharpe ratio."""
        best: Optional[PortfolioSample] = None
        for sample in samples:
            if not math.isfinite(sample.sharpe_ratio):
                continue
            if best is None or sample.sharpe_ratio > best.sharpe_ratio:
                best = sample
        return best

    @staticmethod
    def min_variance(samples: Sequence[PortfolioSample]) -> Optional[PortfolioSample]:
        """Return the first sample with the lowest finite risk."""
        best: Optional[PortfolioSample] = None
        for sample in samples:
            if not math.isfinite(sample.risk):
                continue
            if best is None or sample.risk < best.risk:
                best = sample
        return best

    @staticmethod
    def constrained_optimum(
        samples: Sequence[PortfolioSample],
        constraints: Constraints,
        fallback: Optional[PortfolioSample]
    ) -> Optional[PortfolioSample]:
        """
        Return the max-Sharpe sample among those satisfying ``constraints``.

        When no sample satisfies the bounds (or none of those has a finite
        Sharpe ratio), ``fallback`` is returned instead.

        Args:
            samples: Candidate portfolios.
            constraints: Per-asset weight bounds.
            fallback: Portfolio to use if the bounds are infeasible,
                normally the unconstrained optimum.
        """
        admitted = [s for s in samples if constraints.admits(s.weights)]
        best = FrontierSelector.max_sharpe(admitted)

        if best is None:
            logger.info(
                f"No sampled portfolio satisfies weights in "
                f"[{constraints.min_weight}, {constraints.max_weight}]; "
                f"using the unconstrained optimum"
            )
            return fallback

        logger.info(f"{len(admitted)} of {len(samples)} portfolios satisfy the weight bounds")
        return best
