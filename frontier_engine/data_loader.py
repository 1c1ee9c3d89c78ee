"""
Historical Price Data Module.

This module supplies the price history consumed by the optimizer. Prices are
downloaded with the yfinance library, cached per (symbol, output size) for a
fixed time-to-live, and replaced by a synthetic random walk whenever the
upstream source fails, so the optimizer always receives a usable series.

Features:
    - Download adjusted close prices from Yahoo Finance
    - TTL + LRU cache with a single upstream request per key in flight
    - Seedable synthetic fallback series (one simulated trading year)
    - Concurrent fetching of several symbols
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date, timedelta
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import yfinance as yf

from frontier_engine.config import (
    CACHE_MAX_ENTRIES,
    CACHE_TTL_SECONDS,
    COMPACT_OUTPUT_POINTS,
    DEFAULT_OUTPUT_SIZE,
    FETCH_MAX_WORKERS,
    OUTPUT_SIZE_PERIODS,
    SYNTHETIC_SERIES_PARAMETERS,
    SYNTHETIC_TRADING_DAYS,
)
from frontier_engine.cache import TTLCache
from frontier_engine.exceptions import DataUnavailable

logger = logging.getLogger(__name__)

# (symbol, output_size) -> price series
SeriesFetcher = Callable[[str, str], pd.Series]


class SeriesParameters(NamedTuple):
    """Random walk parameters of a synthetic price series."""
    base: float
    volatility: float
    trend: float


def validate_price_series(series: pd.Series, symbol: str) -> pd.Series:
    """
    Check that a series is a well-formed price history.

    Args:
        series: Prices indexed by date.
        symbol: Ticker used in error messages.

    Returns:
        The series, unchanged.

    Raises:
        DataUnavailable: If the series is empty, has missing or non-positive
            prices, or its dates are not strictly increasing.
    """
    if series is None or len(series) == 0:
        raise DataUnavailable(symbol, "empty price series")

    values = series.to_numpy(dtype=float)
    if not np.all(np.isfinite(values)):
        raise DataUnavailable(symbol, "price series contains missing values")
    if np.any(values <= 0):
        raise DataUnavailable(symbol, "price series contains non-positive prices")
    if not series.index.is_monotonic_increasing or not series.index.is_unique:
        raise DataUnavailable(symbol, "dates are not strictly increasing")

    return series


def price_series_to_records(series: pd.Series) -> List[Dict]:
    """
    Convert a price series to ``[{"date": "YYYY-MM-DD", "price": float}]``.

    Real and synthetic series produce the same shape.
    """
    return [
        {"date": pd.Timestamp(idx).strftime("%Y-%m-%d"), "price": float(price)}
        for idx, price in series.items()
    ]


class YahooFinanceFetcher:
    """
    Downloads adjusted close prices from Yahoo Finance.

    Instances are callables matching the ``SeriesFetcher`` signature so they
    can be swapped for any other upstream source (or a stub in tests).
    """

    def __init__(self, periods: Optional[Dict[str, str]] = None) -> None:
        self.periods: Dict[str, str] = periods if periods else dict(OUTPUT_SIZE_PERIODS)

    def __call__(self, symbol: str, output_size: str) -> pd.Series:
        """
        Download price history for a single ticker.

        Args:
            symbol: Stock ticker symbol.
            output_size: "compact" for the last 100 points, "full" for all.

        Returns:
            Series of adjusted close prices indexed by date.

        Raises:
            DataUnavailable: On any download failure or empty response.
        """
        period = self.periods.get(output_size)
        if period is None:
            raise DataUnavailable(symbol, f"unknown output size {output_size!r}")

        try:
            hist = yf.Ticker(symbol).history(period=period, auto_adjust=True)

            if hist is None or hist.empty or "Close" not in hist:
                raise DataUnavailable(symbol, "API limit reached or invalid symbol")

            prices = hist["Close"].dropna()

            # Remove timezone info for consistent date comparisons
            if prices.index.tz is not None:
                prices.index = prices.index.tz_localize(None)

            prices = prices[~prices.index.duplicated(keep="last")].sort_index()
            if output_size == "compact":
                prices = prices.iloc[-COMPACT_OUTPUT_POINTS:]

            prices.index.name = "date"
            prices.name = symbol
            return prices.astype(float)
        except DataUnavailable:
            raise
        except Exception as e:
            raise DataUnavailable(symbol, str(e)) from e


class SyntheticSeriesGenerator:
    """
    Generates a synthetic daily price history as a fallback.

    Each series is a geometric random walk over ``SYNTHETIC_TRADING_DAYS``
    consecutive calendar days ending today:

        price_t = price_{t-1} * (1 + U(-0.5, 0.5) * volatility + trend)

    starting from the symbol's base price. Unknown symbols use the DEFAULT
    parameters.

    Example:
        >>> generator = SyntheticSeriesGenerator(seed=7)
        >>> series = generator.generate("ZZZZ")
        >>> len(series)
        252
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        today: Optional[date] = None,
        parameters: Optional[Dict[str, Tuple[float, float, float]]] = None,
        num_days: int = SYNTHETIC_TRADING_DAYS
    ) -> None:
        self._rng = np.random.default_rng(seed)
        self._rng_lock = threading.Lock()
        self._today = today
        self.parameters = parameters if parameters else SYNTHETIC_SERIES_PARAMETERS
        self.num_days = num_days

    def parameters_for(self, symbol: str) -> SeriesParameters:
        """Return the random walk parameters for ``symbol``."""
        params = self.parameters.get(symbol, self.parameters["DEFAULT"])
        return SeriesParameters(*params)

    def generate(self, symbol: str) -> pd.Series:
        """
        Generate a synthetic price series for ``symbol``.

        Args:
            symbol: Ticker symbol (selects the walk parameters).

        Returns:
            Series of ``num_days`` prices with strictly increasing dates.
        """
        params = self.parameters_for(symbol)

        with self._rng_lock:
            draws = self._rng.random(self.num_days) - 0.5

        growth = 1.0 + draws * params.volatility + params.trend
        prices = params.base * np.cumprod(growth)

        end = self._today if self._today is not None else date.today()
        start = end - timedelta(days=self.num_days - 1)
        index = pd.date_range(start=start, periods=self.num_days, freq="D", name="date")

        return pd.Series(prices, index=index, name=symbol)


class HistoricalDataProvider:
    """
    Supplies price history per symbol with caching and synthetic fallback.

    Upstream failures never reach the caller: a ``DataUnavailable`` raised by
    the fetcher is logged and answered with a synthetic series. Only genuine
    upstream data is cached, so the next request after a failure retries the
    upstream source.

    Concurrent requests for the same uncached key share one upstream call.

    Attributes:
        cache: Cache of downloaded series keyed by (symbol, output_size).
        fetch_count: Number of upstream calls made so far.

    Example:
        >>> provider = HistoricalDataProvider()
        >>> prices = provider.fetch_historical_data("AAPL")
        >>> series_list = provider.fetch_many(["AAPL", "MSFT"])
    """

    def __init__(
        self,
        fetcher: Optional[SeriesFetcher] = None,
        generator: Optional[SyntheticSeriesGenerator] = None,
        cache: Optional[TTLCache] = None,
        cache_ttl: float = CACHE_TTL_SECONDS,
        cache_max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
        max_workers: int = FETCH_MAX_WORKERS
    ) -> None:
        self.fetcher: SeriesFetcher = fetcher if fetcher is not None else YahooFinanceFetcher()
        self.generator = generator if generator is not None else SyntheticSeriesGenerator()
        self.cache = cache if cache is not None else TTLCache(cache_ttl, cache_max_entries, clock)
        self.max_workers = max_workers
        self.fetch_count: int = 0

        self._lock = threading.Lock()
        self._in_flight: Dict[Tuple[str, str], Future] = {}

    def fetch_historical_data(
        self,
        symbol: str,
        output_size: str = DEFAULT_OUTPUT_SIZE
    ) -> pd.Series:
        """
        Return the price history of ``symbol``.

        Args:
            symbol: Ticker symbol.
            output_size: "compact" or "full".

        Returns:
            Series of prices indexed by strictly increasing dates. Real and
            synthetic data have the same shape.
        """
        key = (symbol, output_size)

        with self._lock:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for {symbol} ({output_size})")
                return cached.copy()

            pending = self._in_flight.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._in_flight[key] = pending

        if not owner:
            logger.debug(f"Waiting for in-flight request for {symbol} ({output_size})")
            return pending.result().copy()

        try:
            series = self._load(symbol, output_size)
            pending.set_result(series)
        except BaseException as e:
            pending.set_exception(e)
            raise
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

        return series.copy()

    def _load(self, symbol: str, output_size: str) -> pd.Series:
        """Fetch from upstream and cache, or fall back to synthetic data."""
        with self._lock:
            self.fetch_count += 1

        try:
            series = validate_price_series(self.fetcher(symbol, output_size), symbol)
        except DataUnavailable as e:
            logger.warning(f"Error fetching data for {symbol}: {e.reason}. Using synthetic data.")
            return self.generator.generate(symbol)

        self.cache.set((symbol, output_size), series)
        logger.info(f"Successfully downloaded {symbol} ({len(series)} points)")
        return series

    def fetch_many(
        self,
        symbols: Sequence[str],
        output_size: str = DEFAULT_OUTPUT_SIZE
    ) -> List[pd.Series]:
        """
        Fetch several symbols concurrently.

        Returns:
            List of price series in the same order as ``symbols``.
        """
        if not symbols:
            return []

        workers = max(1, min(self.max_workers, len(symbols)))
        logger.info(f"Fetching price history for {len(symbols)} symbols...")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="prices") as executor:
            return list(
                executor.map(lambda s: self.fetch_historical_data(s, output_size), symbols)
            )
