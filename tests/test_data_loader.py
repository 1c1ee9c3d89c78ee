"""
Unit Tests for the Historical Price Data Module.

Upstream market data is replaced by injected fetchers so the tests run
offline and can count upstream calls.

Run with: pytest tests/test_data_loader.py -v
"""

import threading
import time
from datetime import date

import numpy as np
import pandas as pd
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from frontier_engine import data_loader
from frontier_engine.data_loader import (
    HistoricalDataProvider,
    SyntheticSeriesGenerator,
    YahooFinanceFetcher,
    price_series_to_records,
    validate_price_series,
)
from frontier_engine.exceptions import DataUnavailable


def make_series(symbol: str, n: int = 50, start: float = 100.0) -> pd.Series:
    """Deterministic upward-sloping price series."""
    index = pd.date_range("2024-01-01", periods=n, freq="B", name="date")
    return pd.Series(np.linspace(start, start * 1.2, n), index=index, name=symbol)


class CountingFetcher:
    """Fetcher stub that records every upstream call."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def __call__(self, symbol: str, output_size: str) -> pd.Series:
        self.calls.append((symbol, output_size))
        if self.fail:
            raise DataUnavailable(symbol, "API limit reached or invalid symbol")
        return make_series(symbol)


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestSyntheticSeriesGenerator:
    """Tests for the synthetic fallback generator."""

    def test_unknown_symbol_uses_default_parameters(self):
        """Unrecognized symbols use base=100, volatility=0.025, trend=0.0002."""
        generator = SyntheticSeriesGenerator(seed=1)

        params = generator.parameters_for("ZZZZ")

        assert params.base == 100.0
        assert params.volatility == 0.025
        assert params.trend == 0.0002

    def test_known_symbol_parameters(self):
        params = SyntheticSeriesGenerator(seed=1).parameters_for("TSLA")
        assert (params.base, params.volatility, params.trend) == (250.0, 0.05, 0.0005)

    def test_exactly_252_increasing_points_ending_today(self):
        today = date(2025, 6, 30)
        generator = SyntheticSeriesGenerator(seed=1, today=today)

        series = generator.generate("ZZZZ")

        assert len(series) == 252
        assert series.index.is_monotonic_increasing
        assert series.index.is_unique
        assert series.index[-1] == pd.Timestamp(today)
        assert (series.index[1:] - series.index[:-1]).days.tolist() == [1] * 251
        assert np.all(series.values > 0)
        assert series.name == "ZZZZ"

    def test_random_walk_formula(self):
        """Each price is the previous one times (1 + U(-0.5, 0.5) * vol + trend)."""
        generator = SyntheticSeriesGenerator(seed=42)
        series = generator.generate("ZZZZ")

        draws = np.random.default_rng(42).random(252) - 0.5
        expected = np.empty(252)
        price = 100.0
        for i, u in enumerate(draws):
            price *= 1 + u * 0.025 + 0.0002
            expected[i] = price

        assert np.allclose(series.values, expected, rtol=1e-12)

    def test_seeded_generators_are_reproducible(self):
        a = SyntheticSeriesGenerator(seed=9, today=date(2025, 1, 1)).generate("AAPL")
        b = SyntheticSeriesGenerator(seed=9, today=date(2025, 1, 1)).generate("AAPL")
        pd.testing.assert_series_equal(a, b)


class TestValidatePriceSeries:
    """Tests for upstream series validation."""

    def test_valid_series_passes(self):
        series = make_series("AAPL")
        assert validate_price_series(series, "AAPL") is series

    def test_non_positive_price_rejected(self):
        series = make_series("AAPL")
        series.iloc[3] = 0.0
        with pytest.raises(DataUnavailable):
            validate_price_series(series, "AAPL")

    def test_unsorted_dates_rejected(self):
        series = make_series("AAPL").iloc[::-1]
        with pytest.raises(DataUnavailable):
            validate_price_series(series, "AAPL")

    def test_empty_rejected(self):
        with pytest.raises(DataUnavailable):
            validate_price_series(pd.Series([], dtype=float), "AAPL")


class TestProviderCaching:
    """Tests for caching in HistoricalDataProvider."""

    def test_second_fetch_within_ttl_hits_cache(self):
        """Same key within the TTL returns identical data with one upstream call."""
        fetcher = CountingFetcher()
        provider = HistoricalDataProvider(fetcher=fetcher, clock=FakeClock())

        first = provider.fetch_historical_data("AAPL", "compact")
        second = provider.fetch_historical_data("AAPL", "compact")

        assert len(fetcher.calls) == 1
        assert provider.fetch_count == 1
        pd.testing.assert_series_equal(first, second)

    def test_fetch_after_ttl_goes_upstream(self):
        fetcher = CountingFetcher()
        clock = FakeClock()
        provider = HistoricalDataProvider(fetcher=fetcher, cache_ttl=3600, clock=clock)

        provider.fetch_historical_data("AAPL")
        clock.now += 3601
        provider.fetch_historical_data("AAPL")

        assert len(fetcher.calls) == 2

    def test_output_size_is_part_of_key(self):
        fetcher = CountingFetcher()
        provider = HistoricalDataProvider(fetcher=fetcher)

        provider.fetch_historical_data("AAPL", "compact")
        provider.fetch_historical_data("AAPL", "full")

        assert fetcher.calls == [("AAPL", "compact"), ("AAPL", "full")]

    def test_caller_mutation_does_not_alter_cache(self):
        provider = HistoricalDataProvider(fetcher=CountingFetcher())

        first = provider.fetch_historical_data("AAPL")
        original = first.copy()
        first.iloc[0] = -1.0

        second = provider.fetch_historical_data("AAPL")
        pd.testing.assert_series_equal(second, original)

    def test_lru_capacity(self):
        fetcher = CountingFetcher()
        provider = HistoricalDataProvider(fetcher=fetcher, cache_max_entries=1)

        provider.fetch_historical_data("AAPL")
        provider.fetch_historical_data("MSFT")
        provider.fetch_historical_data("AAPL")

        assert len(fetcher.calls) == 3


class TestProviderFallback:
    """Tests for the synthetic fallback on upstream failure."""

    def test_failure_returns_synthetic_series(self):
        fetcher = CountingFetcher(fail=True)
        provider = HistoricalDataProvider(
            fetcher=fetcher, generator=SyntheticSeriesGenerator(seed=3)
        )

        series = provider.fetch_historical_data("ZZZZ")

        assert len(series) == 252
        assert series.index.is_monotonic_increasing

    def test_synthetic_series_is_not_cached(self):
        """After a failure the next request retries upstream."""
        fetcher = CountingFetcher(fail=True)
        provider = HistoricalDataProvider(fetcher=fetcher)

        provider.fetch_historical_data("ZZZZ")
        provider.fetch_historical_data("ZZZZ")

        assert len(fetcher.calls) == 2
        assert len(provider.cache) == 0

    def test_malformed_upstream_series_falls_back(self):
        def bad_fetcher(symbol, output_size):
            series = make_series(symbol)
            series.iloc[5] = -3.0
            return series

        provider = HistoricalDataProvider(fetcher=bad_fetcher)

        series = provider.fetch_historical_data("AAPL")

        assert len(series) == 252
        assert np.all(series.values > 0)

    def test_same_shape_as_real_data(self):
        """Real and synthetic series both render as date/price records."""
        real = HistoricalDataProvider(fetcher=CountingFetcher()).fetch_historical_data("A")
        fake = HistoricalDataProvider(fetcher=CountingFetcher(fail=True)).fetch_historical_data("A")

        for series in (real, fake):
            records = price_series_to_records(series)
            assert set(records[0].keys()) == {"date", "price"}
            assert isinstance(records[0]["price"], float)
            assert len(records[0]["date"]) == 10


class TestProviderConcurrency:
    """Tests for concurrent fetching."""

    def test_concurrent_requests_share_one_upstream_call(self):
        entered = threading.Event()
        release = threading.Event()
        calls = []

        def slow_fetcher(symbol, output_size):
            calls.append(symbol)
            entered.set()
            release.wait(5)
            return make_series(symbol)

        provider = HistoricalDataProvider(fetcher=slow_fetcher)
        results = [None, None]

        def worker(i):
            results[i] = provider.fetch_historical_data("AAPL")

        first = threading.Thread(target=worker, args=(0,))
        first.start()
        assert entered.wait(5)

        second = threading.Thread(target=worker, args=(1,))
        second.start()
        time.sleep(0.05)
        release.set()

        first.join(5)
        second.join(5)

        assert calls == ["AAPL"]
        pd.testing.assert_series_equal(results[0], results[1])

    def test_fetch_many_preserves_order(self):
        provider = HistoricalDataProvider(fetcher=CountingFetcher())
        symbols = ["MSFT", "AAPL", "GOOGL", "AMZN"]

        series_list = provider.fetch_many(symbols)

        assert [s.name for s in series_list] == symbols

    def test_fetch_many_empty(self):
        assert HistoricalDataProvider(fetcher=CountingFetcher()).fetch_many([]) == []


class FakeTicker:
    """Stands in for yfinance.Ticker."""

    history_frame = None
    error = None

    def __init__(self, symbol):
        self.symbol = symbol

    def history(self, period, auto_adjust):
        if FakeTicker.error is not None:
            raise FakeTicker.error
        return FakeTicker.history_frame


class TestYahooFinanceFetcher:
    """Tests for the yfinance-backed fetcher."""

    @pytest.fixture(autouse=True)
    def patch_ticker(self, monkeypatch):
        FakeTicker.history_frame = None
        FakeTicker.error = None
        monkeypatch.setattr(data_loader.yf, "Ticker", FakeTicker)

    def test_compact_trims_and_strips_timezone(self):
        index = pd.date_range("2024-01-01", periods=150, freq="B", tz="America/New_York")
        FakeTicker.history_frame = pd.DataFrame(
            {"Close": np.linspace(10, 20, 150)}, index=index
        )

        series = YahooFinanceFetcher()("AAPL", "compact")

        assert len(series) == 100
        assert series.index.tz is None
        assert series.name == "AAPL"
        assert series.iloc[-1] == 20.0

    def test_transport_error_becomes_data_unavailable(self):
        FakeTicker.error = ConnectionError("timeout")

        with pytest.raises(DataUnavailable):
            YahooFinanceFetcher()("AAPL", "compact")

    def test_empty_history_becomes_data_unavailable(self):
        FakeTicker.history_frame = pd.DataFrame()

        with pytest.raises(DataUnavailable):
            YahooFinanceFetcher()("ZZZZ", "full")

    def test_unknown_output_size(self):
        with pytest.raises(DataUnavailable):
            YahooFinanceFetcher()("AAPL", "weekly")

    def test_malformed_history_becomes_data_unavailable(self):
        index = pd.date_range("2024-01-01", periods=3, freq="B")
        FakeTicker.history_frame = pd.DataFrame(
            {"Close": ["n/a", "12.5", "oops"]}, index=index
        )

        with pytest.raises(DataUnavailable):
            YahooFinanceFetcher()("AAPL", "compact")

    def test_malformed_history_falls_back_to_synthetic(self):
        index = pd.date_range("2024-01-01", periods=3, freq="B")
        FakeTicker.history_frame = pd.DataFrame(
            {"Close": ["n/a", "12.5", "oops"]}, index=index
        )
        provider = HistoricalDataProvider(
            fetcher=YahooFinanceFetcher(),
            generator=SyntheticSeriesGenerator(seed=3),
        )

        series = provider.fetch_historical_data("AAPL", "compact")

        assert len(series) == 252
        assert provider.fetch_count == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
