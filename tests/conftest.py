"""Pytest configuration and shared fixtures."""

import numpy as np
import pandas as pd
import pytest

from arma_diag.config import CandidateSpec, PipelineConfig


@pytest.fixture
def small_config(tmp_path) -> PipelineConfig:
    """Short window and cheap candidates so real fits stay fast."""
    return PipelineConfig(
        assets=("Alpha", "Beta", "Gamma"),
        tickers={"Alpha": "AAA", "Beta": "BBB", "Gamma": "CCC"},
        data_dir=tmp_path / "raw",
        window=400,
        test_size=80,
        candidates=(CandidateSpec(2, 0, 1), CandidateSpec(1, 0, 1), CandidateSpec(1, 0, 0)),
        max_iter=200,
        acf_nlags=20,
    )


def simulate_ar1(n, phi=0.3, sigma=0.01, seed=0):
    rng = np.random.default_rng(seed)
    eps = rng.normal(0.0, sigma, n)
    r = np.empty(n)
    r[0] = eps[0]
    for t in range(1, n):
        r[t] = phi * r[t - 1] + eps[t]
    return r


@pytest.fixture
def ar1_prices():
    """Factory: price path whose log returns follow an AR(1)."""
    def make(n, phi=0.3, sigma=0.01, seed=0, start=100.0):
        r = simulate_ar1(n - 1, phi=phi, sigma=sigma, seed=seed)
        return start * np.exp(np.concatenate([[0.0], np.cumsum(r)]))
    return make


@pytest.fixture
def write_price_file():
    """Factory: write prices in the layout yfinance.download(...).to_csv() produces."""
    def write(path, prices, ticker="TCKR"):
        prices = np.asarray(prices, dtype=float)
        index = pd.bdate_range("2008-01-01", periods=len(prices), name="Date")
        columns = pd.MultiIndex.from_product([["Adj Close", "Close", "Volume"], [ticker]],
                                             names=["Price", "Ticker"])
        df = pd.DataFrame(np.column_stack([prices, prices, np.full(len(prices), 1000.0)]),
                          index=index, columns=columns)
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path)
        return path
    return write


@pytest.fixture
def ar1_returns():
    """Factory: AR(1) return series."""
    return simulate_ar1
