"""Shared test fixtures."""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from ml.synthetic import generate_universe


def _ohlcv(symbol: str, close: np.ndarray, start: date, rng: np.random.Generator) -> pd.DataFrame:
    n = len(close)
    df = pd.DataFrame({
        "symbol": symbol,
        "date": [start + timedelta(days=i) for i in range(n)],
        "open": close + rng.normal(0, 0.2, n),
        "high": close + np.abs(rng.normal(0, 0.5, n)),
        "low": close - np.abs(rng.normal(0, 0.5, n)),
        "close": close,
        "volume": rng.integers(500_000, 5_000_000, n).astype(float),
    })
    # Ensure high >= close >= low
    df["high"] = df[["open", "high", "close"]].max(axis=1)
    df["low"] = df[["open", "low", "close"]].min(axis=1)
    return df


@pytest.fixture
def sample_prices() -> pd.DataFrame:
    """Three random-walk symbols, 120 days each."""
    rng = np.random.default_rng(7)
    start = date(2021, 1, 1)
    frames = []
    for symbol in ["AAA", "BBB", "CCC"]:
        close = 100 + np.cumsum(rng.normal(0, 1.5, 120))
        frames.append(_ohlcv(symbol, np.maximum(close, 10), start, rng))
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def single_asset() -> pd.DataFrame:
    """One symbol with a linear close so rolling values are easy to check."""
    rng = np.random.default_rng(1)
    close = np.linspace(100, 159, 60)
    return _ohlcv("LIN", close, date(2022, 1, 1), rng)


@pytest.fixture
def archetype_prices() -> pd.DataFrame:
    """One flat, one spike-then-flat and one rising symbol, 400 days from 2020-01-01."""
    return generate_universe(per_archetype=1, n_days=400, start="2020-01-01", seed=11)


@pytest.fixture
def archetype_pairs() -> pd.DataFrame:
    """Two symbols of each archetype."""
    return generate_universe(per_archetype=2, n_days=400, start="2020-01-01", seed=21)
