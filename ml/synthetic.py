"""
Seed realistic demo price data for the clustering pipeline.
Three archetypes mirror what daily crypto histories look like:
  - flat:   stable-coin style, tiny noise around a fixed level
  - spike:  a run-up and crash early on, then a long quiet tail
  - rising: steady exponential uptrend with moderate noise
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

import numpy as np
import pandas as pd

from models.entities import REQUIRED_COLUMNS

logger = logging.getLogger(__name__)

ARCHETYPES = ("flat", "spike", "rising")


def _close_path(archetype: str, n_days: int, rng: np.random.Generator, base: float) -> np.ndarray:
    t = np.arange(n_days)
    if archetype == "flat":
        return base * (1 + rng.normal(0, 0.001, n_days))
    if archetype == "spike":
        peak = n_days // 5
        bump = 3.0 * np.exp(-0.5 * ((t - peak) / (n_days / 30)) ** 2)
        return base * (1 + bump) * (1 + rng.normal(0, 0.005, n_days))
    if archetype == "rising":
        drift = np.cumsum(rng.normal(0.006, 0.01, n_days))
        return base * np.exp(drift)
    raise ValueError(f"Unknown archetype: {archetype}")


def generate_symbol(
    symbol: str,
    archetype: str,
    n_days: int = 400,
    start: str = "2020-01-01",
    seed: int = 0,
    base_price: float = 100.0,
) -> pd.DataFrame:
    """One symbol's daily OHLCV rows in the long price-table schema."""
    rng = np.random.default_rng(seed)
    close = _close_path(archetype, n_days, rng, base_price)

    # Open is yesterday's close with a small gap
    open_ = np.empty(n_days)
    open_[0] = close[0]
    open_[1:] = close[:-1] * (1 + rng.normal(0, 0.002, n_days - 1))

    spread = np.abs(rng.normal(0, 0.01, n_days)) * close
    high = np.maximum(open_, close) + spread
    low = np.maximum(np.minimum(open_, close) - spread, close * 0.5)
    volume = rng.integers(1_000_000, 5_000_000, n_days).astype(float)

    first = datetime.strptime(start, "%Y-%m-%d")
    dates = [first + timedelta(days=i) for i in range(n_days)]

    return pd.DataFrame({
        "symbol": symbol,
        "date": pd.to_datetime(dates),
        "open": open_,
        "high": high,
        "low": low,
        "close": close,
        "volume": volume,
    })[REQUIRED_COLUMNS]


def generate_universe(
    per_archetype: int = 2,
    n_days: int = 400,
    start: str = "2020-01-01",
    seed: int = 42,
    base_price: float = 100.0,
) -> pd.DataFrame:
    """
    Long price table with `per_archetype` symbols of each archetype.

    Symbols are named like FLAT-1, SPIKE-2, RISING-1. The same seed always
    produces the same table.
    """
    frames = []
    for a_idx, archetype in enumerate(ARCHETYPES):
        for i in range(per_archetype):
            symbol = f"{archetype.upper()}-{i + 1}"
            frames.append(generate_symbol(
                symbol,
                archetype,
                n_days=n_days,
                start=start,
                seed=seed + 100 * a_idx + i,
                base_price=base_price,
            ))

    df = pd.concat(frames, ignore_index=True)
    logger.info(f"Generated {df['symbol'].nunique()} synthetic symbols x {n_days} days")
    return df
