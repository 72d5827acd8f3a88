"""
Feature Engineering Pipeline
=============================
Transforms the raw long OHLCV table into per-asset daily features.

Steps:
  1. Table validation  (column names, dates, missing values, duplicates)
  2. Per-symbol features (returns, rolling volatility, moving averages,
     high-low range, globally z-scored volume)
  3. Drop rows whose rolling windows are not yet full
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

import config
from models.entities import (
    CRITICAL_COLUMNS,
    DataQualityReport,
    DERIVED_COLUMNS,
    REQUIRED_COLUMNS,
)
from models.errors import ConfigurationError, DataQualityError

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════
#  Raw Table Validation
# ══════════════════════════════════════════════════════════

def validate_price_table(raw_df: pd.DataFrame) -> tuple[pd.DataFrame, DataQualityReport]:
    """
    Normalize and clean the raw price table.

    Input columns (case-insensitive): symbol, date, open, high, low, close, volume.
    Extra columns are ignored.

    Returns the cleaned table sorted by (symbol, date) and a report with the
    number of rows dropped for missing values and duplicates.
    """
    df = raw_df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataQualityError(
            f"Price table is missing required columns: {', '.join(missing)}",
            missing_columns=missing,
        )

    input_rows = len(df)
    df = df[REQUIRED_COLUMNS].copy()
    df["symbol"] = df["symbol"].astype(str)
    df["date"] = pd.to_datetime(df["date"], errors="coerce").dt.normalize()
    for col in ["open", "high", "low", "close", "volume"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df = df.dropna(subset=["date"] + CRITICAL_COLUMNS)
    dropped = input_rows - len(df)

    before_dedup = len(df)
    df = df.drop_duplicates(subset=["symbol", "date"], keep="last")
    duplicates = before_dedup - len(df)

    df = df.sort_values(["symbol", "date"]).reset_index(drop=True)

    if dropped:
        logger.warning(f"Dropped {dropped} rows with missing prices, volume or date")
    if duplicates:
        logger.warning(f"Dropped {duplicates} duplicate (symbol, date) rows")

    report = DataQualityReport(
        input_rows=input_rows,
        dropped_rows=dropped,
        duplicate_rows=duplicates,
    )
    return df, report


# ══════════════════════════════════════════════════════════
#  Per-Asset Features
# ══════════════════════════════════════════════════════════

def min_history(
    volatility_window: int = None,
    short_window: int = None,
    long_window: int = None,
) -> int:
    """Observations a symbol needs before it yields its first feature row."""
    volatility_window = volatility_window or config.VOLATILITY_WINDOW
    short_window = short_window or config.MA_SHORT_WINDOW
    long_window = long_window or config.MA_LONG_WINDOW
    return max(volatility_window, short_window, long_window) + 1


def compute_asset_features(
    asset_df: pd.DataFrame,
    volatility_window: int = None,
    short_window: int = None,
    long_window: int = None,
) -> pd.DataFrame:
    """
    Enrich one symbol's price rows with derived features.

    Input columns: symbol, date, open, high, low, close, volume (one symbol).
    Output keeps only rows where every rolling window is full, ascending by date.
    A series too short to fill the windows yields an empty frame.
    """
    volatility_window = volatility_window or config.VOLATILITY_WINDOW
    short_window = short_window or config.MA_SHORT_WINDOW
    long_window = long_window or config.MA_LONG_WINDOW

    df = asset_df.sort_values("date").reset_index(drop=True).copy()

    if len(df) < min_history(volatility_window, short_window, long_window):
        return df.iloc[0:0].reindex(columns=list(df.columns) + DERIVED_COLUMNS)

    close = df["close"]

    # ── Returns & volatility ──
    df["daily_return"] = (close - close.shift(1)) / close.shift(1) * 100
    df["volatility"] = df["daily_return"].rolling(volatility_window, min_periods=volatility_window).std()

    # ── Moving averages ──
    df["ma_short"] = close.rolling(short_window, min_periods=short_window).mean()
    df["ma_long"] = close.rolling(long_window, min_periods=long_window).mean()

    # ── Range & volume ──
    df["high_low_range"] = df["high"] - df["low"]
    volume_std = df["volume"].std()
    if volume_std > 0 and np.isfinite(volume_std):
        df["normalized_volume"] = (df["volume"] - df["volume"].mean()) / volume_std
    else:
        df["normalized_volume"] = 0.0

    df = df.dropna(subset=DERIVED_COLUMNS)
    return df.reset_index(drop=True)


def compute_feature_table(
    clean_df: pd.DataFrame,
    volatility_window: int = None,
    short_window: int = None,
    long_window: int = None,
    quality: DataQualityReport = None,
) -> tuple[pd.DataFrame, DataQualityReport]:
    """
    Run compute_asset_features for every symbol of a validated table.

    Returns the concatenated feature rows (sorted by symbol, date) and the
    data-quality report extended with the symbols that had too little history.
    """
    quality = quality or DataQualityReport(input_rows=len(clean_df))
    needed = min_history(volatility_window, short_window, long_window)

    frames = []
    excluded = []
    for symbol, asset_df in clean_df.groupby("symbol", sort=True):
        features = compute_asset_features(
            asset_df,
            volatility_window=volatility_window,
            short_window=short_window,
            long_window=long_window,
        )
        if features.empty:
            excluded.append(str(symbol))
            continue
        frames.append(features)

    if excluded:
        logger.warning(
            f"Excluded {len(excluded)} symbols with fewer than {needed} observations: "
            f"{', '.join(excluded)}"
        )

    if not frames:
        raise ConfigurationError(
            f"No symbol has the {needed} observations required by the rolling windows "
            f"(volatility={volatility_window or config.VOLATILITY_WINDOW}, "
            f"short={short_window or config.MA_SHORT_WINDOW}, "
            f"long={long_window or config.MA_LONG_WINDOW})"
        )

    feature_df = pd.concat(frames, ignore_index=True)
    feature_df = feature_df.sort_values(["symbol", "date"]).reset_index(drop=True)

    quality = DataQualityReport(
        input_rows=quality.input_rows,
        dropped_rows=quality.dropped_rows,
        duplicate_rows=quality.duplicate_rows,
        retained_rows=len(feature_df),
        excluded_symbols=tuple(excluded),
    )
    logger.info(
        f"Feature engineering: {feature_df['symbol'].nunique()} symbols, "
        f"{len(feature_df)} rows retained"
    )
    return feature_df, quality
