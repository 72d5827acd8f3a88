"""Tests for price-table validation and feature engineering."""

import numpy as np
import pandas as pd
import pytest

from ml.features import (
    compute_asset_features,
    compute_feature_table,
    min_history,
    validate_price_table,
)
from models.entities import DERIVED_COLUMNS
from models.errors import ConfigurationError, DataQualityError


def test_validate_accepts_capitalized_headers_and_extra_columns(sample_prices):
    raw = sample_prices.rename(columns=str.capitalize)
    raw["Marketcap"] = 1.0
    raw["Unnamed: 0"] = range(len(raw))

    clean, quality = validate_price_table(raw)

    assert list(clean.columns) == ["symbol", "date", "open", "high", "low", "close", "volume"]
    assert quality.input_rows == len(raw)
    assert quality.dropped_rows == 0
    assert quality.duplicate_rows == 0


def test_validate_missing_columns_raises(sample_prices):
    raw = sample_prices.drop(columns=["volume", "high"])
    with pytest.raises(DataQualityError) as exc:
        validate_price_table(raw)
    assert set(exc.value.missing_columns) == {"high", "volume"}


def test_validate_counts_missing_and_duplicate_rows(sample_prices):
    raw = sample_prices.copy()
    raw.loc[0, "close"] = np.nan
    raw.loc[5, "volume"] = np.nan
    raw = pd.concat([raw, raw.iloc[[10, 11]]], ignore_index=True)

    clean, quality = validate_price_table(raw)

    assert quality.dropped_rows == 2
    assert quality.duplicate_rows == 2
    assert len(clean) == len(sample_prices) - 2
    assert not clean.duplicated(subset=["symbol", "date"]).any()


def test_validate_sorts_by_symbol_and_date(sample_prices):
    shuffled = sample_prices.sample(frac=1.0, random_state=3)
    clean, _ = validate_price_table(shuffled)
    for _, group in clean.groupby("symbol"):
        assert group["date"].is_monotonic_increasing


def test_min_history_defaults():
    assert min_history() == 31
    assert min_history(volatility_window=40, short_window=5, long_window=20) == 41


def test_asset_features_drop_incomplete_windows(single_asset):
    clean, _ = validate_price_table(single_asset)
    features = compute_asset_features(clean)

    # ma_long (30) is the last window to fill: first full row at index 29
    assert len(features) == len(single_asset) - 29
    assert features[DERIVED_COLUMNS].notna().all().all()
    assert features["date"].is_monotonic_increasing


def test_asset_features_values(single_asset):
    clean, _ = validate_price_table(single_asset)
    features = compute_asset_features(clean)
    last = features.iloc[-1]
    close = clean["close"].to_numpy()

    assert last["ma_long"] == pytest.approx(close[-30:].mean())
    assert last["ma_short"] == pytest.approx(close[-10:].mean())
    assert last["daily_return"] == pytest.approx((close[-1] - close[-2]) / close[-2] * 100)
    assert last["high_low_range"] == pytest.approx(last["high"] - last["low"])
    assert (features["volatility"] >= 0).all()


def test_asset_features_short_series_is_empty(single_asset):
    clean, _ = validate_price_table(single_asset.iloc[:30])
    features = compute_asset_features(clean)
    assert features.empty
    for col in DERIVED_COLUMNS:
        assert col in features.columns


def test_asset_features_shortest_valid_series(single_asset):
    clean, _ = validate_price_table(single_asset.iloc[:31])
    assert not compute_asset_features(clean).empty


def test_constant_volume_normalizes_to_zero(single_asset):
    flat = single_asset.copy()
    flat["volume"] = 1_000.0
    clean, _ = validate_price_table(flat)
    features = compute_asset_features(clean)
    assert (features["normalized_volume"] == 0.0).all()


def test_feature_table_reports_excluded_symbols(sample_prices):
    short = sample_prices[sample_prices["symbol"] == "AAA"].iloc[:20].assign(symbol="SHORT")
    raw = pd.concat([sample_prices, short], ignore_index=True)

    clean, quality = validate_price_table(raw)
    features, quality = compute_feature_table(clean, quality=quality)

    assert quality.excluded_symbols == ("SHORT",)
    assert quality.excluded_count == 1
    assert quality.retained_rows == len(features)
    assert sorted(features["symbol"].unique()) == ["AAA", "BBB", "CCC"]


def test_feature_table_window_longer_than_every_series(sample_prices):
    clean, _ = validate_price_table(sample_prices)
    with pytest.raises(ConfigurationError):
        compute_feature_table(clean, long_window=500)


def test_validate_drops_rows_missing_high_or_low(sample_prices):
    raw = sample_prices.copy()
    raw.loc[40, "high"] = np.nan
    raw.loc[70, "low"] = np.nan

    clean, quality = validate_price_table(raw)

    assert quality.dropped_rows == 2
    assert clean[["high", "low"]].notna().all().all()


def test_asset_features_never_keep_missing_range(single_asset):
    raw = single_asset.copy()
    raw.loc[45, "high"] = np.nan
    features = compute_asset_features(raw)

    assert features[DERIVED_COLUMNS].notna().all().all()
    assert len(features) == len(single_asset) - 29 - 1
