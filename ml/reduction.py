"""
Dimensionality Reduction
=========================
Projects the feature table onto its top principal components after a
global (all symbols pooled) z-score standardization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

import config
from models.entities import COMPONENT_COLUMNS, FEATURE_COLUMNS

logger = logging.getLogger(__name__)


@dataclass
class ReductionResult:
    """Projected rows plus the fitted transforms."""
    reduced: pd.DataFrame                 # symbol, date, component_1, component_2
    explained_variance_ratio: np.ndarray
    scaler: StandardScaler
    pca: PCA


def standardize_features(
    feature_df: pd.DataFrame,
    columns: list[str] = None,
) -> tuple[np.ndarray, StandardScaler]:
    """Z-score every feature column using the mean/stdev of the full table."""
    columns = columns or FEATURE_COLUMNS
    X = feature_df[columns].to_numpy(dtype=float)
    scaler = StandardScaler()
    return scaler.fit_transform(X), scaler


def reduce_features(
    feature_df: pd.DataFrame,
    n_components: int = None,
    columns: list[str] = None,
) -> ReductionResult:
    """
    Standardize the feature columns and project every row onto the
    top principal components.

    Component signs are arbitrary; only relative positions carry meaning.
    """
    n_components = n_components or config.PCA_COMPONENTS
    columns = columns or FEATURE_COLUMNS

    if len(feature_df) < n_components:
        raise ValueError(
            f"PCA needs at least {n_components} feature rows, got {len(feature_df)}"
        )

    scaled, scaler = standardize_features(feature_df, columns)

    pca = PCA(n_components=n_components, svd_solver="full")
    components = pca.fit_transform(scaled)

    names = [f"component_{i + 1}" for i in range(n_components)]
    reduced = pd.DataFrame(components, columns=names)
    reduced.insert(0, "date", feature_df["date"].to_numpy())
    reduced.insert(0, "symbol", feature_df["symbol"].to_numpy())

    ratios = pca.explained_variance_ratio_
    logger.info(
        "PCA: "
        + ", ".join(f"PC{i + 1}={r:.1%}" for i, r in enumerate(ratios))
        + f" of variance over {len(columns)} features"
    )
    return ReductionResult(
        reduced=reduced,
        explained_variance_ratio=ratios,
        scaler=scaler,
        pca=pca,
    )


def to_asset_series(reduced_df: pd.DataFrame, columns: list[str] = None) -> dict[str, np.ndarray]:
    """Split projected rows into one date-ordered (n, 2) array per symbol."""
    columns = columns or COMPONENT_COLUMNS
    series = {}
    for symbol, group in reduced_df.groupby("symbol", sort=True):
        ordered = group.sort_values("date")
        series[str(symbol)] = ordered[columns].to_numpy(dtype=float)
    return series
