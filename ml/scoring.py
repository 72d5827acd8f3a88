"""
Cluster Performance Scoring
============================
Trailing-window return / volatility / momentum per cluster, ranked into
tiers and mapped to a Buy / Sell / Hold recommendation.

Daily returns of every member symbol are pooled into one sample per cluster
(no portfolio weighting).
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

import numpy as np
import pandas as pd

import config
from models.entities import (
    ClusterAssignment,
    ClusterPerformance,
    ClusterRecommendation,
    Recommendation,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════
#  Trailing Window
# ══════════════════════════════════════════════════════════

def join_clusters(feature_df: pd.DataFrame, assignment: ClusterAssignment) -> pd.DataFrame:
    """Attach the cluster id to every feature row; unassigned symbols are dropped."""
    clusters = assignment.as_frame()
    joined = feature_df.merge(clusters, on="symbol", how="inner")

    unassigned = sorted(set(feature_df["symbol"]) - set(clusters["symbol"]))
    if unassigned:
        logger.warning(
            f"{len(unassigned)} symbols have no cluster and are excluded: "
            f"{', '.join(unassigned)}"
        )
    return joined


def recent_window(
    feature_df: pd.DataFrame,
    assignment: ClusterAssignment,
    window_days: int = None,
) -> pd.DataFrame:
    """Clustered rows with date > (latest date - window_days)."""
    window_days = window_days or config.RECENT_WINDOW_DAYS
    joined = join_clusters(feature_df, assignment)
    if joined.empty:
        return joined
    start = joined["date"].max() - timedelta(days=window_days)
    recent = joined[(joined["date"] > start) & joined["daily_return"].notna()]
    return recent.sort_values(["date", "symbol"]).reset_index(drop=True)


# ══════════════════════════════════════════════════════════
#  Performance Metrics
# ══════════════════════════════════════════════════════════

def compute_cluster_performance(
    feature_df: pd.DataFrame,
    assignment: ClusterAssignment,
    window_days: int = None,
) -> tuple[list[ClusterPerformance], list[int]]:
    """
    Pooled trailing-window statistics per cluster.

    Returns (performances ordered by cluster id, cluster ids with no rows
    in the window). Empty clusters are reported, not fatal.
    """
    window_days = window_days or config.RECENT_WINDOW_DAYS
    recent = recent_window(feature_df, assignment, window_days)

    performances = []
    empty = []
    for cluster_id in assignment.cluster_ids:
        returns = recent.loc[recent["cluster"] == cluster_id, "daily_return"].to_numpy(dtype=float)
        if len(returns) == 0:
            empty.append(cluster_id)
            continue

        performances.append(ClusterPerformance(
            cluster_id=cluster_id,
            cumulative_return=float(np.prod(1 + returns / 100) - 1),
            volatility=float(np.std(returns, ddof=1)) if len(returns) > 1 else float("nan"),
            momentum=float(np.mean(returns)),
            n_observations=len(returns),
        ))

    if empty:
        logger.warning(
            f"Clusters {empty} have no observations in the last {window_days} days "
            f"and are left out of scoring"
        )
    return performances, empty


# ══════════════════════════════════════════════════════════
#  Tiers & Recommendations
# ══════════════════════════════════════════════════════════

def ntile(values, n_tiles: int = None) -> np.ndarray:
    """
    Split values into n_tiles rank groups numbered 1..n_tiles (ascending).

    Ties keep input order. When the count does not divide evenly the lower
    tiles take one extra member. NaN values get no tile (NaN in the float
    result) and are left out of the tile sizes.
    """
    n_tiles = n_tiles or config.SCORE_TIERS
    values = np.asarray(values, dtype=float)
    tiles = np.full(len(values), np.nan)

    present = np.flatnonzero(~np.isnan(values))
    n = len(present)
    if n == 0:
        return tiles

    order = present[np.lexsort((present, values[present]))]

    small, large = divmod(n, n_tiles)
    cut = large * (small + 1)

    for rank, idx in enumerate(order):
        if rank < cut:
            tiles[idx] = rank // (small + 1) + 1
        else:
            tiles[idx] = large + (rank - cut) // small + 1
    return tiles


def classify_score(
    overall_score: int,
    buy_threshold: int = None,
    sell_threshold: int = None,
) -> Recommendation:
    """overall >= buy → Buy, overall <= sell → Sell, otherwise Hold."""
    buy_threshold = buy_threshold if buy_threshold is not None else config.BUY_THRESHOLD
    sell_threshold = sell_threshold if sell_threshold is not None else config.SELL_THRESHOLD
    if overall_score >= buy_threshold:
        return Recommendation.BUY
    if overall_score <= sell_threshold:
        return Recommendation.SELL
    return Recommendation.HOLD


def score_clusters(
    performances: list[ClusterPerformance],
    buy_threshold: int = None,
    sell_threshold: int = None,
    n_tiles: int = None,
) -> list[ClusterRecommendation]:
    """
    Rank clusters on each metric and derive the recommendation.

    Higher return, lower volatility and higher momentum score higher.
    """
    if not performances:
        return []

    ordered = sorted(performances, key=lambda p: p.cluster_id)
    return_scores = ntile([p.cumulative_return for p in ordered], n_tiles)
    volatility_scores = ntile([-p.volatility for p in ordered], n_tiles)
    momentum_scores = ntile([p.momentum for p in ordered], n_tiles)

    recommendations = []
    for perf, r, v, m in zip(ordered, return_scores, volatility_scores, momentum_scores):
        # A metric without a tile (e.g. one-row volatility) leaves the score undefined → Hold
        if np.isnan([r, v, m]).any():
            overall = None
            label = Recommendation.HOLD
        else:
            overall = int(r + v + m)
            label = classify_score(overall, buy_threshold, sell_threshold)
        recommendations.append(ClusterRecommendation(
            cluster_id=perf.cluster_id,
            return_score=_tile(r),
            volatility_score=_tile(v),
            momentum_score=_tile(m),
            overall_score=overall,
            label=label,
        ))

    for rec in recommendations:
        logger.info(f"Cluster {rec.cluster_id}: score {rec.overall_score} → {rec.label.value}")
    return recommendations


def _tile(value: float) -> Optional[int]:
    return None if np.isnan(value) else int(value)
