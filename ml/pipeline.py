"""
Cluster Pipeline — Orchestrates the full analysis run.
=======================================================
raw prices → features → PCA → DTW clusters → (scoring → recommendations)
                                           → (cluster series → forecasts)

Produces a PipelineReport holding every stage output for the report and
chart collaborators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import pandas as pd

import config
from ml.clustering import cluster_series, verify_assignment
from ml.features import compute_feature_table, validate_price_table
from ml.forecasting import build_cluster_series, forecast_clusters
from ml.reduction import reduce_features, to_asset_series
from ml.scoring import compute_cluster_performance, score_clusters
from models.entities import (
    ClusterAssignment,
    ClusterPerformance,
    ClusterRecommendation,
    ClusterTimeSeries,
    DataQualityReport,
    ForecastResult,
)
from models.errors import ConfigurationError

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════
#  Configuration
# ══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PipelineConfig:
    """Run parameters; defaults come from config.py."""
    n_clusters: int = config.N_CLUSTERS
    volatility_window: int = config.VOLATILITY_WINDOW
    short_window: int = config.MA_SHORT_WINDOW
    long_window: int = config.MA_LONG_WINDOW
    recent_window_days: int = config.RECENT_WINDOW_DAYS
    forecast_horizon: int = config.FORECAST_HORIZON
    forecast_cutoff: str = config.FORECAST_CUTOFF
    seasonal_period: int = config.SEASONAL_PERIOD
    random_seed: int = config.CLUSTER_SEED
    max_iter: int = config.CLUSTER_MAX_ITER
    buy_threshold: int = config.BUY_THRESHOLD
    sell_threshold: int = config.SELL_THRESHOLD
    n_jobs: int = config.N_JOBS

    def validate(self) -> "PipelineConfig":
        problems = []
        if self.n_clusters < 1:
            problems.append(f"n_clusters must be >= 1 (got {self.n_clusters})")
        for name in ("volatility_window", "short_window", "long_window"):
            if getattr(self, name) < 2:
                problems.append(f"{name} must be >= 2 (got {getattr(self, name)})")
        if self.short_window >= self.long_window:
            problems.append(
                f"short_window ({self.short_window}) must be below long_window ({self.long_window})"
            )
        if self.recent_window_days < 1:
            problems.append(f"recent_window_days must be >= 1 (got {self.recent_window_days})")
        if self.forecast_horizon < 1:
            problems.append(f"forecast_horizon must be >= 1 (got {self.forecast_horizon})")
        if self.seasonal_period < 1:
            problems.append(f"seasonal_period must be >= 1 (got {self.seasonal_period})")
        if self.max_iter < 1:
            problems.append(f"max_iter must be >= 1 (got {self.max_iter})")
        if self.sell_threshold >= self.buy_threshold:
            problems.append(
                f"sell_threshold ({self.sell_threshold}) must be below buy_threshold ({self.buy_threshold})"
            )
        try:
            pd.Timestamp(self.forecast_cutoff)
        except (ValueError, TypeError):
            problems.append(f"forecast_cutoff is not a date: {self.forecast_cutoff!r}")

        if problems:
            raise ConfigurationError("Invalid pipeline configuration: " + "; ".join(problems))
        return self


# ══════════════════════════════════════════════════════════
#  Report Data Structure
# ══════════════════════════════════════════════════════════

@dataclass
class PipelineReport:
    """Complete output of one pipeline run."""
    generated_at: str = ""
    config: PipelineConfig = field(default_factory=PipelineConfig)

    # ── Inputs & features ──
    data_quality: DataQualityReport = field(default_factory=DataQualityReport)
    features: pd.DataFrame = field(default_factory=pd.DataFrame)
    reduced: pd.DataFrame = field(default_factory=pd.DataFrame)
    explained_variance: tuple = ()

    # ── Clustering ──
    assignment: Optional[ClusterAssignment] = None

    # ── Scoring ──
    performance: list[ClusterPerformance] = field(default_factory=list)
    recommendations: list[ClusterRecommendation] = field(default_factory=list)
    empty_clusters: list[int] = field(default_factory=list)

    # ── Forecasts ──
    cluster_series: dict[int, ClusterTimeSeries] = field(default_factory=dict)
    forecasts: dict[int, ForecastResult] = field(default_factory=dict)
    omitted_forecasts: dict[int, str] = field(default_factory=dict)

    def recommendation_for(self, cluster_id: int) -> Optional[ClusterRecommendation]:
        for rec in self.recommendations:
            if rec.cluster_id == cluster_id:
                return rec
        return None

    def performance_for(self, cluster_id: int) -> Optional[ClusterPerformance]:
        for perf in self.performance:
            if perf.cluster_id == cluster_id:
                return perf
        return None


# ══════════════════════════════════════════════════════════
#  Main Pipeline
# ══════════════════════════════════════════════════════════

class ClusterPipeline:
    """
    Runs the complete clustering / scoring / forecasting pipeline.
    """

    def __init__(self, pipeline_config: PipelineConfig = None):
        self.config = (pipeline_config or PipelineConfig()).validate()

    def run(self, price_df: pd.DataFrame, forecast: bool = True) -> PipelineReport:
        """
        Run every stage on a raw long price table.

        Args:
            price_df: symbol, date, open, high, low, close, volume rows.
            forecast: If False, stop after the recommendations.

        Returns:
            PipelineReport with all stage outputs.
        """
        cfg = self.config
        report = PipelineReport(
            generated_at=datetime.utcnow().isoformat(),
            config=cfg,
        )

        # ── Step 1: Validate raw prices ──
        clean_df, quality = validate_price_table(price_df)
        logger.info(
            f"Loaded {quality.input_rows} rows, {clean_df['symbol'].nunique()} symbols "
            f"({quality.dropped_rows} dropped, {quality.duplicate_rows} duplicates)"
        )

        # ── Step 2: Feature engineering ──
        features, quality = compute_feature_table(
            clean_df,
            volatility_window=cfg.volatility_window,
            short_window=cfg.short_window,
            long_window=cfg.long_window,
            quality=quality,
        )
        report.data_quality = quality
        report.features = features

        symbols = sorted(features["symbol"].unique())
        if len(symbols) < cfg.n_clusters:
            raise ConfigurationError(
                f"{cfg.n_clusters} clusters requested but only {len(symbols)} symbols "
                f"have a valid feature series"
            )

        # ── Step 3: Dimensionality reduction ──
        reduction = reduce_features(features)
        report.reduced = reduction.reduced
        report.explained_variance = tuple(float(r) for r in reduction.explained_variance_ratio)

        # ── Step 4: DTW clustering ──
        series = to_asset_series(reduction.reduced)
        assignment = cluster_series(
            series,
            k=cfg.n_clusters,
            seed=cfg.random_seed,
            max_iter=cfg.max_iter,
            n_jobs=cfg.n_jobs,
        )
        verify_assignment(symbols, assignment)
        report.assignment = assignment

        # ── Step 5: Performance scoring ──
        performance, empty = compute_cluster_performance(
            features, assignment, window_days=cfg.recent_window_days,
        )
        report.performance = performance
        report.empty_clusters = empty
        report.recommendations = score_clusters(
            performance,
            buy_threshold=cfg.buy_threshold,
            sell_threshold=cfg.sell_threshold,
        )

        if not forecast:
            return report

        # ── Step 6: Forecasting ──
        report.cluster_series = build_cluster_series(
            features,
            assignment,
            cutoff=cfg.forecast_cutoff,
            seasonal_period=cfg.seasonal_period,
        )
        report.forecasts, report.omitted_forecasts = forecast_clusters(
            report.cluster_series,
            horizon=cfg.forecast_horizon,
            n_jobs=cfg.n_jobs,
        )
        for cluster_id in assignment.cluster_ids:
            if cluster_id not in report.cluster_series:
                report.omitted_forecasts[cluster_id] = (
                    f"no observations on or after {cfg.forecast_cutoff}"
                )

        return report
