"""
Cluster Forecasting
====================
Builds one daily mean-close series per cluster and projects it with an
automatically selected ARIMA model.

Each cluster is fitted independently; a cluster whose model cannot be
fitted is omitted and reported without affecting the others.
"""

from __future__ import annotations

import logging

import pandas as pd

import config
from ml.arima import auto_arima
from ml.scoring import join_clusters
from models.entities import (
    ClusterAssignment,
    ClusterTimeSeries,
    ForecastPoint,
    ForecastResult,
)
from models.errors import ModelFitError
from utils.helpers import consecutive_dates, parallel_map

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════
#  Cluster Series
# ══════════════════════════════════════════════════════════

def build_cluster_series(
    feature_df: pd.DataFrame,
    assignment: ClusterAssignment,
    cutoff: str = None,
    seasonal_period: int = None,
) -> dict[int, ClusterTimeSeries]:
    """
    Daily cross-sectional mean close per cluster, from `cutoff` onward.

    Clusters with no rows after the cutoff are absent from the result.
    """
    cutoff = pd.Timestamp(cutoff or config.FORECAST_CUTOFF)
    seasonal_period = seasonal_period or config.SEASONAL_PERIOD

    joined = join_clusters(feature_df, assignment)
    recent = joined[joined["date"] >= cutoff]

    daily = (
        recent.groupby(["cluster", "date"])["close"]
        .mean()
        .reset_index()
        .sort_values(["cluster", "date"])
    )

    series_map = {}
    for cluster_id, group in daily.groupby("cluster", sort=True):
        dates = pd.DatetimeIndex(group["date"])
        first = dates[0]
        series_map[int(cluster_id)] = ClusterTimeSeries(
            cluster_id=int(cluster_id),
            dates=dates,
            values=group["close"].to_numpy(dtype=float),
            seasonal_period=seasonal_period,
            start_position=(first.year, first.dayofyear),
        )

    missing = [c for c in assignment.cluster_ids if c not in series_map]
    if missing:
        logger.warning(f"Clusters {missing} have no data on or after {cutoff.date()}")

    return series_map


# ══════════════════════════════════════════════════════════
#  Forecasts
# ══════════════════════════════════════════════════════════

def forecast_cluster(
    series: ClusterTimeSeries,
    last_date=None,
    horizon: int = None,
) -> ForecastResult:
    """
    Fit an automatic ARIMA model to one cluster series and forecast
    `horizon` consecutive calendar days after `last_date`.

    Raises ModelFitError when no model can be fitted.
    """
    horizon = horizon or config.FORECAST_HORIZON
    last_date = pd.Timestamp(last_date) if last_date is not None else series.last_date

    try:
        fit = auto_arima(series.values, seasonal_period=series.seasonal_period, horizon=horizon)
    except ModelFitError as e:
        e.cluster_id = series.cluster_id
        raise

    bands = fit.forecast(horizon)
    dates = consecutive_dates(last_date, horizon)

    points = tuple(
        ForecastPoint(
            date=dates[i],
            point_forecast=float(bands["point"][i]),
            lower_80=float(bands["lower_80"][i]),
            upper_80=float(bands["upper_80"][i]),
            lower_95=float(bands["lower_95"][i]),
            upper_95=float(bands["upper_95"][i]),
        )
        for i in range(horizon)
    )
    return ForecastResult(
        cluster_id=series.cluster_id,
        points=points,
        order=fit.order,
        seasonal_order=fit.seasonal_order,
        include_constant=fit.include_constant,
        criterion=fit.aicc,
    )


def _forecast_task(task):
    series, last_date, horizon = task
    try:
        return forecast_cluster(series, last_date, horizon), None
    except ModelFitError as e:
        return None, str(e)


def forecast_clusters(
    series_map: dict[int, ClusterTimeSeries],
    horizon: int = None,
    n_jobs: int = None,
) -> tuple[dict[int, ForecastResult], dict[int, str]]:
    """
    Forecast every cluster series.

    All forecasts start the day after the latest historical date across
    clusters. Returns (forecasts by cluster id, omitted cluster id → reason).
    """
    horizon = horizon or config.FORECAST_HORIZON
    n_jobs = n_jobs or config.N_JOBS
    if not series_map:
        return {}, {}

    last_date = max(s.last_date for s in series_map.values())
    cluster_ids = sorted(series_map)

    outcomes = parallel_map(
        _forecast_task,
        [(series_map[c], last_date, horizon) for c in cluster_ids],
        n_jobs=n_jobs,
    )

    forecasts, omitted = {}, {}
    for cluster_id, (result, error) in zip(cluster_ids, outcomes):
        if result is None:
            omitted[cluster_id] = error
            logger.warning(f"Forecast for cluster {cluster_id} omitted: {error}")
        else:
            forecasts[cluster_id] = result
            logger.info(
                f"Cluster {cluster_id}: {result.model_label}, "
                f"{horizon}-day forecast ends at {result.points[-1].point_forecast:,.2f}"
            )
    return forecasts, omitted
