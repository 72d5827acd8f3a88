"""
Data models for cluster assignments, performance, recommendations and forecasts.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd


# Columns of the raw long price table
KEY_COLUMNS = ["symbol", "date"]
PRICE_COLUMNS = ["open", "high", "low", "close", "volume"]
REQUIRED_COLUMNS = KEY_COLUMNS + PRICE_COLUMNS

# Rows missing any of these are dropped before feature computation
CRITICAL_COLUMNS = ["open", "high", "low", "close", "volume"]

DERIVED_COLUMNS = [
    "daily_return",
    "volatility",
    "ma_short",
    "ma_long",
    "high_low_range",
    "normalized_volume",
]

# Numeric inputs of the PCA projection (fixed schema, date/symbol excluded)
FEATURE_COLUMNS = PRICE_COLUMNS + DERIVED_COLUMNS

COMPONENT_COLUMNS = ["component_1", "component_2"]


class Recommendation(Enum):
    BUY = "Buy"
    SELL = "Sell"
    HOLD = "Hold"


@dataclass(frozen=True)
class DataQualityReport:
    """Counts of input rows and symbols the pipeline had to leave out."""

    input_rows: int = 0
    dropped_rows: int = 0              # missing price / volume / date
    duplicate_rows: int = 0            # repeated (symbol, date)
    retained_rows: int = 0             # feature rows after rolling windows
    excluded_symbols: tuple[str, ...] = ()   # too short for the rolling windows

    @property
    def excluded_count(self) -> int:
        return len(self.excluded_symbols)


@dataclass(frozen=True)
class ClusterAssignment:
    """Result of one clustering run: symbol → cluster id in 1..k."""

    labels: dict[str, int]
    k: int
    medoids: dict[int, str] = field(default_factory=dict)
    iterations: int = 0
    converged: bool = True
    total_cost: float = 0.0

    @property
    def symbols(self) -> list[str]:
        return sorted(self.labels)

    @property
    def cluster_ids(self) -> list[int]:
        return list(range(1, self.k + 1))

    def members(self, cluster_id: int) -> list[str]:
        return sorted(s for s, c in self.labels.items() if c == cluster_id)

    def sizes(self) -> dict[int, int]:
        return {c: len(self.members(c)) for c in self.cluster_ids}

    def as_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"symbol": self.symbols, "cluster": [self.labels[s] for s in self.symbols]}
        )


@dataclass(frozen=True)
class ClusterPerformance:
    """Pooled trailing-window statistics for one cluster."""

    cluster_id: int
    cumulative_return: float           # prod(1 + r/100) - 1
    volatility: float                  # sample stdev of daily returns (%)
    momentum: float                    # mean daily return (%)
    n_observations: int = 0


@dataclass(frozen=True)
class ClusterRecommendation:
    """Tier scores and the resulting label for one cluster."""

    cluster_id: int
    # None when the metric has no tier (undefined statistic)
    return_score: Optional[int]
    volatility_score: Optional[int]
    momentum_score: Optional[int]
    overall_score: Optional[int]
    label: Recommendation

    def __repr__(self):
        return (
            f"ClusterRecommendation(cluster={self.cluster_id}, "
            f"{self.label.value}, score={self.overall_score} "
            f"[R{self.return_score}/V{self.volatility_score}/M{self.momentum_score}])"
        )


@dataclass(frozen=True)
class ClusterTimeSeries:
    """Daily cross-sectional mean close of a cluster's members."""

    cluster_id: int
    dates: pd.DatetimeIndex
    values: np.ndarray
    seasonal_period: int = 365
    start_position: tuple[int, int] = (0, 0)   # (year, day of year) of the first date

    def __len__(self) -> int:
        return len(self.values)

    @property
    def last_date(self) -> pd.Timestamp:
        return self.dates[-1]

    def to_series(self) -> pd.Series:
        return pd.Series(self.values, index=self.dates, name=f"cluster_{self.cluster_id}")


@dataclass(frozen=True)
class ForecastPoint:
    date: pd.Timestamp
    point_forecast: float
    lower_80: float
    upper_80: float
    lower_95: float
    upper_95: float


@dataclass(frozen=True)
class ForecastResult:
    """Point and interval forecasts for one cluster over the horizon."""

    cluster_id: int
    points: tuple[ForecastPoint, ...]
    order: tuple[int, int, int] = (0, 0, 0)
    seasonal_order: tuple[int, int, int, int] = (0, 0, 0, 0)
    include_constant: bool = False
    criterion: Optional[float] = None  # AICc of the selected model

    def __len__(self) -> int:
        return len(self.points)

    @property
    def model_label(self) -> str:
        p, d, q = self.order
        P, D, Q, m = self.seasonal_order
        label = f"ARIMA({p},{d},{q})"
        if P or D or Q:
            label += f"({P},{D},{Q})[{m}]"
        if self.include_constant:
            label += " with constant"
        return label

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "cluster": self.cluster_id,
                    "date": p.date,
                    "point_forecast": p.point_forecast,
                    "lower_80": p.lower_80,
                    "upper_80": p.upper_80,
                    "lower_95": p.lower_95,
                    "upper_95": p.upper_95,
                }
                for p in self.points
            ]
        )

