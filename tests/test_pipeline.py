"""End-to-end tests for the cluster pipeline."""

import numpy as np
import pandas as pd
import pytest

from ml.pipeline import ClusterPipeline, PipelineConfig
from ml.synthetic import generate_universe
from models.entities import Recommendation
from models.errors import ConfigurationError, DataQualityError


@pytest.fixture(scope="module")
def archetype_report():
    prices = generate_universe(per_archetype=1, n_days=400, start="2020-01-01", seed=11)
    pipeline = ClusterPipeline(PipelineConfig(
        n_clusters=3,
        forecast_horizon=30,
        forecast_cutoff="2020-01-01",
    ))
    return prices, pipeline.run(prices)


def test_each_archetype_gets_its_own_cluster(archetype_report):
    _, report = archetype_report
    labels = report.assignment.labels
    assert sorted(labels) == ["FLAT-1", "RISING-1", "SPIKE-1"]
    assert sorted(labels.values()) == [1, 2, 3]


def test_rising_cluster_is_buy_when_it_leads(archetype_report):
    _, report = archetype_report
    rising = report.assignment.labels["RISING-1"]
    best = max(report.performance, key=lambda p: p.cumulative_return)

    assert best.cluster_id == rising
    assert report.recommendation_for(rising).label is Recommendation.BUY


def test_report_covers_every_cluster(archetype_report):
    _, report = archetype_report
    assert [r.cluster_id for r in report.recommendations] == [1, 2, 3]
    assert report.empty_clusters == []
    assert report.data_quality.excluded_symbols == ()
    assert report.data_quality.retained_rows == len(report.features) == 3 * (400 - 29)
    assert len(report.explained_variance) == 2


def test_forecasts_cover_horizon(archetype_report):
    prices, report = archetype_report
    last_date = pd.Timestamp(prices["date"].max())

    assert sorted(report.forecasts) == [1, 2, 3]
    assert report.omitted_forecasts == {}
    for result in report.forecasts.values():
        assert len(result) == 30
        assert result.points[0].date == last_date + pd.Timedelta(days=1)
        assert result.points[-1].date == last_date + pd.Timedelta(days=30)


def test_pipeline_is_deterministic(archetype_pairs):
    pipeline = ClusterPipeline(PipelineConfig(n_clusters=3))
    first = pipeline.run(archetype_pairs, forecast=False)
    second = pipeline.run(archetype_pairs, forecast=False)

    assert first.assignment.labels == second.assignment.labels
    assert [r.label for r in first.recommendations] == [r.label for r in second.recommendations]
    assert first.cluster_series == {}
    assert first.forecasts == {}


def test_pairs_of_archetypes_partition(archetype_pairs):
    report = ClusterPipeline(PipelineConfig(n_clusters=3)).run(archetype_pairs, forecast=False)
    sizes = report.assignment.sizes()
    assert sum(sizes.values()) == 6
    assert all(size > 0 for size in sizes.values())


def test_too_many_clusters(archetype_prices):
    with pytest.raises(ConfigurationError):
        ClusterPipeline(PipelineConfig(n_clusters=4)).run(archetype_prices, forecast=False)


def test_missing_columns(archetype_prices):
    with pytest.raises(DataQualityError):
        ClusterPipeline().run(archetype_prices.drop(columns=["close"]), forecast=False)


def test_short_symbols_are_excluded(archetype_prices):
    stub = archetype_prices[archetype_prices["symbol"] == "FLAT-1"].head(15).assign(symbol="NEW-1")
    prices = pd.concat([archetype_prices, stub], ignore_index=True)

    report = ClusterPipeline(PipelineConfig(n_clusters=3)).run(prices, forecast=False)
    assert report.data_quality.excluded_symbols == ("NEW-1",)
    assert "NEW-1" not in report.assignment.labels


@pytest.mark.parametrize("overrides", [
    {"n_clusters": 0},
    {"short_window": 30, "long_window": 10},
    {"buy_threshold": 5, "sell_threshold": 6},
    {"forecast_horizon": 0},
    {"forecast_cutoff": "not-a-date"},
])
def test_invalid_config(overrides):
    with pytest.raises(ConfigurationError):
        ClusterPipeline(PipelineConfig(**overrides))


def test_missing_high_is_dropped_not_fatal(archetype_prices):
    prices = archetype_prices.copy()
    prices.loc[200, "high"] = np.nan

    report = ClusterPipeline(PipelineConfig(n_clusters=3)).run(prices, forecast=False)
    assert report.data_quality.dropped_rows == 1
    assert report.features.drop(columns=["symbol", "date"]).notna().all().all()
    assert sorted(report.assignment.labels) == ["FLAT-1", "RISING-1", "SPIKE-1"]


def test_forecasts_are_reproducible(archetype_report):
    prices, report = archetype_report
    again = ClusterPipeline(report.config).run(prices)

    assert again.assignment.labels == report.assignment.labels
    assert sorted(again.forecasts) == sorted(report.forecasts)
    for cluster_id, result in report.forecasts.items():
        repeat = again.forecasts[cluster_id]
        assert repeat.model_label == result.model_label
        pd.testing.assert_frame_equal(repeat.to_frame(), result.to_frame(), rtol=1e-8)
