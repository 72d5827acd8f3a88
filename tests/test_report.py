"""Tests for report conversions, the CSV loader and chart builders."""

import json
import math

import numpy as np
import pandas as pd
import pytest

from data.fetcher import load_price_csv
from ml.pipeline import PipelineConfig, PipelineReport
from ml.report import (
    assignments_frame,
    forecasts_frame,
    generate_cli_report,
    recommendations_frame,
    report_to_dict,
    report_to_json,
)
from models.entities import (
    ClusterAssignment,
    ClusterPerformance,
    ClusterRecommendation,
    ClusterTimeSeries,
    DataQualityReport,
    ForecastPoint,
    ForecastResult,
    Recommendation,
)
from ui.charts import build_cluster_scatter, build_forecast_chart


@pytest.fixture
def report() -> PipelineReport:
    assignment = ClusterAssignment(
        labels={"BTC": 1, "ETH": 1, "USDT": 2},
        k=2,
        medoids={1: "BTC", 2: "USDT"},
        iterations=2,
    )
    dates = pd.date_range("2024-01-01", periods=5, freq="D")
    series = ClusterTimeSeries(1, dates, np.arange(5, dtype=float) + 100, start_position=(2024, 1))
    points = tuple(
        ForecastPoint(
            date=pd.Timestamp("2024-01-06") + pd.Timedelta(days=i),
            point_forecast=105.0 + i,
            lower_80=103.0 + i, upper_80=107.0 + i,
            lower_95=101.0 + i, upper_95=109.0 + i,
        )
        for i in range(3)
    )
    reduced = pd.DataFrame({
        "symbol": ["BTC", "ETH", "USDT"],
        "date": pd.to_datetime(["2024-01-05"] * 3),
        "component_1": [1.0, 1.2, -2.0],
        "component_2": [0.1, 0.0, 0.3],
    })
    return PipelineReport(
        generated_at="2024-02-01T00:00:00",
        config=PipelineConfig(n_clusters=2, forecast_horizon=3),
        data_quality=DataQualityReport(input_rows=10, dropped_rows=1, retained_rows=9),
        reduced=reduced,
        explained_variance=(0.7, 0.2),
        assignment=assignment,
        performance=[
            ClusterPerformance(1, 0.08, 2.5, 0.26, 40),
            ClusterPerformance(2, 0.0, float("nan"), 0.0, 1),
        ],
        recommendations=[
            ClusterRecommendation(1, 3, 2, 3, 8, Recommendation.BUY),
            ClusterRecommendation(2, 1, None, 1, None, Recommendation.HOLD),
        ],
        cluster_series={1: series},
        forecasts={1: ForecastResult(1, points, order=(1, 1, 0), include_constant=True)},
        omitted_forecasts={2: "Series is constant"},
    )


def test_assignments_frame(report):
    frame = assignments_frame(report)
    assert frame.to_dict("list") == {
        "symbol": ["BTC", "ETH", "USDT"],
        "cluster": [1, 1, 2],
        "recommendation": ["Buy", "Buy", "Hold"],
    }


def test_assignments_frame_without_recommendations(report):
    report.recommendations = []
    frame = assignments_frame(report)
    assert list(frame.columns) == ["symbol", "cluster", "recommendation"]
    assert frame["recommendation"].isna().all()


def test_recommendations_frame(report):
    frame = recommendations_frame(report)
    assert frame["cluster"].tolist() == [1, 2]
    assert frame["recommendation"].tolist() == ["Buy", "Hold"]
    assert frame.loc[0, "overall_score"] == 8


def test_forecasts_frame(report):
    frame = forecasts_frame(report)
    assert len(frame) == 3
    assert list(frame.columns) == [
        "cluster", "date", "point_forecast", "lower_80", "upper_80", "lower_95", "upper_95",
    ]


def test_report_to_json_is_valid_without_nan(report):
    payload = json.loads(report_to_json(report))
    clusters = {c["cluster"]: c for c in payload["clusters"]}

    assert clusters[1]["members"] == ["BTC", "ETH"]
    assert clusters[1]["forecast"]["model"] == "ARIMA(1,1,0) with constant"
    assert clusters[1]["forecast"]["points"][0]["date"] == "2024-01-06"
    assert clusters[2]["performance"]["volatility"] is None
    assert clusters[2]["recommendation"] == "Hold"
    assert clusters[2]["scores"]["overall"] is None
    assert clusters[2]["forecast"] is None
    assert clusters[2]["forecast_omitted"] == "Series is constant"
    assert payload["data_quality"]["dropped_rows"] == 1


def test_report_to_dict_empty_report():
    payload = report_to_dict(PipelineReport())
    assert payload["clusters"] == []
    assert payload["clustering"]["k"] == 0


def test_cli_report_mentions_every_cluster(report):
    text = generate_cli_report(report)
    assert "CLUSTER 1: BUY" in text
    assert "CLUSTER 2: HOLD" in text
    assert "Score:     n/a/9 (R1 Vn/a M1)" in text
    assert "omitted" in text


def test_load_price_csv_openml_layout(tmp_path):
    path = tmp_path / "crypto.csv"
    pd.DataFrame({
        "Unnamed: 0": [0, 1],
        "SNo": [1, 2],
        "Name": ["Bitcoin", "Bitcoin"],
        "Symbol": ["BTC", "BTC"],
        "Date": ["2020-01-01 23:59:59", "2020-01-02 23:59:59"],
        "High": [2.0, 3.0],
        "Low": [1.0, 1.5],
        "Open": [1.5, 2.0],
        "Close": [1.8, 2.5],
        "Volume": [10.0, 12.0],
        "Marketcap": [100.0, 120.0],
    }).to_csv(path, index=False)

    df = load_price_csv(path)
    assert list(df.columns) == ["symbol", "date", "open", "high", "low", "close", "volume"]
    assert df["symbol"].tolist() == ["BTC", "BTC"]


def test_load_price_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_price_csv(tmp_path / "nope.csv")


def test_charts_build(report):
    scatter = build_cluster_scatter(report.reduced, report.assignment)
    assert len(scatter.data) == 2

    chart = build_forecast_chart(report.cluster_series[1], report.forecasts[1])
    names = [trace.name for trace in chart.data]
    assert "History" in names and "Forecast" in names
    assert "95% interval" in names and "80% interval" in names


def test_report_module_has_no_logger():
    import ml.report as report_module
    assert not hasattr(report_module, "logger")
