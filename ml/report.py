"""
Report Generator — Turns a PipelineReport into tables, JSON and text.
======================================================================
Three output modes:
  1. DataFrames (assignments, recommendations, forecasts) for CSV export
  2. JSON-ready dict / string
  3. CLI text (with box-drawing characters)
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict

import pandas as pd

from ml.pipeline import PipelineReport


# ══════════════════════════════════════════════════════════
#  DataFrames
# ══════════════════════════════════════════════════════════

def assignments_frame(report: PipelineReport) -> pd.DataFrame:
    """symbol, cluster, recommendation — one row per clustered symbol."""
    if report.assignment is None:
        return pd.DataFrame(columns=["symbol", "cluster", "recommendation"])
    frame = report.assignment.as_frame()
    labels = {rec.cluster_id: rec.label.value for rec in report.recommendations}
    frame["recommendation"] = frame["cluster"].map(labels)
    return frame


def recommendations_frame(report: PipelineReport) -> pd.DataFrame:
    """Cluster statistics, tier scores and label, ordered by cluster id."""
    rows = []
    for rec in report.recommendations:
        perf = report.performance_for(rec.cluster_id)
        rows.append({
            "cluster": rec.cluster_id,
            "cumulative_return": perf.cumulative_return if perf else math.nan,
            "volatility": perf.volatility if perf else math.nan,
            "momentum": perf.momentum if perf else math.nan,
            "return_score": rec.return_score,
            "volatility_score": rec.volatility_score,
            "momentum_score": rec.momentum_score,
            "overall_score": rec.overall_score,
            "recommendation": rec.label.value,
        })
    columns = [
        "cluster", "cumulative_return", "volatility", "momentum",
        "return_score", "volatility_score", "momentum_score",
        "overall_score", "recommendation",
    ]
    return pd.DataFrame(rows, columns=columns)


def forecasts_frame(report: PipelineReport) -> pd.DataFrame:
    """Long table of every cluster forecast (cluster, date, point, bounds)."""
    frames = [report.forecasts[c].to_frame() for c in sorted(report.forecasts)]
    if not frames:
        return pd.DataFrame(columns=[
            "cluster", "date", "point_forecast",
            "lower_80", "upper_80", "lower_95", "upper_95",
        ])
    return pd.concat(frames, ignore_index=True)


# ══════════════════════════════════════════════════════════
#  JSON
# ══════════════════════════════════════════════════════════

def _clean(value):
    # JSON has no NaN
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def report_to_dict(report: PipelineReport) -> dict:
    assignment = report.assignment
    quality = report.data_quality

    clusters = []
    for cluster_id in (assignment.cluster_ids if assignment else []):
        rec = report.recommendation_for(cluster_id)
        perf = report.performance_for(cluster_id)
        fc = report.forecasts.get(cluster_id)
        clusters.append({
            "cluster": cluster_id,
            "members": assignment.members(cluster_id),
            "medoid": assignment.medoids.get(cluster_id),
            "performance": {k: _clean(v) for k, v in asdict(perf).items()} if perf else None,
            "recommendation": rec.label.value if rec else None,
            "scores": {
                "return": rec.return_score,
                "volatility": rec.volatility_score,
                "momentum": rec.momentum_score,
                "overall": rec.overall_score,
            } if rec else None,
            "forecast": {
                "model": fc.model_label,
                "aicc": _clean(fc.criterion),
                "points": [
                    {
                        "date": p.date.strftime("%Y-%m-%d"),
                        "point_forecast": _clean(p.point_forecast),
                        "lower_80": _clean(p.lower_80),
                        "upper_80": _clean(p.upper_80),
                        "lower_95": _clean(p.lower_95),
                        "upper_95": _clean(p.upper_95),
                    }
                    for p in fc.points
                ],
            } if fc else None,
            "forecast_omitted": report.omitted_forecasts.get(cluster_id),
        })

    return {
        "generated_at": report.generated_at,
        "config": asdict(report.config),
        "data_quality": {
            "input_rows": quality.input_rows,
            "dropped_rows": quality.dropped_rows,
            "duplicate_rows": quality.duplicate_rows,
            "retained_rows": quality.retained_rows,
            "excluded_symbols": list(quality.excluded_symbols),
        },
        "explained_variance": [_clean(v) for v in report.explained_variance],
        "clustering": {
            "k": assignment.k if assignment else 0,
            "iterations": assignment.iterations if assignment else 0,
            "converged": assignment.converged if assignment else False,
            "total_cost": _clean(assignment.total_cost) if assignment else None,
        },
        "empty_clusters": list(report.empty_clusters),
        "clusters": clusters,
    }


def report_to_json(report: PipelineReport, indent: int = 2) -> str:
    return json.dumps(report_to_dict(report), indent=indent)


# ══════════════════════════════════════════════════════════
#  CLI Text Report
# ══════════════════════════════════════════════════════════

def generate_cli_report(report: PipelineReport) -> str:
    """Generate a box-drawing formatted report for terminal output."""
    w = 60  # width
    lines = []

    lines.append("╔" + "═" * w + "╗")
    lines.append("║" + "  CRYPTO CLUSTER REPORT".center(w) + "║")
    lines.append("║" + f"  {report.generated_at[:10]}".center(w) + "║")
    lines.append("╚" + "═" * w + "╝")
    lines.append("")

    quality = report.data_quality
    lines.append(f"  Rows: {quality.input_rows:,} in, {quality.retained_rows:,} used "
                 f"({quality.dropped_rows} dropped, {quality.duplicate_rows} duplicates)")
    if quality.excluded_symbols:
        lines.append(f"  Excluded: {', '.join(quality.excluded_symbols)}")
    if report.explained_variance:
        explained = sum(report.explained_variance)
        lines.append(f"  PCA: {explained:.0%} of variance in {len(report.explained_variance)} components")
    lines.append("")

    assignment = report.assignment
    if assignment is None:
        return "\n".join(lines)

    for cluster_id in assignment.cluster_ids:
        rec = report.recommendation_for(cluster_id)
        perf = report.performance_for(cluster_id)
        label = rec.label.value.upper() if rec else "NO DATA"

        lines.append("┌" + "─" * w + "┐")
        lines.append("│" + f"  CLUSTER {cluster_id}: {label}".ljust(w) + "│")
        lines.append("├" + "─" * w + "┤")
        for chunk in _wrap(", ".join(assignment.members(cluster_id)), w - 13):
            lines.append("│" + f"  Members:   {chunk}".ljust(w) + "│")
        if perf:
            lines.append("│" + f"  Return:    {perf.cumulative_return:+.2%}".ljust(w) + "│")
            lines.append("│" + f"  Volatility:{perf.volatility:8.2f}".ljust(w) + "│")
            lines.append("│" + f"  Momentum:  {perf.momentum:+.3f}".ljust(w) + "│")
        if rec:
            lines.append(
                "│" + f"  Score:     {_score(rec.overall_score)}/9 "
                f"(R{_score(rec.return_score)} V{_score(rec.volatility_score)} "
                f"M{_score(rec.momentum_score)})".ljust(w) + "│"
            )
        fc = report.forecasts.get(cluster_id)
        if fc:
            last = fc.points[-1]
            lines.append("│" + f"  Model:     {fc.model_label}".ljust(w) + "│")
            lines.append(
                "│" + f"  {last.date:%Y-%m-%d}: {last.point_forecast:,.2f} "
                f"[{last.lower_95:,.2f} .. {last.upper_95:,.2f}]".ljust(w) + "│"
            )
        elif cluster_id in report.omitted_forecasts:
            lines.append("│" + "  Forecast:  omitted".ljust(w) + "│")
        lines.append("└" + "─" * w + "┘")

    return "\n".join(lines)


def _score(value) -> str:
    return "n/a" if value is None else str(value)


def _wrap(text: str, width: int) -> list[str]:
    """Simple word wrap."""
    words = text.split()
    lines = []
    current = ""
    for word in words:
        if len(current) + len(word) + 1 > width:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        lines.append(current)
    return lines or [""]
