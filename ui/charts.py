"""
Chart rendering module — builds interactive Plotly charts of the PCA
projection by cluster and of each cluster's forecast with 80/95 % ribbons.
"""

import plotly.graph_objects as go
import pandas as pd

from models.entities import ClusterAssignment, ClusterTimeSeries, ForecastResult


# ── Color palette ─────────────────────────────────────────

COLORS = {
    "bg":          "#0e1117",
    "paper":       "#0e1117",
    "grid":        "#1e2533",
    "text":        "#e0e0e0",
    "text_dim":    "#6b7280",
    "history":     "#e0e0e0",
    "forecast":    "#38bdf8",
    "band_80":     "rgba(56,189,248,0.30)",
    "band_95":     "rgba(56,189,248,0.12)",
}

CLUSTER_COLORS = [
    "#22c55e", "#ef4444", "#facc15", "#a855f7",
    "#38bdf8", "#f97316", "#ec4899", "#14b8a6",
]


def _apply_layout(fig: go.Figure, title: str, height: int) -> go.Figure:
    fig.update_layout(
        title=dict(text=title, font=dict(size=15)),
        height=height,
        margin=dict(l=0, r=0, t=40, b=0),
        plot_bgcolor=COLORS["bg"],
        paper_bgcolor=COLORS["paper"],
        font=dict(color=COLORS["text"], family="Inter, system-ui, sans-serif"),
        legend=dict(
            orientation="h",
            yanchor="bottom",
            y=1.02,
            xanchor="right",
            x=1,
            bgcolor="rgba(0,0,0,0)",
            font=dict(size=11, color=COLORS["text_dim"]),
        ),
        hoverlabel=dict(
            bgcolor="#1e293b",
            font_size=12,
            font_color=COLORS["text"],
            bordercolor="#334155",
        ),
    )
    for axis in ["xaxis", "yaxis"]:
        fig.update_layout(**{
            axis: dict(gridcolor=COLORS["grid"], showgrid=True, zeroline=False)
        })
    return fig


def build_cluster_scatter(
    reduced_df: pd.DataFrame,
    assignment: ClusterAssignment,
    height: int = 600,
) -> go.Figure:
    """
    Scatter of every (symbol, date) point in the first two principal
    components, colored by the symbol's cluster.
    """
    df = reduced_df.merge(assignment.as_frame(), on="symbol", how="inner")
    fig = go.Figure()

    for cluster_id in assignment.cluster_ids:
        members = df[df["cluster"] == cluster_id]
        if members.empty:
            continue
        color = CLUSTER_COLORS[(cluster_id - 1) % len(CLUSTER_COLORS)]
        fig.add_trace(go.Scattergl(
            x=members["component_1"],
            y=members["component_2"],
            mode="markers",
            marker=dict(size=4, color=color, opacity=0.6),
            name=f"Cluster {cluster_id}",
            text=members["symbol"] + " " + members["date"].dt.strftime("%Y-%m-%d"),
            hoverinfo="text",
        ))

    fig = _apply_layout(fig, "Assets in principal-component space", height)
    fig.update_xaxes(title_text="Component 1")
    fig.update_yaxes(title_text="Component 2")
    return fig


def build_forecast_chart(
    series: ClusterTimeSeries,
    forecast: ForecastResult,
    height: int = 500,
) -> go.Figure:
    """
    Historical mean close, point forecast, and shaded 80 % / 95 %
    prediction intervals for one cluster.
    """
    fc = forecast.to_frame()
    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=series.dates,
        y=series.values,
        mode="lines",
        line=dict(color=COLORS["history"], width=1),
        name="History",
    ))

    # ── Ribbons (upper trace first, lower fills to it) ──
    for level, color in [("95", COLORS["band_95"]), ("80", COLORS["band_80"])]:
        fig.add_trace(go.Scatter(
            x=fc["date"],
            y=fc[f"upper_{level}"],
            mode="lines",
            line=dict(width=0),
            showlegend=False,
            hoverinfo="skip",
        ))
        fig.add_trace(go.Scatter(
            x=fc["date"],
            y=fc[f"lower_{level}"],
            mode="lines",
            line=dict(width=0),
            fill="tonexty",
            fillcolor=color,
            name=f"{level}% interval",
        ))

    fig.add_trace(go.Scatter(
        x=fc["date"],
        y=fc["point_forecast"],
        mode="lines",
        line=dict(color=COLORS["forecast"], width=2),
        name="Forecast",
    ))

    return _apply_layout(
        fig, f"Cluster {forecast.cluster_id} — {forecast.model_label}", height
    )
