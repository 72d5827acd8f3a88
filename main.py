#!/usr/bin/env python3
"""
Crypto Cluster Forecaster — DTW Clustering & ARIMA Forecasts
=============================================================
CLI entry point: groups crypto assets by the shape of their feature
trajectories, scores each group on recent performance, and forecasts
each group's mean price.

Usage:
    python main.py --csv crypto_prices.csv
    python main.py --symbols BTC-USD ETH-USD LTC-USD DOGE-USD XRP-USD
    python main.py --demo --clusters 3 --horizon 90 --cutoff 2020-06-01
    python main.py --csv crypto_prices.csv --output out/ --charts out/charts
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.text import Text
from rich import box

from data.fetcher import CryptoDataFetcher, load_price_csv
from ml.pipeline import ClusterPipeline, PipelineConfig, PipelineReport
from ml.report import (
    assignments_frame,
    forecasts_frame,
    recommendations_frame,
    report_to_json,
)
from ml.synthetic import generate_universe
from models.entities import Recommendation
from models.errors import PipelineError
import config

console = Console()


# ── CLI argument parsing ──────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crypto Cluster Forecaster — DTW clustering & ARIMA forecasts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python main.py --csv crypto_prices.csv\n"
            "  python main.py --symbols BTC-USD ETH-USD LTC-USD DOGE-USD\n"
            "  python main.py --demo --horizon 90 --cutoff 2020-06-01\n"
        ),
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--csv",
        type=str,
        help="Long price table (Symbol, Date, Open, High, Low, Close, Volume)",
    )
    group.add_argument(
        "--symbols", "-s",
        nargs="*",
        type=str,
        help="Download these yfinance tickers (no value = default universe)",
    )
    group.add_argument(
        "--demo",
        action="store_true",
        help="Run on seeded synthetic data",
    )
    parser.add_argument(
        "--start",
        type=str,
        default=config.DEFAULT_START,
        help=f"Download start date (default: {config.DEFAULT_START})",
    )
    parser.add_argument(
        "--clusters", "-k",
        type=int,
        default=config.N_CLUSTERS,
        help=f"Number of clusters (default: {config.N_CLUSTERS})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=config.CLUSTER_SEED,
        help=f"Medoid initialization seed (default: {config.CLUSTER_SEED})",
    )
    parser.add_argument(
        "--horizon",
        type=int,
        default=config.FORECAST_HORIZON,
        help=f"Forecast horizon in days (default: {config.FORECAST_HORIZON})",
    )
    parser.add_argument(
        "--cutoff",
        type=str,
        default=config.FORECAST_CUTOFF,
        help=f"First date of the forecast history (default: {config.FORECAST_CUTOFF})",
    )
    parser.add_argument(
        "--window",
        type=int,
        default=config.RECENT_WINDOW_DAYS,
        help=f"Trailing scoring window in days (default: {config.RECENT_WINDOW_DAYS})",
    )
    parser.add_argument(
        "--no-forecast",
        action="store_true",
        help="Stop after the recommendations",
    )
    parser.add_argument(
        "--jobs", "-j",
        type=int,
        default=config.N_JOBS,
        help="Worker processes for DTW and forecasts (-1 = all cores)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON instead of tables",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Directory for CSV and JSON exports",
    )
    parser.add_argument(
        "--charts",
        type=str,
        help="Directory for HTML charts",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging (every ARIMA candidate)",
    )
    return parser


# ── Display helpers ───────────────────────────────────────

def recommendation_style(label: Recommendation) -> str:
    """Return rich style string for a recommendation."""
    styles = {
        Recommendation.BUY:  "bold green",
        Recommendation.HOLD: "yellow",
        Recommendation.SELL: "bold red",
    }
    return styles.get(label, "white")


def _score_cell(rec) -> str:
    parts = [rec.overall_score, rec.return_score, rec.volatility_score, rec.momentum_score]
    overall, r, v, m = ("—" if p is None else str(p) for p in parts)
    return f"{overall} ({r}/{v}/{m})"


def print_header():
    console.print()
    console.print(
        Panel(
            "[bold cyan]Crypto Cluster Forecaster[/bold cyan]  —  "
            "[dim]DTW clustering & ARIMA forecasts[/dim]",
            box=box.DOUBLE,
            expand=False,
        )
    )
    console.print(f"  [dim]{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/dim]")
    console.print()


def print_data_summary(report: PipelineReport):
    quality = report.data_quality
    console.print(f"  [bold]Data[/bold]")
    console.print(f"    Input rows      : {quality.input_rows:,}")
    console.print(f"    Dropped (NaN)   : {quality.dropped_rows:,}")
    console.print(f"    Duplicates      : {quality.duplicate_rows:,}")
    console.print(f"    Feature rows    : {quality.retained_rows:,}")
    if quality.excluded_symbols:
        console.print(
            f"    [yellow]Excluded ({quality.excluded_count}) : "
            f"{', '.join(quality.excluded_symbols)}[/yellow]"
        )
    if report.explained_variance:
        shares = "  ".join(f"{v:.1%}" for v in report.explained_variance)
        console.print(f"    PCA variance    : {shares}")
    console.print()


def print_clusters(report: PipelineReport):
    """Rich-formatted table of clusters, scores and recommendations."""
    assignment = report.assignment
    table = Table(
        title=f"Clusters (k={assignment.k}, {assignment.iterations} iterations)",
        box=box.ROUNDED,
        padding=(0, 1),
    )
    table.add_column("Cluster", style="bold cyan", justify="center")
    table.add_column("Members")
    table.add_column("Cum. Return", justify="right")
    table.add_column("Volatility", justify="right")
    table.add_column("Momentum", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Action", justify="center")

    for cluster_id in assignment.cluster_ids:
        perf = report.performance_for(cluster_id)
        rec = report.recommendation_for(cluster_id)
        members = ", ".join(assignment.members(cluster_id))
        if perf is None or rec is None:
            table.add_row(str(cluster_id), members, "—", "—", "—", "—", Text("no data", style="dim"))
            continue
        table.add_row(
            str(cluster_id),
            members,
            f"{perf.cumulative_return:+.2%}",
            f"{perf.volatility:.2f}",
            f"{perf.momentum:+.3f}",
            _score_cell(rec),
            Text(rec.label.value, style=recommendation_style(rec.label)),
        )

    console.print(table)
    console.print()


def print_forecasts(report: PipelineReport):
    """Rich-formatted table of each cluster's selected model and final forecast."""
    if not report.forecasts and not report.omitted_forecasts:
        return

    table = Table(
        title=f"Forecasts ({report.config.forecast_horizon} days)",
        box=box.ROUNDED,
        padding=(0, 1),
    )
    table.add_column("Cluster", style="bold cyan", justify="center")
    table.add_column("Model")
    table.add_column("Last Close", justify="right")
    table.add_column("End Date", justify="center")
    table.add_column("Forecast", justify="right")
    table.add_column("80% Interval", justify="right")
    table.add_column("95% Interval", justify="right")

    for cluster_id in sorted(set(report.forecasts) | set(report.omitted_forecasts)):
        fc = report.forecasts.get(cluster_id)
        if fc is None:
            table.add_row(
                str(cluster_id),
                Text(f"omitted: {report.omitted_forecasts[cluster_id]}", style="yellow"),
                "", "", "", "", "",
            )
            continue
        series = report.cluster_series[cluster_id]
        end = fc.points[-1]
        table.add_row(
            str(cluster_id),
            fc.model_label,
            f"{series.values[-1]:,.2f}",
            end.date.strftime("%Y-%m-%d"),
            f"{end.point_forecast:,.2f}",
            f"{end.lower_80:,.2f} → {end.upper_80:,.2f}",
            f"{end.lower_95:,.2f} → {end.upper_95:,.2f}",
        )

    console.print(table)
    console.print()


# ── Exports ───────────────────────────────────────────────

def export_tables(report: PipelineReport, directory: str):
    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)
    assignments_frame(report).to_csv(out / "assignments.csv", index=False)
    recommendations_frame(report).to_csv(out / "recommendations.csv", index=False)
    forecasts_frame(report).to_csv(out / "forecasts.csv", index=False)
    (out / "report.json").write_text(report_to_json(report))
    console.print(f"  [dim]Tables written to {out}/[/dim]")


def export_charts(report: PipelineReport, directory: str):
    from ui.charts import build_cluster_scatter, build_forecast_chart

    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)
    build_cluster_scatter(report.reduced, report.assignment).write_html(out / "clusters.html")
    for cluster_id, fc in report.forecasts.items():
        fig = build_forecast_chart(report.cluster_series[cluster_id], fc)
        fig.write_html(out / f"forecast_cluster_{cluster_id}.html")
    console.print(f"  [dim]Charts written to {out}/[/dim]")


# ── Main ──────────────────────────────────────────────────

def load_prices(args):
    if args.csv:
        console.print(f"  Loading [bold cyan]{args.csv}[/bold cyan] ...\n")
        return load_price_csv(args.csv)
    if args.demo:
        console.print("  Generating [bold cyan]synthetic[/bold cyan] universe ...\n")
        return generate_universe()
    symbols = args.symbols or config.DEFAULT_SYMBOLS
    console.print(
        f"  Downloading [bold cyan]{len(symbols)}[/bold cyan] symbols "
        f"from {args.start} ...\n"
    )
    return CryptoDataFetcher(start=args.start).fetch_universe(symbols)


def main():
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not args.json:
        print_header()

    try:
        price_df = load_prices(args)
        pipeline = ClusterPipeline(PipelineConfig(
            n_clusters=args.clusters,
            random_seed=args.seed,
            forecast_horizon=args.horizon,
            forecast_cutoff=args.cutoff,
            recent_window_days=args.window,
            n_jobs=args.jobs,
        ))
        report = pipeline.run(price_df, forecast=not args.no_forecast)
    except (PipelineError, FileNotFoundError, ValueError) as e:
        console.print(f"  [red]Error: {e}[/red]")
        sys.exit(1)

    if args.json:
        print(report_to_json(report))
    else:
        print_data_summary(report)
        print_clusters(report)
        print_forecasts(report)

    if args.output:
        export_tables(report, args.output)
    if args.charts:
        export_charts(report, args.charts)


if __name__ == "__main__":
    main()
