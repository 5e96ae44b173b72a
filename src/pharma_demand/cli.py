from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from src.pharma_demand.config import load_config, parse_products
from src.pharma_demand.pipeline import run_forecast
from src.pharma_demand.prepare import (load_demand_file, prepare_demand_frame,
                                       top_products_by_volume)
from src.pharma_demand.report import ProductStatus
from src.pharma_demand.series_store import SeriesStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
app = typer.Typer(add_completion=False)
console = Console()

STATUS_STYLES = {
    ProductStatus.FORECASTED.value: "green",
    ProductStatus.EXCLUDED.value: "yellow",
    ProductStatus.FAILED.value: "red",
    ProductStatus.TIMED_OUT.value: "magenta",
}


@app.command()
def run(
    input_path: Path = typer.Option(..., "--input", help="Raw demand file (.csv, .parquet, .xlsx)"),
    id_col: str = "product_id",
    date_col: str = "date",
    value_col: str = "demand",
    holdout: Optional[int] = typer.Option(None, help="Holdout periods per product"),
    horizon: Optional[int] = typer.Option(None, help="Forecast periods ahead"),
    freq: Optional[str] = typer.Option(None, help="Period alias: MS, D or QS"),
    season_length: Optional[int] = None,
    product: Optional[List[str]] = typer.Option(None, help="Product id (repeatable); default all"),
    top_n: Optional[int] = typer.Option(None, help="Keep only the top-N products by total demand"),
    log_transform: Optional[bool] = typer.Option(None, "--log-transform/--no-log-transform"),
    split_policy: Optional[str] = typer.Option(None, help="exclude or reduce"),
    workers: Optional[int] = None,
    deadline: Optional[float] = typer.Option(None, help="Global run deadline in seconds"),
    output_dir: Optional[Path] = None,
    fmt: str = typer.Option("csv", "--format", help="csv or parquet"),
):
    cfg = load_config(
        holdout_length=holdout,
        forecast_horizon=horizon,
        freq=freq,
        season_length=season_length,
        candidate_products=parse_products(product) if product else None,
        log_transform_for_fitting=log_transform,
        split_policy=split_policy,
        max_workers=workers,
        deadline_sec=deadline,
        output_dir=str(output_dir) if output_dir else None,
    )

    tidy = prepare_demand_frame(
        load_demand_file(input_path),
        id_col=id_col,
        date_col=date_col,
        value_col=value_col,
        freq=cfg.freq,
    )
    if top_n:
        tidy = top_products_by_volume(tidy, top_n)

    store = SeriesStore.from_frame(tidy, freq=cfg.freq)
    report = run_forecast(store, cfg)
    paths = report.save(cfg.output_path(), fmt=fmt)

    table = Table(title="Forecast Results")
    table.add_column("Product", style="cyan")
    table.add_column("Status")
    table.add_column("Model", style="green")
    table.add_column("Reason")

    for pid in report.product_ids:
        outcome = report[pid]
        style = STATUS_STYLES.get(outcome.status.value, "white")
        table.add_row(
            pid,
            f"[{style}]{outcome.status.value}[/{style}]",
            outcome.model_name or "-",
            outcome.reason or "",
        )

    console.print(table)
    console.print(f"Report written to {paths['summary'].parent}")

    if not report.by_status(ProductStatus.FORECASTED):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
