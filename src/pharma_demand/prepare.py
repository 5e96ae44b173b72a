"""
Prepare raw demand records for the series store

Standardize raw demand rows and create canonical columns:
- unique_id: product identifier
- ds: period start (timezone-naive)
- y: demand per period

Demand semantics:
- negative recorded demand is a shortage (unmet demand), counted as abs(value)
- zero means no demand that period, so missing periods are filled with 0
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import pandas as pd

logger = logging.getLogger(__name__)


def load_demand_file(path: Union[str, Path]) -> pd.DataFrame:
    """Read raw demand records from .csv, .parquet or .xlsx"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Demand file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path)
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix == ".xlsx":
        return pd.read_excel(path)
    raise ValueError(f"Unsupported demand file type: {suffix}")


def prepare_demand_frame(
    df: pd.DataFrame,
    id_col: str = "product_id",
    date_col: str = "date",
    value_col: str = "demand",
    freq: str = "MS",
) -> pd.DataFrame:
    """
    Prepare raw demand records for forecasting.

    Steps:
    1. Parse dates and values (errors="raise", no silent NaN)
    2. Shortages (negative values) -> absolute demand
    3. Aggregate to one row per (product, period)
    4. Reindex onto a gap-free period grid, filling empty periods with 0

    Args:
        df: Raw demand records
        id_col: Product identifier column
        date_col: Transaction date column
        value_col: Demand quantity column
        freq: Target period (pandas offset alias, e.g. "MS" or "D")

    Returns:
        DataFrame with columns [unique_id, ds, y]
    """
    missing = [c for c in (id_col, date_col, value_col) if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    records = pd.DataFrame({
        "unique_id": df[id_col].astype(str),
        "ds": pd.to_datetime(df[date_col], errors="raise"),
        "y": pd.to_numeric(df[value_col], errors="raise"),
    })

    n_null = int(records["y"].isna().sum())
    if n_null:
        raise ValueError(f"{n_null} demand values are missing; clean them before forecasting")

    n_negative = int((records["y"] < 0).sum())
    if n_negative:
        logger.info(f"Treating {n_negative} negative demand records as shortages")
    records["y"] = records["y"].abs()

    if records["ds"].dt.tz is not None:
        records["ds"] = records["ds"].dt.tz_convert("UTC").dt.tz_localize(None)

    # Map each record onto the start of its period
    records["ds"] = records["ds"].dt.to_period(_period_alias(freq)).dt.to_timestamp()

    aggregated = (
        records.groupby(["unique_id", "ds"], as_index=False)["y"].sum()
        .sort_values(["unique_id", "ds"])
    )

    frames = []
    for uid, group in aggregated.groupby("unique_id", sort=True):
        grid = pd.date_range(group["ds"].min(), group["ds"].max(), freq=freq)
        filled = group.set_index("ds")["y"].reindex(grid, fill_value=0.0)
        frames.append(pd.DataFrame({"unique_id": uid, "ds": grid, "y": filled.to_numpy()}))

    if not frames:
        return pd.DataFrame(columns=["unique_id", "ds", "y"])

    tidy = pd.concat(frames, ignore_index=True)
    logger.info(
        f"Prepared demand: {len(records)} records -> {len(tidy)} rows, "
        f"{tidy['unique_id'].nunique()} products"
    )
    return tidy


def top_products_by_volume(df: pd.DataFrame, n: int) -> pd.DataFrame:
    """
    Keep the n products with the largest total demand.

    Pilot-scope filter; the pipeline itself handles short histories per product.
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    totals = df.groupby("unique_id")["y"].sum().sort_values(ascending=False, kind="mergesort")
    keep = set(totals.index[:n])
    return df[df["unique_id"].isin(keep)].reset_index(drop=True)


def _period_alias(freq: str) -> str:
    """Offset alias (date_range) -> period alias (to_period)"""
    aliases = {"MS": "M", "D": "D", "QS": "Q"}
    try:
        return aliases[freq]
    except KeyError:
        raise ValueError(f"Unsupported frequency: {freq}") from None
