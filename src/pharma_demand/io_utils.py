from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

import pandas as pd

TABLE_FORMATS = ("csv", "parquet")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def atomic_write_table(df: pd.DataFrame, path: Path, fmt: str = "csv") -> Path:
    """
    Atomic table write: write to temp in same directory, then replace.
    """
    if fmt not in TABLE_FORMATS:
        raise ValueError(f"Unsupported table format: {fmt}")

    path = Path(path).with_suffix(f".{fmt}")
    ensure_dir(path.parent)
    tmp = path.with_suffix(path.suffix + ".tmp")
    if fmt == "parquet":
        df.to_parquet(tmp, index=False)
    else:
        df.to_csv(tmp, index=False)
    os.replace(tmp, path)
    return path


def atomic_write_json(payload: Dict[str, Any], path: Path) -> Path:
    ensure_dir(path.parent)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    os.replace(tmp, path)
    return path
