"""
Series Store

Holds one cleaned demand series per product (product_id -> ordered (ds, y)).

Contract (checked on construction, fail-loud):
- strictly increasing timestamps, one observation per period
- finite, non-negative values
- immutable once ingested for a run
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Set, Union

import numpy as np
import pandas as pd
from pandas.tseries.frequencies import to_offset

from .errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DemandSeries:
    """One product's demand history"""
    product_id: str
    ds: pd.DatetimeIndex
    y: np.ndarray
    freq: str = "MS"

    def __post_init__(self):
        ds = pd.DatetimeIndex(self.ds)
        y = np.asarray(self.y, dtype=float).copy()

        if len(ds) != len(y):
            raise ValueError(
                f"Series {self.product_id}: {len(ds)} timestamps but {len(y)} values"
            )
        if len(ds) > 1 and not (np.diff(ds.asi8) > 0).all():
            raise ValueError(f"Series {self.product_id}: timestamps must be strictly increasing")
        if not np.isfinite(y).all():
            raise ValueError(f"Series {self.product_id}: NaN/inf values are not allowed")
        if (y < 0).any():
            raise ValueError(
                f"Series {self.product_id}: negative demand found; "
                f"convert shortages to absolute values before ingestion"
            )

        y.setflags(write=False)
        object.__setattr__(self, "ds", ds)
        object.__setattr__(self, "y", y)

    def __len__(self) -> int:
        return len(self.y)

    @property
    def start(self) -> pd.Timestamp:
        return self.ds[0]

    @property
    def end(self) -> pd.Timestamp:
        return self.ds[-1]

    def head(self, n: int) -> "DemandSeries":
        return DemandSeries(self.product_id, self.ds[:n], self.y[:n], self.freq)

    def tail(self, n: int) -> "DemandSeries":
        start = len(self) - n
        return DemandSeries(self.product_id, self.ds[start:], self.y[start:], self.freq)

    def future_index(self, horizon: int) -> pd.DatetimeIndex:
        """Timestamps of the next `horizon` periods after the last observation"""
        if len(self) == 0:
            raise ValueError(f"Series {self.product_id} is empty")
        # end may sit off the offset, e.g. month-end dates with freq="MS"
        first = self.end + to_offset(self.freq)
        return pd.date_range(start=first, periods=horizon, freq=self.freq)

    def to_frame(self) -> pd.DataFrame:
        """Tidy [unique_id, ds, y] view"""
        return pd.DataFrame({
            "unique_id": self.product_id,
            "ds": self.ds,
            "y": self.y,
        })


class SeriesStore:
    """Read-only collection of product demand series"""

    def __init__(self, series: Iterable[DemandSeries]):
        self._series: Dict[str, DemandSeries] = {}
        for s in series:
            if s.product_id in self._series:
                raise ValueError(f"Duplicate product_id: {s.product_id}")
            self._series[s.product_id] = s

        logger.info(f"Series store loaded: {len(self._series)} products")

    @classmethod
    def from_frame(cls, df: pd.DataFrame, freq: str = "MS") -> "SeriesStore":
        """
        Build a store from a tidy DataFrame

        Args:
            df: DataFrame with columns [unique_id, ds, y]
            freq: Pandas offset alias of the series cadence

        Returns:
            SeriesStore with one DemandSeries per unique_id
        """
        missing = [c for c in ("unique_id", "ds", "y") if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        tidy = df.copy()
        tidy["ds"] = pd.to_datetime(tidy["ds"], errors="raise")
        tidy = tidy.sort_values(["unique_id", "ds"])

        series = [
            DemandSeries(
                product_id=str(uid),
                ds=pd.DatetimeIndex(group["ds"]),
                y=group["y"].to_numpy(dtype=float),
                freq=freq,
            )
            for uid, group in tidy.groupby("unique_id", sort=True)
        ]
        return cls(series)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, pd.Series], freq: str = "MS") -> "SeriesStore":
        """Build a store from {product_id: pd.Series indexed by timestamp}"""
        return cls(
            DemandSeries(
                product_id=str(pid),
                ds=pd.DatetimeIndex(s.index),
                y=s.to_numpy(dtype=float),
                freq=freq,
            )
            for pid, s in mapping.items()
        )

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._series

    def get_series(self, product_id: str) -> DemandSeries:
        try:
            return self._series[product_id]
        except KeyError:
            raise NotFoundError(product_id) from None

    def list_products(self) -> Set[str]:
        return set(self._series)

    def resolve_products(self, candidates: Union[str, Iterable[str]] = "all") -> List[str]:
        """
        Resolve a candidate selection to a sorted list of product ids

        "all" selects every product; explicit ids must exist in the store.
        """
        if isinstance(candidates, str):
            if candidates != "all":
                raise ValueError(f"Unknown product selection: {candidates!r}")
            return sorted(self._series)

        selected = sorted(set(candidates))
        for pid in selected:
            if pid not in self._series:
                raise NotFoundError(pid)
        return selected

    def to_frame(self) -> pd.DataFrame:
        if not self._series:
            return pd.DataFrame(columns=["unique_id", "ds", "y"])
        return pd.concat(
            [self._series[pid].to_frame() for pid in sorted(self._series)],
            ignore_index=True,
        )
