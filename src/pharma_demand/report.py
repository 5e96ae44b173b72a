"""
Forecast Report

Pure aggregation of per-product outcomes into flat tables:
- metrics: one row per (product, model) attempt, failed fits included
- forecasts: one row per (product, future period) for forecasted products
- status: one row per requested product (forecasted / excluded / failed / timed_out)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from .evaluation import MetricRecord
from .io_utils import atomic_write_json, atomic_write_table
from .selection import SelectionResult

logger = logging.getLogger(__name__)

METRIC_COLUMNS = ["product_id", "model_name", "rmse", "mae", "mape", "status", "error"]
FORECAST_COLUMNS = ["product_id", "model_name", "ds", "predicted_demand"]
STATUS_COLUMNS = ["product_id", "status", "model_name", "reason", "error_type", "duration_sec"]


class ProductStatus(str, Enum):
    FORECASTED = "forecasted"
    EXCLUDED = "excluded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True, eq=False)
class ProductOutcome:
    """Terminal state of one product's pipeline"""
    product_id: str
    status: ProductStatus
    metrics: Tuple[MetricRecord, ...] = ()
    selection: Optional[SelectionResult] = None
    reason: Optional[str] = None
    error_type: Optional[str] = None
    duration_sec: float = 0.0
    split_info: Dict = field(default_factory=dict)

    @property
    def model_name(self) -> Optional[str]:
        return self.selection.model_name if self.selection is not None else None

    @classmethod
    def from_error(
        cls,
        product_id: str,
        status: ProductStatus,
        error: Exception,
        metrics: Iterable[MetricRecord] = (),
        duration_sec: float = 0.0,
        split_info: Optional[Dict] = None,
    ) -> "ProductOutcome":
        return cls(
            product_id=product_id,
            status=status,
            metrics=tuple(metrics),
            reason=str(error),
            error_type=type(error).__name__,
            duration_sec=duration_sec,
            split_info=split_info or {},
        )


class ForecastReport:
    """Metrics, forecast and status tables for a run"""

    def __init__(self, outcomes: Iterable[ProductOutcome], config: Optional[Dict] = None):
        self.outcomes: Dict[str, ProductOutcome] = {}
        for outcome in outcomes:
            if outcome.product_id in self.outcomes:
                raise ValueError(f"Duplicate outcome for product {outcome.product_id}")
            self.outcomes[outcome.product_id] = outcome
        self.config = config or {}

    def __len__(self) -> int:
        return len(self.outcomes)

    def __getitem__(self, product_id: str) -> ProductOutcome:
        return self.outcomes[product_id]

    @property
    def product_ids(self) -> List[str]:
        return sorted(self.outcomes)

    def by_status(self, status: Union[ProductStatus, str]) -> List[str]:
        status = ProductStatus(status)
        return [pid for pid in self.product_ids if self.outcomes[pid].status == status]

    def metrics_table(self) -> pd.DataFrame:
        rows = [
            record.to_dict()
            for pid in self.product_ids
            for record in sorted(self.outcomes[pid].metrics, key=lambda r: r.model_name)
        ]
        return pd.DataFrame(rows, columns=METRIC_COLUMNS)

    def forecast_table(self) -> pd.DataFrame:
        rows = []
        for pid in self.product_ids:
            selection = self.outcomes[pid].selection
            if selection is not None:
                rows.extend(selection.forecast_rows())
        return pd.DataFrame(rows, columns=FORECAST_COLUMNS)

    def status_table(self) -> pd.DataFrame:
        rows = [
            {
                "product_id": pid,
                "status": self.outcomes[pid].status.value,
                "model_name": self.outcomes[pid].model_name,
                "reason": self.outcomes[pid].reason,
                "error_type": self.outcomes[pid].error_type,
                "duration_sec": round(self.outcomes[pid].duration_sec, 3),
            }
            for pid in self.product_ids
        ]
        return pd.DataFrame(rows, columns=STATUS_COLUMNS)

    def summary(self) -> Dict:
        counts = {status.value: len(self.by_status(status)) for status in ProductStatus}
        chosen = pd.Series(
            [o.model_name for o in self.outcomes.values() if o.model_name is not None],
            dtype=object,
        )
        return {
            "n_products": len(self.outcomes),
            **counts,
            "chosen_models": {k: int(v) for k, v in chosen.value_counts().sort_index().items()},
        }

    def save(self, output_dir: Union[str, Path], fmt: str = "csv") -> Dict[str, Path]:
        """Write metrics/forecasts/status tables and summary.json"""
        output_dir = Path(output_dir)
        paths = {
            "metrics": atomic_write_table(self.metrics_table(), output_dir / "metrics", fmt),
            "forecasts": atomic_write_table(self.forecast_table(), output_dir / "forecasts", fmt),
            "status": atomic_write_table(self.status_table(), output_dir / "status", fmt),
            "summary": atomic_write_json(
                {"summary": self.summary(), "config": self.config},
                output_dir / "summary.json",
            ),
        }
        logger.info(f"Saved forecast report to {output_dir}")
        return paths
