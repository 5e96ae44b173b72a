"""
Holdout Evaluation Metrics

Computes forecasting metrics on the natural (per-box) scale.

- RMSE is the selection metric
- MAE and MAPE are reported alongside
- MAPE is undefined (None, reported N/A) when any actual value is zero
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional

import numpy as np

from .errors import FitError
from .models import FittedModel
from .series_store import DemandSeries

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_FIT_FAILED = "fit_failed"


class ForecastMetrics:
    """Compute forecasting evaluation metrics"""

    @staticmethod
    def _validate(y_true: np.ndarray, y_pred: np.ndarray):
        y_true = np.asarray(y_true, dtype=float)
        y_pred = np.asarray(y_pred, dtype=float)

        if y_true.shape != y_pred.shape:
            raise ValueError(f"Shape mismatch: actual {y_true.shape} vs predicted {y_pred.shape}")
        if len(y_true) == 0:
            raise ValueError("Cannot compute metrics on an empty holdout")
        if not (np.isfinite(y_true).all() and np.isfinite(y_pred).all()):
            raise ValueError("Metrics require finite actual and predicted values")

        return y_true, y_pred

    @staticmethod
    def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Root Mean Squared Error: sqrt(mean((actual - predicted)^2))"""
        y_true, y_pred = ForecastMetrics._validate(y_true, y_pred)
        return float(np.sqrt(np.mean((y_true - y_pred) ** 2)))

    @staticmethod
    def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Mean Absolute Error"""
        y_true, y_pred = ForecastMetrics._validate(y_true, y_pred)
        return float(np.mean(np.abs(y_true - y_pred)))

    @staticmethod
    def mape(y_true: np.ndarray, y_pred: np.ndarray) -> Optional[float]:
        """
        Mean Absolute Percentage Error (%)

        Returns None if any actual value is zero (a zero-demand period makes
        the percentage undefined; masking it would hide those periods).
        """
        y_true, y_pred = ForecastMetrics._validate(y_true, y_pred)

        if (y_true == 0).any():
            return None

        return float(100 * np.mean(np.abs((y_true - y_pred) / y_true)))

    @staticmethod
    def compute_all(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, Optional[float]]:
        return {
            "rmse": ForecastMetrics.rmse(y_true, y_pred),
            "mae": ForecastMetrics.mae(y_true, y_pred),
            "mape": ForecastMetrics.mape(y_true, y_pred),
        }


@dataclass(frozen=True)
class MetricRecord:
    """Holdout metrics for one (product, model) attempt"""
    product_id: str
    model_name: str
    rmse: Optional[float]
    mae: Optional[float]
    mape: Optional[float]
    status: str = STATUS_OK
    error: Optional[str] = None

    @classmethod
    def failed(cls, product_id: str, model_name: str, error: str) -> "MetricRecord":
        return cls(
            product_id=product_id,
            model_name=model_name,
            rmse=None,
            mae=None,
            mape=None,
            status=STATUS_FIT_FAILED,
            error=error,
        )

    @property
    def is_eligible(self) -> bool:
        return (
            self.status == STATUS_OK
            and self.rmse is not None
            and math.isfinite(self.rmse)
        )

    def to_dict(self) -> Dict:
        return asdict(self)


def evaluate(
    fitted_model: FittedModel,
    holdout: DemandSeries,
    product_id: Optional[str] = None
) -> MetricRecord:
    """
    Score a fitted model against the holdout window

    Args:
        fitted_model: Model fitted on the training window
        holdout: Actual holdout observations
        product_id: Defaults to the holdout series id

    Returns:
        MetricRecord; a fit_failed record if the model cannot forecast
    """
    product_id = product_id or holdout.product_id

    try:
        y_pred = fitted_model.predict(len(holdout))
    except FitError as e:
        logger.warning(f"{product_id}: {e}")
        return MetricRecord.failed(product_id, fitted_model.model_name, str(e))

    metrics = ForecastMetrics.compute_all(holdout.y, y_pred)
    return MetricRecord(
        product_id=product_id,
        model_name=fitted_model.model_name,
        **metrics,
    )
