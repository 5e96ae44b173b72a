"""
Per-product model selection

Picks the candidate with the lowest holdout RMSE, then refits that strategy
on the full series (training + holdout) to produce the forward forecast.

Tie-break policy: on exactly equal RMSE the simpler model wins
(seasonal_naive < exponential_smoothing < auto_ets < arima), then name order.
If the winner cannot be refit on the full series, the next-ranked
candidate is tried.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

import pandas as pd

from .errors import FitError, NoEligibleModelError
from .evaluation import MetricRecord
from .models import FittedModel, ForecastModel
from .series_store import DemandSeries

logger = logging.getLogger(__name__)

METRICS = ("rmse", "mae", "mape")


@dataclass(frozen=True, eq=False)
class SelectionResult:
    """Winning model and forward forecast for one product"""
    product_id: str
    model_name: str
    refit_model: FittedModel
    forecast: pd.DataFrame
    holdout_metric: float
    primary_metric: str = "rmse"

    @property
    def horizon(self) -> int:
        return len(self.forecast)

    def forecast_rows(self) -> List[Dict]:
        """One row per future period"""
        return [
            {
                "product_id": self.product_id,
                "model_name": self.model_name,
                "ds": ds,
                "predicted_demand": float(yhat),
            }
            for ds, yhat in zip(self.forecast["ds"], self.forecast["yhat"])
        ]


class ModelSelector:
    """Select best model per product based on holdout performance"""

    def __init__(self, primary_metric: str = "rmse"):
        """
        Initialize model selector

        Args:
            primary_metric: Metric for ranking ("rmse", "mae", "mape"), lower is better
        """
        if primary_metric not in METRICS:
            raise ValueError(f"Unknown metric: {primary_metric}")
        self.primary_metric = primary_metric

    def rank(
        self,
        candidate_metrics: Sequence[MetricRecord],
        candidate_models: Mapping[str, ForecastModel]
    ) -> List[MetricRecord]:
        """
        Order eligible candidates best-first

        Eligible: fitted successfully, finite primary metric, strategy available.
        Sort key: (metric, complexity, model_name).
        """
        eligible = []
        for record in candidate_metrics:
            value = getattr(record, self.primary_metric)
            if not record.is_eligible or value is None or not math.isfinite(value):
                continue
            if record.model_name not in candidate_models:
                logger.warning(f"No strategy registered for {record.model_name}, skipping")
                continue
            eligible.append(record)

        return sorted(
            eligible,
            key=lambda r: (
                getattr(r, self.primary_metric),
                candidate_models[r.model_name].complexity,
                r.model_name,
            ),
        )

    def select(
        self,
        product_id: str,
        candidate_metrics: Sequence[MetricRecord],
        candidate_models: Mapping[str, ForecastModel],
        full_series: DemandSeries,
        horizon: int,
        log_transform: bool = False
    ) -> SelectionResult:
        """
        Choose the winning strategy and refit it on the full series

        Raises:
            NoEligibleModelError: every candidate failed to fit or refit
        """
        ranking = self.rank(candidate_metrics, candidate_models)

        if not ranking:
            raise NoEligibleModelError(
                product_id,
                details={
                    "attempts": {
                        r.model_name: r.error or r.status for r in candidate_metrics
                    }
                },
            )

        refit_errors = {}
        for record in ranking:
            strategy = candidate_models[record.model_name]
            try:
                refit = strategy.fit(full_series, log_transform=log_transform)
                yhat = refit.predict(horizon)
            except FitError as e:
                logger.warning(f"{product_id}: refit of {record.model_name} failed: {e}")
                refit_errors[record.model_name] = str(e)
                continue

            forecast = pd.DataFrame({
                "ds": full_series.future_index(horizon),
                "yhat": yhat,
            })

            logger.info(
                f"{product_id}: selected {record.model_name} "
                f"({self.primary_metric}={getattr(record, self.primary_metric):.3f})"
            )
            return SelectionResult(
                product_id=product_id,
                model_name=record.model_name,
                refit_model=refit,
                forecast=forecast,
                holdout_metric=float(getattr(record, self.primary_metric)),
                primary_metric=self.primary_metric,
            )

        raise NoEligibleModelError(product_id, details={"refit_errors": refit_errors})


def select(
    product_id: str,
    candidate_metrics: Sequence[MetricRecord],
    candidate_models: Mapping[str, ForecastModel],
    full_series: DemandSeries,
    horizon: int = 1,
    log_transform: bool = False
) -> SelectionResult:
    """Lowest-RMSE selection with simpler-model tie-break"""
    return ModelSelector("rmse").select(
        product_id,
        candidate_metrics,
        candidate_models,
        full_series,
        horizon=horizon,
        log_transform=log_transform,
    )
