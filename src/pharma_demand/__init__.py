"""
Pharmaceutical demand forecasting: per-product model selection

Implements the holdout model-selection loop:
- Series store (one cleaned demand series per product)
- Holdout splitting with explicit insufficient-data policy
- Model strategies (seasonal naive, Holt-Winters, AutoETS, ARIMA)
- Evaluation metrics (RMSE, MAE, MAPE)
- Lowest-RMSE selection, refit on full history, forward forecast
- Flat report tables (metrics, forecasts, per-product status)
"""

from .config import ForecastConfig, load_config
from .errors import (DemandForecastError, FitError, InsufficientDataError,
                     NoEligibleModelError, NotFoundError, RunTimeoutError)
from .evaluation import ForecastMetrics, MetricRecord, evaluate
from .models import (ARIMAModel, AutoETSModel, ExponentialSmoothingModel,
                     FittedModel, ForecastModel, ModelFactory,
                     SeasonalNaiveModel)
from .pipeline import ForecastPipeline, run_forecast, run_product
from .report import ForecastReport, ProductOutcome, ProductStatus
from .selection import ModelSelector, SelectionResult, select
from .series_store import DemandSeries, SeriesStore
from .splitting import HoldoutSplit, HoldoutSplitter, split

__all__ = [
    # Config
    "ForecastConfig",
    "load_config",
    # Errors
    "DemandForecastError",
    "NotFoundError",
    "InsufficientDataError",
    "FitError",
    "NoEligibleModelError",
    "RunTimeoutError",
    # Data
    "DemandSeries",
    "SeriesStore",
    "HoldoutSplit",
    "HoldoutSplitter",
    "split",
    # Models
    "ForecastModel",
    "FittedModel",
    "SeasonalNaiveModel",
    "ExponentialSmoothingModel",
    "AutoETSModel",
    "ARIMAModel",
    "ModelFactory",
    # Evaluation / selection
    "ForecastMetrics",
    "MetricRecord",
    "evaluate",
    "ModelSelector",
    "SelectionResult",
    "select",
    # Pipeline / report
    "ForecastPipeline",
    "run_forecast",
    "run_product",
    "ForecastReport",
    "ProductOutcome",
    "ProductStatus",
]
