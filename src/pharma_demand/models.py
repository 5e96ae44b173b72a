"""
Forecasting model strategies

Each strategy fits one product's training window independently:
1. Seasonal naive (baseline every other model must beat)
2. Holt-Winters exponential smoothing (statsmodels)
3. AutoETS (statsforecast)
4. ARIMA with AIC order search (statsmodels)

Strategies only hold configuration; fit() returns a FittedModel and never
mutates the strategy, so one strategy instance can be shared across threads.
"""

import itertools
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from .errors import FitError
from .series_store import DemandSeries

logger = logging.getLogger(__name__)

Forecaster = Callable[[int], np.ndarray]


@dataclass(frozen=True, eq=False)
class FittedModel:
    """A strategy bound to one series' data"""
    model_name: str
    complexity: int
    n_obs: int
    log_transform: bool
    forecaster: Forecaster = field(repr=False)
    params: Dict[str, Any] = field(default_factory=dict)

    def predict(self, horizon: int) -> np.ndarray:
        """
        Forecast the next `horizon` periods on the natural scale

        Values fitted on log1p scale are inverted with expm1 before returning,
        and demand is clipped at zero.
        """
        if horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {horizon}")

        try:
            preds = np.asarray(self.forecaster(horizon), dtype=float).reshape(-1)
        except Exception as e:
            raise FitError(self.model_name, f"forecast failed: {e}") from e
        if len(preds) != horizon:
            raise FitError(
                self.model_name,
                f"forecast length {len(preds)} != horizon {horizon}",
            )
        if self.log_transform:
            preds = np.expm1(preds)
        if not np.isfinite(preds).all():
            raise FitError(self.model_name, "forecast contains NaN/inf")

        return np.maximum(preds, 0.0)  # No negative demand


class ForecastModel(ABC):
    """Base class for forecasting strategies"""

    name: str = "base"
    complexity: int = 0
    min_obs: int = 2

    def fit(
        self,
        series: Union[DemandSeries, np.ndarray],
        log_transform: bool = False
    ) -> FittedModel:
        """Fit strategy to training data"""
        y = self._check_trainable(series)
        y_fit = np.log1p(y) if log_transform else y

        try:
            forecaster, params = self._fit(y_fit)
        except FitError:
            raise
        except Exception as e:
            raise FitError(self.name, str(e)) from e

        logger.debug(f"{self.name} fitted on {len(y)} observations: {params}")
        return FittedModel(
            model_name=self.name,
            complexity=self.complexity,
            n_obs=len(y),
            log_transform=log_transform,
            forecaster=forecaster,
            params=params,
        )

    def predict(self, fitted: FittedModel, horizon: int) -> np.ndarray:
        """Generate forecast for given horizon"""
        return fitted.predict(horizon)

    def get_name(self) -> str:
        return self.name

    def _check_trainable(self, series: Union[DemandSeries, np.ndarray]) -> np.ndarray:
        """Reject degenerate training data"""
        y = series.y if isinstance(series, DemandSeries) else np.asarray(series, dtype=float)
        y = np.array(y, dtype=float)

        if len(y) < self.min_obs:
            raise FitError(self.name, f"too short: {len(y)} < {self.min_obs} observations")
        if not np.isfinite(y).all():
            raise FitError(self.name, "training data contains NaN/inf")
        if np.ptp(y) == 0:
            raise FitError(self.name, f"constant series (all values = {y[0]:g})")
        return y

    @abstractmethod
    def _fit(self, y: np.ndarray) -> Tuple[Forecaster, Dict[str, Any]]:
        """Return (forecaster, params) for validated training values"""
        pass


class SeasonalNaiveModel(ForecastModel):
    """Repeat the last seasonal cycle; overall mean with less than one cycle"""

    name = "seasonal_naive"
    complexity = 0
    min_obs = 2

    def __init__(self, season_length: int = 12):
        if season_length < 1:
            raise ValueError(f"season_length must be >= 1, got {season_length}")
        self.season_length = season_length

    def _fit(self, y: np.ndarray) -> Tuple[Forecaster, Dict[str, Any]]:
        m = self.season_length

        if len(y) < m:
            mean = float(np.mean(y))
            return (lambda h: np.full(h, mean)), {"method": "mean", "season_length": m}

        last_cycle = y[-m:].copy()

        def forecaster(h: int) -> np.ndarray:
            return last_cycle[np.arange(h) % m]

        return forecaster, {"method": "seasonal", "season_length": m}


class ExponentialSmoothingModel(ForecastModel):
    """Holt-Winters exponential smoothing, configuration chosen by AIC"""

    name = "exponential_smoothing"
    complexity = 1
    min_obs = 3

    def __init__(self, season_length: int = 12, max_iter: int = 200):
        self.season_length = season_length
        self.max_iter = max_iter

    def _configurations(self, n: int) -> List[Tuple[Optional[str], Optional[str]]]:
        configs = [(None, None), ("add", None)]
        if self.season_length > 1 and n >= 2 * self.season_length:
            configs += [(None, "add"), ("add", "add")]
        return configs

    def _fit(self, y: np.ndarray) -> Tuple[Forecaster, Dict[str, Any]]:
        from statsmodels.tsa.holtwinters import ExponentialSmoothing

        candidates = []
        errors = []

        for trend, seasonal in self._configurations(len(y)):
            try:
                model = ExponentialSmoothing(
                    y,
                    trend=trend,
                    seasonal=seasonal,
                    seasonal_periods=self.season_length if seasonal else None,
                    initialization_method="estimated",
                )
                result = model.fit(
                    optimized=True,
                    minimize_kwargs={"options": {"maxiter": self.max_iter}},
                )
            except Exception as e:
                errors.append(f"trend={trend} seasonal={seasonal}: {e}")
                continue

            aic = float(result.aic)
            if not np.isfinite(aic):
                errors.append(f"trend={trend} seasonal={seasonal}: non-finite AIC ({aic})")
                continue
            candidates.append((aic, len(candidates), trend, seasonal, result))

        if not candidates:
            raise FitError(self.name, "no configuration could be fitted", {"errors": errors})

        aic, _, trend, seasonal, result = min(candidates, key=lambda c: (c[0], c[1]))

        def forecaster(h: int) -> np.ndarray:
            return np.asarray(result.forecast(h), dtype=float)

        params = {"trend": trend, "seasonal": seasonal, "aic": aic}
        if seasonal:
            params["season_length"] = self.season_length
        return forecaster, params


class AutoETSModel(ForecastModel):
    """statsforecast AutoETS (error/trend/season selected automatically)"""

    name = "auto_ets"
    complexity = 2
    min_obs = 4

    def __init__(self, season_length: int = 12):
        self.season_length = season_length

    def _fit(self, y: np.ndarray) -> Tuple[Forecaster, Dict[str, Any]]:
        from statsforecast.models import AutoETS

        # Seasonal ETS needs two full cycles
        season_length = self.season_length if len(y) >= 2 * self.season_length else 1

        model = AutoETS(season_length=season_length)
        model.fit(y.astype(np.float64))

        def forecaster(h: int) -> np.ndarray:
            return np.asarray(model.predict(h=h)["mean"], dtype=float)

        return forecaster, {"season_length": season_length}


class ARIMAModel(ForecastModel):
    """ARIMA with order chosen by minimizing AIC over a bounded grid"""

    name = "arima"
    complexity = 3
    min_obs = 6

    def __init__(
        self,
        max_p: int = 2,
        max_d: int = 1,
        max_q: int = 2,
        max_iter: int = 50,
        time_budget_sec: float = 30.0
    ):
        self.max_p = max_p
        self.max_d = max_d
        self.max_q = max_q
        self.max_iter = max_iter
        self.time_budget_sec = time_budget_sec

    def order_grid(self, n: int) -> List[Tuple[int, int, int]]:
        """Candidate (p, d, q) orders small enough for n observations"""
        grid = itertools.product(
            range(self.max_p + 1), range(self.max_d + 1), range(self.max_q + 1)
        )
        return [order for order in grid if sum(order) + 2 < n]

    def _fit(self, y: np.ndarray) -> Tuple[Forecaster, Dict[str, Any]]:
        from statsmodels.tsa.arima.model import ARIMA

        start = time.monotonic()
        best = None
        n_tried = 0
        rejected: Dict[str, str] = {}

        for order in self.order_grid(len(y)):
            if time.monotonic() - start > self.time_budget_sec:
                logger.warning(
                    f"ARIMA order search stopped after {n_tried} orders "
                    f"({self.time_budget_sec:g}s budget)"
                )
                break

            n_tried += 1
            try:
                result = ARIMA(y, order=order).fit(
                    method_kwargs={"maxiter": self.max_iter}
                )
            except Exception as e:
                rejected[str(order)] = str(e)
                continue

            retvals = result.mle_retvals or {}
            if not retvals.get("converged", True):
                rejected[str(order)] = f"not converged in {self.max_iter} iterations"
                continue

            aic = float(result.aic)
            if not np.isfinite(aic):
                rejected[str(order)] = f"non-finite AIC ({aic})"
                continue

            if best is None or aic < best[0]:
                best = (aic, order, result)

        if best is None:
            raise FitError(
                self.name,
                f"no ARIMA order converged ({n_tried} tried)",
                {"rejected": rejected},
            )

        aic, order, result = best

        def forecaster(h: int) -> np.ndarray:
            return np.asarray(result.forecast(steps=h), dtype=float)

        return forecaster, {"order": order, "aic": aic, "orders_tried": n_tried}


class ModelFactory:
    """Factory for creating model instances"""

    _models = {
        "seasonal_naive": SeasonalNaiveModel,
        "exponential_smoothing": ExponentialSmoothingModel,
        "auto_ets": AutoETSModel,
        "arima": ARIMAModel,
    }

    @classmethod
    def create(cls, model_name: str, **kwargs) -> ForecastModel:
        """Create model by name"""
        if model_name not in cls._models:
            raise ValueError(f"Unknown model: {model_name}")

        return cls._models[model_name](**kwargs)

    @classmethod
    def list_models(cls) -> List[str]:
        """List available models"""
        return list(cls._models.keys())

    @classmethod
    def from_config(cls, config) -> List[ForecastModel]:
        """Build the candidate strategies named in a ForecastConfig"""
        kwargs_by_model = {
            "seasonal_naive": {"season_length": config.season_length},
            "exponential_smoothing": {"season_length": config.season_length},
            "auto_ets": {"season_length": config.season_length},
            "arima": {
                "max_p": config.arima_max_p,
                "max_d": config.arima_max_d,
                "max_q": config.arima_max_q,
                "max_iter": config.arima_max_iter,
                "time_budget_sec": config.arima_time_budget_sec,
            },
        }
        return [cls.create(name, **kwargs_by_model.get(name, {})) for name in config.models]
