"""
Forecast run configuration

Keep run parameters in one frozen object so every run logs the same config.
Defaults can be overridden from DEMAND_* environment variables (or a .env file).
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODELS: Tuple[str, ...] = (
    "seasonal_naive",
    "exponential_smoothing",
    "auto_ets",
    "arima",
)

SPLIT_POLICIES = ("exclude", "reduce")


@dataclass(frozen=True)
class ForecastConfig:
    # Split / horizon
    holdout_length: int = 6
    forecast_horizon: int = 1
    split_policy: str = "exclude"
    min_train_size: int = 1

    # Calendar
    freq: str = "MS"
    season_length: int = 12

    # Scope
    candidate_products: Union[str, Tuple[str, ...]] = "all"
    models: Tuple[str, ...] = DEFAULT_MODELS
    log_transform_for_fitting: bool = False

    # ARIMA order search budget
    arima_max_p: int = 2
    arima_max_d: int = 1
    arima_max_q: int = 2
    arima_max_iter: int = 50
    arima_time_budget_sec: float = 30.0

    # Concurrency
    max_workers: int = 4
    max_fit_workers: int = 2
    deadline_sec: Optional[float] = None

    # IO
    output_dir: str = "artifacts/forecast"

    def __post_init__(self):
        if self.holdout_length < 1:
            raise ValueError(f"holdout_length must be >= 1, got {self.holdout_length}")
        if self.forecast_horizon < 1:
            raise ValueError(f"forecast_horizon must be >= 1, got {self.forecast_horizon}")
        if self.season_length < 1:
            raise ValueError(f"season_length must be >= 1, got {self.season_length}")
        if self.split_policy not in SPLIT_POLICIES:
            raise ValueError(f"Unknown split_policy: {self.split_policy}")
        if self.min_train_size < 1:
            raise ValueError(f"min_train_size must be >= 1, got {self.min_train_size}")
        if self.max_workers < 1 or self.max_fit_workers < 1:
            raise ValueError("max_workers and max_fit_workers must be >= 1")
        if self.deadline_sec is not None and self.deadline_sec <= 0:
            raise ValueError(f"deadline_sec must be positive, got {self.deadline_sec}")
        if not self.models:
            raise ValueError("At least one model is required")
        if not isinstance(self.candidate_products, str):
            object.__setattr__(self, "candidate_products", tuple(self.candidate_products))
        elif self.candidate_products != "all":
            raise ValueError(
                f"candidate_products must be 'all' or a collection of ids, "
                f"got {self.candidate_products!r}"
            )
        object.__setattr__(self, "models", tuple(self.models))
        if len(set(self.models)) != len(self.models):
            raise ValueError(f"Duplicate models: {list(self.models)}")

    def with_overrides(self, **overrides) -> "ForecastConfig":
        return replace(self, **overrides)

    def output_path(self) -> Path:
        return Path(self.output_dir)

    def to_dict(self) -> dict:
        return asdict(self)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_list(name: str) -> Optional[Tuple[str, ...]]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_config(**overrides) -> ForecastConfig:
    """
    Load configuration from environment.

    Reads DEMAND_* variables from .env file or environment, then applies
    explicit keyword overrides (CLI flags win over env).
    """
    load_dotenv()

    defaults = ForecastConfig()
    values = {
        "holdout_length": _env_int("DEMAND_HOLDOUT_LENGTH", defaults.holdout_length),
        "forecast_horizon": _env_int("DEMAND_FORECAST_HORIZON", defaults.forecast_horizon),
        "season_length": _env_int("DEMAND_SEASON_LENGTH", defaults.season_length),
        "freq": os.getenv("DEMAND_FREQ", defaults.freq),
        "split_policy": os.getenv("DEMAND_SPLIT_POLICY", defaults.split_policy),
        "log_transform_for_fitting": _env_bool(
            "DEMAND_LOG_TRANSFORM", defaults.log_transform_for_fitting
        ),
        "max_workers": _env_int("DEMAND_MAX_WORKERS", defaults.max_workers),
        "max_fit_workers": _env_int("DEMAND_MAX_FIT_WORKERS", defaults.max_fit_workers),
        "deadline_sec": _env_float("DEMAND_DEADLINE_SEC", defaults.deadline_sec),
        "output_dir": os.getenv("DEMAND_OUTPUT_DIR", defaults.output_dir),
    }

    models = _env_list("DEMAND_MODELS")
    if models:
        values["models"] = models
    products = _env_list("DEMAND_PRODUCTS")
    if products:
        values["candidate_products"] = products

    values.update({k: v for k, v in overrides.items() if v is not None})
    return ForecastConfig(**values)


def parse_products(products: Optional[Iterable[str]]) -> Union[str, Tuple[str, ...]]:
    """Map an empty/absent product selection to "all"."""
    if not products:
        return "all"
    return tuple(products)
