"""
Demand forecasting errors

Failures are scoped to the smallest unit possible:
- FitError: one fitter on one product
- InsufficientDataError / NoEligibleModelError: one product
- RunTimeoutError: products still in flight when the run deadline expires
"""

from typing import Any, Dict, Optional


class DemandForecastError(Exception):
    """Base class for demand forecasting errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DemandForecastError):
    """Raised when a product is absent from the series store."""

    def __init__(self, product_id: str, details: Optional[Dict[str, Any]] = None):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found in series store", details)


class InsufficientDataError(DemandForecastError):
    """Raised when a series is too short for the requested holdout window."""

    def __init__(
        self,
        product_id: str,
        n_obs: int,
        required: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.product_id = product_id
        self.n_obs = n_obs
        self.required = required
        message = (
            f"Series {product_id} too short: {n_obs} observations, "
            f"need at least {required}"
        )
        super().__init__(message, details)


class FitError(DemandForecastError):
    """Raised when a fitter cannot produce a usable model for a series."""

    def __init__(self, model_name: str, reason: str, details: Optional[Dict[str, Any]] = None):
        self.model_name = model_name
        self.reason = reason
        super().__init__(f"{model_name} fit failed: {reason}", details)


class NoEligibleModelError(DemandForecastError):
    """Raised when every candidate fitter failed for a product."""

    def __init__(self, product_id: str, details: Optional[Dict[str, Any]] = None):
        self.product_id = product_id
        super().__init__(f"No eligible model for product {product_id}", details)


class RunTimeoutError(DemandForecastError, TimeoutError):
    """Raised for products that did not finish before the run deadline."""

    def __init__(self, product_id: str, deadline_sec: float, details: Optional[Dict[str, Any]] = None):
        self.product_id = product_id
        self.deadline_sec = deadline_sec
        super().__init__(
            f"Product {product_id} did not finish within the {deadline_sec:g}s run deadline",
            details,
        )
