"""Synthetic demand series shared by the pharma_demand tests."""

import numpy as np
import pandas as pd
import pytest

from src.pharma_demand.series_store import DemandSeries

SEASONAL_PATTERN = np.array(
    [10.0, 12.0, 15.0, 20.0, 25.0, 30.0, 28.0, 24.0, 18.0, 14.0, 11.0, 9.0]
)


def make_series(product_id, values, start="2021-01-01", freq="MS"):
    values = np.asarray(values, dtype=float)
    ds = pd.date_range(start, periods=len(values), freq=freq)
    return DemandSeries(product_id, ds, values, freq)


def sinusoidal_values(n=24, period=12, level=100.0, amplitude=30.0):
    t = np.arange(n)
    return level + amplitude * np.sin(2 * np.pi * t / period)


@pytest.fixture
def periodic_series():
    """Noise-free period-12 series, 3 full cycles"""
    return make_series("PERIODIC", np.tile(SEASONAL_PATTERN, 3))


@pytest.fixture
def sinusoidal_series():
    return make_series("A", sinusoidal_values(24))


@pytest.fixture
def short_series():
    return make_series("B", [5.0, 7.0, 6.0])


@pytest.fixture
def zero_series():
    return make_series("ZERO", np.zeros(24))


@pytest.fixture
def noisy_series():
    rng = np.random.default_rng(42)
    values = np.tile(SEASONAL_PATTERN, 4) * 10 + rng.normal(0, 5, 48)
    return make_series("NOISY", np.abs(values))
