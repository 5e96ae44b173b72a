"""
Pipeline tests

End-to-end runs on synthetic data: per-product terminal states, failure
scoping, determinism and the run deadline.
"""

import time
import warnings

import numpy as np
import pandas as pd
import pytest

from src.pharma_demand.config import ForecastConfig
from src.pharma_demand.evaluation import STATUS_FIT_FAILED
from src.pharma_demand.models import SeasonalNaiveModel
from src.pharma_demand.pipeline import ForecastPipeline, run_forecast, run_product
from src.pharma_demand.report import ProductStatus
from src.pharma_demand.series_store import SeriesStore

from conftest import make_series, sinusoidal_values

FAST_MODELS = ("seasonal_naive", "exponential_smoothing", "arima")


class SlowNaiveModel(SeasonalNaiveModel):
    """Seasonal naive that stalls on products whose id starts with SLOW"""

    name = "slow_naive"

    def __init__(self, season_length=12, delay=2.0):
        super().__init__(season_length)
        self.delay = delay

    def fit(self, series, log_transform=False):
        if getattr(series, "product_id", "").startswith("SLOW"):
            time.sleep(self.delay)
        return super().fit(series, log_transform)


class BrokenForecastModel(SeasonalNaiveModel):
    """Fits normally but its forecaster raises"""

    name = "broken_forecast"

    def _fit(self, y):
        def forecaster(h):
            raise ValueError("forecast exploded")

        return forecaster, {}


@pytest.mark.smoke
class TestEndToEnd:

    def test_two_products_forecasted_and_excluded(self, sinusoidal_series, short_series):
        """A (24 monthly points) is forecast; B (3 points) is excluded"""
        store = SeriesStore([sinusoidal_series, short_series])
        config = ForecastConfig(holdout_length=3, forecast_horizon=1)

        report = run_forecast(store, config)

        a = report["A"]
        assert a.status == ProductStatus.FORECASTED
        assert a.model_name in config.models
        assert a.selection.horizon == 1
        assert a.selection.forecast["ds"].iloc[0] == pd.Timestamp("2023-01-01")

        b = report["B"]
        assert b.status == ProductStatus.EXCLUDED
        assert b.error_type == "InsufficientDataError"

        forecasts = report.forecast_table()
        assert len(forecasts) == 1
        assert forecasts["product_id"].tolist() == ["A"]
        assert (forecasts["predicted_demand"] >= 0).all()

        status = report.status_table()
        assert status["product_id"].tolist() == ["A", "B"]
        assert status["status"].tolist() == ["forecasted", "excluded"]

        metrics = report.metrics_table()
        assert set(metrics["product_id"]) == {"A"}
        assert set(metrics["model_name"]) == set(config.models)

    def test_month_end_timestamps_forecast_next_month(self):
        ds = pd.date_range("2021-01-01", periods=24, freq="MS") + pd.offsets.MonthEnd(0)
        df = pd.DataFrame({"unique_id": "ME", "ds": ds, "y": sinusoidal_values(24)})
        store = SeriesStore.from_frame(df, freq="MS")
        config = ForecastConfig(holdout_length=3, forecast_horizon=2, models=("seasonal_naive",))

        report = run_forecast(store, config)

        forecast_ds = report["ME"].selection.forecast["ds"]
        assert list(forecast_ds.dt.to_period("M").astype(str)) == ["2023-01", "2023-02"]

    def test_periodic_series_selects_zero_error_model(self, periodic_series):
        config = ForecastConfig(holdout_length=12, forecast_horizon=12, models=FAST_MODELS)
        outcome = run_product(periodic_series, config)

        metrics = {r.model_name: r for r in outcome.metrics}
        assert metrics["seasonal_naive"].rmse == 0.0
        for record in metrics.values():
            if record.is_eligible:
                assert record.rmse >= 0

        assert outcome.status == ProductStatus.FORECASTED
        assert outcome.selection.holdout_metric <= metrics["seasonal_naive"].rmse
        assert outcome.model_name == "seasonal_naive"
        np.testing.assert_array_equal(
            outcome.selection.forecast["yhat"].to_numpy(), periodic_series.y[-12:]
        )


@pytest.mark.fail_loud
class TestFailureScoping:

    def test_all_fitters_fail_marks_product_failed(self, zero_series, sinusoidal_series):
        store = SeriesStore([zero_series, sinusoidal_series])
        config = ForecastConfig(holdout_length=3, models=FAST_MODELS)

        report = run_forecast(store, config)

        zero = report["ZERO"]
        assert zero.status == ProductStatus.FAILED
        assert zero.error_type == "NoEligibleModelError"
        assert zero.selection is None

        metrics = report.metrics_table()
        failed = metrics[metrics["product_id"] == "ZERO"]
        assert len(failed) == len(FAST_MODELS)
        assert (failed["status"] == STATUS_FIT_FAILED).all()
        assert failed["error"].str.contains("constant").all()

        # Sibling product is unaffected
        assert report["A"].status == ProductStatus.FORECASTED

    def test_no_product_silently_omitted(self, sinusoidal_series, short_series, zero_series):
        store = SeriesStore([sinusoidal_series, short_series, zero_series])
        report = run_forecast(store, ForecastConfig(holdout_length=3, models=FAST_MODELS))
        assert report.product_ids == ["A", "B", "ZERO"]
        assert report.summary()["forecasted"] == 1
        assert report.summary()["excluded"] == 1
        assert report.summary()["failed"] == 1

    def test_forecaster_error_keeps_sibling_metrics(self, sinusoidal_series):
        config = ForecastConfig(holdout_length=3)
        models = [SeasonalNaiveModel(), BrokenForecastModel()]

        outcome = run_product(sinusoidal_series, config, models=models)

        assert outcome.status == ProductStatus.FORECASTED
        assert outcome.model_name == "seasonal_naive"
        metrics = {r.model_name: r for r in outcome.metrics}
        assert metrics["seasonal_naive"].is_eligible
        assert metrics["broken_forecast"].status == STATUS_FIT_FAILED
        assert "forecast exploded" in metrics["broken_forecast"].error

    def test_candidate_products_subset(self, sinusoidal_series, short_series):
        store = SeriesStore([sinusoidal_series, short_series])
        config = ForecastConfig(holdout_length=3, candidate_products=("A",), models=FAST_MODELS)
        report = run_forecast(store, config)
        assert report.product_ids == ["A"]

    def test_duplicate_model_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            ForecastPipeline(models=[SeasonalNaiveModel(), SeasonalNaiveModel()])


class TestDeterminism:

    def test_identical_runs_identical_selection(self, noisy_series, sinusoidal_series):
        store = SeriesStore([noisy_series, sinusoidal_series])
        config = ForecastConfig(holdout_length=6, forecast_horizon=3, models=FAST_MODELS)

        first = run_forecast(store, config)
        second = run_forecast(store, config)

        for pid in first.product_ids:
            assert first[pid].model_name == second[pid].model_name
        pd.testing.assert_frame_equal(first.forecast_table(), second.forecast_table())
        pd.testing.assert_frame_equal(first.metrics_table(), second.metrics_table())


class TestDeadline:

    def test_deadline_keeps_completed_products(self):
        fast = make_series("FAST", sinusoidal_values(24))
        slow = make_series("SLOW", sinusoidal_values(24))
        store = SeriesStore([fast, slow])
        config = ForecastConfig(holdout_length=3, max_workers=2, deadline_sec=1.0)

        report = ForecastPipeline(config, models=[SlowNaiveModel(delay=2.0)]).run(store)

        assert report["FAST"].status == ProductStatus.FORECASTED
        assert report["SLOW"].status == ProductStatus.TIMED_OUT
        assert report["SLOW"].error_type == "RunTimeoutError"
        assert report.summary()["timed_out"] == 1
        assert report.forecast_table()["product_id"].tolist() == ["FAST"]


class TestWarningsIsolation:

    def test_concurrent_runs_leave_warning_filters_unchanged(self):
        store = SeriesStore([
            make_series(f"P{i:02d}", sinusoidal_values(24, amplitude=10.0 + 5 * i))
            for i in range(8)
        ])
        config = ForecastConfig(
            holdout_length=3,
            models=("exponential_smoothing", "auto_ets", "arima"),
            arima_max_p=1,
            arima_max_d=0,
            arima_max_q=1,
            max_workers=4,
            max_fit_workers=3,
        )
        run_forecast(store, config)  # warm up lazy imports

        before = list(warnings.filters)
        for _ in range(2):
            run_forecast(store, config)

        assert list(warnings.filters) == before
