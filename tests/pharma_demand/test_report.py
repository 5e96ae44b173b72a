"""
Report tests

Tables are flat, sorted, and list every requested product.
"""

import json

import pandas as pd
import pytest

from src.pharma_demand.config import ForecastConfig
from src.pharma_demand.errors import InsufficientDataError
from src.pharma_demand.evaluation import MetricRecord
from src.pharma_demand.pipeline import run_product
from src.pharma_demand.report import (FORECAST_COLUMNS, METRIC_COLUMNS,
                                      STATUS_COLUMNS, ForecastReport,
                                      ProductOutcome, ProductStatus)


@pytest.fixture
def report(periodic_series):
    config = ForecastConfig(holdout_length=12, forecast_horizon=2, models=("seasonal_naive",))
    forecasted = run_product(periodic_series, config)
    excluded = ProductOutcome.from_error(
        "B", ProductStatus.EXCLUDED, InsufficientDataError("B", n_obs=3, required=14)
    )
    return ForecastReport([excluded, forecasted], config=config.to_dict())


class TestTables:

    def test_columns(self, report):
        assert list(report.metrics_table().columns) == METRIC_COLUMNS
        assert list(report.forecast_table().columns) == FORECAST_COLUMNS
        assert list(report.status_table().columns) == STATUS_COLUMNS

    def test_status_sorted_and_complete(self, report):
        status = report.status_table()
        assert status["product_id"].tolist() == ["B", "PERIODIC"]
        assert status["status"].tolist() == ["excluded", "forecasted"]
        assert "too short" in status["reason"].iloc[0]

    def test_forecast_rows(self, report):
        forecasts = report.forecast_table()
        assert len(forecasts) == 2
        assert forecasts["ds"].tolist() == [pd.Timestamp("2024-01-01"), pd.Timestamp("2024-02-01")]

    def test_summary_counts(self, report):
        summary = report.summary()
        assert summary["n_products"] == 2
        assert summary["forecasted"] == 1
        assert summary["excluded"] == 1
        assert summary["failed"] == 0
        assert summary["chosen_models"] == {"seasonal_naive": 1}

    def test_by_status_accepts_strings(self, report):
        assert report.by_status("excluded") == ["B"]

    def test_duplicate_outcome_rejected(self):
        outcome = ProductOutcome("A", ProductStatus.FAILED)
        with pytest.raises(ValueError, match="Duplicate"):
            ForecastReport([outcome, outcome])

    def test_empty_report_tables(self):
        empty = ForecastReport([])
        assert empty.metrics_table().empty
        assert empty.forecast_table().empty
        assert empty.summary()["n_products"] == 0


class TestSave:

    def test_save_csv(self, report, tmp_path):
        paths = report.save(tmp_path / "out")

        assert paths["metrics"].name == "metrics.csv"
        metrics = pd.read_csv(paths["metrics"])
        assert metrics["model_name"].tolist() == ["seasonal_naive"]

        status = pd.read_csv(paths["status"])
        assert set(status["status"]) == {"excluded", "forecasted"}

        summary = json.loads(paths["summary"].read_text())
        assert summary["summary"]["forecasted"] == 1
        assert summary["config"]["holdout_length"] == 12
        assert not list((tmp_path / "out").glob("*.tmp"))

    def test_save_parquet(self, report, tmp_path):
        paths = report.save(tmp_path, fmt="parquet")
        forecasts = pd.read_parquet(paths["forecasts"])
        assert len(forecasts) == 2

    def test_unknown_format_rejected(self, report, tmp_path):
        with pytest.raises(ValueError):
            report.save(tmp_path, fmt="xml")


def test_metric_record_rows_sorted_by_model():
    outcome = ProductOutcome(
        "P",
        ProductStatus.FAILED,
        metrics=(
            MetricRecord.failed("P", "seasonal_naive", "x"),
            MetricRecord.failed("P", "arima", "y"),
        ),
    )
    table = ForecastReport([outcome]).metrics_table()
    assert table["model_name"].tolist() == ["arima", "seasonal_naive"]
