"""
Demand Forecasting Test Suite

Tests organized by module:
- pharma_demand/test_series_store.py — ingestion contract (fail-loud)
- pharma_demand/test_splitting.py — holdout coverage and insufficient data
- pharma_demand/test_models.py — fitter contract and degenerate input
- pharma_demand/test_evaluation.py — RMSE/MAE/MAPE
- pharma_demand/test_selection.py — ranking, tie-break, refit
- pharma_demand/test_pipeline.py — end-to-end, failure scoping, deadline
- pharma_demand/test_report.py — output tables
- pharma_demand/test_prepare.py — raw file cleaning and gap filling
- pharma_demand/test_config.py — defaults, env vars, overrides
- pharma_demand/test_cli.py — run command exit codes and outputs
"""
