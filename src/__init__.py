"""
Pharmaceutical demand forecasting

Modules:
- pharma_demand: per-product holdout model selection and 30-day-ahead forecasts
"""
