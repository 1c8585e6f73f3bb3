"""
Building Heating Load Analysis
==============================

A linear-regression pipeline predicting a building's Heating Load from its
physical characteristics.

Modules:
    - data_loader: Spreadsheet ingestion, type coercion and validation
    - eda: Exploratory Data Analysis and response outlier report (Phase 1)
    - preprocessing: Split, feature engineering and the fitted recipe (Phase 2)
    - model: Ordinary least squares with collinearity checks (Phase 3)
    - evaluation: Regression metrics, cross-validation and diagnostics (Phase 4)
    - prediction: Test-set predictions and export (Phase 5)
"""

__version__ = "1.0.0"
__author__ = "Building Energy Analytics Team"
