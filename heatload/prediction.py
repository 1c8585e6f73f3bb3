"""
Prediction Module - Phase 5
============================

Generates heating load predictions for a partition of buildings.

Features:
    - Predictions through the fitted recipe and model
    - Error bands based on historical RMSE
    - Export predictions to CSV and a JSON report
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime

import numpy as np
import pandas as pd

from .data_loader import TARGET_COLUMN
from .model import HeatingLoadModel
from .preprocessing import BuildingRecipe, engineer_features, apply_recipe

logger = logging.getLogger(__name__)

Z_SCORES = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}


def predict_heating_load(
    model: HeatingLoadModel,
    recipe: BuildingRecipe,
    df: pd.DataFrame,
    historical_rmse: Optional[float] = None,
    confidence_level: float = 0.95
) -> pd.DataFrame:
    """
    Predict the heating load for a set of buildings.

    Engineering is applied here if the derived columns are absent. When the
    heating load is present, the actual value and residual are included.

    Args:
        model: Fitted model
        recipe: Recipe fitted on the training partition
        df: Buildings to predict
        historical_rmse: RMSE used to build the error band (optional)
        confidence_level: 0.90, 0.95 or 0.99

    Returns:
        DataFrame indexed like df with prediction columns
    """
    if confidence_level not in Z_SCORES:
        raise ValueError(f"confidence_level must be one of {sorted(Z_SCORES)}")

    if 'glazing_type' not in df.columns or 'surface_height' not in df.columns:
        df = engineer_features(df)

    predictions = model.predict(apply_recipe(recipe, df))

    result = pd.DataFrame({'predicted_heating_load': predictions}, index=df.index)

    if TARGET_COLUMN in df.columns:
        result['actual_heating_load'] = df[TARGET_COLUMN].to_numpy(dtype=float)
        result['residual'] = result['actual_heating_load'] - result['predicted_heating_load']

    if historical_rmse is not None:
        margin = Z_SCORES[confidence_level] * historical_rmse
        result['lower_bound'] = result['predicted_heating_load'] - margin
        result['upper_bound'] = result['predicted_heating_load'] + margin

    return result


def export_predictions(
    predictions: pd.DataFrame,
    output_path: str,
    include_timestamp: bool = True
) -> str:
    """
    Export predictions to CSV file.

    Args:
        predictions: Output of predict_heating_load
        output_path: Directory to save the file
        include_timestamp: Whether to add timestamp to filename

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.mkdir(parents=True, exist_ok=True)

    if include_timestamp:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"heating_load_predictions_{timestamp}.csv"
    else:
        filename = "heating_load_predictions.csv"

    filepath = output_path / filename
    predictions.to_csv(filepath, index_label='row_index')

    logger.info(f"Predictions exported to {filepath}")
    return str(filepath)


def generate_prediction_report(
    predictions: pd.DataFrame,
    metrics: Optional[Dict[str, Any]] = None,
    confidence_level: float = 0.95,
    output_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Generate a prediction summary report.

    Args:
        predictions: Output of predict_heating_load
        metrics: Evaluation metrics (optional)
        confidence_level: Confidence level of the error band
        output_path: Path to save the report (optional)

    Returns:
        Report dictionary
    """
    predicted = predictions['predicted_heating_load']

    report = {
        'generated_at': datetime.now().isoformat(),
        'n_predictions': int(len(predictions)),
        'summary': {
            'mean': float(predicted.mean()),
            'min': float(predicted.min()),
            'max': float(predicted.max())
        }
    }

    if 'lower_bound' in predictions.columns:
        report['confidence_level'] = confidence_level
        report['margin_of_error'] = float(
            (predictions['upper_bound'] - predictions['predicted_heating_load']).iloc[0]
        )

    if 'actual_heating_load' in predictions.columns:
        inside = None
        if 'lower_bound' in predictions.columns:
            inside = float(np.mean(
                predictions['actual_heating_load'].between(
                    predictions['lower_bound'], predictions['upper_bound']
                )
            ))
        report['coverage'] = inside

    if metrics:
        report['metrics'] = {key: metrics[key] for key in ('rmse', 'mae', 'r_squared') if key in metrics}

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            json.dump(report, f, indent=2)
        logger.info(f"Prediction report saved to {output_path}")

    return report


def run_prediction(
    model: HeatingLoadModel,
    recipe: BuildingRecipe,
    df: pd.DataFrame,
    metrics: Optional[Dict[str, Any]] = None,
    historical_rmse: Optional[float] = None,
    output_dir: str = "data/predictions/",
    confidence_level: float = 0.95
) -> Dict[str, Any]:
    """
    Execute the prediction workflow and export the results.

    Args:
        model: Fitted model
        recipe: Fitted recipe
        df: Buildings to predict (normally the test partition)
        metrics: Evaluation metrics for the report
        historical_rmse: RMSE for the error band, e.g. the cross-validated mean
        output_dir: Directory for output files
        confidence_level: Confidence level of the error band

    Returns:
        Dictionary containing predictions, report and file paths
    """
    logger.info("=" * 60)
    logger.info("STARTING PREDICTION (Phase 5)")
    logger.info("=" * 60)

    predictions = predict_heating_load(
        model, recipe, df,
        historical_rmse=historical_rmse,
        confidence_level=confidence_level
    )

    csv_path = export_predictions(predictions, output_dir)

    report_path = Path(output_dir) / "prediction_report.json"
    report = generate_prediction_report(
        predictions, metrics, confidence_level,
        output_path=str(report_path)
    )

    logger.info("=" * 60)
    logger.info("PREDICTION COMPLETE")
    logger.info(f"  Rows predicted: {len(predictions)}")
    logger.info(f"  Output: {csv_path}")
    logger.info("=" * 60)

    return {
        'predictions': predictions,
        'csv_path': csv_path,
        'report_path': str(report_path),
        'report': report
    }


def print_prediction_results(result: Dict[str, Any], n_rows: int = 10) -> None:
    """
    Print formatted prediction results to console.

    Args:
        result: Result dictionary from run_prediction
        n_rows: Number of rows to show
    """
    predictions = result['predictions']

    print("\n" + "=" * 70)
    print(f"HEATING LOAD PREDICTIONS ({len(predictions)} rows)")
    print("=" * 70)
    print(predictions.head(n_rows).round(3).to_string())
    print("-" * 70)

    report = result['report']
    if report.get('coverage') is not None:
        print(f"Actual values inside the {report['confidence_level']:.0%} band: "
              f"{report['coverage']:.1%}")

    print(f"\nPredictions exported to: {result['csv_path']}")
    print(f"Full report saved to: {result['report_path']}")
    print("=" * 70 + "\n")
