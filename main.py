#!/usr/bin/env python3
"""
Building Heating Load Analysis - Main Pipeline
==============================================

Orchestrates the linear-regression pipeline for the building heating load.

Phases:
    1. EDA - Exploratory Data Analysis and outlier report
    2. Preprocessing - Split, feature engineering and recipe
    3. Training - Ordinary least squares fit
    4. Evaluation - Test metrics and k-fold cross-validation
    5. Prediction - Test-set predictions with error bands

Usage:
    # Run complete pipeline
    python main.py --data data/raw/ENB2012_data.xlsx

    # Run specific phase
    python main.py --data data/raw/ENB2012_data.xlsx --phase cv

    # Run with a different seed
    python main.py --data data/raw/ENB2012_data.xlsx --seed 42
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from heatload.data_loader import load_config, load_data, coerce_types, validate_data, print_data_summary
from heatload.eda import generate_eda_report, print_correlation_insights, print_outlier_report
from heatload.preprocessing import preprocess_pipeline, print_preprocessing_summary
from heatload.model import train_model, print_model_summary, HeatingLoadModel
from heatload.evaluation import cross_validate, evaluate_model, print_evaluation_report
from heatload.prediction import run_prediction, print_prediction_results


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        ]
    )


def get_seed(config: Dict[str, Any]) -> int:
    return config.get('split', {}).get('seed', 123)


def load_dataset(data_path: str, config: Dict[str, Any]) -> pd.DataFrame:
    """Load, coerce and validate the building records."""
    df = load_data(data_path, sheet_name=config.get('data', {}).get('sheet_name', 0))
    df = coerce_types(df)
    print_data_summary(df)

    is_valid, _ = validate_data(df, strict=False)
    if not is_valid:
        print("⚠️  Data validation warnings detected. Proceeding anyway...")

    return df


def run_eda(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 1: Exploratory Data Analysis.

    Args:
        df: Type-coerced records
        config: Configuration dictionary

    Returns:
        EDA report dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 1: EXPLORATORY DATA ANALYSIS")
    print("=" * 70)

    output_dir = config.get('output', {}).get('figures_path', 'reports/figures/')
    threshold = config.get('outliers', {}).get('z_threshold', 3.0)

    report = generate_eda_report(df, output_dir=output_dir, outlier_threshold=threshold)

    print_correlation_insights(pd.DataFrame(report["correlation_matrix"]))
    print_outlier_report(report, threshold=threshold)

    print(f"\n✓ EDA complete. {len(report['figures'])} figures saved to {output_dir}")

    return report


def run_preprocessing(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 2: Data Preprocessing.

    Args:
        df: Type-coerced records
        config: Configuration dictionary

    Returns:
        Preprocessing result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 2: DATA PREPROCESSING")
    print("=" * 70)

    split_config = config.get('split', {})
    prep_config = config.get('preprocessing', {})

    result = preprocess_pipeline(
        df,
        train_proportion=split_config.get('train_proportion', 0.75),
        seed=get_seed(config),
        drop_columns=prep_config.get('drop_columns'),
        save_recipe=config.get('output', {}).get('recipe_path')
    )

    print_preprocessing_summary(result)

    return result


def run_training(prep_result: Dict[str, Any], config: Dict[str, Any]) -> HeatingLoadModel:
    """
    Execute Phase 3: Model Training.

    Args:
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Trained model
    """
    print("\n" + "=" * 70)
    print("PHASE 3: MODEL TRAINING")
    print("=" * 70)

    model = train_model(
        prep_result['X_train'],
        prep_result['y_train'],
        config,
        save_path=config.get('output', {}).get('model_path')
    )

    print_model_summary(model)

    return model


def run_cross_validation(train: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run k-fold cross-validation on the training partition.

    Args:
        train: Training partition
        config: Configuration dictionary

    Returns:
        Cross-validation result dictionary
    """
    model_config = config.get('model', {})

    return cross_validate(
        train,
        k=config.get('cross_validation', {}).get('folds', 5),
        seed=get_seed(config),
        drop_columns=config.get('preprocessing', {}).get('drop_columns'),
        drop_collinear=model_config.get('drop_collinear', True),
        fit_intercept=model_config.get('fit_intercept', True),
        tolerance=model_config.get('tolerance', 1e-7)
    )


def run_evaluation(
    model: HeatingLoadModel,
    prep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 4: Model Evaluation.

    Args:
        model: Trained model
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Evaluation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 4: MODEL EVALUATION")
    print("=" * 70)

    y_pred = model.predict(prep_result['X_test'])
    cv_result = run_cross_validation(prep_result['train'], config)

    result = evaluate_model(
        prep_result['y_test'],
        y_pred,
        model=model,
        cv_result=cv_result,
        output_dir=config.get('output', {}).get('reports_path', 'reports/')
    )

    print_evaluation_report(result['metrics'], cv_result)

    return result


def run_prediction_phase(
    model: HeatingLoadModel,
    prep_result: Dict[str, Any],
    config: Dict[str, Any],
    eval_result: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 5: Test-set predictions.

    Args:
        model: Trained model
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary
        eval_result: Evaluation result with metrics

    Returns:
        Prediction result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 5: PREDICTION")
    print("=" * 70)

    cv_result = eval_result.get('cross_validation')
    historical_rmse = cv_result['mean']['rmse'] if cv_result else eval_result['metrics']['rmse']

    result = run_prediction(
        model,
        prep_result['recipe'],
        prep_result['test'],
        metrics=eval_result['metrics'],
        historical_rmse=historical_rmse,
        output_dir=config.get('data', {}).get('predictions_path', 'data/predictions/')
    )

    print_prediction_results(result)

    return result


def run_full_pipeline(data_path: str, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute the complete 5-phase pipeline.

    Args:
        data_path: Path to the input spreadsheet
        config: Configuration dictionary

    Returns:
        Dictionary containing all phase results
    """
    print("\n" + "=" * 70)
    print("HEATING LOAD REGRESSION PIPELINE")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    print("\n📊 Loading data...")
    df = load_dataset(data_path, config)

    results = {
        'config': config,
        'data_shape': df.shape
    }

    results['eda'] = run_eda(df, config)
    results['preprocessing'] = run_preprocessing(df, config)
    results['model'] = run_training(results['preprocessing'], config)
    results['evaluation'] = run_evaluation(results['model'], results['preprocessing'], config)
    results['prediction'] = run_prediction_phase(
        results['model'], results['preprocessing'], config, results['evaluation']
    )

    metrics = results['evaluation']['metrics']
    cv_mean = results['evaluation']['cross_validation']['mean']

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Input data: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"  • Test RMSE: {metrics['rmse']:.4f} | CV RMSE: {cv_mean['rmse']:.4f}")
    print(f"  • Test R²: {metrics['r_squared']:.4f} | CV R²: {cv_mean['r_squared']:.4f}")
    if results['model'].dropped_columns:
        print(f"  • Collinear columns dropped: {', '.join(results['model'].dropped_columns)}")
    print(f"  • Output: {results['prediction']['csv_path']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def run_single_phase(phase: str, data_path: str, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute a single phase of the pipeline.

    Args:
        phase: Phase to run ('eda', 'preprocess', 'train', 'evaluate', 'cv', 'predict')
        data_path: Path to the input spreadsheet
        config: Configuration dictionary

    Returns:
        Phase result dictionary
    """
    df = load_dataset(data_path, config)

    if phase == 'eda':
        return run_eda(df, config)

    elif phase == 'preprocess':
        return run_preprocessing(df, config)

    elif phase == 'train':
        prep_result = run_preprocessing(df, config)
        return {'model': run_training(prep_result, config), 'preprocessing': prep_result}

    elif phase == 'evaluate':
        prep_result = run_preprocessing(df, config)
        model = run_training(prep_result, config)
        return run_evaluation(model, prep_result, config)

    elif phase == 'cv':
        prep_result = run_preprocessing(df, config)
        cv_result = run_cross_validation(prep_result['train'], config)
        print(f"\nCV mean: {cv_result['mean']}")
        return cv_result

    elif phase == 'predict':
        prep_result = run_preprocessing(df, config)
        model = run_training(prep_result, config)
        eval_result = run_evaluation(model, prep_result, config)
        return run_prediction_phase(model, prep_result, config, eval_result)

    else:
        raise ValueError(
            f"Unknown phase: {phase}. Choose from: eda, preprocess, train, evaluate, cv, predict"
        )


def main(argv: Optional[list] = None) -> int:
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Linear regression pipeline for building heating load",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --data data/raw/ENB2012_data.xlsx
  python main.py --data data/raw/ENB2012_data.xlsx --phase eda
  python main.py --data data/raw/ENB2012_data.xlsx --seed 42 --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        required=True,
        help='Path to the input spreadsheet (.xlsx, .xls or .csv)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--seed', '-s',
        type=int,
        default=None,
        help='Random seed for the split and folds (overrides the config)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['eda', 'preprocess', 'train', 'evaluate', 'cv', 'predict', 'all'],
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    # Check if data file exists
    if not Path(args.data).exists():
        print(f"Error: Data file not found: {args.data}")
        print("\nExpected format: spreadsheet with the ENB2012 building columns")
        return 1

    # Check if config exists
    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return 1

    try:
        config = load_config(args.config)
        if args.seed is not None:
            config.setdefault('split', {})['seed'] = args.seed

        level = 'DEBUG' if args.verbose else config.get('logging', {}).get('level', 'INFO')
        setup_logging(level)

        if args.phase == 'all':
            run_full_pipeline(args.data, config)
        else:
            run_single_phase(args.phase, args.data, config)

        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
