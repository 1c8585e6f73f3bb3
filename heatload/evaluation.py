"""
Model Evaluation Module - Phase 4
==================================

Provides regression metrics, k-fold cross-validation and diagnostic
visualizations for the heating load model.

Features:
    - RMSE, MAE, R² calculation
    - K-fold cross-validation refitting recipe and model per fold
    - Actual vs Predicted and residual diagnostics
    - Coefficient and fold summary charts
    - Evaluation report generation
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats
from sklearn.metrics import mean_squared_error, mean_absolute_error, r2_score
from sklearn.model_selection import KFold

from .model import HeatingLoadModel
from .preprocessing import engineer_features, fit_recipe, apply_recipe, get_target

logger = logging.getLogger(__name__)

METRIC_NAMES = ['rmse', 'mae', 'r_squared']


def calculate_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray
) -> Dict[str, Any]:
    """
    Calculate regression metrics for the heating load.

        rmse      = sqrt(mean((y - ŷ)²))
        mae       = mean(|y - ŷ|)
        r_squared = 1 - SS_res / SS_tot

    Args:
        y_true: Observed heating load
        y_pred: Predicted heating load

    Returns:
        Dictionary with rmse, mae, r_squared and error summaries
    """
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()

    if len(y_true) == 0:
        raise ValueError("Cannot evaluate empty predictions")
    if len(y_true) != len(y_pred):
        raise ValueError(f"Got {len(y_pred)} predictions for {len(y_true)} targets")

    errors = y_true - y_pred

    return {
        'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'mae': float(mean_absolute_error(y_true, y_pred)),
        'r_squared': float(r2_score(y_true, y_pred)),
        'mean_error': float(np.mean(errors)),
        'max_error': float(np.max(np.abs(errors))),
        'n_samples': int(len(y_true))
    }


def cross_validate(
    train: pd.DataFrame,
    k: int = 5,
    seed: int = 123,
    drop_columns: Optional[Sequence[str]] = None,
    drop_collinear: bool = True,
    fit_intercept: bool = True,
    tolerance: float = 1e-7
) -> Dict[str, Any]:
    """
    K-fold cross-validation of the full recipe + model pipeline.

    For every fold the recipe and the model are fitted on the other k-1
    folds only and scored on the held-out fold. Fold assignment is shuffled
    with the seed, so it is reproducible and the folds are disjoint.

    Args:
        train: Training partition (type-coerced)
        k: Number of folds
        seed: Random seed for fold assignment
        drop_columns: Predictors removed by the recipe
        drop_collinear: Drop collinear predictors instead of failing
        fit_intercept: Whether to fit an intercept term
        tolerance: Relative singular value threshold for the rank check

    Returns:
        Dictionary with per-fold metrics plus their mean and std
    """
    if k < 2:
        raise ValueError(f"Cross-validation needs at least 2 folds, got {k}")
    if k > len(train):
        raise ValueError(f"Cannot make {k} folds from {len(train)} rows")

    logger.info(f"Running {k}-fold cross-validation on {len(train)} rows (seed={seed})")

    engineered = engineer_features(train)
    kfold = KFold(n_splits=k, shuffle=True, random_state=seed)

    folds = []
    for fold, (fit_idx, holdout_idx) in enumerate(kfold.split(engineered), start=1):
        fit_part = engineered.iloc[fit_idx]
        holdout_part = engineered.iloc[holdout_idx]

        recipe = fit_recipe(fit_part, drop_columns=drop_columns)
        model = HeatingLoadModel(
            fit_intercept=fit_intercept,
            drop_collinear=drop_collinear,
            tolerance=tolerance
        ).fit(apply_recipe(recipe, fit_part), get_target(fit_part))

        predictions = model.predict(apply_recipe(recipe, holdout_part))
        metrics = calculate_metrics(get_target(holdout_part), predictions)

        folds.append({
            'fold': fold,
            'n_fit': int(len(fit_idx)),
            'n_holdout': int(len(holdout_idx)),
            'holdout_index': holdout_part.index.tolist(),
            'rmse': metrics['rmse'],
            'mae': metrics['mae'],
            'r_squared': metrics['r_squared'],
            'dropped_columns': list(model.dropped_columns)
        })
        logger.debug(
            f"Fold {fold}: rmse={metrics['rmse']:.4f} mae={metrics['mae']:.4f} "
            f"r2={metrics['r_squared']:.4f}"
        )

    result = {
        'k': k,
        'seed': seed,
        'folds': folds,
        'mean': {name: float(np.mean([f[name] for f in folds])) for name in METRIC_NAMES},
        'std': {name: float(np.std([f[name] for f in folds])) for name in METRIC_NAMES}
    }

    logger.info(
        f"CV mean: rmse={result['mean']['rmse']:.4f} mae={result['mean']['mae']:.4f} "
        f"r2={result['mean']['r_squared']:.4f}"
    )

    return result


def plot_actual_vs_predicted(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    figsize: Tuple[int, int] = (7, 7),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create an actual vs predicted scatter plot.

    Args:
        y_true: Observed values
        y_pred: Predicted values
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    ax.scatter(y_true, y_pred, alpha=0.6, s=20)

    # Perfect prediction line
    min_val = min(np.min(y_true), np.min(y_pred))
    max_val = max(np.max(y_true), np.max(y_pred))
    ax.plot([min_val, max_val], [min_val, max_val], 'r--', linewidth=2, label='Perfect')

    r2 = r2_score(y_true, y_pred)
    rmse = np.sqrt(mean_squared_error(y_true, y_pred))

    ax.set_xlabel('Actual Heating Load')
    ax.set_ylabel('Predicted Heating Load')
    ax.set_title(f'Actual vs Predicted\nR²={r2:.4f}, RMSE={rmse:.4f}', fontsize=12, fontweight='bold')
    ax.legend(loc='upper left', fontsize=8)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Actual vs Predicted plot saved to {save_path}")

    return fig


def plot_residuals(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    figsize: Tuple[int, int] = (16, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Residual diagnostics: residuals vs fitted, distribution and Q-Q plot.

    Args:
        y_true: Observed values
        y_pred: Predicted values
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    residuals = np.asarray(y_true) - np.asarray(y_pred)

    fig, axes = plt.subplots(1, 3, figsize=figsize)

    # Residuals vs fitted
    axes[0].scatter(y_pred, residuals, alpha=0.6, s=20)
    axes[0].axhline(0, color='red', linestyle='--', linewidth=2)
    axes[0].set_xlabel('Fitted Heating Load')
    axes[0].set_ylabel('Residual (Actual - Predicted)')
    axes[0].set_title('Residuals vs Fitted', fontweight='bold')

    # Distribution
    sns.histplot(residuals, kde=True, ax=axes[1], bins=30, alpha=0.7)
    axes[1].axvline(0, color='red', linestyle='--', linewidth=2, label='Zero')
    axes[1].axvline(np.mean(residuals), color='green', linestyle='--',
                    linewidth=2, label=f'Mean: {np.mean(residuals):.4f}')
    axes[1].set_xlabel('Residual')
    axes[1].set_title(f'Residual Distribution (Std: {np.std(residuals):.4f})', fontweight='bold')
    axes[1].legend(fontsize=8)

    # Normality
    stats.probplot(residuals, dist="norm", plot=axes[2])
    axes[2].set_title('Normal Q-Q', fontweight='bold')

    plt.suptitle('Residual Analysis', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Residuals plot saved to {save_path}")

    return fig


def plot_coefficients(
    coefficient_table: pd.DataFrame,
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Horizontal bar chart of the fitted coefficients (intercept and dropped columns excluded).

    Args:
        coefficient_table: Output of HeatingLoadModel.coefficient_table()
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    table = coefficient_table[
        (~coefficient_table['dropped']) & (coefficient_table['feature'] != '(intercept)')
    ].sort_values('coefficient')

    fig, ax = plt.subplots(figsize=figsize)

    colors = ['coral' if c < 0 else 'steelblue' for c in table['coefficient']]
    ax.barh(table['feature'], table['coefficient'], color=colors, alpha=0.8)
    ax.axvline(0, color='black', linewidth=0.8)
    ax.set_xlabel('Coefficient (per standard deviation)')
    ax.set_title('OLS Coefficients', fontsize=14, fontweight='bold')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Coefficient plot saved to {save_path}")

    return fig


def plot_cv_folds(
    cv_result: Dict[str, Any],
    figsize: Tuple[int, int] = (14, 4),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Bar chart of RMSE, MAE and R² per cross-validation fold.

    Args:
        cv_result: Output of cross_validate
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    folds = cv_result['folds']
    x = np.arange(len(folds))
    labels = [f"Fold {f['fold']}" for f in folds]

    fig, axes = plt.subplots(1, 3, figsize=figsize)

    for ax, name, color in zip(axes, METRIC_NAMES, ['steelblue', 'coral', 'seagreen']):
        values = [f[name] for f in folds]
        ax.bar(x, values, 0.6, color=color, alpha=0.8)
        ax.axhline(cv_result['mean'][name], color='red', linestyle='--',
                   label=f"Mean: {cv_result['mean'][name]:.4f}")
        ax.set_xticks(x)
        ax.set_xticklabels(labels, rotation=45, ha='right')
        ax.set_title(name.upper() if name != 'r_squared' else 'R²', fontweight='bold')
        ax.legend(fontsize=8)

    plt.suptitle(f"{cv_result['k']}-Fold Cross-Validation", fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Cross-validation plot saved to {save_path}")

    return fig


def evaluate_model(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    model: Optional[HeatingLoadModel] = None,
    cv_result: Optional[Dict[str, Any]] = None,
    output_dir: str = "reports/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Run complete model evaluation and generate all reports.

    Args:
        y_true: Observed test values
        y_pred: Predicted test values
        model: Fitted model, for the coefficient table
        cv_result: Cross-validation result, if already computed
        output_dir: Directory for output files
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing metrics and file paths
    """
    output_dir = Path(output_dir)
    figures_dir = output_dir / "figures"
    metrics_dir = output_dir / "metrics"

    figures_dir.mkdir(parents=True, exist_ok=True)
    metrics_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("STARTING MODEL EVALUATION (Phase 4)")
    logger.info("=" * 60)

    metrics = calculate_metrics(y_true, y_pred)

    payload: Dict[str, Any] = {'test': metrics}
    if cv_result is not None:
        payload['cross_validation'] = {
            key: cv_result[key] for key in ('k', 'seed', 'mean', 'std')
        }
        payload['cross_validation']['folds'] = [
            {key: value for key, value in fold.items() if key != 'holdout_index'}
            for fold in cv_result['folds']
        ]

    coefficients = None
    if model is not None:
        coefficients = model.coefficient_table()
        payload['coefficients'] = [
            {
                'feature': row['feature'],
                'coefficient': None if row['dropped'] else float(row['coefficient']),
                'dropped': bool(row['dropped'])
            }
            for _, row in coefficients.iterrows()
        ]

    metrics_file = metrics_dir / "evaluation_metrics.json"
    with open(metrics_file, 'w') as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []

    logger.info("Generating Actual vs Predicted plot...")
    plot_actual_vs_predicted(
        y_true, y_pred,
        save_path=str(figures_dir / "eval_actual_vs_predicted.png")
    )
    figures.append("eval_actual_vs_predicted.png")

    logger.info("Generating residual analysis...")
    plot_residuals(
        y_true, y_pred,
        save_path=str(figures_dir / "eval_residuals.png")
    )
    figures.append("eval_residuals.png")

    if coefficients is not None:
        plot_coefficients(
            coefficients,
            save_path=str(figures_dir / "eval_coefficients.png")
        )
        figures.append("eval_coefficients.png")

    if cv_result is not None:
        plot_cv_folds(
            cv_result,
            save_path=str(figures_dir / "eval_cross_validation.png")
        )
        figures.append("eval_cross_validation.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    result = {
        'metrics': metrics,
        'cross_validation': cv_result,
        'coefficients': coefficients,
        'figures': figures,
        'metrics_file': str(metrics_file)
    }

    logger.info("=" * 60)
    logger.info("EVALUATION COMPLETE")
    logger.info(f"  RMSE: {metrics['rmse']:.6f}")
    logger.info(f"  MAE: {metrics['mae']:.6f}")
    logger.info(f"  R²: {metrics['r_squared']:.6f}")
    logger.info("=" * 60)

    return result


def print_evaluation_report(
    metrics: Dict[str, Any],
    cv_result: Optional[Dict[str, Any]] = None
) -> None:
    """
    Print a formatted evaluation report to console.

    Args:
        metrics: Metrics dictionary from calculate_metrics
        cv_result: Optional cross-validation result
    """
    print("\n" + "=" * 70)
    print("MODEL EVALUATION REPORT")
    print("=" * 70)

    print("\nTest Set Metrics:")
    print(f"  • RMSE: {metrics['rmse']:.6f}")
    print(f"  • MAE: {metrics['mae']:.6f}")
    print(f"  • R²: {metrics['r_squared']:.6f}")
    print(f"  • Samples evaluated: {metrics['n_samples']}")

    if cv_result is not None:
        print(f"\n{cv_result['k']}-Fold Cross-Validation (Train):")
        print("-" * 70)
        print(f"{'Fold':<8} {'RMSE':<12} {'MAE':<12} {'R²':<12}")
        print("-" * 70)
        for fold in cv_result['folds']:
            print(f"{fold['fold']:<8} {fold['rmse']:<12.6f} {fold['mae']:<12.6f} "
                  f"{fold['r_squared']:<12.6f}")
        print("-" * 70)
        mean, std = cv_result['mean'], cv_result['std']
        print(f"{'Mean':<8} {mean['rmse']:<12.6f} {mean['mae']:<12.6f} {mean['r_squared']:<12.6f}")
        print(f"{'Std':<8} {std['rmse']:<12.6f} {std['mae']:<12.6f} {std['r_squared']:<12.6f}")

    r2 = metrics['r_squared']
    print("\nInterpretation:")
    if r2 > 0.9:
        print("  ✓ Excellent model performance (R² > 0.9)")
    elif r2 > 0.7:
        print("  ✓ Good model performance (R² > 0.7)")
    elif r2 > 0.5:
        print("  ⚠ Moderate model performance (R² > 0.5)")
    else:
        print("  ✗ Poor model performance (R² < 0.5) - a linear model may not be adequate")

    print("=" * 70 + "\n")
