"""
Exploratory Data Analysis (EDA) Module - Phase 1
=================================================

Provides analysis and visualization of the building dataset.

Functions:
    - plot_correlation_matrix: Correlation heatmap
    - plot_distributions: Histograms with normality test
    - plot_box_plots: Normalized box plots
    - plot_load_by_category: Heating load per categorical level
    - plot_predictors_vs_target: Scatter of each predictor against the response
    - detect_response_outliers: Z-score outlier report for the heating load
    - generate_eda_report: Full EDA report with all visualizations
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

from .data_loader import TARGET_COLUMN

logger = logging.getLogger(__name__)

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")


def _grid_axes(n_plots: int, n_cols: int, figsize: Tuple[int, int]):
    n_rows = (n_plots + n_cols - 1) // n_cols
    fig, axes = plt.subplots(n_rows, n_cols, figsize=figsize, squeeze=False)
    axes = axes.flatten()

    # Hide unused subplots
    for idx in range(n_plots, len(axes)):
        axes[idx].set_visible(False)

    return fig, axes


def plot_correlation_matrix(
    df: pd.DataFrame,
    method: str = 'pearson',
    figsize: Tuple[int, int] = (10, 8),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.DataFrame]:
    """
    Create a correlation heatmap for all numerical columns.

    Args:
        df: DataFrame with numerical data
        method: Correlation method ('pearson', 'spearman', 'kendall')
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Tuple of (Figure, correlation matrix DataFrame)
    """
    corr_matrix = df.select_dtypes(include=[np.number]).corr(method=method)

    fig, ax = plt.subplots(figsize=figsize)

    mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=1)
    sns.heatmap(
        corr_matrix,
        mask=mask,
        annot=True,
        fmt='.2f',
        cmap='RdYlBu_r',
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(f'Correlation Matrix ({method.capitalize()})',
                 fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Correlation matrix saved to {save_path}")

    return fig, corr_matrix


def plot_distributions(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (14, 12),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create distribution plots (histogram + KDE) for all numeric columns.

    Args:
        df: DataFrame with numerical data
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    columns = df.select_dtypes(include=[np.number]).columns.tolist()
    fig, axes = _grid_axes(len(columns), 2, figsize)

    for idx, col in enumerate(columns):
        ax = axes[idx]
        values = df[col].dropna()

        sns.histplot(values, kde=values.nunique() > 1, ax=ax, bins=30, alpha=0.7)

        mean_val = values.mean()
        median_val = values.median()
        ax.axvline(mean_val, color='red', linestyle='--', label=f'Mean: {mean_val:.2f}')
        ax.axvline(median_val, color='green', linestyle='--', label=f'Median: {median_val:.2f}')

        # normaltest needs at least 8 observations
        if len(values) >= 8 and values.nunique() > 1:
            _, p_value = stats.normaltest(values)
            normality = "Normal" if p_value > 0.05 else "Non-Normal"
            ax.set_title(f'{col} ({normality}, p={p_value:.3f})', fontsize=10, fontweight='bold')
        else:
            ax.set_title(col, fontsize=10, fontweight='bold')
        ax.legend(fontsize=8)

    plt.suptitle('Distribution Analysis', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Distribution plots saved to {save_path}")

    return fig


def plot_box_plots(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (12, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create box plots for outlier detection.

    Args:
        df: DataFrame with numerical data
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    numeric = df.select_dtypes(include=[np.number])
    spread = (numeric.max() - numeric.min()).replace(0, 1)

    fig, ax = plt.subplots(figsize=figsize)

    # Normalize for comparison
    df_normalized = (numeric - numeric.min()) / spread

    df_normalized.boxplot(ax=ax, grid=True)
    ax.set_title('Box Plots (Normalized) - Outlier Detection', fontsize=14, fontweight='bold')
    ax.set_ylabel('Normalized Value (0-1)')
    ax.tick_params(axis='x', rotation=45)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Box plots saved to {save_path}")

    return fig


def plot_load_by_category(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    target: str = TARGET_COLUMN,
    figsize: Tuple[int, int] = (16, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Box plots of the heating load for each level of the discrete predictors.

    Args:
        df: Building records
        columns: Discrete columns to group by
        target: Response column
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if columns is None:
        columns = [
            col for col in ['orientation', 'glazing_area_distribution', 'overall_height']
            if col in df.columns
        ]

    fig, axes = _grid_axes(len(columns), len(columns) or 1, figsize)

    for idx, col in enumerate(columns):
        ax = axes[idx]
        sns.boxplot(x=df[col].astype(str), y=df[target], ax=ax)
        ax.set_xlabel(col)
        ax.set_ylabel('Heating Load')
        ax.set_title(f'Heating Load by {col}', fontsize=10, fontweight='bold')

    plt.suptitle('Heating Load by Category', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Category plots saved to {save_path}")

    return fig


def plot_predictors_vs_target(
    df: pd.DataFrame,
    target: str = TARGET_COLUMN,
    figsize: Tuple[int, int] = (14, 12),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Scatter every numeric predictor against the heating load with a linear fit.

    Args:
        df: Building records
        target: Response column
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    columns = [
        col for col in df.select_dtypes(include=[np.number]).columns
        if col not in (target, 'cooling_load')
    ]
    fig, axes = _grid_axes(len(columns), 3, figsize)

    for idx, col in enumerate(columns):
        ax = axes[idx]
        sns.regplot(x=df[col], y=df[target], ax=ax, ci=None,
                    scatter_kws={'alpha': 0.4, 's': 12}, line_kws={'color': 'red'})
        r = df[[col, target]].corr().iloc[0, 1]
        ax.set_title(f'{col} (r={r:.2f})', fontsize=10, fontweight='bold')
        ax.set_ylabel('Heating Load')

    plt.suptitle('Predictors vs Heating Load', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Predictor scatter plots saved to {save_path}")

    return fig


def detect_response_outliers(
    df: pd.DataFrame,
    target: str = TARGET_COLUMN,
    threshold: float = 3.0
) -> pd.DataFrame:
    """
    Flag rows whose heating load lies more than `threshold` standard
    deviations from the mean.

    This is a report only: the returned rows are never removed from the
    data used for modelling.

    Args:
        df: Building records
        target: Response column
        threshold: Absolute z-score above which a row is flagged

    Returns:
        The flagged rows with an added 'z_score' column
    """
    if target not in df.columns:
        raise ValueError(f"Target column '{target}' not found in data")

    values = df[target]
    z_scores = pd.Series(
        stats.zscore(values, nan_policy='omit'),
        index=df.index,
        name='z_score'
    )

    flagged = df.assign(z_score=z_scores).loc[z_scores.abs() > threshold]

    if len(flagged) > 0:
        logger.warning(
            f"{len(flagged)} rows have |z| > {threshold} for '{target}' "
            f"(rows kept): {flagged.index.tolist()}"
        )
    else:
        logger.info(f"No '{target}' outliers beyond {threshold} standard deviations")

    return flagged


def generate_eda_report(
    df: pd.DataFrame,
    output_dir: str = "reports/figures/",
    outlier_threshold: float = 3.0,
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate a complete EDA report with all visualizations.

    Args:
        df: Type-coerced building records
        output_dir: Directory to save figures
        outlier_threshold: Z-score threshold for the outlier report
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing EDA results and file paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = {
        "data_shape": df.shape,
        "columns": list(df.columns),
        "figures": [],
        "correlation_matrix": None,
        "outliers": [],
        "statistics": {}
    }

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS (Phase 1)")
    logger.info("=" * 60)

    logger.info("Computing correlation matrix...")
    _, corr_matrix = plot_correlation_matrix(
        df,
        save_path=str(output_dir / "01_correlation_matrix.png")
    )
    report["figures"].append("01_correlation_matrix.png")
    report["correlation_matrix"] = corr_matrix.to_dict()

    logger.info("Plotting distributions...")
    plot_distributions(
        df,
        save_path=str(output_dir / "02_distributions.png")
    )
    report["figures"].append("02_distributions.png")

    logger.info("Creating box plots...")
    plot_box_plots(
        df,
        save_path=str(output_dir / "03_box_plots.png")
    )
    report["figures"].append("03_box_plots.png")

    logger.info("Plotting heating load by category...")
    plot_load_by_category(
        df,
        save_path=str(output_dir / "04_load_by_category.png")
    )
    report["figures"].append("04_load_by_category.png")

    logger.info("Plotting predictors against heating load...")
    plot_predictors_vs_target(
        df,
        save_path=str(output_dir / "05_predictors_vs_target.png")
    )
    report["figures"].append("05_predictors_vs_target.png")

    logger.info("Checking heating load outliers...")
    outliers = detect_response_outliers(df, threshold=outlier_threshold)
    report["outliers"] = [
        {"index": int(idx), "heating_load": float(row[TARGET_COLUMN]), "z_score": float(row["z_score"])}
        for idx, row in outliers.iterrows()
    ]

    for col in df.select_dtypes(include=[np.number]).columns:
        report["statistics"][col] = {
            "mean": float(df[col].mean()),
            "std": float(df[col].std()),
            "min": float(df[col].min()),
            "max": float(df[col].max()),
            "skew": float(df[col].skew())
        }

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EDA COMPLETE - All figures saved to: %s", output_dir)
    logger.info("=" * 60)

    return report


def print_correlation_insights(corr_matrix: pd.DataFrame, threshold: float = 0.8) -> None:
    """
    Print insights about strongly correlated variables.

    Pairs of predictors above the threshold are candidates for collinearity
    in the linear model.

    Args:
        corr_matrix: Correlation matrix DataFrame
        threshold: Correlation threshold for "strong" correlation
    """
    print("\n" + "=" * 50)
    print("CORRELATION INSIGHTS")
    print("=" * 50)

    strong_corr = []
    for i in range(len(corr_matrix.columns)):
        for j in range(i + 1, len(corr_matrix.columns)):
            corr_val = corr_matrix.iloc[i, j]
            if abs(corr_val) >= threshold:
                strong_corr.append({
                    "col1": corr_matrix.columns[i],
                    "col2": corr_matrix.columns[j],
                    "correlation": corr_val
                })

    if strong_corr:
        print(f"\nStrong correlations (|r| >= {threshold}):")
        for item in sorted(strong_corr, key=lambda x: abs(x["correlation"]), reverse=True):
            direction = "positive" if item["correlation"] > 0 else "negative"
            print(f"  • {item['col1']} ↔ {item['col2']}: {item['correlation']:.3f} ({direction})")

        print("\nStrongly correlated predictors can make OLS coefficients unstable;")
        print("exact linear dependencies are dropped at fit time.")
    else:
        print(f"\nNo strong correlations found (|r| >= {threshold})")

    print("=" * 50 + "\n")


def print_outlier_report(report: Dict[str, Any], threshold: float = 3.0) -> None:
    print("\n" + "=" * 50)
    print("HEATING LOAD OUTLIERS")
    print("=" * 50)

    if not report["outliers"]:
        print(f"No rows beyond {threshold} standard deviations.")
    else:
        print(f"{len(report['outliers'])} rows beyond {threshold} standard deviations (kept):")
        for item in report["outliers"]:
            print(f"  • row {item['index']}: {item['heating_load']:.2f} (z={item['z_score']:.2f})")

    print("=" * 50 + "\n")
