"""
Data Loader Module
==================

Handles spreadsheet ingestion, schema coercion and basic data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - load_data: Load the building spreadsheet with column validation
    - coerce_types: Cast the coded columns to categorical dtype
    - validate_data: Check data quality constraints
    - get_data_summary: Generate basic statistics
"""

import logging
from pathlib import Path
from typing import Dict, Any, Tuple, Union

import pandas as pd
import numpy as np
import yaml

logger = logging.getLogger(__name__)

TARGET_COLUMN = "heating_load"

NUMERIC_COLUMNS = [
    "relative_compactness",
    "surface_area",
    "wall_area",
    "roof_area",
    "overall_height",
    "glazing_area",
]

CATEGORICAL_COLUMNS = ["orientation", "glazing_area_distribution"]

REQUIRED_COLUMNS = NUMERIC_COLUMNS + CATEGORICAL_COLUMNS + [TARGET_COLUMN]

# Allowed codes for the categorical predictors
CATEGORY_DOMAINS = {
    "orientation": {2, 3, 4, 5},
    "glazing_area_distribution": {0, 1, 2, 3, 4, 5},
}

# UCI ENB2012 headers and their spelled-out variants
COLUMN_ALIASES = {
    "X1": "relative_compactness",
    "X2": "surface_area",
    "X3": "wall_area",
    "X4": "roof_area",
    "X5": "overall_height",
    "X6": "orientation",
    "X7": "glazing_area",
    "X8": "glazing_area_distribution",
    "Y1": "heating_load",
    "Y2": "cooling_load",
}

SUPPORTED_EXTENSIONS = {".xlsx", ".xls", ".csv"}


class DataParseError(ValueError):
    """Raised when a data file exists but cannot be read as a building table."""


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    logger.info(f"Loaded configuration from {config_path}")
    return config or {}


def normalize_column_name(name: Any) -> str:
    """Map a raw header ('X5', 'Overall Height', 'Overall_Height') to snake_case."""
    name = str(name).strip()
    if name in COLUMN_ALIASES:
        return COLUMN_ALIASES[name]
    return "_".join(name.lower().replace("-", " ").split())


def load_data(
    file_path: Union[str, Path],
    sheet_name: Union[int, str] = 0
) -> pd.DataFrame:
    """
    Load the building dataset from an Excel workbook or CSV file.

    Headers are normalized to snake_case, so both the raw ENB2012 headers
    (X1..X8, Y1, Y2) and descriptive headers are accepted.

    Args:
        file_path: Path to the .xlsx/.xls/.csv file
        sheet_name: Worksheet to read for Excel files

    Returns:
        DataFrame containing the loaded records

    Raises:
        FileNotFoundError: If data file doesn't exist
        DataParseError: If the file is unreadable, empty or lacks required columns
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise DataParseError(
            f"Unsupported file type '{suffix}'. Expected one of {sorted(SUPPORTED_EXTENSIONS)}"
        )

    try:
        if suffix == ".csv":
            df = pd.read_csv(file_path)
        else:
            df = pd.read_excel(file_path, sheet_name=sheet_name)
    except ImportError:
        raise
    except Exception as e:
        # openpyxl and xlrd raise KeyError, BadZipFile or their own errors on corrupt workbooks
        raise DataParseError(f"Could not parse {file_path}: {e}") from e

    # Excel exports of ENB2012 carry trailing empty rows and columns
    df = df.dropna(how="all").dropna(axis=1, how="all")
    df = df.rename(columns=normalize_column_name)

    if df.empty:
        raise DataParseError(f"No records found in {file_path}")

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise DataParseError(
            f"Missing required columns {missing}. Columns found: {list(df.columns)}"
        )

    non_numeric = [
        col for col in REQUIRED_COLUMNS
        if not pd.api.types.is_numeric_dtype(df[col])
    ]
    if non_numeric:
        raise DataParseError(f"Columns must be numeric: {non_numeric}")

    df = df.reset_index(drop=True)
    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    return df


def coerce_types(df: pd.DataFrame) -> pd.DataFrame:
    """
    Cast orientation and glazing_area_distribution to categorical dtype.

    Complete, integral float codes (as read from Excel) are converted to int
    first so the category labels are 2, 3, ... rather than 2.0, 3.0. No other
    column is altered and the input frame is left untouched.

    Args:
        df: Raw building records

    Returns:
        New DataFrame with categorical coded columns
    """
    df = df.copy()

    for col in CATEGORICAL_COLUMNS:
        if col not in df.columns:
            raise ValueError(f"Column '{col}' not found in data")

        values = df[col]
        if (
            pd.api.types.is_float_dtype(values)
            and values.notna().all()
            and values.mod(1).eq(0).all()
        ):
            values = values.astype(int)
        df[col] = values.astype("category")

    logger.debug(f"Coerced {CATEGORICAL_COLUMNS} to categorical")
    return df


def validate_data(df: pd.DataFrame, strict: bool = True) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate data quality constraints for the building records.

    Checks:
        - No missing values
        - No duplicate rows
        - Categorical codes inside their known domains
        - glazing_area within [0, 1]
        - Areas and heights strictly positive

    Args:
        df: DataFrame to validate
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "column_names": list(df.columns),
        "issues": []
    }

    # Check 1: Missing values
    missing_counts = df.isnull().sum()
    total_missing = missing_counts.sum()
    if total_missing > 0:
        missing_pct = (total_missing / (df.shape[0] * df.shape[1])) * 100
        issue = f"Missing values: {total_missing} ({missing_pct:.2f}%)"
        report["issues"].append(issue)
        report["missing_by_column"] = missing_counts[missing_counts > 0].to_dict()
        logger.warning(issue)

    # Check 2: Duplicate rows
    duplicates = df.duplicated().sum()
    if duplicates > 0:
        issue = f"Duplicate rows found: {duplicates}"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 3: Categorical domains
    for col, domain in CATEGORY_DOMAINS.items():
        if col not in df.columns:
            continue
        codes = pd.to_numeric(df[col].astype(object), errors="coerce").dropna()
        unknown = sorted(set(codes.unique()) - domain)
        if unknown:
            issue = f"Column '{col}' has codes outside {sorted(domain)}: {unknown}"
            report["issues"].append(issue)
            logger.warning(issue)

    # Check 4: Physical ranges
    if "glazing_area" in df.columns:
        out_of_range = (~df["glazing_area"].dropna().between(0, 1)).sum()
        if out_of_range > 0:
            issue = f"Column 'glazing_area' has {out_of_range} values outside [0, 1]"
            report["issues"].append(issue)
            logger.warning(issue)

    for col in ["surface_area", "wall_area", "roof_area", "overall_height"]:
        if col in df.columns:
            non_positive = (df[col].dropna() <= 0).sum()
            if non_positive > 0:
                issue = f"Column '{col}' has {non_positive} non-positive values"
                report["issues"].append(issue)
                logger.warning(issue)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise ValueError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def get_data_summary(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Generate summary statistics for the dataset.

    Args:
        df: DataFrame to summarize

    Returns:
        Dictionary containing summary statistics
    """
    summary = {
        "shape": df.shape,
        "columns": list(df.columns),
        "dtypes": df.dtypes.astype(str).to_dict(),
        "statistics": {},
        "category_counts": {}
    }

    for col in df.select_dtypes(include=[np.number]).columns:
        summary["statistics"][col] = {
            "count": int(df[col].count()),
            "mean": float(df[col].mean()),
            "std": float(df[col].std()),
            "min": float(df[col].min()),
            "50%": float(df[col].quantile(0.50)),
            "max": float(df[col].max()),
            "skew": float(df[col].skew())
        }

    for col in df.select_dtypes(include=["category"]).columns:
        counts = df[col].value_counts(sort=False)
        summary["category_counts"][col] = {str(k): int(v) for k, v in counts.items()}

    return summary


def print_data_summary(df: pd.DataFrame) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
    """
    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print("\nColumn Information:")
    print("-" * 40)

    for col in df.columns:
        dtype = df[col].dtype
        non_null = df[col].count()
        null_pct = (1 - non_null / len(df)) * 100
        print(f"  {col}: {dtype} | {non_null} non-null ({null_pct:.1f}% missing)")

    print("\nBasic Statistics:")
    print("-" * 40)
    print(df.describe().round(4).to_string())
    print("=" * 60 + "\n")
