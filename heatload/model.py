"""
Model Training Module - Phase 3
================================

Handles ordinary least squares training for the heating load.

Features:
    - Rank-deficiency check that names the collinear predictors
    - Optional dropping of collinear predictors with a logged warning
    - Coefficient table including the intercept
    - Model persistence (save/load)
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, List, Sequence, Union
from datetime import datetime

import numpy as np
import pandas as pd
import joblib
from sklearn.linear_model import LinearRegression

logger = logging.getLogger(__name__)

INTERCEPT_LABEL = "(intercept)"


class CollinearityError(ValueError):
    """Raised when the feature matrix is rank-deficient."""

    def __init__(self, columns: Sequence[str], message: Optional[str] = None):
        self.columns = list(columns)
        super().__init__(
            message or f"Feature matrix is rank-deficient; collinear columns: {self.columns}"
        )


def _matrix_rank(matrix: np.ndarray, tolerance: float) -> int:
    singular_values = np.linalg.svd(matrix, compute_uv=False)
    if singular_values.size == 0 or singular_values[0] == 0:
        return 0
    return int((singular_values > singular_values[0] * tolerance).sum())


def find_collinear_columns(
    X: pd.DataFrame,
    tolerance: float = 1e-7,
    fit_intercept: bool = True
) -> List[str]:
    """
    Identify predictors that are linear combinations of earlier ones.

    Columns are visited in order; a column is flagged when adding it to the
    intercept and the columns kept so far does not increase the rank. The
    later member of a dependent group is therefore the one reported, so with
    surface_area = wall_area + 2 * roof_area it is roof_area that is flagged.

    Args:
        X: Feature matrix
        tolerance: Relative singular value threshold
        fit_intercept: Whether the intercept column takes part in the check

    Returns:
        Names of the collinear columns, in column order
    """
    values = X.to_numpy(dtype=float)
    n_samples = values.shape[0]

    kept = [np.ones(n_samples) / np.sqrt(n_samples)] if fit_intercept else []
    collinear = []

    for i, col in enumerate(X.columns):
        column = values[:, i]
        norm = np.linalg.norm(column)
        if norm == 0:
            collinear.append(col)
            continue

        candidate = np.column_stack(kept + [column / norm])
        if _matrix_rank(candidate, tolerance) < candidate.shape[1]:
            collinear.append(col)
        else:
            kept.append(column / norm)

    return collinear


class HeatingLoadModel:
    """
    Ordinary least squares model for the heating load.

    Wraps sklearn's LinearRegression with a rank check: a rank-deficient
    design either raises CollinearityError or, with drop_collinear=True,
    drops the offending predictors and records them in dropped_columns.
    """

    def __init__(
        self,
        fit_intercept: bool = True,
        drop_collinear: bool = False,
        tolerance: float = 1e-7
    ):
        """
        Initialize the model.

        Args:
            fit_intercept: Whether to fit an intercept term
            drop_collinear: Drop collinear predictors instead of failing
            tolerance: Relative singular value threshold for the rank check
        """
        self.fit_intercept = fit_intercept
        self.drop_collinear = drop_collinear
        self.tolerance = tolerance

        self.model: Optional[LinearRegression] = None
        self.feature_names_in_: Optional[List[str]] = None
        self.feature_names_: Optional[List[str]] = None
        self.dropped_columns: List[str] = []
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    @staticmethod
    def _as_frame(X: Union[pd.DataFrame, np.ndarray], columns: Optional[List[str]] = None) -> pd.DataFrame:
        if isinstance(X, pd.DataFrame):
            return X
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if columns is None or len(columns) != X.shape[1]:
            columns = [f"x{i}" for i in range(X.shape[1])]
        return pd.DataFrame(X, columns=columns)

    def fit(
        self,
        X: Union[pd.DataFrame, np.ndarray],
        y: Union[pd.Series, np.ndarray]
    ) -> 'HeatingLoadModel':
        """
        Fit the least squares coefficients.

        Args:
            X: Feature matrix of shape (n_samples, n_features)
            y: Response of shape (n_samples,)

        Returns:
            Self for method chaining
        """
        start_time = datetime.now()

        X = self._as_frame(X)
        y = np.asarray(y, dtype=float).ravel()

        if len(X) == 0:
            raise ValueError("Cannot fit model on an empty feature matrix")
        if len(X) != len(y):
            raise ValueError(f"Features have {len(X)} rows but targets have {len(y)}")
        if X.isnull().to_numpy().any() or np.isnan(y).any():
            raise ValueError("Features and targets must not contain missing values")

        logger.info(f"Training data shape: X={X.shape}, y={y.shape}")

        collinear = find_collinear_columns(X, self.tolerance, self.fit_intercept)
        if collinear:
            if not self.drop_collinear:
                raise CollinearityError(collinear)
            logger.warning(
                f"Rank-deficient features; dropping collinear columns: {collinear}"
            )

        self.feature_names_in_ = [str(col) for col in X.columns]
        self.dropped_columns = [str(col) for col in collinear]
        self.feature_names_ = [col for col in self.feature_names_in_ if col not in self.dropped_columns]

        if not self.feature_names_:
            raise ValueError("No linearly independent features remain after dropping collinear columns")

        self.model = LinearRegression(fit_intercept=self.fit_intercept)
        self.model.fit(X[self.feature_names_].to_numpy(dtype=float), y)

        train_r2 = float(self.model.score(X[self.feature_names_].to_numpy(dtype=float), y))
        end_time = datetime.now()

        self.training_info = {
            'training_duration_seconds': (end_time - start_time).total_seconds(),
            'n_samples': int(X.shape[0]),
            'n_features': len(self.feature_names_),
            'dropped_columns': list(self.dropped_columns),
            'train_r2': train_r2,
            'trained_at': end_time.isoformat()
        }
        self._is_fitted = True

        logger.info(f"Fitted OLS on {len(self.feature_names_)} features (train R²={train_r2:.4f})")

        return self

    def predict(self, X: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        """
        Make predictions: intercept plus the linear combination of features.

        Args:
            X: Feature matrix with the columns seen during fit

        Returns:
            Predictions array of shape (n_samples,)
        """
        if not self._is_fitted:
            raise ValueError("Model must be trained before prediction. Call fit() first.")

        X = self._as_frame(X, self.feature_names_in_)

        missing = [col for col in self.feature_names_ if col not in X.columns]
        if missing:
            raise ValueError(f"Feature matrix is missing columns: {missing}")

        return self.model.predict(X[self.feature_names_].to_numpy(dtype=float))

    @property
    def intercept_(self) -> float:
        if not self._is_fitted:
            raise ValueError("Model must be trained first.")
        return float(self.model.intercept_)

    @property
    def coefficients(self) -> pd.Series:
        """Fitted coefficients indexed by feature name (dropped columns excluded)."""
        if not self._is_fitted:
            raise ValueError("Model must be trained first.")
        return pd.Series(self.model.coef_, index=self.feature_names_, name="coefficient")

    def coefficient_table(self) -> pd.DataFrame:
        """
        Coefficient table in input column order.

        Dropped collinear columns are listed with a NaN coefficient and
        dropped=True so they remain visible in reports.
        """
        coefficients = self.coefficients

        rows = [{'feature': INTERCEPT_LABEL, 'coefficient': self.intercept_, 'dropped': False}]
        for col in self.feature_names_in_:
            dropped = col in self.dropped_columns
            rows.append({
                'feature': col,
                'coefficient': np.nan if dropped else float(coefficients[col]),
                'dropped': dropped
            })

        return pd.DataFrame(rows, columns=['feature', 'coefficient', 'dropped'])

    def save(self, filepath: Union[str, Path]) -> None:
        """
        Save the trained model to disk.

        Args:
            filepath: Path to save the model
        """
        if not self._is_fitted:
            raise ValueError("Cannot save untrained model.")

        state = {
            'model': self.model,
            'hyperparameters': {
                'fit_intercept': self.fit_intercept,
                'drop_collinear': self.drop_collinear,
                'tolerance': self.tolerance
            },
            'feature_names_in_': self.feature_names_in_,
            'feature_names_': self.feature_names_,
            'dropped_columns': self.dropped_columns,
            'training_info': self.training_info,
            '_is_fitted': self._is_fitted
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Model saved to {filepath}")

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'HeatingLoadModel':
        """
        Load a trained model from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded HeatingLoadModel instance
        """
        state = joblib.load(filepath)

        model = cls(**state['hyperparameters'])
        model.model = state['model']
        model.feature_names_in_ = state['feature_names_in_']
        model.feature_names_ = state['feature_names_']
        model.dropped_columns = state['dropped_columns']
        model.training_info = state['training_info']
        model._is_fitted = state['_is_fitted']

        logger.info(f"Model loaded from {filepath}")
        return model


def fit_model(
    features: Union[pd.DataFrame, np.ndarray],
    targets: Union[pd.Series, np.ndarray],
    drop_collinear: bool = False,
    fit_intercept: bool = True
) -> HeatingLoadModel:
    """Fit an OLS model; raises CollinearityError on rank deficiency unless drop_collinear."""
    return HeatingLoadModel(
        fit_intercept=fit_intercept,
        drop_collinear=drop_collinear
    ).fit(features, targets)


def predict(model: HeatingLoadModel, features: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
    return model.predict(features)


def train_model(
    X_train: pd.DataFrame,
    y_train: np.ndarray,
    config: Dict[str, Any],
    save_path: Optional[str] = None
) -> HeatingLoadModel:
    """
    Train a model using configuration parameters.

    Args:
        X_train: Transformed training features
        y_train: Training response
        config: Configuration dictionary
        save_path: Path to save the trained model (optional)

    Returns:
        Trained HeatingLoadModel
    """
    model_config = config.get('model', {})

    logger.info("=" * 60)
    logger.info("STARTING MODEL TRAINING (Phase 3)")
    logger.info("=" * 60)

    model = HeatingLoadModel(
        fit_intercept=model_config.get('fit_intercept', True),
        drop_collinear=model_config.get('drop_collinear', True),
        tolerance=model_config.get('tolerance', 1e-7)
    )
    model.fit(X_train, y_train)

    if save_path:
        model.save(save_path)

    logger.info("=" * 60)
    logger.info("MODEL TRAINING COMPLETE")
    logger.info("=" * 60)

    return model


def print_model_summary(model: HeatingLoadModel) -> None:
    """
    Print a summary of the trained model.

    Args:
        model: Trained model instance
    """
    print("\n" + "=" * 50)
    print("MODEL SUMMARY")
    print("=" * 50)
    print("Model Type: LinearRegression (ordinary least squares)")
    print(f"Number of input features: {len(model.feature_names_in_)}")
    print(f"Features used: {len(model.feature_names_)}")

    if model.dropped_columns:
        print(f"Dropped (collinear): {', '.join(model.dropped_columns)}")

    print("\nCoefficients:")
    print("-" * 50)
    for _, row in model.coefficient_table().iterrows():
        if row['dropped']:
            print(f"  {row['feature']:<25} {'NA (collinear)':>15}")
        else:
            print(f"  {row['feature']:<25} {row['coefficient']:>15.4f}")

    if model.training_info:
        print("\nTraining Info:")
        print(f"  - Samples: {model.training_info.get('n_samples', 'N/A')}")
        print(f"  - Train R²: {model.training_info.get('train_r2', float('nan')):.4f}")

    print("=" * 50 + "\n")
