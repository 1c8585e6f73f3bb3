"""
Data Preprocessing Module - Phase 2
====================================

Handles train/test splitting, feature engineering and the preprocessing
recipe learned from the training partition.

Functions:
    - split_dataset: Seeded random train/test partition
    - engineer_features: Add glazing_type and surface_height
    - fit_recipe: Learn imputation, encoding and scaling statistics from Train
    - apply_recipe: Transform any partition with a fitted recipe
    - preprocess_pipeline: Split, engineer and transform in one call
"""

import logging
from pathlib import Path
from typing import Dict, Any, Tuple, Optional, List, Sequence, Union

import pandas as pd
import numpy as np
import joblib
from sklearn.compose import ColumnTransformer
from sklearn.impute import SimpleImputer
from sklearn.model_selection import train_test_split
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from .data_loader import TARGET_COLUMN

logger = logging.getLogger(__name__)

DEFAULT_DROP_COLUMNS = ["glazing_area_distribution", "orientation"]

GLAZING_TYPES = ["None", "Present"]

# Columns that are never predictors
RESPONSE_COLUMNS = [TARGET_COLUMN, "cooling_load"]


def split_dataset(
    df: pd.DataFrame,
    train_proportion: float = 0.75,
    seed: int = 123
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Randomly partition the records into train and test sets.

    Sampling is without replacement and fully determined by the seed, so the
    same seed always yields the same partition. Row index labels are kept.

    Args:
        df: Records to split
        train_proportion: Fraction of rows assigned to train
        seed: Random seed

    Returns:
        Tuple of (train, test) DataFrames
    """
    if len(df) == 0:
        raise ValueError("Cannot split an empty dataset")

    if not 0 < train_proportion < 1:
        raise ValueError(f"train_proportion must be in (0, 1), got {train_proportion}")

    if len(df) < 2:
        raise ValueError(f"Need at least 2 rows to split, got {len(df)}")

    train, test = train_test_split(
        df,
        train_size=train_proportion,
        random_state=seed,
        shuffle=True
    )

    logger.info(f"Train/Test split: {len(train)} train rows, {len(test)} test rows (seed={seed})")

    return train.copy(), test.copy()


def engineer_features(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add the derived glazing_type and surface_height columns.

    Both are computed from values in the same row only, so train and test
    can be engineered independently without leaking information.

        glazing_type   = "None" if glazing_area_distribution == 0 else "Present"
        surface_height = surface_area * overall_height

    Args:
        df: Building records

    Returns:
        New DataFrame with the two derived columns
    """
    required = ["glazing_area_distribution", "surface_area", "overall_height"]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"Cannot engineer features, missing columns: {missing}")

    df = df.copy()

    codes = df["glazing_area_distribution"].astype(float)
    glazing_type = pd.Series(np.where(codes == 0, "None", "Present"), index=df.index)
    df["glazing_type"] = pd.Categorical(
        glazing_type.where(codes.notna()),
        categories=GLAZING_TYPES
    )

    df["surface_height"] = df["surface_area"] * df["overall_height"]

    return df


class BuildingRecipe:
    """
    Preprocessing recipe for the building predictors.

    Fitted once on the training partition, it stores every statistic needed
    to transform other partitions: medians and modes for imputation, means
    and standard deviations for scaling, and the one-hot vocabulary.
    Transforming never refits, so test data cannot influence the statistics.
    """

    def __init__(
        self,
        drop_columns: Optional[Sequence[str]] = None,
        target_column: str = TARGET_COLUMN
    ):
        """
        Initialize the recipe.

        Args:
            drop_columns: Predictors removed before encoding
            target_column: Response column, excluded from the predictors
        """
        self.drop_columns = list(DEFAULT_DROP_COLUMNS if drop_columns is None else drop_columns)
        self.target_column = target_column

        self.transformer: Optional[ColumnTransformer] = None
        self.numeric_columns: Optional[List[str]] = None
        self.categorical_columns: Optional[List[str]] = None
        self.feature_names: Optional[List[str]] = None
        self._is_fitted = False

    def _predictors(self, df: pd.DataFrame) -> pd.DataFrame:
        excluded = set(self.drop_columns) | set(RESPONSE_COLUMNS) | {self.target_column}
        return df[[col for col in df.columns if col not in excluded]]

    @staticmethod
    def _as_object(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
        df = df.copy()
        for col in columns:
            df[col] = df[col].astype(object).where(df[col].notna(), np.nan)
        return df

    def fit(self, df: pd.DataFrame) -> 'BuildingRecipe':
        """
        Learn the recipe statistics from training data.

        Args:
            df: Engineered training partition

        Returns:
            Self for method chaining
        """
        if len(df) == 0:
            raise ValueError("Cannot fit recipe on an empty dataset")

        predictors = self._predictors(df)
        self.numeric_columns = predictors.select_dtypes(include=[np.number]).columns.tolist()
        self.categorical_columns = predictors.select_dtypes(
            include=["category", "object", "bool"]
        ).columns.tolist()

        if not self.numeric_columns and not self.categorical_columns:
            raise ValueError("No predictor columns left after dropping excluded columns")

        transformers = []
        if self.numeric_columns:
            transformers.append((
                "numeric",
                Pipeline([
                    ("impute", SimpleImputer(strategy="median")),
                    ("scale", StandardScaler()),
                ]),
                self.numeric_columns
            ))
        if self.categorical_columns:
            transformers.append((
                "categorical",
                Pipeline([
                    ("impute", SimpleImputer(strategy="most_frequent")),
                    ("encode", OneHotEncoder(
                        drop="first",
                        handle_unknown="ignore",
                        sparse_output=False
                    )),
                ]),
                self.categorical_columns
            ))

        self.transformer = ColumnTransformer(
            transformers,
            remainder="drop",
            verbose_feature_names_out=False
        )
        columns = self.numeric_columns + self.categorical_columns
        self.transformer.fit(self._as_object(predictors[columns], self.categorical_columns))
        self.feature_names = [str(name) for name in self.transformer.get_feature_names_out()]
        self._is_fitted = True

        logger.info(
            f"Fitted recipe on {len(df)} rows: {len(self.numeric_columns)} numeric, "
            f"{len(self.categorical_columns)} categorical -> {len(self.feature_names)} features"
        )
        logger.debug(f"Recipe drops: {self.drop_columns}")

        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Transform data using the fitted statistics.

        Args:
            df: Engineered partition (train, test or a fold)

        Returns:
            Numeric feature DataFrame with a fixed column order
        """
        if not self._is_fitted:
            raise ValueError("Recipe must be fitted before transform. Call fit() first.")

        columns = self.numeric_columns + self.categorical_columns
        missing = [col for col in columns if col not in df.columns]
        if missing:
            raise ValueError(f"Data is missing predictor columns: {missing}")

        data = self._as_object(df[columns], self.categorical_columns)
        values = self.transformer.transform(data)

        return pd.DataFrame(
            np.asarray(values, dtype=float),
            columns=self.feature_names,
            index=df.index
        )

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Fit and transform in one step."""
        self.fit(df)
        return self.transform(df)

    def get_feature_names(self) -> List[str]:
        if self.feature_names is None:
            raise ValueError("Recipe must be fitted first.")
        return list(self.feature_names)

    @property
    def statistics(self) -> Dict[str, Any]:
        """Snapshot of everything the recipe learned, as plain Python values."""
        if not self._is_fitted:
            raise ValueError("Recipe must be fitted first.")

        stats = {
            "drop_columns": list(self.drop_columns),
            "medians": {},
            "means": {},
            "stds": {},
            "modes": {},
            "vocabulary": {},
        }

        if self.numeric_columns:
            numeric = self.transformer.named_transformers_["numeric"]
            imputer = numeric.named_steps["impute"]
            scaler = numeric.named_steps["scale"]
            for i, col in enumerate(self.numeric_columns):
                stats["medians"][col] = float(imputer.statistics_[i])
                stats["means"][col] = float(scaler.mean_[i])
                stats["stds"][col] = float(scaler.scale_[i])

        if self.categorical_columns:
            categorical = self.transformer.named_transformers_["categorical"]
            imputer = categorical.named_steps["impute"]
            encoder = categorical.named_steps["encode"]
            for i, col in enumerate(self.categorical_columns):
                stats["modes"][col] = imputer.statistics_[i]
                stats["vocabulary"][col] = list(encoder.categories_[i])

        return stats

    def save(self, filepath: Union[str, Path]) -> None:
        """
        Save the fitted recipe to disk.

        Args:
            filepath: Path to save the recipe
        """
        state = {
            'drop_columns': self.drop_columns,
            'target_column': self.target_column,
            'transformer': self.transformer,
            'numeric_columns': self.numeric_columns,
            'categorical_columns': self.categorical_columns,
            'feature_names': self.feature_names,
            '_is_fitted': self._is_fitted
        }
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Recipe saved to {filepath}")

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'BuildingRecipe':
        """
        Load a recipe from disk.

        Args:
            filepath: Path to the saved recipe

        Returns:
            Loaded BuildingRecipe instance
        """
        state = joblib.load(filepath)

        recipe = cls(
            drop_columns=state['drop_columns'],
            target_column=state['target_column']
        )
        recipe.transformer = state['transformer']
        recipe.numeric_columns = state['numeric_columns']
        recipe.categorical_columns = state['categorical_columns']
        recipe.feature_names = state['feature_names']
        recipe._is_fitted = state['_is_fitted']

        logger.info(f"Recipe loaded from {filepath}")
        return recipe


def fit_recipe(
    train: pd.DataFrame,
    drop_columns: Optional[Sequence[str]] = None
) -> BuildingRecipe:
    """Fit a new BuildingRecipe on the training partition."""
    return BuildingRecipe(drop_columns=drop_columns).fit(train)


def apply_recipe(recipe: BuildingRecipe, df: pd.DataFrame) -> pd.DataFrame:
    """Transform a partition with an already fitted recipe."""
    return recipe.transform(df)


def get_target(df: pd.DataFrame, target_column: str = TARGET_COLUMN) -> np.ndarray:
    if target_column not in df.columns:
        raise ValueError(f"Target column '{target_column}' not found in data")
    return df[target_column].to_numpy(dtype=float)


def preprocess_pipeline(
    df: pd.DataFrame,
    train_proportion: float = 0.75,
    seed: int = 123,
    drop_columns: Optional[Sequence[str]] = None,
    save_recipe: Optional[str] = None
) -> Dict[str, Any]:
    """
    Complete preprocessing pipeline for the building records.

    Args:
        df: Type-coerced records
        train_proportion: Train/test split ratio
        seed: Random seed for the split
        drop_columns: Predictors removed by the recipe
        save_recipe: Path to save the fitted recipe

    Returns:
        Dictionary containing:
            - train, test: Engineered partitions
            - X_train, X_test, y_train, y_test: Model inputs
            - recipe: Fitted BuildingRecipe
            - feature_names: Names of the transformed features
    """
    logger.info("=" * 60)
    logger.info("STARTING DATA PREPROCESSING (Phase 2)")
    logger.info("=" * 60)

    train, test = split_dataset(df, train_proportion=train_proportion, seed=seed)

    # Engineered independently; only same-row values are used
    train = engineer_features(train)
    test = engineer_features(test)

    recipe = fit_recipe(train, drop_columns=drop_columns)
    X_train = apply_recipe(recipe, train)
    X_test = apply_recipe(recipe, test)

    if save_recipe:
        recipe.save(save_recipe)

    result = {
        'train': train,
        'test': test,
        'X_train': X_train,
        'X_test': X_test,
        'y_train': get_target(train),
        'y_test': get_target(test),
        'recipe': recipe,
        'feature_names': recipe.get_feature_names(),
        'seed': seed,
        'train_proportion': train_proportion
    }

    logger.info("=" * 60)
    logger.info("PREPROCESSING COMPLETE")
    logger.info(f"  Training rows: {len(X_train)}")
    logger.info(f"  Test rows: {len(X_test)}")
    logger.info(f"  Features per row: {X_train.shape[1]}")
    logger.info("=" * 60)

    return result


def print_preprocessing_summary(result: Dict[str, Any]) -> None:
    """
    Print a summary of the preprocessing results.

    Args:
        result: Dictionary from preprocess_pipeline
    """
    stats = result['recipe'].statistics

    print("\n" + "=" * 50)
    print("PREPROCESSING SUMMARY")
    print("=" * 50)
    print(f"Training rows: {result['X_train'].shape[0]}")
    print(f"Test rows: {result['X_test'].shape[0]}")
    print(f"Train proportion: {result['train_proportion']} (seed={result['seed']})")
    print(f"Dropped columns: {', '.join(stats['drop_columns'])}")
    print(f"\nFeatures ({len(result['feature_names'])}):")
    for name in result['feature_names']:
        print(f"  - {name}")
    print("=" * 50 + "\n")
