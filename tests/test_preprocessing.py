"""
Test Suite for Preprocessing Module
=====================================

Tests for the split, feature engineering and BuildingRecipe.
"""

import copy

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from heatload.preprocessing import (
    BuildingRecipe,
    apply_recipe,
    engineer_features,
    fit_recipe,
    preprocess_pipeline,
    split_dataset,
)


class TestSplitDataset:
    """Tests for split_dataset."""

    def test_partition_sizes(self, coerced_buildings):
        train, test = split_dataset(coerced_buildings, 0.75, seed=123)

        assert len(train) + len(test) == len(coerced_buildings)
        assert len(train) == 576

    def test_no_overlap(self, coerced_buildings):
        train, test = split_dataset(coerced_buildings, 0.75, seed=123)

        assert set(train.index).isdisjoint(test.index)
        assert set(train.index) | set(test.index) == set(coerced_buildings.index)

    def test_same_seed_same_partition(self, coerced_buildings):
        train_a, test_a = split_dataset(coerced_buildings, seed=7)
        train_b, test_b = split_dataset(coerced_buildings, seed=7)

        assert train_a.index.tolist() == train_b.index.tolist()
        assert test_a.index.tolist() == test_b.index.tolist()

    def test_different_seed_different_partition(self, coerced_buildings):
        train_a, _ = split_dataset(coerced_buildings, seed=1)
        train_b, _ = split_dataset(coerced_buildings, seed=2)

        assert set(train_a.index) != set(train_b.index)

    def test_empty_dataset(self, coerced_buildings):
        with pytest.raises(ValueError, match="empty"):
            split_dataset(coerced_buildings.iloc[0:0])

    @pytest.mark.parametrize("proportion", [0, 1, 1.5, -0.2])
    def test_invalid_proportion(self, coerced_buildings, proportion):
        with pytest.raises(ValueError, match="train_proportion"):
            split_dataset(coerced_buildings, proportion)


class TestEngineerFeatures:
    """Tests for engineer_features."""

    def test_glazing_type_scenario(self):
        df = pd.DataFrame({
            'glazing_area_distribution': [3, 0],
            'surface_area': [514.5, 808.5],
            'overall_height': [7.0, 3.5],
        })
        result = engineer_features(df)

        assert result['glazing_type'].tolist() == ["Present", "None"]

    def test_glazing_type_none_iff_zero(self, coerced_buildings):
        result = engineer_features(coerced_buildings)
        codes = coerced_buildings['glazing_area_distribution'].astype(int)

        assert ((result['glazing_type'] == "None") == (codes == 0)).all()
        assert list(result['glazing_type'].cat.categories) == ["None", "Present"]

    def test_surface_height_exact(self, coerced_buildings):
        result = engineer_features(coerced_buildings)
        expected = coerced_buildings['surface_area'] * coerced_buildings['overall_height']

        assert (result['surface_height'] == expected).all()

    def test_input_not_mutated(self, coerced_buildings):
        before = coerced_buildings.copy()
        engineer_features(coerced_buildings)

        pd.testing.assert_frame_equal(coerced_buildings, before)

    def test_missing_distribution_gives_missing_type(self):
        df = pd.DataFrame({
            'glazing_area_distribution': [np.nan, 2.0],
            'surface_area': [514.5, 514.5],
            'overall_height': [7.0, 7.0],
        })
        result = engineer_features(df)

        assert pd.isna(result['glazing_type'].iloc[0])
        assert result['glazing_type'].iloc[1] == "Present"

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="missing columns"):
            engineer_features(pd.DataFrame({'surface_area': [1.0]}))


class TestBuildingRecipe:
    """Tests for BuildingRecipe."""

    @pytest.fixture
    def partitions(self, coerced_buildings):
        train, test = split_dataset(coerced_buildings, seed=123)
        return engineer_features(train), engineer_features(test)

    @pytest.fixture
    def recipe(self, partitions):
        return fit_recipe(partitions[0])

    def test_init(self):
        recipe = BuildingRecipe()

        assert recipe.drop_columns == ['glazing_area_distribution', 'orientation']
        assert recipe._is_fitted == False

    def test_transform_before_fit(self, partitions):
        with pytest.raises(ValueError, match="must be fitted"):
            BuildingRecipe().transform(partitions[0])

    def test_empty_train(self, partitions):
        with pytest.raises(ValueError, match="empty"):
            fit_recipe(partitions[0].iloc[0:0])

    def test_feature_names(self, recipe):
        assert recipe.get_feature_names() == [
            'relative_compactness', 'surface_area', 'wall_area', 'roof_area',
            'overall_height', 'glazing_area', 'surface_height', 'glazing_type_Present',
        ]

    def test_dropped_and_response_columns_excluded(self, recipe):
        names = recipe.get_feature_names()

        assert not any(name.startswith('orientation') for name in names)
        assert not any(name.startswith('glazing_area_distribution') for name in names)
        assert 'heating_load' not in names

    def test_same_columns_on_train_and_test(self, recipe, partitions):
        train, test = partitions
        X_train = apply_recipe(recipe, train)
        X_test = apply_recipe(recipe, test)

        assert list(X_train.columns) == list(X_test.columns)
        assert X_test.index.equals(test.index)

    def test_statistics_learned_from_train(self, recipe, partitions):
        train, _ = partitions
        stats = recipe.statistics

        assert stats['medians']['wall_area'] == pytest.approx(train['wall_area'].median())
        assert stats['means']['surface_height'] == pytest.approx(train['surface_height'].mean())
        assert stats['stds']['glazing_area'] == pytest.approx(train['glazing_area'].std(ddof=0))
        assert stats['vocabulary']['glazing_type'] == ["None", "Present"]
        assert stats['modes']['glazing_type'] == "Present"

    def test_test_transform_leaves_statistics_unchanged(self, recipe, partitions):
        before = copy.deepcopy(recipe.statistics)
        apply_recipe(recipe, partitions[1])

        assert recipe.statistics == before

    def test_train_is_standardized(self, recipe, partitions):
        X_train = apply_recipe(recipe, partitions[0])

        np.testing.assert_allclose(X_train['surface_area'].mean(), 0, atol=1e-10)
        np.testing.assert_allclose(X_train['surface_area'].std(ddof=0), 1, atol=1e-10)

    def test_numeric_imputation_uses_train_median(self, recipe, partitions):
        test = partitions[1].copy()
        test.iloc[0, test.columns.get_loc('wall_area')] = np.nan
        stats = recipe.statistics

        X_test = apply_recipe(recipe, test)
        expected = (stats['medians']['wall_area'] - stats['means']['wall_area']) / stats['stds']['wall_area']

        assert X_test['wall_area'].iloc[0] == pytest.approx(expected)

    def test_categorical_imputation_uses_train_mode(self, recipe, partitions):
        test = partitions[1].copy()
        test['glazing_type'] = test['glazing_type'].astype(object)
        test.iloc[0, test.columns.get_loc('glazing_type')] = np.nan

        X_test = apply_recipe(recipe, test)

        # Train mode is "Present"
        assert X_test['glazing_type_Present'].iloc[0] == 1.0

    def test_missing_predictor_column(self, recipe, partitions):
        with pytest.raises(ValueError, match="missing predictor columns"):
            apply_recipe(recipe, partitions[1].drop(columns=['wall_area']))

    def test_custom_drop_columns(self, partitions):
        recipe = fit_recipe(partitions[0], drop_columns=['glazing_area_distribution', 'orientation', 'roof_area'])

        assert 'roof_area' not in recipe.get_feature_names()

    def test_save_load(self, recipe, partitions, tmp_path):
        path = tmp_path / "recipe.joblib"
        recipe.save(path)
        loaded = BuildingRecipe.load(path)

        assert loaded._is_fitted == True
        assert loaded.get_feature_names() == recipe.get_feature_names()
        pd.testing.assert_frame_equal(
            apply_recipe(loaded, partitions[1]),
            apply_recipe(recipe, partitions[1])
        )


class TestPreprocessPipeline:
    """Tests for the preprocess_pipeline function."""

    def test_pipeline_returns_expected_keys(self, coerced_buildings):
        result = preprocess_pipeline(coerced_buildings, seed=123)

        expected_keys = [
            'train', 'test', 'X_train', 'X_test', 'y_train', 'y_test',
            'recipe', 'feature_names'
        ]

        for key in expected_keys:
            assert key in result, f"Missing key: {key}"

    def test_pipeline_shapes(self, coerced_buildings):
        result = preprocess_pipeline(coerced_buildings, train_proportion=0.75, seed=123)

        assert result['X_train'].shape == (576, 8)
        assert result['X_test'].shape == (192, 8)
        assert len(result['y_train']) == 576
        assert len(result['y_test']) == 192

    def test_pipeline_deterministic(self, coerced_buildings):
        a = preprocess_pipeline(coerced_buildings, seed=99)
        b = preprocess_pipeline(coerced_buildings, seed=99)

        pd.testing.assert_frame_equal(a['X_test'], b['X_test'])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
