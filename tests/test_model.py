"""
Test Suite for Model Module
============================

Tests for HeatingLoadModel, collinearity detection and training from config.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from heatload.model import (
    CollinearityError,
    HeatingLoadModel,
    find_collinear_columns,
    fit_model,
    predict,
    train_model,
)
from heatload.preprocessing import preprocess_pipeline


@pytest.fixture
def eight_buildings():
    """Eight rows where heating_load = 2 * overall_height exactly."""
    X = pd.DataFrame({
        'overall_height': [3.5, 7.0, 3.5, 7.0, 3.5, 7.0, 3.5, 7.0],
        'glazing_area': [0.0, 0.1, 0.1, 0.25, 0.25, 0.4, 0.4, 0.0],
    })
    y = 2 * X['overall_height'].to_numpy()
    return X, y


class TestFindCollinearColumns:
    """Tests for the rank check."""

    def test_full_rank(self, eight_buildings):
        X, _ = eight_buildings
        assert find_collinear_columns(X) == []

    def test_linear_combination_flagged(self):
        rng = np.random.default_rng(1)
        X = pd.DataFrame({'a': rng.normal(size=20), 'b': rng.normal(size=20)})
        X['c'] = X['a'] + 2 * X['b']

        assert find_collinear_columns(X) == ['c']

    def test_constant_column_flagged_with_intercept(self):
        X = pd.DataFrame({'a': [1.0, 2.0, 3.0, 4.0], 'const': [5.0, 5.0, 5.0, 5.0]})

        assert find_collinear_columns(X) == ['const']
        assert find_collinear_columns(X, fit_intercept=False) == []

    def test_zero_column_flagged(self):
        X = pd.DataFrame({'a': [1.0, 2.0, 3.0], 'zero': [0.0, 0.0, 0.0]})
        assert find_collinear_columns(X) == ['zero']

    def test_roof_area_flagged_on_building_features(self, coerced_buildings):
        result = preprocess_pipeline(coerced_buildings, seed=123)
        collinear = find_collinear_columns(result['X_train'])

        # surface_area = wall_area + 2 * roof_area
        assert 'roof_area' in collinear
        assert 'overall_height' not in collinear
        assert 'surface_area' not in collinear


class TestHeatingLoadModel:
    """Tests for HeatingLoadModel."""

    def test_init(self):
        model = HeatingLoadModel()

        assert model.fit_intercept == True
        assert model.drop_collinear == False
        assert model._is_fitted == False

    def test_recovers_height_coefficient(self, eight_buildings):
        X, y = eight_buildings
        model = fit_model(X, y)

        assert model.coefficients['overall_height'] == pytest.approx(2.0, abs=1e-9)
        assert model.coefficients['glazing_area'] == pytest.approx(0.0, abs=1e-9)
        assert model.intercept_ == pytest.approx(0.0, abs=1e-9)
        assert model.training_info['train_r2'] == pytest.approx(1.0)

    def test_predict_is_linear_combination(self, eight_buildings):
        X, y = eight_buildings
        model = fit_model(X, y)
        predictions = predict(model, X)

        expected = model.intercept_ + X.to_numpy() @ model.coefficients.to_numpy()
        np.testing.assert_allclose(predictions, expected)
        np.testing.assert_allclose(predictions, y, atol=1e-9)

    def test_predict_does_not_change_model(self, eight_buildings):
        X, y = eight_buildings
        model = fit_model(X, y)
        before = model.coefficients.copy()

        model.predict(X * 3)

        pd.testing.assert_series_equal(model.coefficients, before)

    def test_predict_before_fit(self, eight_buildings):
        X, _ = eight_buildings
        with pytest.raises(ValueError, match="must be trained"):
            HeatingLoadModel().predict(X)

    def test_predict_missing_columns(self, eight_buildings):
        X, y = eight_buildings
        model = fit_model(X, y)

        with pytest.raises(ValueError, match="missing columns"):
            model.predict(X[['overall_height']])

    def test_predict_accepts_array(self, eight_buildings):
        X, y = eight_buildings
        model = fit_model(X, y)

        np.testing.assert_allclose(model.predict(X.to_numpy()), y, atol=1e-9)

    def test_rank_deficient_raises(self, eight_buildings):
        X, y = eight_buildings
        X = X.assign(double_height=2 * X['overall_height'])

        with pytest.raises(CollinearityError) as excinfo:
            fit_model(X, y)

        assert excinfo.value.columns == ['double_height']
        assert 'double_height' in str(excinfo.value)

    def test_rank_deficient_dropped_with_warning(self, eight_buildings, caplog):
        X, y = eight_buildings
        X = X.assign(double_height=2 * X['overall_height'])

        with caplog.at_level("WARNING"):
            model = fit_model(X, y, drop_collinear=True)

        assert model.dropped_columns == ['double_height']
        assert 'double_height' in caplog.text
        assert model.coefficients['overall_height'] == pytest.approx(2.0, abs=1e-9)
        np.testing.assert_allclose(model.predict(X), y, atol=1e-9)

    def test_coefficient_table(self, eight_buildings):
        X, y = eight_buildings
        X = X.assign(double_height=2 * X['overall_height'])
        table = fit_model(X, y, drop_collinear=True).coefficient_table()

        assert table['feature'].tolist() == [
            '(intercept)', 'overall_height', 'glazing_area', 'double_height'
        ]
        assert table['dropped'].tolist() == [False, False, False, True]
        assert np.isnan(table['coefficient'].iloc[-1])

    def test_empty_features(self):
        with pytest.raises(ValueError, match="empty"):
            fit_model(pd.DataFrame({'a': []}), np.array([]))

    def test_length_mismatch(self, eight_buildings):
        X, y = eight_buildings
        with pytest.raises(ValueError, match="rows"):
            fit_model(X, y[:-1])

    def test_missing_values_rejected(self, eight_buildings):
        X, y = eight_buildings
        X = X.copy()
        X.iloc[0, 0] = np.nan

        with pytest.raises(ValueError, match="missing values"):
            fit_model(X, y)

    def test_save_load(self, eight_buildings, tmp_path):
        X, y = eight_buildings
        model = fit_model(X, y)

        path = tmp_path / "models" / "ols.joblib"
        model.save(path)
        loaded = HeatingLoadModel.load(path)

        assert loaded._is_fitted == True
        assert loaded.feature_names_ == model.feature_names_
        np.testing.assert_allclose(loaded.predict(X), model.predict(X))

    def test_save_untrained(self, tmp_path):
        with pytest.raises(ValueError, match="untrained"):
            HeatingLoadModel().save(tmp_path / "model.joblib")


class TestTrainModel:
    """Tests for train_model."""

    def test_config_defaults_drop_collinear(self, coerced_buildings):
        result = preprocess_pipeline(coerced_buildings, seed=123)
        model = train_model(result['X_train'], result['y_train'], config={})

        assert 'roof_area' in model.dropped_columns
        assert model.training_info['train_r2'] > 0.95

    def test_config_strict_raises(self, coerced_buildings):
        result = preprocess_pipeline(coerced_buildings, seed=123)
        config = {'model': {'drop_collinear': False}}

        with pytest.raises(CollinearityError):
            train_model(result['X_train'], result['y_train'], config)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
