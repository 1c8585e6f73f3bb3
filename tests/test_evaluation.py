"""
Test Suite for Evaluation Module
=================================

Tests for regression metrics, cross-validation and report generation.
"""

import json

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from heatload.evaluation import calculate_metrics, cross_validate, evaluate_model
from heatload.model import train_model
from heatload.preprocessing import preprocess_pipeline, split_dataset


class TestCalculateMetrics:
    """Tests for calculate_metrics."""

    def test_perfect_predictions(self):
        y = np.array([15.5, 20.8, 28.3, 12.7, 35.0])
        metrics = calculate_metrics(y, y.copy())

        assert metrics['rmse'] == 0
        assert metrics['mae'] == 0
        assert metrics['r_squared'] == 1

    def test_known_values(self):
        metrics = calculate_metrics(np.array([1.0, 2.0, 3.0]), np.array([1.0, 2.0, 4.0]))

        assert metrics['rmse'] == pytest.approx(np.sqrt(1 / 3))
        assert metrics['mae'] == pytest.approx(1 / 3)
        # SS_res = 1, SS_tot = 2
        assert metrics['r_squared'] == pytest.approx(0.5)
        assert metrics['max_error'] == pytest.approx(1.0)
        assert metrics['n_samples'] == 3

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="predictions"):
            calculate_metrics(np.array([1.0, 2.0]), np.array([1.0]))

    def test_empty(self):
        with pytest.raises(ValueError, match="empty"):
            calculate_metrics(np.array([]), np.array([]))


class TestCrossValidate:
    """Tests for cross_validate."""

    @pytest.fixture
    def train(self, coerced_buildings):
        train, _ = split_dataset(coerced_buildings, seed=123)
        return train

    def test_result_structure(self, train):
        result = cross_validate(train, k=5, seed=123)

        assert result['k'] == 5
        assert len(result['folds']) == 5
        for name in ('rmse', 'mae', 'r_squared'):
            assert result['mean'][name] == pytest.approx(
                np.mean([fold[name] for fold in result['folds']])
            )

    def test_folds_are_disjoint_and_cover_train(self, train):
        result = cross_validate(train, k=5, seed=123)
        holdouts = [set(fold['holdout_index']) for fold in result['folds']]

        for i in range(len(holdouts)):
            for j in range(i + 1, len(holdouts)):
                assert holdouts[i].isdisjoint(holdouts[j])

        assert set().union(*holdouts) == set(train.index)
        assert all(fold['n_fit'] + fold['n_holdout'] == len(train) for fold in result['folds'])

    def test_deterministic_for_seed(self, train):
        a = cross_validate(train, k=5, seed=42)
        b = cross_validate(train, k=5, seed=42)

        assert [f['holdout_index'] for f in a['folds']] == [f['holdout_index'] for f in b['folds']]
        assert a['mean'] == b['mean']

    def test_close_to_held_out_rmse(self, coerced_buildings):
        result = preprocess_pipeline(coerced_buildings, seed=123)
        model = train_model(result['X_train'], result['y_train'], config={})
        test_rmse = calculate_metrics(result['y_test'], model.predict(result['X_test']))['rmse']

        cv = cross_validate(result['train'], k=5, seed=123)

        assert cv['mean']['rmse'] == pytest.approx(test_rmse, rel=0.3)

    def test_collinear_column_dropped_in_every_fold(self, train):
        result = cross_validate(train, k=5, seed=123)

        assert all('roof_area' in fold['dropped_columns'] for fold in result['folds'])

    def test_tolerance_reaches_every_fold(self, train):
        loose = cross_validate(train, k=5, seed=123, tolerance=0.5)
        default = cross_validate(train, k=5, seed=123)

        assert all('surface_area' in fold['dropped_columns'] for fold in loose['folds'])
        assert all('surface_area' not in fold['dropped_columns'] for fold in default['folds'])

    def test_strict_collinearity_propagates(self, train):
        with pytest.raises(ValueError, match="rank-deficient"):
            cross_validate(train, k=5, seed=123, drop_collinear=False)

    @pytest.mark.parametrize("k", [0, 1])
    def test_too_few_folds(self, train, k):
        with pytest.raises(ValueError, match="at least 2 folds"):
            cross_validate(train, k=k)

    def test_too_many_folds(self, train):
        with pytest.raises(ValueError, match="Cannot make"):
            cross_validate(train.iloc[:4], k=5)


class TestEvaluateModel:
    """Tests for the evaluate_model report."""

    def test_writes_metrics_and_figures(self, coerced_buildings, tmp_path):
        result = preprocess_pipeline(coerced_buildings, seed=123)
        model = train_model(result['X_train'], result['y_train'], config={})
        cv = cross_validate(result['train'], k=5, seed=123)

        report = evaluate_model(
            result['y_test'],
            model.predict(result['X_test']),
            model=model,
            cv_result=cv,
            output_dir=str(tmp_path)
        )

        assert report['metrics']['r_squared'] > 0.9
        for figure in report['figures']:
            assert (tmp_path / "figures" / figure).exists()

        with open(report['metrics_file']) as f:
            saved = json.load(f)

        assert saved['test']['rmse'] == pytest.approx(report['metrics']['rmse'])
        assert saved['cross_validation']['k'] == 5
        roof = [c for c in saved['coefficients'] if c['feature'] == 'roof_area'][0]
        assert roof['dropped'] is True
        assert roof['coefficient'] is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
