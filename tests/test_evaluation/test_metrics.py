"""Unit tests for risk model evaluation metrics."""

import numpy as np
import pandas as pd
import pytest

from riskstream.evaluation.metrics import EvaluationResults, RiskMetrics


def calculate_metrics(df: pd.DataFrame, threshold: float = 0.5) -> EvaluationResults:
    """Helper to calculate metrics from a DataFrame."""
    return RiskMetrics(threshold=threshold).evaluate(df)


class TestRiskMetrics:
    """Tests for RiskMetrics calculation."""

    def test_perfect_predictions(self):
        """Test metrics when every prediction is on the right side of the threshold."""
        df = pd.DataFrame({
            "label": [1, 1, 0, 0],
            "prediction": [0.9, 0.7, 0.2, 0.1],
        })

        metrics = calculate_metrics(df)

        assert metrics.precision == 1.0
        assert metrics.recall == 1.0
        assert metrics.f1_score == 1.0
        assert metrics.accuracy == 1.0
        assert metrics.total == 4

    def test_no_positive_predictions(self):
        """Test metrics when nothing reaches the threshold."""
        df = pd.DataFrame({
            "label": [1, 1, 0],
            "prediction": [0.1, 0.3, 0.2],
        })

        metrics = calculate_metrics(df)

        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1_score == 0.0
        assert metrics.false_negatives == 2
        assert metrics.accuracy == pytest.approx(1 / 3)

    def test_threshold_is_inclusive(self):
        df = pd.DataFrame({"label": [1], "prediction": [0.5]})
        assert calculate_metrics(df).true_positives == 1

    def test_custom_threshold(self):
        df = pd.DataFrame({
            "label": [1, 0, 0],
            "prediction": [0.8, 0.6, 0.2],
        })

        assert calculate_metrics(df, threshold=0.5).false_positives == 1
        assert calculate_metrics(df, threshold=0.7).false_positives == 0

    def test_mixed_results(self):
        df = pd.DataFrame({
            "label": [1, 1, 1, 0, 0, 0],
            "prediction": [0.9, 0.8, 0.1, 0.7, 0.2, 0.3],
        })

        metrics = calculate_metrics(df)

        assert metrics.true_positives == 2
        assert metrics.false_positives == 1
        assert metrics.true_negatives == 2
        assert metrics.false_negatives == 1
        assert metrics.precision == pytest.approx(2 / 3)
        assert metrics.recall == pytest.approx(2 / 3)

    def test_evaluate_arrays(self):
        metrics = RiskMetrics().evaluate_arrays(np.array([1, 0]), np.array([0.6, 0.4]))
        assert metrics.accuracy == 1.0

    def test_empty_input(self):
        metrics = RiskMetrics().evaluate_arrays([], [])
        assert metrics.accuracy == 0.0
        assert metrics.total == 0

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            RiskMetrics().evaluate_arrays([1, 0, 1], [0.5, 0.5])

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="Label column"):
            calculate_metrics(pd.DataFrame({"prediction": [0.2]}))
        with pytest.raises(ValueError, match="Prediction column"):
            calculate_metrics(pd.DataFrame({"label": [1]}))

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            RiskMetrics(threshold=1.5)

    def test_confusion_matrix(self):
        metrics = RiskMetrics()
        with pytest.raises(ValueError):
            metrics.get_confusion_matrix()

        metrics.evaluate_arrays([1, 0, 0], [0.9, 0.8, 0.1])
        np.testing.assert_array_equal(metrics.get_confusion_matrix(), [[1, 1], [0, 1]])

    def test_detailed_report(self):
        df = pd.DataFrame({"label": [1, 0], "prediction": [0.9, 0.1]})
        report = RiskMetrics().get_detailed_report(df)

        assert "RISK MODEL EVALUATION REPORT" in report
        assert "Total Examples:       2" in report

    def test_results_to_dict_and_str(self):
        metrics = RiskMetrics().evaluate_arrays([1, 0], [0.9, 0.1])

        assert metrics.to_dict()["f1_score"] == 1.0
        assert "Precision:" in str(metrics)
