"""Model evaluation metrics.

Thresholds predicted fraud probabilities and compares them with the binary
training labels. Retraining uses the accuracy to annotate each persisted
model record; the other rates are logged alongside it.
"""

from dataclasses import asdict, dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator else 0.0


@dataclass
class EvaluationResults:
    """Confusion counts and the rates derived from them."""

    true_positives: int
    false_positives: int
    true_negatives: int
    false_negatives: int
    precision: float
    recall: float
    f1_score: float
    accuracy: float

    @property
    def total(self) -> int:
        return self.true_positives + self.false_positives + self.true_negatives + self.false_negatives

    def to_dict(self) -> dict:
        return asdict(self)

    def __str__(self) -> str:
        counts = (
            f"TP={self.true_positives} FP={self.false_positives} "
            f"TN={self.true_negatives} FN={self.false_negatives}"
        )
        rates = "\n".join(
            f"  {label:<10} {value:.4f}"
            for label, value in [
                ("Accuracy:", self.accuracy),
                ("Precision:", self.precision),
                ("Recall:", self.recall),
                ("F1-Score:", self.f1_score),
            ]
        )
        return f"Evaluation over {self.total} examples ({counts})\n{rates}"


class RiskMetrics:
    """
    Evaluates risk model probabilities against training labels.

    A prediction counts as high risk when it reaches the threshold.
    """

    def __init__(self, threshold: float = 0.5):
        """
        Args:
            threshold: Probability at or above which a prediction is positive.
        """
        if not 0 <= threshold <= 1:
            raise ValueError("Threshold must be between 0 and 1")
        self.threshold = threshold
        self._results: Optional[EvaluationResults] = None

    @staticmethod
    def calculate_precision(tp: int, fp: int) -> float:
        """Share of transactions predicted risky that were labelled risky."""
        return _ratio(tp, tp + fp)

    @staticmethod
    def calculate_recall(tp: int, fn: int) -> float:
        """Share of transactions labelled risky that the model flagged."""
        return _ratio(tp, tp + fn)

    @staticmethod
    def calculate_f1(precision: float, recall: float) -> float:
        if precision + recall == 0:
            return 0.0
        return 2 * precision * recall / (precision + recall)

    @staticmethod
    def calculate_accuracy(tp: int, tn: int, fp: int, fn: int) -> float:
        """Share of examples whose thresholded prediction matches the label."""
        return _ratio(tp + tn, tp + tn + fp + fn)

    def evaluate_arrays(
        self,
        labels: Sequence[int],
        predictions: Sequence[float],
    ) -> EvaluationResults:
        """
        Evaluate probability predictions against binary labels.

        Args:
            labels: Training labels (0 or 1).
            predictions: Predicted probabilities in [0, 1], aligned with labels.

        Returns:
            EvaluationResults, also kept for get_confusion_matrix.

        Raises:
            ValueError: If labels and predictions differ in shape.
        """
        actual = np.asarray(labels).astype(bool)
        flagged = np.asarray(predictions, dtype=float) >= self.threshold
        if actual.shape != flagged.shape:
            raise ValueError(
                f"Labels and predictions differ in shape: {actual.shape} vs {flagged.shape}"
            )

        tp = int(np.count_nonzero(actual & flagged))
        fp = int(np.count_nonzero(~actual & flagged))
        tn = int(np.count_nonzero(~actual & ~flagged))
        fn = int(np.count_nonzero(actual & ~flagged))

        precision = self.calculate_precision(tp, fp)
        recall = self.calculate_recall(tp, fn)
        self._results = EvaluationResults(
            true_positives=tp,
            false_positives=fp,
            true_negatives=tn,
            false_negatives=fn,
            precision=precision,
            recall=recall,
            f1_score=self.calculate_f1(precision, recall),
            accuracy=self.calculate_accuracy(tp, tn, fp, fn),
        )
        return self._results

    def evaluate(
        self,
        df: pd.DataFrame,
        label_col: str = "label",
        prediction_col: str = "prediction"
    ) -> EvaluationResults:
        """Evaluate a frame with a label column and a probability column."""
        for kind, column in (("Label", label_col), ("Prediction", prediction_col)):
            if column not in df.columns:
                raise ValueError(f"{kind} column '{column}' not found")

        return self.evaluate_arrays(df[label_col].to_numpy(), df[prediction_col].to_numpy())

    def get_confusion_matrix(self) -> np.ndarray:
        """
        Confusion matrix of the most recent evaluation.

        Returns:
            Array laid out as [[TN, FP], [FN, TP]].

        Raises:
            ValueError: If nothing has been evaluated yet.
        """
        r = self._results
        if r is None:
            raise ValueError("No evaluation has been performed yet")
        return np.array([
            [r.true_negatives, r.false_positives],
            [r.false_negatives, r.true_positives],
        ])

    def get_detailed_report(
        self,
        df: pd.DataFrame,
        label_col: str = "label",
        prediction_col: str = "prediction"
    ) -> str:
        """
        Multi-line report for a frame of labels and predictions.

        Args:
            df: Frame holding both columns.
            label_col: Label column name.
            prediction_col: Probability column name.

        Returns:
            Report text with dataset counts, the confusion matrix and the rates.
        """
        results = self.evaluate(df, label_col, prediction_col)
        matrix = self.get_confusion_matrix()
        rule = "=" * 60

        lines = [
            rule,
            "RISK MODEL EVALUATION REPORT",
            rule,
            f"  Total Examples:       {len(df)}",
            f"  Labelled High Risk:   {int(df[label_col].sum())}",
            f"  Flagged High Risk:    {results.true_positives + results.false_positives}",
            f"  Threshold:            {self.threshold:.2f}",
            "",
            "  Confusion matrix (rows: labelled 0/1, columns: flagged 0/1)",
            f"    {matrix[0, 0]:>6} {matrix[0, 1]:>6}",
            f"    {matrix[1, 0]:>6} {matrix[1, 1]:>6}",
            "",
            str(results),
            rule,
        ]
        return "\n".join(lines)
