"""
Linear risk model.

Closed-form ridge least squares over the normalized feature dimensions.
Cheap enough to retrain on every batch and needs only a handful of
examples.
"""

from typing import Any

import numpy as np

from .base import BaseRiskModel


class LinearRiskModel(BaseRiskModel):
    """
    Ridge regression on binary labels, clipped to [0, 1].

    Solves (X'X + alpha * I) w = X'y with an unpenalized intercept.
    """

    MODEL_TYPE = "linear"
    MIN_TRAINING_SAMPLES = 10

    def __init__(self, alpha: float = 0.1, name: str = "LinearRiskModel"):
        """
        Initialize the model.

        Args:
            alpha: L2 penalty on the weights.
            name: Human-readable name.
        """
        super().__init__(name=name)
        self.alpha = alpha
        self.coef_: np.ndarray = np.zeros(0)
        self.intercept_: float = 0.0

    def _fit(self, X: np.ndarray, y: np.ndarray) -> None:
        n_features = X.shape[1]
        design = np.hstack([X, np.ones((len(X), 1))])

        penalty = self.alpha * np.eye(n_features + 1)
        penalty[-1, -1] = 0.0

        gram = design.T @ design + penalty
        # lstsq tolerates a singular gram matrix when alpha is 0
        solution, *_ = np.linalg.lstsq(gram, design.T @ y, rcond=None)

        self.coef_ = solution[:-1]
        self.intercept_ = float(solution[-1])

    def _predict(self, X: np.ndarray) -> np.ndarray:
        return X @ self.coef_ + self.intercept_

    def save(self) -> dict[str, Any]:
        return {
            "type": self.MODEL_TYPE,
            "is_trained": self._is_fitted,
            "alpha": self.alpha,
            "coef": self.coef_.tolist(),
            "intercept": self.intercept_,
            "n_samples": self.n_samples_,
        }

    def load(self, params: dict[str, Any]) -> None:
        self._check_type(params)
        self.alpha = float(params.get("alpha", self.alpha))
        self.coef_ = np.asarray(params.get("coef", []), dtype=float)
        self.intercept_ = float(params.get("intercept", 0.0))
        self.n_samples_ = int(params.get("n_samples", 0))
        self._is_fitted = bool(params.get("is_trained", False)) and self.coef_.size > 0
