"""
Logistic risk model.

The full classifier path: scikit-learn LogisticRegression with class
balancing. Parameters are persisted as a base64 encoded joblib dump so they
fit in a JSON model record.
"""

import base64
import io
from typing import Any, Optional

import joblib
import numpy as np
from sklearn.linear_model import LogisticRegression

from .base import BaseRiskModel


class LogisticRiskModel(BaseRiskModel):
    """
    Logistic regression over the normalized feature dimensions.

    A batch containing a single class cannot train a classifier; the model
    then predicts that class's rate as a constant.
    """

    MODEL_TYPE = "logistic"
    MIN_TRAINING_SAMPLES = 100

    def __init__(
        self,
        regularization: float = 0.01,
        max_iter: int = 1000,
        random_state: Optional[int] = 42,
        name: str = "LogisticRiskModel",
    ):
        """
        Initialize the model.

        Args:
            regularization: Inverse of LogisticRegression's C.
            max_iter: Solver iteration limit.
            random_state: Seed for the solver.
            name: Human-readable name.
        """
        super().__init__(name=name)
        self.regularization = regularization
        self.max_iter = max_iter
        self.random_state = random_state
        self._classifier: Optional[LogisticRegression] = None
        self._constant: Optional[float] = None

    def _fit(self, X: np.ndarray, y: np.ndarray) -> None:
        if len(np.unique(y)) < 2:
            self._classifier = None
            self._constant = float(y[0])
            return

        classifier = LogisticRegression(
            C=1.0 / self.regularization,
            max_iter=self.max_iter,
            random_state=self.random_state,
            class_weight="balanced",
        )
        classifier.fit(X, y.astype(int))
        self._classifier = classifier
        self._constant = None

    def _predict(self, X: np.ndarray) -> np.ndarray:
        if self._classifier is None:
            return np.full(len(X), self._constant if self._constant is not None else 0.5)
        return self._classifier.predict_proba(X)[:, 1]

    def save(self) -> dict[str, Any]:
        buffer = io.BytesIO()
        joblib.dump({
            "classifier": self._classifier,
            "constant": self._constant,
        }, buffer)
        return {
            "type": self.MODEL_TYPE,
            "is_trained": self._is_fitted,
            "regularization": self.regularization,
            "n_samples": self.n_samples_,
            "blob": base64.b64encode(buffer.getvalue()).decode("ascii"),
        }

    def load(self, params: dict[str, Any]) -> None:
        self._check_type(params)
        state = joblib.load(io.BytesIO(base64.b64decode(params["blob"])))
        self._classifier = state["classifier"]
        self._constant = state["constant"]
        self.regularization = float(params.get("regularization", self.regularization))
        self.n_samples_ = int(params.get("n_samples", 0))
        self._is_fitted = bool(params.get("is_trained", False))
