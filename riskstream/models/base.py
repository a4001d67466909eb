"""
Base Risk Model Interface Module.

Defines the abstract base class that every trainable risk model implements,
so the model manager can train, predict, save and load any of them the same
way.
"""

from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from ..exceptions import InsufficientData


NEUTRAL_PREDICTION = 0.5


class BaseRiskModel(ABC):
    """
    Abstract base class for trainable risk models.

    Each model should:
    1. Learn from labelled feature rows (fit)
    2. Return a fraud probability for one feature row (predict)
    3. Serialize to and from a JSON-compatible mapping (save / load)

    An unfitted model always predicts the neutral value 0.5.
    """

    MODEL_TYPE = "base"
    MIN_TRAINING_SAMPLES = 1

    def __init__(self, name: str = "BaseRiskModel"):
        """
        Initialize the model.

        Args:
            name: Human-readable name for the model.
        """
        self.name = name
        self._is_fitted = False
        self.n_samples_ = 0

    def fit(self, X: np.ndarray, y: np.ndarray) -> "BaseRiskModel":
        """
        Fit the model on labelled feature rows.

        Args:
            X: Array of shape (n_samples, n_features) with values in [0, 1].
            y: Binary labels of shape (n_samples,).

        Returns:
            self: The fitted model instance.

        Raises:
            InsufficientData: If fewer than MIN_TRAINING_SAMPLES rows are given.
            ValueError: If X and y disagree in length.
        """
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if X.ndim != 2 or len(X) != len(y):
            raise ValueError(f"Expected 2D features matching labels, got {X.shape} and {y.shape}")
        if len(X) < self.MIN_TRAINING_SAMPLES:
            raise InsufficientData(len(X), self.MIN_TRAINING_SAMPLES)

        self._fit(X, y)
        self._is_fitted = True
        self.n_samples_ = len(X)
        return self

    @abstractmethod
    def _fit(self, X: np.ndarray, y: np.ndarray) -> None:
        pass

    def predict(self, x: np.ndarray) -> float:
        """
        Predict the fraud probability of a single feature row.

        Args:
            x: Array of shape (n_features,).

        Returns:
            Probability in [0, 1]; 0.5 when unfitted.
        """
        if not self._is_fitted:
            return NEUTRAL_PREDICTION
        probs = self.predict_batch(np.asarray(x, dtype=float).reshape(1, -1))
        return float(probs[0])

    def predict_batch(self, X: np.ndarray) -> np.ndarray:
        """Predict probabilities for many rows, clipped to [0, 1]."""
        X = np.asarray(X, dtype=float)
        if not self._is_fitted:
            return np.full(len(X), NEUTRAL_PREDICTION)
        return np.clip(self._predict(X), 0.0, 1.0)

    @abstractmethod
    def _predict(self, X: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def save(self) -> dict[str, Any]:
        """Serialize the model into a JSON-compatible mapping."""
        pass

    @abstractmethod
    def load(self, params: dict[str, Any]) -> None:
        """
        Restore the model from a mapping produced by save.

        Raises:
            ValueError: If the mapping belongs to another model type.
        """
        pass

    def _check_type(self, params: dict[str, Any]) -> None:
        if not isinstance(params, dict) or params.get("type") != self.MODEL_TYPE:
            found = params.get("type") if isinstance(params, dict) else type(params).__name__
            raise ValueError(f"Cannot load {found!r} parameters into {self.MODEL_TYPE}")

    @property
    def is_fitted(self) -> bool:
        """Check if the model has been fitted."""
        return self._is_fitted

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', fitted={self._is_fitted})"
