"""
Model lifecycle management.

The ModelManager owns the single live risk model: it loads the latest
persisted snapshot, serves predictions, retrains by building a fresh
candidate and swapping it in, and appends new model records.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence, Union

import numpy as np

from ..config import RiskStreamConfig, get_default_config
from ..data.datastore import Datastore
from ..data.records import ModelRecord
from ..exceptions import DependencyUnavailable
from ..scoring.features import FeatureVector
from ..utils.logging import RiskLogger, get_logger_from_config
from .base import NEUTRAL_PREDICTION, BaseRiskModel
from .linear import LinearRiskModel
from .logistic import LogisticRiskModel


INITIAL_VERSION = "1.0.0"


@dataclass
class ModelStats:
    """Snapshot of the live model and its training history."""

    model_type: str
    is_trained: bool
    last_trained: Optional[datetime]
    accuracy: Optional[float]
    version: Optional[str]
    training_samples: int

    def to_dict(self) -> dict:
        return {
            "model_type": self.model_type,
            "is_trained": self.is_trained,
            "last_trained": self.last_trained.isoformat() if self.last_trained else None,
            "accuracy": self.accuracy,
            "version": self.version,
            "training_samples": self.training_samples,
        }


def bump_version(version: Optional[str]) -> str:
    """Increment the patch component of a semantic version string."""
    if not version:
        return INITIAL_VERSION
    try:
        major, minor, patch = (int(part) for part in version.split("."))
    except ValueError:
        return INITIAL_VERSION
    return f"{major}.{minor}.{patch + 1}"


class ModelManager:
    """
    Holds the live risk model and persists its snapshots.

    Retraining never mutates the live model: a candidate is trained and the
    reference is replaced only when training succeeds.
    """

    def __init__(
        self,
        store: Datastore,
        config: Optional[RiskStreamConfig] = None,
        logger: Optional[RiskLogger] = None,
    ):
        self.store = store
        self.config = config or get_default_config()
        self.logger = logger or get_logger_from_config(
            "riskstream.models", self.config.logging
        )
        self._model: Optional[BaseRiskModel] = None

    @property
    def model_type(self) -> str:
        return self.config.model.kind

    @property
    def model(self) -> Optional[BaseRiskModel]:
        return self._model

    @property
    def is_trained(self) -> bool:
        return self._model is not None and self._model.is_fitted

    @property
    def min_training_samples(self) -> int:
        return self._model_class().MIN_TRAINING_SAMPLES

    def _model_class(self) -> type[BaseRiskModel]:
        return LogisticRiskModel if self.model_type == "logistic" else LinearRiskModel

    def _new_model(self) -> BaseRiskModel:
        model_cfg = self.config.model
        if self.model_type == "logistic":
            return LogisticRiskModel(
                regularization=model_cfg.regularization,
                max_iter=model_cfg.max_iter,
                random_state=model_cfg.random_state,
            )
        return LinearRiskModel(alpha=model_cfg.ridge_alpha)

    async def initialize(self) -> None:
        """Install the latest persisted model of the configured kind, or a fresh one.

        Calling it again once a model is installed does nothing.
        """
        if self._model is not None:
            return

        self._model = self._new_model()
        try:
            record = await self.store.latest_model(self.model_type)
            if record is None:
                self.logger.info("No persisted model found, using untrained model",
                                 model_type=self.model_type)
                return
            self.load(record.parameters)
            self.logger.info("Loaded persisted model", model_type=self.model_type,
                             version=record.version)
        except Exception as e:
            self.logger.warning("Failed to load persisted model", error=str(e))

    def predict(self, vector: FeatureVector) -> float:
        """
        Predict the fraud probability for one feature vector.

        Returns:
            Probability in [0, 1]; 0.5 when untrained or on failure.
        """
        if self._model is None:
            return NEUTRAL_PREDICTION
        try:
            return self._model.predict(vector.to_array())
        except Exception as e:
            self.logger.warning("Model prediction failed", error=str(e))
            return NEUTRAL_PREDICTION

    def train(
        self,
        vectors: Union[Sequence[FeatureVector], np.ndarray],
        labels: Sequence[int],
    ) -> bool:
        """
        Train a candidate model and swap it in on success.

        Args:
            vectors: Feature vectors, or an (n_samples, n_features) array.
            labels: Binary labels aligned with vectors.

        Returns:
            True when the live model was replaced.
        """
        if len(vectors) == 0:
            self.logger.info("No training examples, skipping training")
            return False

        if isinstance(vectors, np.ndarray):
            X = vectors
        else:
            X = np.vstack([v.to_array() for v in vectors])

        candidate = self._new_model()
        try:
            candidate.fit(X, np.asarray(labels))
        except Exception as e:
            self.logger.warning("Model training failed, keeping previous model", error=str(e))
            return False

        self._model = candidate
        self.logger.info("Model trained", model_type=self.model_type, samples=len(X))
        return True

    def save(self) -> dict[str, Any]:
        """Serialize the live model; an uninitialized manager saves a fresh model."""
        return (self._model or self._new_model()).save()

    def load(self, blob: dict[str, Any]) -> None:
        """Replace the live model with one restored from blob. Failures keep the current model."""
        candidate = self._new_model()
        try:
            candidate.load(blob)
        except Exception as e:
            self.logger.warning("Failed to load model parameters", error=str(e))
            return
        self._model = candidate

    async def persist(self, accuracy: Optional[float] = None) -> Optional[ModelRecord]:
        """
        Append a snapshot of the live model as a new model record.

        Args:
            accuracy: Training accuracy in [0, 1], if measured.

        Returns:
            The created ModelRecord, versioned one patch above the previous one,
            or None when the datastore write failed. The live model is kept
            either way.
        """
        try:
            latest = await self.store.latest_model(self.model_type)
            version = bump_version(latest.version) if latest else INITIAL_VERSION
            return await self.store.insert_model(
                model_type=self.model_type,
                parameters=self.save(),
                version=version,
                accuracy=accuracy,
            )
        except DependencyUnavailable as e:
            self.logger.error(
                "Failed to persist model",
                model_type=self.model_type,
                error=str(e),
            )
            return None

    async def get_stats(self) -> ModelStats:
        """Report the live model's state along with the latest record and sample count."""
        try:
            latest = await self.store.latest_model(self.model_type)
            samples = await self.store.count_training_examples()
        except Exception as e:
            self.logger.warning("Failed to read model stats", error=str(e))
            latest, samples = None, 0

        return ModelStats(
            model_type=self.model_type,
            is_trained=self.is_trained,
            last_trained=latest.created_at if latest else None,
            accuracy=latest.accuracy if latest else None,
            version=latest.version if latest else None,
            training_samples=samples,
        )
