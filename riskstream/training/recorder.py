"""
Training data collection and batch retraining.

Every scored transaction leaves behind a labelled feature payload. Retraining
reads the most recent payloads into a DataFrame, trains the model manager's
candidate model, measures its accuracy and persists one new model record.
"""

from typing import Optional

import pandas as pd

from ..config import RiskStreamConfig, ThresholdsConfig, get_default_config
from ..data.datastore import Datastore
from ..data.records import ModelRecord, TrainingExample
from ..evaluation.metrics import RiskMetrics
from ..exceptions import InsufficientData
from ..models.manager import ModelManager
from ..scoring.features import NEUTRAL, FeatureVector
from ..utils.logging import RiskLogger, get_logger_from_config


def label_for_score(score: int, thresholds: Optional[ThresholdsConfig] = None) -> int:
    """Binary training label: 1 when the score reaches the high-risk threshold."""
    thresholds = thresholds or get_default_config().thresholds
    return 1 if score >= thresholds.high else 0


def examples_to_frame(examples: list[TrainingExample]) -> pd.DataFrame:
    """
    Flatten training examples into a DataFrame.

    Args:
        examples: Stored training examples.

    Returns:
        One row per example with every feature payload key as a column,
        plus 'label', 'transaction_id' and 'created_at'.
    """
    if not examples:
        return pd.DataFrame(columns=FeatureVector.feature_names() + ["label"])

    rows = []
    for example in examples:
        row = dict(example.features)
        row["label"] = example.label
        row["transaction_id"] = example.transaction_id
        row["created_at"] = example.created_at
        rows.append(row)
    return pd.DataFrame(rows)


class TrainingDataRecorder:
    """Persist feedback examples and retrain the model from them."""

    def __init__(
        self,
        store: Datastore,
        config: Optional[RiskStreamConfig] = None,
        logger: Optional[RiskLogger] = None,
    ):
        self.store = store
        self.config = config or get_default_config()
        self.logger = logger or get_logger_from_config(
            "riskstream.training", self.config.logging
        )

    async def record(
        self,
        vector: FeatureVector,
        label: int,
        transaction_id: Optional[str] = None,
    ) -> Optional[TrainingExample]:
        """
        Persist one labelled example. Never raises.

        Args:
            vector: Features the label applies to.
            label: 0 or 1, usually from label_for_score.
            transaction_id: Scored transaction, if any.

        Returns:
            The stored TrainingExample, or None when the write failed.
        """
        try:
            return await self.store.insert_training_example(
                features=vector.to_dict(),
                label=int(label),
                transaction_id=transaction_id,
            )
        except Exception as e:
            self.logger.warning(
                "Failed to record training example",
                transaction_id=transaction_id,
                error=str(e),
            )
            return None

    async def load_frame(self, limit: Optional[int] = None) -> pd.DataFrame:
        """Most recent training examples as a DataFrame."""
        limit = limit or self.config.training.max_examples
        examples = await self.store.list_training_examples(limit=limit)
        return examples_to_frame(examples)

    async def retrain(self, manager: ModelManager) -> Optional[ModelRecord]:
        """
        Retrain the manager's model on the most recent examples.

        The live model is swapped before the new record is written, so a
        failed write leaves a trained model in memory that no record holds
        yet; the next successful retrain persists a newer one.

        Args:
            manager: Model manager whose live model is replaced on success.

        Returns:
            The new ModelRecord, or None when there was too little data,
            training failed or the record could not be written.
        """
        try:
            frame = await self.load_frame()
            if len(frame) < manager.min_training_samples:
                raise InsufficientData(len(frame), manager.min_training_samples)
        except InsufficientData as e:
            self.logger.info("Skipping retrain", reason=str(e))
            return None

        with self.logger.timer("retrain"):
            X = (
                frame.reindex(columns=FeatureVector.feature_names())
                .astype(float)
                .fillna(NEUTRAL)
                .to_numpy()
            )
            y = frame["label"].astype(int).to_numpy()

            if not manager.train(X, y):
                return None

            predictions = manager.model.predict_batch(X)
            results = RiskMetrics(
                threshold=self.config.training.prediction_threshold
            ).evaluate_arrays(y, predictions)

            record = await manager.persist(accuracy=results.accuracy)

        if record is None:
            self.logger.warning(
                "Retrained model is live but was not persisted",
                num_examples=len(frame),
                accuracy=round(results.accuracy, 4),
            )
            return None

        self.logger.log_training_result(
            num_examples=len(frame),
            accuracy=results.accuracy,
            version=record.version,
            precision=round(results.precision, 4),
            recall=round(results.recall, 4),
        )
        return record
