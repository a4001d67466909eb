"""
End-to-end risk pipeline.

Wires the feature extractor, scorer, model manager, training recorder and
alert dispatcher around one datastore. Both the simulation driver and an
inbound request handler go through ``RiskPipeline``.
"""

import random
from dataclasses import dataclass
from typing import Any, Optional

from .alerts import AlertDecision, AlertDispatcher
from .config import RiskStreamConfig, get_default_config
from .data.datastore import Datastore
from .data.records import (
    SIGNAL_TYPE_ML,
    Alert,
    ModelRecord,
    RiskSignal,
    TrainingExample,
    Transaction,
    validate_amount,
    validate_identifier,
)
from .exceptions import DegradedReason, InvalidInput
from .models.manager import ModelManager
from .scoring.features import FeatureExtractor, FeatureVector
from .scoring.scorer import RiskScorer, ScoringResult
from .training.recorder import TrainingDataRecorder, label_for_score
from .utils.logging import RiskLogger, get_logger_from_config


@dataclass
class PipelineOutcome:
    """Everything produced while processing one transaction."""

    transaction: Transaction
    vector: FeatureVector
    result: ScoringResult
    signal: RiskSignal
    decision: AlertDecision
    alert: Optional[Alert] = None
    training_example: Optional[TrainingExample] = None

    @property
    def risk_score(self) -> int:
        return self.result.risk_score

    def to_dict(self) -> dict[str, Any]:
        """Flat summary row, used by the CLI report."""
        return {
            "transaction_id": self.transaction.id,
            "user_id": self.transaction.user_id,
            "merchant_id": self.transaction.merchant_id,
            "amount": self.transaction.amount,
            "risk_score": self.result.risk_score,
            "risk_level": self.result.risk_level,
            "rule_score": round(self.result.rule_score * 100, 2),
            "model_prediction": round(self.result.model_prediction, 4),
            "confidence": self.result.confidence,
            "action": self.decision.action.value,
            "alerted": self.alert is not None,
            "degraded": self.result.degraded,
            "reasons": "; ".join(self.result.reasons),
        }


class RiskPipeline:
    """Score transactions and act on the result."""

    def __init__(
        self,
        store: Datastore,
        config: Optional[RiskStreamConfig] = None,
        rng: Optional[random.Random] = None,
        model_manager: Optional[ModelManager] = None,
        logger: Optional[RiskLogger] = None,
    ):
        self.store = store
        self.config = config or get_default_config()
        self.logger = logger or get_logger_from_config(
            "riskstream.pipeline", self.config.logging
        )

        self.extractor = FeatureExtractor(store, self.config)
        self.model_manager = model_manager or ModelManager(store, self.config)
        self.scorer = RiskScorer(self.model_manager, self.config, rng=rng)
        self.recorder = TrainingDataRecorder(store, self.config)
        self.dispatcher = AlertDispatcher(store, self.config)

    async def initialize(self) -> None:
        await self.model_manager.initialize()

    async def assess(
        self,
        transaction_id: str,
        user_id: str,
        device_id: str,
        merchant_id: str,
        amount: Any,
    ) -> tuple[FeatureVector, ScoringResult]:
        """
        Extract features and score them. Never raises.

        Malformed input is scored from the default vector and flagged with
        DegradedReason.INVALID_INPUT.

        Returns:
            The feature vector and its scoring result.
        """
        try:
            vector = await self.extractor.extract(
                transaction_id, user_id, device_id, merchant_id, amount
            )
        except InvalidInput as e:
            self.logger.warning("Invalid transaction input", error=str(e))
            vector = self.extractor.default_vector(amount, DegradedReason.INVALID_INPUT)

        result = await self.scorer.score(vector)
        return vector, result

    async def process(self, transaction: Transaction, notes: str = "") -> PipelineOutcome:
        """
        Score a stored transaction, write its risk signal and act on it.

        The training example is recorded before the alert is written. A
        failed alert write is logged and leaves ``alert`` as None.

        Args:
            transaction: Transaction already written to the datastore.
            notes: Extra context appended to an alert reason.

        Returns:
            PipelineOutcome with the signal, decision and any alert.
        """
        vector, result = await self.assess(
            transaction.id,
            transaction.user_id,
            transaction.device_id,
            transaction.merchant_id,
            transaction.amount,
        )

        signal = await self.store.insert_risk_signal(
            transaction_id=transaction.id,
            signal_type=SIGNAL_TYPE_ML,
            risk_score=result.risk_score,
        )

        example = await self.recorder.record(
            vector,
            label_for_score(result.risk_score, self.config.thresholds),
            transaction_id=transaction.id,
        )

        decision = self.dispatcher.decide(
            result.risk_score, result.reasons, transaction.amount, notes
        )
        try:
            alert = await self.dispatcher.dispatch(signal, decision)
        except Exception as e:
            self.logger.error(
                "Failed to write alert",
                transaction_id=transaction.id,
                risk_score=result.risk_score,
                error=str(e),
            )
            alert = None

        self.logger.log_scoring_result(
            transaction_id=transaction.id,
            risk_score=result.risk_score,
            rule_score=result.rule_score,
            confidence=result.confidence,
            degraded=result.degraded,
        )

        return PipelineOutcome(
            transaction=transaction,
            vector=vector,
            result=result,
            signal=signal,
            decision=decision,
            alert=alert,
            training_example=example,
        )

    async def submit(
        self,
        user_id: str,
        device_id: str,
        merchant_id: str,
        amount: Any,
        notes: str = "",
    ) -> PipelineOutcome:
        """
        Write a new transaction and process it.

        Raises:
            InvalidInput: If an identifier or the amount is malformed; nothing is written.
        """
        validate_identifier("user_id", user_id)
        validate_identifier("device_id", device_id)
        validate_identifier("merchant_id", merchant_id)
        amount = validate_amount(amount)

        transaction = await self.store.insert_transaction(
            user_id=user_id,
            device_id=device_id,
            merchant_id=merchant_id,
            amount=amount,
        )
        return await self.process(transaction, notes=notes)

    async def retrain(self) -> Optional[ModelRecord]:
        """Retrain the live model from recorded examples."""
        await self.model_manager.initialize()
        return await self.recorder.retrain(self.model_manager)
