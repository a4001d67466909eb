"""Risk scoring: blends a rule-based score with the trainable model.

The rule score is a weighted sum over the normalized dimensions, boosted
when raw thresholds are crossed. Triggered boosts are averaged, never
compounded. The model prediction is blended in proportionally to a
confidence value derived from how much history backs the transaction.

Example:
    scorer = RiskScorer(manager, config, rng=random.Random(7))
    result = await scorer.score(vector)
    if result.risk_score >= config.thresholds.high:
        ...
"""

import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from ..config import RiskStreamConfig, get_default_config
from ..exceptions import DegradedReason
from ..utils.logging import RiskLogger, get_logger_from_config
from .features import FeatureVector

if TYPE_CHECKING:
    from ..models.manager import ModelManager


LOW_RISK_REASON = "Low risk transaction"
FALLBACK_REASON = "Analysis failed - using default risk"
FALLBACK_SCORE = 50
MIN_CONFIDENCE = 0.1


@dataclass
class ScoringResult:
    """Result of scoring a single transaction."""

    risk_score: int  # 0-100
    reasons: list[str]
    confidence: float  # weight of the model prediction in the blend
    rule_score: float = 0.0  # 0-1, rule-only score
    model_prediction: float = 0.5  # 0-1, after jitter
    degraded: bool = False
    degraded_reason: Optional[DegradedReason] = None
    boosts: list[float] = field(default_factory=list)

    @property
    def risk_level(self) -> str:
        return get_risk_level(self.risk_score)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "risk_score": self.risk_score,
            "risk_level": self.risk_level,
            "reasons": list(self.reasons),
            "confidence": self.confidence,
            "rule_score": self.rule_score,
            "model_prediction": self.model_prediction,
            "degraded": self.degraded,
            "degraded_reason": self.degraded_reason.value if self.degraded_reason else None,
        }


def fallback_result(reason: DegradedReason = DegradedReason.SCORING_FAILED) -> ScoringResult:
    """The conservative result returned when scoring fails."""
    return ScoringResult(
        risk_score=FALLBACK_SCORE,
        reasons=[FALLBACK_REASON],
        confidence=MIN_CONFIDENCE,
        rule_score=FALLBACK_SCORE / 100,
        degraded=True,
        degraded_reason=reason,
    )


def get_risk_level(score: int, config: Optional[RiskStreamConfig] = None) -> str:
    """
    Map a 0-100 score to a risk level label.

    Args:
        score: Risk score.
        config: Source of the cut-points; defaults apply when omitted.

    Returns:
        One of "Critical", "High", "Medium", "Low", "Very Low".
    """
    thresholds = (config or get_default_config()).thresholds
    if score >= thresholds.critical:
        return "Critical"
    if score >= thresholds.high:
        return "High"
    if score >= thresholds.medium:
        return "Medium"
    if score >= thresholds.low:
        return "Low"
    return "Very Low"


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class RiskScorer:
    """Score feature vectors by blending rules with the model prediction.

    Randomness (the bounded jitter on the model prediction) comes only from
    the injected ``random.Random`` so a seeded generator gives exact outputs.
    """

    def __init__(
        self,
        model_manager: "ModelManager",
        config: Optional[RiskStreamConfig] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[RiskLogger] = None,
    ):
        self.model_manager = model_manager
        self.config = config or get_default_config()
        self.rng = rng or random.Random()
        self.logger = logger or get_logger_from_config(
            "riskstream.scorer", self.config.logging
        )

    def triggered_boosts(self, vector: FeatureVector) -> list[float]:
        """Multipliers whose raw threshold the vector crosses."""
        rules = self.config.rules
        mult = self.config.multipliers
        raw = vector.raw

        boosts = []
        if raw.avg_user_amount > 0 and raw.amount >= rules.high_amount_ratio * raw.avg_user_amount:
            boosts.append(mult.amount)
        if raw.recent_transactions > rules.high_frequency:
            boosts.append(mult.frequency)
        if raw.device_age_hours < rules.new_device_hours:
            boosts.append(mult.new_device)
        if raw.merchant_risk > rules.high_risk_merchant:
            boosts.append(mult.high_risk_merchant)
        return boosts

    def rule_score(self, vector: FeatureVector) -> float:
        """
        Weighted rule score in [0, 1].

        Args:
            vector: Feature vector to score.

        Returns:
            Weighted sum of the normalized dimensions times the average of
            the triggered boosts.
        """
        w = self.config.weights
        score = (
            w.amount * vector.normalized_amount
            + w.merchant_risk * vector.normalized_merchant_risk
            + w.device_age * (1.0 - vector.normalized_device_age)
            + w.frequency * vector.normalized_frequency
            + w.avg_amount * vector.normalized_avg_amount
            + w.device_fingerprint * vector.device_fingerprint_risk
            + w.pattern * vector.transaction_pattern_risk
        )

        boosts = self.triggered_boosts(vector)
        if boosts:
            score *= sum(boosts) / len(boosts)

        return _clamp(score)

    def confidence(self, vector: FeatureVector) -> float:
        """How much weight the model prediction gets, in [0.1, 1]."""
        if not self.model_manager.is_trained:
            return MIN_CONFIDENCE

        confidence = 0.5
        if vector.raw.user_transaction_count > 10:
            confidence += 0.2
        if vector.raw.device_transaction_count > 5:
            confidence += 0.1
        if vector.amount_velocity > self.config.rules.high_velocity:
            confidence -= 0.1
        if vector.device_fingerprint_risk > 0.7:
            confidence -= 0.1
        return _clamp(confidence, max(MIN_CONFIDENCE, self.config.model.min_confidence), 1.0)

    def model_prediction(self, vector: FeatureVector) -> float:
        """Model prediction with bounded multiplicative jitter."""
        prediction = self.model_manager.predict(vector)
        jitter = self.config.model.jitter
        if jitter > 0:
            prediction *= 1.0 + self.rng.uniform(-jitter, jitter)
        return _clamp(prediction)

    def reasons(self, vector: FeatureVector, prediction: float) -> list[str]:
        """Human-readable explanations, re-checking the scoring thresholds."""
        rules = self.config.rules
        raw = vector.raw
        reasons = []

        if raw.merchant_risk > rules.high_risk_merchant:
            reasons.append(f"High-risk merchant ({raw.merchant_risk:.0f}%)")
        if raw.recent_transactions > rules.high_frequency:
            window = self.config.normalization.recent_window_minutes
            reasons.append(
                f"High transaction frequency ({raw.recent_transactions} in {window} min)"
            )
        if raw.device_age_hours < rules.new_device_hours:
            reasons.append(f"New device ({raw.device_age_hours:.1f} hours old)")
        if raw.avg_user_amount > 0 and raw.amount >= rules.high_amount_ratio * raw.avg_user_amount:
            reasons.append("Amount significantly higher than average")
        if vector.normalized_amount > rules.high_amount_normalized:
            reasons.append(f"High transaction amount (${raw.amount:,.2f})")
        if raw.hour < rules.off_hours_start or raw.hour > rules.off_hours_end:
            reasons.append("Transaction during off-hours")
        if vector.amount_velocity > rules.high_velocity:
            reasons.append("Rapid change in transaction amounts")
        if prediction > rules.model_high_risk:
            reasons.append("Model indicates high risk")

        return reasons or [LOW_RISK_REASON]

    async def score(self, vector: FeatureVector) -> ScoringResult:
        """
        Score one feature vector.

        Args:
            vector: Output of FeatureExtractor.extract.

        Returns:
            ScoringResult; the fallback result when anything fails.
        """
        try:
            await self.model_manager.initialize()

            rule = self.rule_score(vector)
            prediction = self.model_prediction(vector)
            confidence = self.confidence(vector)

            blended = confidence * prediction + (1.0 - confidence) * rule
            risk_score = int(_clamp(round(blended * 100), 0, 100))

            return ScoringResult(
                risk_score=risk_score,
                reasons=self.reasons(vector, prediction),
                confidence=confidence,
                rule_score=rule,
                model_prediction=prediction,
                degraded=vector.degraded,
                degraded_reason=vector.degraded_reason,
                boosts=self.triggered_boosts(vector),
            )
        except Exception:
            self.logger.exception("Risk scoring failed, using default risk")
            return fallback_result()
