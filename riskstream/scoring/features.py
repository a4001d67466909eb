"""Transaction feature extraction.

Turns a transaction and its surrounding context (merchant, device, the
user's recent history) into a fixed vector of normalized dimensions in
[0, 1], plus the raw values the dimensions were derived from.

Example:
    extractor = FeatureExtractor(store, config)
    vector = await extractor.extract(tx.id, tx.user_id, tx.device_id, tx.merchant_id, tx.amount)
    print(vector.normalized_merchant_risk, vector.raw.device_age_hours)
"""

import asyncio
import math
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timedelta
from typing import Any, Optional

import numpy as np

from ..config import RiskStreamConfig, get_default_config
from ..data.datastore import Datastore
from ..data.records import Transaction, validate_amount, validate_identifier
from ..exceptions import DegradedReason, DependencyUnavailable
from ..utils.logging import RiskLogger, get_logger_from_config

NEUTRAL = 0.5


@dataclass(frozen=True)
class RawFeatures:
    """Un-normalized inputs behind a feature vector."""

    amount: float
    device_age_hours: float
    merchant_risk: float
    recent_transactions: int
    avg_user_amount: float
    hour: int
    day: int
    user_transaction_count: int
    user_total_spent: float
    device_transaction_count: int


@dataclass(frozen=True)
class FeatureVector:
    """Normalized feature dimensions for one transaction."""

    normalized_amount: float
    normalized_device_age: float
    normalized_merchant_risk: float
    normalized_frequency: float
    normalized_avg_amount: float
    time_of_day: float
    day_of_week: float
    amount_velocity: float
    device_fingerprint_risk: float
    user_behavior_score: float
    merchant_category_risk: float
    transaction_pattern_risk: float
    raw: RawFeatures
    degraded: bool = False
    degraded_reason: Optional[DegradedReason] = None

    @staticmethod
    def feature_names() -> list[str]:
        """Return ordered list of feature names for array output."""
        return [
            "normalized_amount",
            "normalized_device_age",
            "normalized_merchant_risk",
            "normalized_frequency",
            "normalized_avg_amount",
            "time_of_day",
            "day_of_week",
            "amount_velocity",
            "device_fingerprint_risk",
            "user_behavior_score",
            "merchant_category_risk",
            "transaction_pattern_risk",
        ]

    def to_array(self) -> np.ndarray:
        """Convert to numpy array for model input."""
        return np.array([getattr(self, name) for name in self.feature_names()], dtype=float)

    def to_dict(self) -> dict[str, Any]:
        """Flatten normalized and raw features into one payload."""
        payload: dict[str, Any] = {name: getattr(self, name) for name in self.feature_names()}
        payload.update({f"raw_{k}": v for k, v in asdict(self.raw).items()})
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FeatureVector":
        """Rebuild a vector from a stored training payload."""
        raw_values = {}
        for f in fields(RawFeatures):
            raw_values[f.name] = payload.get(f"raw_{f.name}", 0)
        return cls(
            **{name: float(payload.get(name, NEUTRAL)) for name in cls.feature_names()},
            raw=RawFeatures(**raw_values),
        )


def normalize(value: float, cap: float) -> float:
    """Scale value by cap into [0, 1]. NaN collapses to 0."""
    if value is None or math.isnan(value):
        return 0.0
    return float(min(max(value / cap, 0.0), 1.0))


def calculate_pattern_risk(prior_amounts: list[float], amount: float) -> float:
    """
    Score how far an amount deviates from the user's recent amounts.

    Args:
        prior_amounts: Amounts of the user's earlier transactions.
        amount: Amount being scored.

    Returns:
        Risk in [0, 1]; 0.5 when there is no history.
    """
    if not prior_amounts:
        return NEUTRAL

    values = np.asarray(prior_amounts, dtype=float)
    mean = float(values.mean())
    stddev = float(values.std())
    deviation = abs(amount - mean) / (stddev or 1.0)

    if len(prior_amounts) < 3:
        return min(deviation / 3.0, 1.0)
    if deviation < 1:
        return 0.3
    if deviation < 2:
        return 0.6
    return 0.8


def calculate_amount_velocity(prior_amounts: list[float]) -> float:
    """Relative change between the newest and oldest of the five most recent amounts."""
    recent = prior_amounts[:5]
    if len(recent) < 2 or recent[-1] <= 0:
        return 0.0
    return min(abs(recent[0] - recent[-1]) / recent[-1], 1.0)


class FeatureExtractor:
    """Extract a FeatureVector for a transaction from datastore context.

    Independent reads are issued concurrently. Any failure after input
    validation yields the conservative default vector flagged as degraded.
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
            "riskstream.features", self.config.logging
        )

    def default_vector(
        self,
        amount: Any,
        reason: DegradedReason = DegradedReason.EXTRACTION_FAILED,
    ) -> FeatureVector:
        """
        Conservative vector used when context cannot be read.

        Args:
            amount: Transaction amount; anything non-numeric counts as 0.
            reason: Why the default was substituted.

        Returns:
            FeatureVector with neutral behavioral dimensions and degraded=True.
        """
        try:
            value = float(amount)
        except (TypeError, ValueError):
            value = 0.0
        if not math.isfinite(value):
            value = 0.0

        norm = self.config.normalization
        return FeatureVector(
            normalized_amount=normalize(value, norm.max_amount),
            normalized_device_age=NEUTRAL,
            normalized_merchant_risk=NEUTRAL,
            normalized_frequency=NEUTRAL,
            normalized_avg_amount=NEUTRAL,
            time_of_day=NEUTRAL,
            day_of_week=NEUTRAL,
            amount_velocity=NEUTRAL,
            device_fingerprint_risk=NEUTRAL,
            user_behavior_score=NEUTRAL,
            merchant_category_risk=NEUTRAL,
            transaction_pattern_risk=NEUTRAL,
            raw=RawFeatures(
                amount=value,
                device_age_hours=12.0,
                merchant_risk=50.0,
                recent_transactions=1,
                avg_user_amount=value,
                hour=12,
                day=1,
                user_transaction_count=1,
                user_total_spent=value,
                device_transaction_count=1,
            ),
            degraded=True,
            degraded_reason=reason,
        )

    async def extract_transaction(self, transaction: Transaction) -> FeatureVector:
        """Convenience wrapper around extract for a stored transaction."""
        return await self.extract(
            transaction.id,
            transaction.user_id,
            transaction.device_id,
            transaction.merchant_id,
            transaction.amount,
        )

    async def extract(
        self,
        transaction_id: str,
        user_id: str,
        device_id: str,
        merchant_id: str,
        amount: float,
    ) -> FeatureVector:
        """
        Extract features for one transaction.

        Args:
            transaction_id: Id of the transaction being scored, excluded from history.
            user_id: Paying user.
            device_id: Device used.
            merchant_id: Receiving merchant.
            amount: Transaction amount.

        Returns:
            FeatureVector; degraded when any datastore read failed.

        Raises:
            InvalidInput: If an identifier is empty or the amount is not finite and positive.
        """
        validate_identifier("transaction_id", transaction_id)
        validate_identifier("user_id", user_id)
        validate_identifier("device_id", device_id)
        validate_identifier("merchant_id", merchant_id)
        amount = validate_amount(amount)

        try:
            return await self._extract(transaction_id, user_id, device_id, merchant_id, amount)
        except DependencyUnavailable as e:
            self.logger.warning(
                "Datastore unavailable during feature extraction",
                transaction_id=transaction_id,
                error=str(e),
            )
            return self.default_vector(amount, DegradedReason.DEPENDENCY_UNAVAILABLE)
        except Exception:
            self.logger.exception(
                "Feature extraction failed", transaction_id=transaction_id
            )
            return self.default_vector(amount, DegradedReason.EXTRACTION_FAILED)

    async def _extract(
        self,
        transaction_id: str,
        user_id: str,
        device_id: str,
        merchant_id: str,
        amount: float,
    ) -> FeatureVector:
        norm = self.config.normalization
        now = self.store.now()

        merchant, device, recent_count, history, device_count, user_stats = await asyncio.gather(
            self.store.get_merchant(merchant_id),
            self.store.get_device(device_id),
            self.store.count_transactions(
                user_id=user_id,
                since=now - timedelta(minutes=norm.recent_window_minutes),
            ),
            self.store.list_transactions(
                user_id=user_id,
                since=now - timedelta(hours=norm.history_window_hours),
            ),
            self.store.count_transactions(device_id=device_id),
            self.store.transaction_amount_stats(user_id),
        )

        merchant_risk = 50.0
        if merchant is not None and merchant.risk_level is not None:
            merchant_risk = float(merchant.risk_level)

        device_age = device.age_hours(now) if device is not None else 0.0

        prior_amounts = [tx.amount for tx in history if tx.id != transaction_id]
        avg_user_amount = sum(prior_amounts) / len(prior_amounts) if prior_amounts else 0.0

        category = merchant.category.lower() if merchant is not None else ""
        category_risk = norm.category_risk.get(category, NEUTRAL)

        hour, day = now.hour, (now.weekday() + 1) % 7

        return FeatureVector(
            normalized_amount=normalize(amount, norm.max_amount),
            normalized_device_age=normalize(device_age, norm.device_age_hours),
            normalized_merchant_risk=normalize(merchant_risk, norm.max_merchant_risk),
            normalized_frequency=normalize(recent_count, norm.max_frequency),
            normalized_avg_amount=normalize(avg_user_amount, norm.max_avg_amount),
            time_of_day=hour / 23.0,
            day_of_week=day / 6.0,
            amount_velocity=calculate_amount_velocity(prior_amounts),
            device_fingerprint_risk=0.8 if device_count < 5 else 0.2,
            user_behavior_score=0.7 if user_stats.count < 10 else 0.3,
            merchant_category_risk=category_risk,
            transaction_pattern_risk=calculate_pattern_risk(prior_amounts, amount),
            raw=RawFeatures(
                amount=amount,
                device_age_hours=device_age,
                merchant_risk=merchant_risk,
                recent_transactions=recent_count,
                avg_user_amount=avg_user_amount,
                hour=hour,
                day=day,
                user_transaction_count=user_stats.count,
                user_total_spent=user_stats.total,
                device_transaction_count=device_count,
            ),
        )
