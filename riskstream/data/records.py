"""Record types exchanged between the datastore and the pipeline.

All records are frozen dataclasses. Rows are created by the datastore on
insert; callers build the inputs and receive the stored row back.
"""

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..exceptions import InvalidInput


TRANSACTION_COMPLETED = "completed"
ALERT_OPEN = "open"
ALERT_RESOLVED = "resolved"
SIGNAL_TYPE_ML = "ml_risk"


def validate_amount(amount: Any) -> float:
    """Return amount as a float, rejecting non-numeric, non-finite and non-positive values."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidInput(f"Amount must be a number, got {type(amount).__name__}")
    amount = float(amount)
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidInput(f"Amount must be finite and positive, got {amount}")
    return amount


def validate_identifier(name: str, value: Any) -> str:
    """Return value when it is a non-empty string, else raise InvalidInput."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{name} must be a non-empty string")
    return value


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    created_at: datetime


@dataclass(frozen=True)
class Device:
    id: str
    user_id: Optional[str]
    fingerprint: str
    last_seen: Optional[datetime] = None

    def age_hours(self, now: datetime) -> float:
        """Hours since the device was last seen, 0 when never seen."""
        if self.last_seen is None:
            return 0.0
        return max((now - self.last_seen).total_seconds() / 3600.0, 0.0)


@dataclass(frozen=True)
class Merchant:
    id: str
    name: str
    category: str
    risk_level: Optional[int] = None

    def __post_init__(self):
        if self.risk_level is not None and not 0 <= self.risk_level <= 100:
            raise InvalidInput(f"Merchant risk level must be in [0, 100], got {self.risk_level}")


@dataclass(frozen=True)
class Transaction:
    """A completed payment attempt."""

    id: str
    user_id: str
    device_id: str
    merchant_id: str
    amount: float
    created_at: datetime
    status: str = TRANSACTION_COMPLETED

    def __post_init__(self):
        object.__setattr__(self, "amount", validate_amount(self.amount))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass(frozen=True)
class RiskSignal:
    id: str
    transaction_id: str
    signal_type: str
    risk_score: int
    created_at: datetime

    def __post_init__(self):
        if not 0 <= self.risk_score <= 100:
            raise InvalidInput(f"Risk score must be in [0, 100], got {self.risk_score}")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass(frozen=True)
class Alert:
    id: str
    transaction_id: str
    risk_score: int
    reason: str
    created_at: datetime
    status: str = ALERT_OPEN

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass(frozen=True)
class TrainingExample:
    """One labelled feature payload kept for batch retraining."""

    id: str
    transaction_id: Optional[str]
    features: dict[str, float]
    label: int
    created_at: datetime

    def __post_init__(self):
        if self.label not in (0, 1):
            raise InvalidInput(f"Label must be 0 or 1, got {self.label}")


@dataclass(frozen=True)
class ModelRecord:
    """A persisted model snapshot. The most recent row of a kind is current."""

    id: str
    model_type: str
    parameters: dict[str, Any]
    version: str
    created_at: datetime
    accuracy: Optional[float] = None

    def __post_init__(self):
        if self.accuracy is not None and not 0.0 <= self.accuracy <= 1.0:
            raise InvalidInput(f"Accuracy must be in [0, 1], got {self.accuracy}")


@dataclass(frozen=True)
class AmountStats:
    """Lifetime amount statistics for one user."""

    count: int = 0
    mean: float = 0.0
    total: float = 0.0
    stddev: float = 0.0


@dataclass(frozen=True)
class DashboardStats:
    total_alerts: int
    open_alerts: int
    total_transactions: int
    high_risk_signals: int
    alert_resolution_rate: str = field(default="0")

    @classmethod
    def build(
        cls,
        total_alerts: int,
        open_alerts: int,
        total_transactions: int,
        high_risk_signals: int,
    ) -> "DashboardStats":
        """Derive the resolution rate percentage from the alert counts."""
        if total_alerts > 0:
            rate = f"{(total_alerts - open_alerts) / total_alerts * 100:.2f}"
        else:
            rate = "0"
        return cls(
            total_alerts=total_alerts,
            open_alerts=open_alerts,
            total_transactions=total_transactions,
            high_risk_signals=high_risk_signals,
            alert_resolution_rate=rate,
        )

    def to_dict(self) -> dict:
        return asdict(self)
