"""
Datastore boundary.

The pipeline only talks to storage through the async ``Datastore`` interface.
Implementations raise ``DependencyUnavailable`` when the backing store fails;
callers decide whether that degrades or propagates.

``InMemoryDatastore`` is the bundled implementation used by the simulation
CLI and the test suite.
"""

import math
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Optional

from .records import (
    ALERT_OPEN,
    TRANSACTION_COMPLETED,
    Alert,
    AmountStats,
    DashboardStats,
    Device,
    Merchant,
    ModelRecord,
    RiskSignal,
    TrainingExample,
    Transaction,
    User,
)


Clock = Callable[[], datetime]


class StatsProvider(ABC):
    """Aggregate counters for the dashboard."""

    @abstractmethod
    async def get_dashboard_stats(self, high_risk_threshold: int) -> DashboardStats:
        """
        Compute dashboard counters.

        Args:
            high_risk_threshold: Signals scoring at or above this count as high risk.

        Returns:
            DashboardStats snapshot.
        """


class Datastore(StatsProvider):
    """
    Abstract async storage interface.

    Lists are returned newest first. Time bounds are inclusive lower bounds.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Current time as seen by the store."""

    # Entity lookups

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_device(self, device_id: str) -> Optional[Device]:
        ...

    @abstractmethod
    async def get_merchant(self, merchant_id: str) -> Optional[Merchant]:
        ...

    @abstractmethod
    async def list_users(self) -> list[User]:
        ...

    @abstractmethod
    async def list_devices(self) -> list[Device]:
        ...

    @abstractmethod
    async def list_merchants(self) -> list[Merchant]:
        ...

    # Transactions

    @abstractmethod
    async def count_transactions(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> int:
        """Count transactions matching every given filter."""

    @abstractmethod
    async def list_transactions(
        self,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """List transactions matching the filters, newest first."""

    @abstractmethod
    async def transaction_amount_stats(self, user_id: str) -> AmountStats:
        """Lifetime count, mean, total and population stddev of a user's amounts."""

    @abstractmethod
    async def insert_transaction(
        self,
        user_id: str,
        device_id: str,
        merchant_id: str,
        amount: float,
        status: str = TRANSACTION_COMPLETED,
    ) -> Transaction:
        ...

    # Signals and alerts

    @abstractmethod
    async def insert_risk_signal(
        self, transaction_id: str, signal_type: str, risk_score: int
    ) -> RiskSignal:
        ...

    @abstractmethod
    async def insert_alert(
        self,
        transaction_id: str,
        risk_score: int,
        reason: str,
        status: str = ALERT_OPEN,
    ) -> Alert:
        ...

    # Training data and models

    @abstractmethod
    async def insert_training_example(
        self,
        features: dict[str, float],
        label: int,
        transaction_id: Optional[str] = None,
    ) -> TrainingExample:
        ...

    @abstractmethod
    async def list_training_examples(
        self, limit: Optional[int] = None
    ) -> list[TrainingExample]:
        """Most recent training examples, newest first."""

    @abstractmethod
    async def count_training_examples(self) -> int:
        ...

    @abstractmethod
    async def insert_model(
        self,
        model_type: str,
        parameters: dict[str, Any],
        version: str,
        accuracy: Optional[float] = None,
    ) -> ModelRecord:
        ...

    @abstractmethod
    async def latest_model(self, model_type: str) -> Optional[ModelRecord]:
        """Most recently created model row of a kind, if any."""


class InMemoryDatastore(Datastore):
    """
    Dictionary backed datastore.

    Rows are kept in insertion order, which is also creation order because
    timestamps come from the same clock.
    """

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize an empty store.

        Args:
            clock: Callable returning the current time. Defaults to datetime.now.
        """
        self._clock = clock or datetime.now
        self.users: dict[str, User] = {}
        self.devices: dict[str, Device] = {}
        self.merchants: dict[str, Merchant] = {}
        self.transactions: list[Transaction] = []
        self.risk_signals: list[RiskSignal] = []
        self.alerts: list[Alert] = []
        self.training_examples: list[TrainingExample] = []
        self.models: list[ModelRecord] = []

    def now(self) -> datetime:
        return self._clock()

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # Seeding helpers

    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def add_device(self, device: Device) -> Device:
        self.devices[device.id] = device
        return device

    def add_merchant(self, merchant: Merchant) -> Merchant:
        self.merchants[merchant.id] = merchant
        return merchant

    # Entity lookups

    async def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def get_device(self, device_id: str) -> Optional[Device]:
        return self.devices.get(device_id)

    async def get_merchant(self, merchant_id: str) -> Optional[Merchant]:
        return self.merchants.get(merchant_id)

    async def list_users(self) -> list[User]:
        return list(self.users.values())

    async def list_devices(self) -> list[Device]:
        return list(self.devices.values())

    async def list_merchants(self) -> list[Merchant]:
        return list(self.merchants.values())

    # Transactions

    def _filter_transactions(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[Transaction]:
        return [
            tx for tx in self.transactions
            if (user_id is None or tx.user_id == user_id)
            and (device_id is None or tx.device_id == device_id)
            and (since is None or tx.created_at >= since)
        ]

    async def count_transactions(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> int:
        return len(self._filter_transactions(user_id, device_id, since))

    async def list_transactions(
        self,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        rows = self._filter_transactions(user_id=user_id, since=since)[::-1]
        return rows[:limit] if limit is not None else rows

    async def transaction_amount_stats(self, user_id: str) -> AmountStats:
        amounts = [tx.amount for tx in self.transactions if tx.user_id == user_id]
        if not amounts:
            return AmountStats()
        mean = sum(amounts) / len(amounts)
        variance = sum((a - mean) ** 2 for a in amounts) / len(amounts)
        return AmountStats(
            count=len(amounts),
            mean=mean,
            total=sum(amounts),
            stddev=math.sqrt(variance),
        )

    async def insert_transaction(
        self,
        user_id: str,
        device_id: str,
        merchant_id: str,
        amount: float,
        status: str = TRANSACTION_COMPLETED,
    ) -> Transaction:
        tx = Transaction(
            id=self._new_id(),
            user_id=user_id,
            device_id=device_id,
            merchant_id=merchant_id,
            amount=amount,
            created_at=self.now(),
            status=status,
        )
        self.transactions.append(tx)
        return tx

    # Signals and alerts

    async def insert_risk_signal(
        self, transaction_id: str, signal_type: str, risk_score: int
    ) -> RiskSignal:
        signal = RiskSignal(
            id=self._new_id(),
            transaction_id=transaction_id,
            signal_type=signal_type,
            risk_score=risk_score,
            created_at=self.now(),
        )
        self.risk_signals.append(signal)
        return signal

    async def insert_alert(
        self,
        transaction_id: str,
        risk_score: int,
        reason: str,
        status: str = ALERT_OPEN,
    ) -> Alert:
        alert = Alert(
            id=self._new_id(),
            transaction_id=transaction_id,
            risk_score=risk_score,
            reason=reason,
            created_at=self.now(),
            status=status,
        )
        self.alerts.append(alert)
        return alert

    # Training data and models

    async def insert_training_example(
        self,
        features: dict[str, float],
        label: int,
        transaction_id: Optional[str] = None,
    ) -> TrainingExample:
        example = TrainingExample(
            id=self._new_id(),
            transaction_id=transaction_id,
            features=dict(features),
            label=label,
            created_at=self.now(),
        )
        self.training_examples.append(example)
        return example

    async def list_training_examples(
        self, limit: Optional[int] = None
    ) -> list[TrainingExample]:
        rows = self.training_examples[::-1]
        return rows[:limit] if limit is not None else rows

    async def count_training_examples(self) -> int:
        return len(self.training_examples)

    async def insert_model(
        self,
        model_type: str,
        parameters: dict[str, Any],
        version: str,
        accuracy: Optional[float] = None,
    ) -> ModelRecord:
        record = ModelRecord(
            id=self._new_id(),
            model_type=model_type,
            parameters=parameters,
            version=version,
            created_at=self.now(),
            accuracy=accuracy,
        )
        self.models.append(record)
        return record

    async def latest_model(self, model_type: str) -> Optional[ModelRecord]:
        for record in reversed(self.models):
            if record.model_type == model_type:
                return record
        return None

    # Dashboard

    async def get_dashboard_stats(self, high_risk_threshold: int) -> DashboardStats:
        return DashboardStats.build(
            total_alerts=len(self.alerts),
            open_alerts=sum(1 for a in self.alerts if a.status == ALERT_OPEN),
            total_transactions=len(self.transactions),
            high_risk_signals=sum(
                1 for s in self.risk_signals if s.risk_score >= high_risk_threshold
            ),
        )
