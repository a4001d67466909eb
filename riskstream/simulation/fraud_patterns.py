"""Fraud pattern injection for simulated traffic.

A pattern is chosen by weight, then applied only when its precondition holds
for the picked user and device. A triggered pattern multiplies the amount and
leaves a note that ends up in any alert reason.
"""

import random
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

from ..config import RiskStreamConfig, get_default_config
from ..data.datastore import Datastore


class FraudPattern(Enum):
    """Types of adversarial behavior the driver can inject."""
    RAPID_SUCCESSION = "rapid_succession"
    OFF_HOURS = "off_hours"
    UNUSUAL_AMOUNT = "unusual_amount"
    NEW_COMBINATION = "new_combination"


PATTERN_REASONS = {
    FraudPattern.RAPID_SUCCESSION: "Rapid successive transactions detected",
    FraudPattern.OFF_HOURS: "Off-hours transaction",
    FraudPattern.UNUSUAL_AMOUNT: "Unusual amount for user",
    FraudPattern.NEW_COMBINATION: "New user-device combination",
}


@dataclass(frozen=True)
class InjectionResult:
    pattern: Optional[FraudPattern]
    amount: float
    notes: str = ""

    @property
    def applied(self) -> bool:
        return bool(self.notes)


class FraudPatternInjector:
    """Choose and apply fraud patterns using the simulation configuration."""

    def __init__(
        self,
        store: Datastore,
        config: Optional[RiskStreamConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.config = config or get_default_config()
        self.rng = rng or random.Random(self.config.simulation.seed)

    def multiplier(self, pattern: FraudPattern) -> float:
        return self.config.simulation.fraud_multipliers.get(pattern.value, 1.0)

    def choose(self) -> Optional[FraudPattern]:
        """
        Maybe pick a pattern.

        Returns:
            A pattern chosen by weight, or None when this tick injects nothing.
        """
        sim = self.config.simulation
        if self.rng.random() >= sim.injection_probability:
            return None

        candidates = [
            (FraudPattern(name), weight)
            for name, weight in sim.fraud_patterns.items()
            if weight > 0 and name in FraudPattern._value2member_map_
        ]
        if not candidates:
            return None

        patterns, weights = zip(*candidates)
        return self.rng.choices(patterns, weights=weights, k=1)[0]

    async def precondition_holds(
        self, pattern: FraudPattern, user_id: str, device_id: str, amount: float
    ) -> bool:
        """Whether the pattern's trigger condition holds right now."""
        sim = self.config.simulation
        rules = self.config.rules

        if pattern is FraudPattern.RAPID_SUCCESSION:
            since = self.store.now() - timedelta(minutes=sim.rapid_succession_minutes)
            recent = await self.store.count_transactions(user_id=user_id, since=since)
            return recent > sim.rapid_succession_threshold

        if pattern is FraudPattern.OFF_HOURS:
            hour = self.store.now().hour
            return hour < rules.off_hours_start or hour > rules.off_hours_end

        if pattern is FraudPattern.UNUSUAL_AMOUNT:
            stats = await self.store.transaction_amount_stats(user_id)
            average = stats.mean if stats.count else sim.default_user_average
            return abs(amount - average) > average * sim.unusual_amount_factor

        if pattern is FraudPattern.NEW_COMBINATION:
            existing = await self.store.count_transactions(user_id=user_id, device_id=device_id)
            return existing == 0

        return False

    async def apply(
        self,
        pattern: Optional[FraudPattern],
        user_id: str,
        device_id: str,
        amount: float,
    ) -> InjectionResult:
        """
        Apply a pattern to a drawn amount.

        Args:
            pattern: Pattern from choose, or None.
            user_id: Picked user.
            device_id: Picked device.
            amount: Amount drawn by the generator.

        Returns:
            InjectionResult with the final amount and a note when triggered.
        """
        if pattern is None:
            return InjectionResult(pattern=None, amount=amount)

        if not await self.precondition_holds(pattern, user_id, device_id, amount):
            return InjectionResult(pattern=pattern, amount=amount)

        return InjectionResult(
            pattern=pattern,
            amount=round(amount * self.multiplier(pattern), 2),
            notes=PATTERN_REASONS[pattern],
        )
