"""Synthetic Transaction Generator.

Draws amounts from a declarative pattern table and picks the user, device
and merchant for each simulated transaction, biased toward suspicious
entities with configurable probabilities.
"""

import random
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import RiskStreamConfig, SimulationConfig, get_default_config
from ..data.datastore import Datastore
from ..data.records import Device, Merchant, User


@dataclass(frozen=True)
class AmountPattern:
    """A named way of drawing an amount."""

    name: str
    weight: float
    draw: Callable[[random.Random], float]


def build_amount_patterns(sim: SimulationConfig) -> list[AmountPattern]:
    """
    Build the amount pattern table from configuration.

    Args:
        sim: Simulation configuration.

    Returns:
        Patterns in table order; unknown names in the weight table are ignored.
    """
    samplers: dict[str, Callable[[random.Random], float]] = {
        "normal": lambda rng: rng.uniform(*sim.normal_range),
        "high_value": lambda rng: rng.uniform(*sim.high_value_range),
        "micro": lambda rng: rng.uniform(*sim.micro_range),
        "suspicious_round": lambda rng: rng.choice(sim.round_amounts),
    }
    return [
        AmountPattern(name=name, weight=weight, draw=samplers[name])
        for name, weight in sim.amount_patterns.items()
        if name in samplers and weight > 0
    ]


class TransactionGenerator:
    """
    Generates the ingredients of one simulated transaction.

    All randomness comes from the injected ``random.Random``.
    """

    def __init__(
        self,
        store: Datastore,
        config: Optional[RiskStreamConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the generator.

        Args:
            store: Datastore holding users, devices and merchants.
            config: Configuration; its simulation section drives every choice.
            rng: Random source.
        """
        self.store = store
        self.config = config or get_default_config()
        self.rng = rng or random.Random(self.config.simulation.seed)
        self.patterns = build_amount_patterns(self.config.simulation)

    def choose_pattern(self) -> AmountPattern:
        """Pick an amount pattern by weight."""
        weights = [p.weight for p in self.patterns]
        return self.rng.choices(self.patterns, weights=weights, k=1)[0]

    def draw_amount(self) -> tuple[str, float]:
        """
        Draw an amount.

        Returns:
            Tuple of (pattern name, amount rounded to cents).
        """
        pattern = self.choose_pattern()
        amount = round(pattern.draw(self.rng), 2)
        return pattern.name, max(amount, 0.01)

    async def pick_user(self) -> Optional[User]:
        """Pick a user, preferring accounts with little history when biased."""
        sim = self.config.simulation
        users = await self.store.list_users()
        if not users:
            return None

        if self.rng.random() < sim.suspicious_user_probability:
            suspicious = [
                user for user in users
                if await self.store.count_transactions(user_id=user.id)
                < sim.suspicious_user_max_transactions
            ]
            if suspicious:
                return self.rng.choice(suspicious)

        return self.rng.choice(users)

    async def pick_device(self) -> Optional[Device]:
        """Pick a device, preferring recently seen ones when biased."""
        sim = self.config.simulation
        devices = await self.store.list_devices()
        if not devices:
            return None

        if self.rng.random() < sim.suspicious_device_probability:
            now = self.store.now()
            suspicious = [
                device for device in devices
                if device.age_hours(now) < sim.suspicious_device_max_age_hours
            ]
            if suspicious:
                return self.rng.choice(suspicious)

        return self.rng.choice(devices)

    async def pick_merchant(self) -> Optional[Merchant]:
        """Pick a merchant, preferring high-risk ones when biased."""
        sim = self.config.simulation
        merchants = await self.store.list_merchants()
        if not merchants:
            return None

        if self.rng.random() < sim.high_risk_merchant_probability:
            risky = [
                merchant for merchant in merchants
                if (merchant.risk_level if merchant.risk_level is not None else 50)
                > sim.high_risk_merchant_level
            ]
            if risky:
                return self.rng.choice(risky)

        return self.rng.choice(merchants)
