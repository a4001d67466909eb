"""Synthetic Seed Data Generator.

Generates users, devices and merchants with Faker so that a datastore can be
populated before running the simulation driver.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from faker import Faker

from .datastore import InMemoryDatastore
from .records import Device, Merchant, User


# Category label -> inclusive risk level range
MERCHANT_CATEGORIES = {
    "grocery": (5, 20),
    "retail": (10, 35),
    "entertainment": (10, 30),
    "travel": (30, 60),
    "electronics": (35, 65),
    "gambling": (75, 95),
    "crypto": (80, 98),
}

HIGH_RISK_CATEGORIES = ("gambling", "crypto")


@dataclass
class SeedData:
    """Entities created by one generation run."""

    users: list[User]
    devices: list[Device]
    merchants: list[Merchant]


class SeedDataGenerator:
    """
    Generates synthetic users, devices and merchants.

    Device last-seen times are spread so that a share of devices is younger
    than a day, which the simulation treats as suspicious.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        locale: str = "en_US",
        clock: Optional[Callable[[], datetime]] = None,
        new_device_ratio: float = 0.25,
        high_risk_merchant_ratio: float = 0.3,
    ):
        """
        Initialize the seed generator.

        Args:
            seed: Random seed for reproducibility.
            locale: Faker locale for names and emails.
            clock: Callable returning the current time.
            new_device_ratio: Share of devices last seen within the past day.
            high_risk_merchant_ratio: Share of merchants drawn from high-risk categories.
        """
        self.seed = seed
        self.locale = locale
        self.faker = Faker(locale)
        self.rng = random.Random(seed)
        self.clock = clock or datetime.now
        self.new_device_ratio = new_device_ratio
        self.high_risk_merchant_ratio = high_risk_merchant_ratio

        if seed is not None:
            self.faker.seed_instance(seed)

        self._counters = {"user": 0, "device": 0, "merchant": 0}

    def _next_id(self, prefix: str) -> str:
        self._counters[prefix] += 1
        return f"{prefix}-{self._counters[prefix]:05d}"

    def generate_user(self) -> User:
        """Generate a single user with a realistic name and email."""
        first_name = self.faker.first_name()
        surname = self.faker.last_name()
        local = "".join(c for c in f"{first_name}.{surname}".lower() if c.isalnum() or c == ".")
        email = f"{local}@{self.faker.free_email_domain()}"
        created_at = self.clock() - timedelta(days=self.rng.randint(1, 720))
        return User(
            id=self._next_id("user"),
            name=f"{first_name} {surname}",
            email=email,
            created_at=created_at,
        )

    def generate_device(self, user: Optional[User] = None) -> Device:
        """
        Generate a device, optionally owned by a user.

        Args:
            user: Owning user, if any.

        Returns:
            Device with a hex fingerprint and a last-seen time in the past.
        """
        now = self.clock()
        if self.rng.random() < self.new_device_ratio:
            last_seen = now - timedelta(minutes=self.rng.randint(0, 23 * 60))
        else:
            last_seen = now - timedelta(hours=self.rng.randint(25, 24 * 90))
        return Device(
            id=self._next_id("device"),
            user_id=user.id if user else None,
            fingerprint=self.faker.sha1(raw_output=False)[:32],
            last_seen=last_seen,
        )

    def generate_merchant(self, category: Optional[str] = None) -> Merchant:
        """Generate a merchant in the given or a random category."""
        if category is None:
            if self.rng.random() < self.high_risk_merchant_ratio:
                category = self.rng.choice(HIGH_RISK_CATEGORIES)
            else:
                category = self.rng.choice(
                    [c for c in MERCHANT_CATEGORIES if c not in HIGH_RISK_CATEGORIES]
                )
        low, high = MERCHANT_CATEGORIES.get(category, (20, 60))
        return Merchant(
            id=self._next_id("merchant"),
            name=self.faker.company(),
            category=category,
            risk_level=self.rng.randint(low, high),
        )

    def generate(
        self,
        num_users: int = 10,
        devices_per_user: int = 2,
        num_merchants: int = 8,
    ) -> SeedData:
        """
        Generate a full set of entities.

        Args:
            num_users: Number of users.
            devices_per_user: Devices created for each user.
            num_merchants: Number of merchants.

        Returns:
            SeedData with all generated entities.
        """
        if num_users < 1 or num_merchants < 1 or devices_per_user < 1:
            raise ValueError("Seed data needs at least one user, device and merchant")

        users = [self.generate_user() for _ in range(num_users)]
        devices = [
            self.generate_device(user)
            for user in users
            for _ in range(devices_per_user)
        ]
        merchants = [self.generate_merchant() for _ in range(num_merchants)]
        return SeedData(users=users, devices=devices, merchants=merchants)

    def populate(self, store: InMemoryDatastore, **kwargs) -> SeedData:
        """Generate entities and add them to an in-memory store."""
        data = self.generate(**kwargs)
        for user in data.users:
            store.add_user(user)
        for device in data.devices:
            store.add_device(device)
        for merchant in data.merchants:
            store.add_merchant(merchant)
        return data
