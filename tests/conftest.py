"""Pytest configuration and fixtures for riskstream tests."""

import random
from datetime import datetime, timedelta
from typing import Optional

import pytest

from riskstream.config import RiskStreamConfig, get_default_config
from riskstream.data.datastore import InMemoryDatastore
from riskstream.data.records import Device, Merchant, User
from riskstream.exceptions import DependencyUnavailable
from riskstream.scoring.features import FeatureVector, RawFeatures


# Wednesday afternoon, outside off-hours
NOW = datetime(2025, 6, 4, 14, 0, 0)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class UnavailableDatastore(InMemoryDatastore):
    """Store whose reads fail as if the database were down."""

    async def get_merchant(self, merchant_id):
        raise DependencyUnavailable("database connection refused")

    async def count_transactions(self, user_id=None, device_id=None, since=None):
        raise DependencyUnavailable("database connection refused")


def with_overrides(config: RiskStreamConfig, **sections) -> RiskStreamConfig:
    """Copy a config with some section fields replaced.

    Example:
        with_overrides(config, simulation={"interval_seconds": 0.05})
    """
    data = config.model_dump()
    for section, values in sections.items():
        data[section].update(values)
    return RiskStreamConfig.model_validate(data)


def build_vector(**overrides) -> FeatureVector:
    """Feature vector with quiet defaults; raw fields are set with a raw_ prefix."""
    raw = {
        "amount": 500.0,
        "device_age_hours": 48.0,
        "merchant_risk": 20.0,
        "recent_transactions": 1,
        "avg_user_amount": 0.0,
        "hour": 14,
        "day": 3,
        "user_transaction_count": 1,
        "user_total_spent": 500.0,
        "device_transaction_count": 1,
    }
    values = {
        "normalized_amount": 0.05,
        "normalized_device_age": 1.0,
        "normalized_merchant_risk": 0.2,
        "normalized_frequency": 0.1,
        "normalized_avg_amount": 0.0,
        "time_of_day": 14 / 23,
        "day_of_week": 0.5,
        "amount_velocity": 0.0,
        "device_fingerprint_risk": 0.2,
        "user_behavior_score": 0.3,
        "merchant_category_risk": 0.5,
        "transaction_pattern_risk": 0.3,
    }
    for key, value in overrides.items():
        if key.startswith("raw_"):
            raw[key[4:]] = value
        else:
            values[key] = value
    return FeatureVector(**values, raw=RawFeatures(**raw))


def seed_entities(store: InMemoryDatastore, now: Optional[datetime] = None) -> None:
    """Add a small fixed set of users, devices and merchants."""
    now = now or store.now()
    store.add_user(User(id="u-1", name="Ada Lovelace", email="ada@example.com",
                        created_at=now - timedelta(days=400)))
    store.add_user(User(id="u-2", name="Alan Turing", email="alan@example.com",
                        created_at=now - timedelta(days=30)))
    store.add_device(Device(id="d-new", user_id="u-1", fingerprint="a1b2c3", last_seen=now))
    store.add_device(Device(id="d-old", user_id="u-1", fingerprint="d4e5f6",
                            last_seen=now - timedelta(hours=48)))
    store.add_merchant(Merchant(id="m-risky", name="Lucky Spin Casino",
                                category="gambling", risk_level=90))
    store.add_merchant(Merchant(id="m-safe", name="Corner Grocer",
                                category="grocery", risk_level=10))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> RiskStreamConfig:
    return get_default_config()


@pytest.fixture
def store(clock) -> InMemoryDatastore:
    """Empty in-memory store on the fake clock."""
    return InMemoryDatastore(clock=clock)


@pytest.fixture
def seeded_store(store) -> InMemoryDatastore:
    """Store with two users, a new and an old device, a risky and a safe merchant."""
    seed_entities(store)
    return store


@pytest.fixture
def unavailable_store(clock) -> UnavailableDatastore:
    store = UnavailableDatastore(clock=clock)
    seed_entities(store)
    return store


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_vector():
    """Factory for feature vectors, see build_vector."""
    return build_vector


@pytest.fixture
def override():
    """Factory for configs with replaced fields, see with_overrides."""
    return with_overrides
