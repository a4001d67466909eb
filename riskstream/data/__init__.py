"""Records, datastore boundary and seed data generation."""
from .records import (
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
from .datastore import Datastore, InMemoryDatastore, StatsProvider
from .generator import SeedData, SeedDataGenerator

__all__ = [
    "Alert",
    "AmountStats",
    "DashboardStats",
    "Device",
    "Merchant",
    "ModelRecord",
    "RiskSignal",
    "TrainingExample",
    "Transaction",
    "User",
    "Datastore",
    "InMemoryDatastore",
    "StatsProvider",
    "SeedData",
    "SeedDataGenerator",
]
