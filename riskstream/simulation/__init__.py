"""Synthetic transaction simulation."""
from .generator import AmountPattern, TransactionGenerator, build_amount_patterns
from .fraud_patterns import (
    PATTERN_REASONS,
    FraudPattern,
    FraudPatternInjector,
    InjectionResult,
)
from .driver import (
    SimulationDriver,
    SimulationState,
    SimulationStats,
    SimulationStatus,
)

__all__ = [
    "AmountPattern",
    "TransactionGenerator",
    "build_amount_patterns",
    "PATTERN_REASONS",
    "FraudPattern",
    "FraudPatternInjector",
    "InjectionResult",
    "SimulationDriver",
    "SimulationState",
    "SimulationStats",
    "SimulationStatus",
]
