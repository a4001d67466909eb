"""Error taxonomy for the risk-scoring pipeline.

Three genuine error kinds are raised inside the package:

- InvalidInput: malformed identifiers or amounts, rejected before any side effect.
- DependencyUnavailable: the datastore boundary failed.
- InsufficientData: too few training examples to retrain.

A fourth outcome, a degraded result, is not an exception at all. Components
return a usable fallback value and tag it with a DegradedReason so callers can
tell a genuine score from a substitute without parsing reason strings.
"""

from enum import Enum


class RiskStreamError(Exception):
    """Base class for all riskstream errors."""


class InvalidInput(RiskStreamError, ValueError):
    """Raised when transaction identifiers or amounts are malformed."""


class DependencyUnavailable(RiskStreamError):
    """Raised by datastore implementations when the backing store fails."""


class InsufficientData(RiskStreamError):
    """Raised when there are too few training examples to retrain a model."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient training data: {available} examples, need at least {required}"
        )


class DegradedReason(str, Enum):
    """Why a fallback value was substituted for a real result."""

    INVALID_INPUT = "invalid_input"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    EXTRACTION_FAILED = "extraction_failed"
    SCORING_FAILED = "scoring_failed"
