"""Trainable risk models and their lifecycle manager."""
from .base import BaseRiskModel, NEUTRAL_PREDICTION
from .linear import LinearRiskModel
from .logistic import LogisticRiskModel
from .manager import ModelManager, ModelStats, bump_version

__all__ = [
    "BaseRiskModel",
    "NEUTRAL_PREDICTION",
    "LinearRiskModel",
    "LogisticRiskModel",
    "ModelManager",
    "ModelStats",
    "bump_version",
]
