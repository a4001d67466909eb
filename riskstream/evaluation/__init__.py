"""Evaluation of risk model predictions against training labels."""
from .metrics import EvaluationResults, RiskMetrics

__all__ = ["EvaluationResults", "RiskMetrics"]
