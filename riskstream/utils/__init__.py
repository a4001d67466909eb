"""Utility modules for riskstream."""

from .logging import get_logger, get_logger_from_config, RiskLogger, JsonFormatter

__all__ = [
    "get_logger",
    "get_logger_from_config",
    "RiskLogger",
    "JsonFormatter",
]
