"""riskstream: transaction risk scoring and synthetic traffic simulation."""

__version__ = "0.1.0"
