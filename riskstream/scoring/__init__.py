"""Risk scoring package.

This package provides:
- FeatureExtractor: Build a normalized FeatureVector from datastore context
- RiskScorer: Blend rule-based and model scores into a 0-100 risk score

Usage:
    extractor = FeatureExtractor(store, config)
    scorer = RiskScorer(ModelManager(store, config), config)

    vector = await extractor.extract(tx_id, user_id, device_id, merchant_id, amount)
    result = await scorer.score(vector)
"""

from .features import FeatureExtractor, FeatureVector, RawFeatures
from .scorer import RiskScorer, ScoringResult, fallback_result, get_risk_level

__all__ = [
    "FeatureExtractor",
    "FeatureVector",
    "RawFeatures",
    "RiskScorer",
    "ScoringResult",
    "fallback_result",
    "get_risk_level",
]
