"""Tests for transaction feature extraction."""

import asyncio
import math
from datetime import timedelta

import numpy as np
import pytest

from riskstream.data.records import Merchant
from riskstream.exceptions import DegradedReason, InvalidInput
from riskstream.scoring.features import (
    FeatureExtractor,
    FeatureVector,
    calculate_amount_velocity,
    calculate_pattern_risk,
    normalize,
)


async def add_transaction(store, amount, user_id="u-1", device_id="d-old", merchant_id="m-safe"):
    return await store.insert_transaction(user_id, device_id, merchant_id, amount)


class TestHelpers:
    """Tests for the pure feature helpers."""

    def test_normalize_caps_at_one(self):
        assert normalize(20000, 10000) == 1.0
        assert normalize(2500, 10000) == 0.25

    def test_normalize_nan_is_zero(self):
        assert normalize(float("nan"), 10000) == 0.0

    def test_pattern_risk_without_history(self):
        assert calculate_pattern_risk([], 100.0) == 0.5

    def test_pattern_risk_short_history(self):
        """Test one or two prior amounts use deviation / 3."""
        # mean 100, stddev 0 -> divide by 1
        assert calculate_pattern_risk([100.0], 101.5) == pytest.approx(0.5)
        assert calculate_pattern_risk([100.0], 500.0) == 1.0

    def test_pattern_risk_buckets(self):
        """Test three or more prior amounts bucket the z-score."""
        history = [90.0, 100.0, 110.0]  # mean 100, stddev ~8.16
        assert calculate_pattern_risk(history, 100.0) == 0.3
        assert calculate_pattern_risk(history, 112.0) == 0.6
        assert calculate_pattern_risk(history, 200.0) == 0.8

    def test_velocity(self):
        # newest first: 300 now vs 100 five transactions ago
        assert calculate_amount_velocity([300.0, 50.0, 80.0, 90.0, 100.0, 999.0]) == 1.0
        assert calculate_amount_velocity([150.0, 100.0]) == pytest.approx(0.5)

    def test_velocity_needs_two_amounts(self):
        assert calculate_amount_velocity([]) == 0.0
        assert calculate_amount_velocity([100.0]) == 0.0


class TestFeatureVector:
    """Tests for FeatureVector conversions."""

    def test_to_array_matches_feature_names(self, make_vector):
        vector = make_vector(normalized_amount=0.7)
        array = vector.to_array()

        assert isinstance(array, np.ndarray)
        assert len(array) == len(FeatureVector.feature_names())
        assert array[FeatureVector.feature_names().index("normalized_amount")] == 0.7

    def test_dict_round_trip(self, make_vector):
        vector = make_vector(device_fingerprint_risk=0.8, raw_merchant_risk=85.0)
        payload = vector.to_dict()

        assert payload["raw_merchant_risk"] == 85.0
        rebuilt = FeatureVector.from_dict(payload)
        assert rebuilt == vector


class TestFeatureExtractor:
    """Tests for FeatureExtractor."""

    @pytest.fixture
    def extractor(self, seeded_store, config):
        return FeatureExtractor(seeded_store, config)

    def test_fresh_user_on_new_device(self, extractor, seeded_store):
        """Test a first transaction on a brand new device at a risky merchant."""
        tx = asyncio.run(add_transaction(seeded_store, 10000.0, device_id="d-new",
                                         merchant_id="m-risky"))
        vector = asyncio.run(extractor.extract_transaction(tx))

        assert vector.degraded is False
        assert vector.normalized_amount == 1.0
        assert vector.normalized_merchant_risk == 0.9
        assert vector.normalized_device_age == 0.0
        assert vector.normalized_frequency == pytest.approx(0.1)
        assert vector.normalized_avg_amount == 0.0
        assert vector.device_fingerprint_risk == 0.8
        assert vector.user_behavior_score == 0.7
        assert vector.transaction_pattern_risk == 0.5
        assert vector.merchant_category_risk == 0.9
        assert vector.raw.recent_transactions == 1
        assert vector.raw.user_transaction_count == 1

    def test_time_features(self, extractor, seeded_store):
        """Test hour/23 and Sunday-based day/6 on a Wednesday at 14:00."""
        tx = asyncio.run(add_transaction(seeded_store, 100.0))
        vector = asyncio.run(extractor.extract_transaction(tx))

        assert vector.raw.hour == 14
        assert vector.time_of_day == pytest.approx(14 / 23)
        assert vector.raw.day == 3
        assert vector.day_of_week == pytest.approx(0.5)

    def test_device_age(self, extractor, seeded_store):
        tx = asyncio.run(add_transaction(seeded_store, 100.0, device_id="d-old"))
        vector = asyncio.run(extractor.extract_transaction(tx))

        assert vector.raw.device_age_hours == pytest.approx(48.0)
        assert vector.normalized_device_age == 1.0

    def test_missing_merchant_and_device(self, extractor):
        vector = asyncio.run(extractor.extract("tx-1", "u-1", "d-unknown", "m-unknown", 100.0))

        assert vector.raw.merchant_risk == 50.0
        assert vector.normalized_merchant_risk == 0.5
        assert vector.raw.device_age_hours == 0.0
        assert vector.merchant_category_risk == 0.5

    def test_merchant_without_risk_level(self, extractor, seeded_store):
        seeded_store.add_merchant(Merchant(id="m-blank", name="Blank", category="unknown"))
        vector = asyncio.run(extractor.extract("tx-1", "u-1", "d-old", "m-blank", 100.0))
        assert vector.raw.merchant_risk == 50.0

    def test_current_transaction_excluded_from_history(self, extractor, seeded_store, clock):
        """Test the scored transaction does not count as its own history."""
        asyncio.run(add_transaction(seeded_store, 100.0))
        clock.advance(minutes=1)
        asyncio.run(add_transaction(seeded_store, 300.0))
        clock.advance(minutes=1)
        current = asyncio.run(add_transaction(seeded_store, 5000.0))

        vector = asyncio.run(extractor.extract_transaction(current))

        assert vector.raw.avg_user_amount == pytest.approx(200.0)
        # newest prior 300 vs oldest prior 100
        assert vector.amount_velocity == 1.0
        assert vector.raw.recent_transactions == 3
        assert vector.raw.user_transaction_count == 3
        assert vector.raw.user_total_spent == pytest.approx(5400.0)

    def test_history_window(self, extractor, seeded_store, clock):
        """Test transactions older than a day leave the average but not the lifetime count."""
        asyncio.run(add_transaction(seeded_store, 4000.0))
        clock.advance(hours=30)
        current = asyncio.run(add_transaction(seeded_store, 100.0))

        vector = asyncio.run(extractor.extract_transaction(current))

        assert vector.raw.avg_user_amount == 0.0
        assert vector.raw.user_transaction_count == 2
        assert vector.raw.recent_transactions == 1

    def test_established_device_and_user(self, extractor, seeded_store, clock):
        for _ in range(10):
            asyncio.run(add_transaction(seeded_store, 100.0))
            clock.advance(minutes=10)
        current = asyncio.run(add_transaction(seeded_store, 100.0))

        vector = asyncio.run(extractor.extract_transaction(current))

        assert vector.device_fingerprint_risk == 0.2
        assert vector.user_behavior_score == 0.3

    def test_all_dimensions_normalized(self, extractor, seeded_store, clock):
        for amount in [10.0, 9000.0, 25.0, 14000.0]:
            asyncio.run(add_transaction(seeded_store, amount, device_id="d-new",
                                        merchant_id="m-risky"))
            clock.advance(seconds=20)
        current = asyncio.run(add_transaction(seeded_store, 15000.0))

        vector = asyncio.run(extractor.extract_transaction(current))

        for value in vector.to_array():
            assert 0.0 <= value <= 1.0

    @pytest.mark.parametrize("amount", [0, -5.0, float("nan"), float("inf"), "100", None])
    def test_invalid_amount(self, extractor, amount):
        with pytest.raises(InvalidInput):
            asyncio.run(extractor.extract("tx-1", "u-1", "d-old", "m-safe", amount))

    @pytest.mark.parametrize("field", ["transaction_id", "user_id", "device_id", "merchant_id"])
    def test_invalid_identifier(self, extractor, field):
        ids = {"transaction_id": "tx-1", "user_id": "u-1",
               "device_id": "d-old", "merchant_id": "m-safe"}
        ids[field] = ""
        with pytest.raises(InvalidInput):
            asyncio.run(extractor.extract(amount=100.0, **ids))

    def test_invalid_input_rejected_before_reads(self, unavailable_store, config):
        """Test validation happens before the datastore is touched."""
        extractor = FeatureExtractor(unavailable_store, config)
        with pytest.raises(InvalidInput):
            asyncio.run(extractor.extract("tx-1", "u-1", "d-old", "m-safe", -1.0))

    def test_dependency_unavailable_degrades(self, unavailable_store, config):
        extractor = FeatureExtractor(unavailable_store, config)
        vector = asyncio.run(extractor.extract("tx-1", "u-1", "d-old", "m-safe", 2500.0))

        assert vector.degraded is True
        assert vector.degraded_reason is DegradedReason.DEPENDENCY_UNAVAILABLE
        assert vector.normalized_amount == 0.25
        assert vector.normalized_merchant_risk == 0.5
        assert vector.device_fingerprint_risk == 0.5

    def test_unexpected_failure_degrades(self, seeded_store, config):
        async def broken(*args, **kwargs):
            raise KeyError("corrupt row")

        seeded_store.transaction_amount_stats = broken
        extractor = FeatureExtractor(seeded_store, config)
        vector = asyncio.run(extractor.extract("tx-1", "u-1", "d-old", "m-safe", 100.0))

        assert vector.degraded_reason is DegradedReason.EXTRACTION_FAILED


class TestDefaultVector:
    """Tests for the conservative default vector."""

    def test_values(self, seeded_store, config):
        vector = FeatureExtractor(seeded_store, config).default_vector(2000.0)

        assert vector.degraded is True
        assert vector.normalized_amount == 0.2
        behavioral = [v for name, v in zip(FeatureVector.feature_names(), vector.to_array())
                      if name != "normalized_amount"]
        assert all(v == 0.5 for v in behavioral)
        assert vector.raw.device_age_hours == 12
        assert vector.raw.avg_user_amount == 2000.0

    @pytest.mark.parametrize("amount", [float("nan"), "abc", None, -10.0])
    def test_malformed_amount(self, seeded_store, config, amount):
        vector = FeatureExtractor(seeded_store, config).default_vector(
            amount, DegradedReason.INVALID_INPUT
        )
        assert vector.normalized_amount == 0.0
        assert not math.isnan(vector.raw.amount)
        assert vector.degraded_reason is DegradedReason.INVALID_INPUT
