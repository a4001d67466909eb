"""Tests for the in-memory datastore."""

import asyncio
from datetime import timedelta

import pytest

from riskstream.data.records import ALERT_RESOLVED
from riskstream.exceptions import InvalidInput


def run(coro):
    return asyncio.run(coro)


class TestInMemoryDatastore:
    """Tests for InMemoryDatastore."""

    def test_lookups(self, seeded_store):
        assert run(seeded_store.get_user("u-1")).name == "Ada Lovelace"
        assert run(seeded_store.get_device("missing")) is None
        assert run(seeded_store.get_merchant("m-risky")).risk_level == 90
        assert len(run(seeded_store.list_users())) == 2
        assert len(run(seeded_store.list_devices())) == 2
        assert len(run(seeded_store.list_merchants())) == 2

    def test_insert_transaction_uses_clock(self, seeded_store, clock):
        tx = run(seeded_store.insert_transaction("u-1", "d-old", "m-safe", 25.0))

        assert tx.created_at == clock()
        assert tx.id
        assert seeded_store.transactions == [tx]

    def test_insert_rejects_bad_amount(self, seeded_store):
        with pytest.raises(InvalidInput):
            run(seeded_store.insert_transaction("u-1", "d-old", "m-safe", -5.0))
        assert seeded_store.transactions == []

    def test_count_filters(self, seeded_store, clock):
        run(seeded_store.insert_transaction("u-1", "d-old", "m-safe", 10.0))
        clock.advance(minutes=10)
        run(seeded_store.insert_transaction("u-1", "d-new", "m-safe", 20.0))
        run(seeded_store.insert_transaction("u-2", "d-new", "m-risky", 30.0))

        assert run(seeded_store.count_transactions()) == 3
        assert run(seeded_store.count_transactions(user_id="u-1")) == 2
        assert run(seeded_store.count_transactions(device_id="d-new")) == 2
        assert run(seeded_store.count_transactions(user_id="u-1", device_id="d-new")) == 1
        since = clock() - timedelta(minutes=5)
        assert run(seeded_store.count_transactions(user_id="u-1", since=since)) == 1

    def test_since_is_inclusive(self, seeded_store, clock):
        run(seeded_store.insert_transaction("u-1", "d-old", "m-safe", 10.0))
        assert run(seeded_store.count_transactions(since=clock())) == 1

    def test_list_newest_first(self, seeded_store, clock):
        for amount in [1.0, 2.0, 3.0]:
            run(seeded_store.insert_transaction("u-1", "d-old", "m-safe", amount))
            clock.advance(seconds=1)

        rows = run(seeded_store.list_transactions(user_id="u-1"))
        assert [tx.amount for tx in rows] == [3.0, 2.0, 1.0]
        assert len(run(seeded_store.list_transactions(limit=2))) == 2

    def test_amount_stats(self, seeded_store):
        for amount in [10.0, 20.0, 30.0]:
            run(seeded_store.insert_transaction("u-1", "d-old", "m-safe", amount))

        stats = run(seeded_store.transaction_amount_stats("u-1"))

        assert stats.count == 3
        assert stats.mean == pytest.approx(20.0)
        assert stats.total == pytest.approx(60.0)
        assert stats.stddev == pytest.approx((200 / 3) ** 0.5)

    def test_amount_stats_empty(self, seeded_store):
        stats = run(seeded_store.transaction_amount_stats("u-2"))
        assert stats.count == 0
        assert stats.mean == 0.0

    def test_training_examples_newest_first(self, store, clock):
        run(store.insert_training_example({"a": 0.1}, 0))
        clock.advance(seconds=1)
        run(store.insert_training_example({"a": 0.9}, 1))

        rows = run(store.list_training_examples(limit=1))
        assert rows[0].label == 1
        assert run(store.count_training_examples()) == 2

    def test_latest_model_per_kind(self, store, clock):
        run(store.insert_model("linear", {}, "1.0.0"))
        clock.advance(seconds=1)
        run(store.insert_model("logistic", {}, "1.0.0"))
        clock.advance(seconds=1)
        newest = run(store.insert_model("linear", {}, "1.0.1"))

        assert run(store.latest_model("linear")) == newest
        assert run(store.latest_model("logistic")).version == "1.0.0"
        assert run(store.latest_model("other")) is None

    def test_dashboard_stats(self, store):
        run(store.insert_transaction("u-1", "d-old", "m-safe", 10.0))
        run(store.insert_risk_signal("t-1", "ml_risk", 80))
        run(store.insert_risk_signal("t-2", "ml_risk", 40))
        run(store.insert_alert("t-1", 80, "High"))
        run(store.insert_alert("t-3", 90, "Critical", status=ALERT_RESOLVED))

        stats = run(store.get_dashboard_stats(high_risk_threshold=75))

        assert stats.total_alerts == 2
        assert stats.open_alerts == 1
        assert stats.total_transactions == 1
        assert stats.high_risk_signals == 1
        assert stats.alert_resolution_rate == "50.00"
