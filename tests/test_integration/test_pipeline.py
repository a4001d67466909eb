"""End-to-end tests for the risk pipeline."""

import asyncio
import json
import random

import pytest

from riskstream.alerts import AlertAction
from riskstream.data.records import SIGNAL_TYPE_ML
from riskstream.exceptions import DegradedReason, DependencyUnavailable, InvalidInput
from riskstream.pipeline import RiskPipeline


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def pipeline(seeded_store, config):
    return RiskPipeline(seeded_store, config, rng=random.Random(21))


class TestRiskPipeline:
    """Tests for RiskPipeline.submit and process."""

    def test_risky_transaction_alerts(self, pipeline, seeded_store):
        """Test a large first purchase on a brand new device at a casino."""
        outcome = run(pipeline.submit("u-1", "d-new", "m-risky", 10000.0))

        assert outcome.risk_score >= 75
        assert outcome.decision.action is AlertAction.CREATE
        assert outcome.alert is not None
        assert outcome.alert.risk_score == outcome.signal.risk_score
        assert len(seeded_store.alerts) == 1
        assert "High-risk merchant (90%)" in outcome.result.reasons
        assert "New device (0.0 hours old)" in outcome.result.reasons
        assert outcome.alert.reason.endswith(", ".join(outcome.result.reasons))

    def test_quiet_transaction_does_not_alert(self, pipeline, seeded_store):
        outcome = run(pipeline.submit("u-1", "d-old", "m-safe", 10.0))

        assert outcome.risk_score < 50
        assert outcome.decision.action is AlertAction.NONE
        assert outcome.alert is None
        assert seeded_store.alerts == []

    def test_every_transaction_gets_one_signal(self, pipeline, seeded_store):
        for amount in [10.0, 250.0, 10000.0]:
            run(pipeline.submit("u-2", "d-new", "m-risky", amount))

        signals = seeded_store.risk_signals
        assert len(signals) == 3
        assert all(s.signal_type == SIGNAL_TYPE_ML for s in signals)
        assert [s.transaction_id for s in signals] == [t.id for t in seeded_store.transactions]

    def test_training_example_recorded(self, pipeline, seeded_store):
        outcome = run(pipeline.submit("u-1", "d-new", "m-risky", 10000.0))

        example = outcome.training_example
        assert example is not None
        assert example.transaction_id == outcome.transaction.id
        assert example.label == 1
        assert seeded_store.training_examples == [example]

    def test_notes_in_alert_reason(self, pipeline):
        outcome = run(pipeline.submit("u-1", "d-new", "m-risky", 10000.0,
                                      notes="New user-device combination"))
        assert outcome.alert.reason.endswith(" - New user-device combination")

    @pytest.mark.parametrize("args", [
        ("", "d-old", "m-safe", 10.0),
        ("u-1", None, "m-safe", 10.0),
        ("u-1", "d-old", "m-safe", 0),
        ("u-1", "d-old", "m-safe", float("nan")),
    ])
    def test_submit_rejects_invalid_input(self, pipeline, seeded_store, args):
        with pytest.raises(InvalidInput):
            run(pipeline.submit(*args))

        assert seeded_store.transactions == []
        assert seeded_store.risk_signals == []

    def test_assess_invalid_amount_degrades(self, pipeline):
        vector, result = run(pipeline.assess("tx-1", "u-1", "d-old", "m-safe", -20.0))

        assert vector.degraded_reason is DegradedReason.INVALID_INPUT
        assert result.degraded is True
        assert 0 <= result.risk_score <= 100

    def test_unavailable_store_degrades(self, unavailable_store, config):
        """Test a failing datastore read still yields a signal with a flagged score."""
        pipeline = RiskPipeline(unavailable_store, config, rng=random.Random(3))
        outcome = run(pipeline.submit("u-1", "d-old", "m-safe", 5000.0))

        assert outcome.result.degraded is True
        assert outcome.result.degraded_reason is DegradedReason.DEPENDENCY_UNAVAILABLE
        assert len(unavailable_store.risk_signals) == 1

    def test_alert_write_failure_still_records_example(self, pipeline, seeded_store):
        """Test an unavailable alert table neither escapes nor skips the training example."""
        async def broken(**kwargs):
            raise DependencyUnavailable("alerts table down")

        seeded_store.insert_alert = broken
        outcome = run(pipeline.submit("u-1", "d-new", "m-risky", 10000.0))

        assert outcome.decision.action is AlertAction.CREATE
        assert outcome.alert is None
        assert len(seeded_store.risk_signals) == 1
        assert outcome.training_example is not None
        assert seeded_store.training_examples == [outcome.training_example]

    def test_configured_log_file_receives_records(self, seeded_store, config, override, tmp_path):
        """Test the logging section reaches every pipeline component."""
        path = tmp_path / "logs" / "pipeline.log"
        cfg = override(config, logging={"format": "json", "log_file": str(path)})
        pipeline = RiskPipeline(seeded_store, cfg, rng=random.Random(2))

        run(pipeline.submit("u-1", "d-new", "m-risky", 10000.0))

        entries = [json.loads(line) for line in path.read_text().splitlines()]
        by_logger = {(e["logger"], e["message"]) for e in entries}
        assert ("riskstream.pipeline", "Transaction scored") in by_logger
        assert ("riskstream.alerts", "HIGH RISK ALERT") in by_logger

    def test_retrain_after_traffic(self, pipeline, seeded_store):
        rng = random.Random(8)
        for _ in range(15):
            merchant = rng.choice(["m-risky", "m-safe"])
            device = rng.choice(["d-new", "d-old"])
            run(pipeline.submit("u-2", device, merchant, round(rng.uniform(5, 12000), 2)))

        record = run(pipeline.retrain())

        assert record is not None
        assert record.version == "1.0.0"
        assert pipeline.model_manager.is_trained
        assert len(seeded_store.models) == 1

    def test_outcome_row(self, pipeline):
        row = run(pipeline.submit("u-1", "d-old", "m-safe", 10.0)).to_dict()

        assert row["amount"] == 10.0
        assert row["action"] == "none"
        assert row["alerted"] is False
        assert row["risk_level"] in {"Very Low", "Low"}


class TestAmountMonotonicity:
    """Tests that a larger amount never lowers the score of the same context."""

    @pytest.mark.parametrize("device_id,merchant_id", [
        ("d-old", "m-safe"),
        ("d-new", "m-risky"),
        ("d-old", "m-risky"),
    ])
    @pytest.mark.parametrize("with_history", [False, True])
    def test_larger_amount_scores_at_least_as_high(
        self, seeded_store, config, override, device_id, merchant_id, with_history
    ):
        if with_history:
            for amount in [90.0, 100.0, 110.0]:
                run(seeded_store.insert_transaction("u-1", "d-old", "m-safe", amount))
        pipeline = RiskPipeline(seeded_store, override(config, model={"jitter": 0.0}),
                                rng=random.Random(5))

        _, small = run(pipeline.assess("tx-small", "u-1", device_id, merchant_id, 100.0))
        _, large = run(pipeline.assess("tx-large", "u-1", device_id, merchant_id, 10000.0))

        assert small.risk_score <= large.risk_score
