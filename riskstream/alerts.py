"""Alert decisions.

Deciding is pure and separate from writing: ``decide`` maps a score to an
action using the shared thresholds, and ``dispatch`` persists an Alert for
a CREATE decision with the triggering signal's score.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .config import RiskStreamConfig, get_default_config
from .data.datastore import Datastore
from .data.records import ALERT_OPEN, Alert, RiskSignal
from .utils.logging import RiskLogger, get_logger_from_config


class AlertAction(Enum):
    """What to do with a scored transaction."""
    CREATE = "create"  # score >= high
    LOG = "log"        # medium <= score < high
    NONE = "none"


@dataclass(frozen=True)
class AlertDecision:
    action: AlertAction
    risk_score: int
    severity: str
    reason: str = ""

    @property
    def should_alert(self) -> bool:
        return self.action is AlertAction.CREATE


class AlertDispatcher:
    """Turn scores into alerts using the thresholds shared with the scorer."""

    def __init__(
        self,
        store: Datastore,
        config: Optional[RiskStreamConfig] = None,
        logger: Optional[RiskLogger] = None,
    ):
        self.store = store
        self.config = config or get_default_config()
        self.logger = logger or get_logger_from_config(
            "riskstream.alerts", self.config.logging
        )

    def severity_label(self, score: int) -> str:
        """Critical, High, Elevated, Medium or Low."""
        t = self.config.thresholds
        if score >= t.critical:
            return "Critical"
        # High severity sits between elevated and critical
        if score >= (t.elevated + t.critical) // 2:
            return "High"
        if score >= t.elevated:
            return "Elevated"
        if score >= t.medium:
            return "Medium"
        return "Low"

    def compose_reason(
        self,
        score: int,
        reasons: Sequence[str],
        amount: float,
        notes: str = "",
    ) -> str:
        """Alert text: severity, amount, score, reasons and optional notes."""
        text = (
            f"{self.severity_label(score)} risk transaction: ${amount:.2f} "
            f"({score}%) - {', '.join(reasons)}"
        )
        if notes:
            text = f"{text} - {notes}"
        return text

    def decide(
        self,
        score: int,
        reasons: Sequence[str],
        amount: float,
        notes: str = "",
    ) -> AlertDecision:
        """
        Decide whether a score warrants an alert. Has no side effects.

        Args:
            score: Risk score 0-100.
            reasons: Scorer reasons.
            amount: Transaction amount.
            notes: Extra context such as an injected fraud pattern.

        Returns:
            AlertDecision with CREATE at or above the high threshold, LOG at
            or above the medium threshold, NONE otherwise.
        """
        t = self.config.thresholds
        severity = self.severity_label(score)

        if score >= t.high:
            return AlertDecision(
                action=AlertAction.CREATE,
                risk_score=score,
                severity=severity,
                reason=self.compose_reason(score, reasons, amount, notes),
            )
        if score >= t.medium:
            return AlertDecision(action=AlertAction.LOG, risk_score=score, severity=severity)
        return AlertDecision(action=AlertAction.NONE, risk_score=score, severity=severity)

    async def dispatch(self, signal: RiskSignal, decision: AlertDecision) -> Optional[Alert]:
        """
        Act on a decision for the transaction behind a risk signal.

        Args:
            signal: Stored risk signal; its score becomes the alert score.
            decision: Output of decide.

        Returns:
            The created Alert for CREATE decisions, otherwise None.
        """
        if decision.action is AlertAction.LOG:
            self.logger.info(
                "Medium risk transaction",
                transaction_id=signal.transaction_id,
                risk_score=signal.risk_score,
            )
            return None
        if decision.action is not AlertAction.CREATE:
            return None

        alert = await self.store.insert_alert(
            transaction_id=signal.transaction_id,
            risk_score=signal.risk_score,
            reason=decision.reason,
            status=ALERT_OPEN,
        )
        self.logger.warning(
            "HIGH RISK ALERT",
            transaction_id=signal.transaction_id,
            risk_score=signal.risk_score,
            severity=decision.severity,
        )
        return alert
