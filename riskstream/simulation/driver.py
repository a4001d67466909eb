"""Simulation driver.

Runs the synthetic transaction loop: each tick picks entities, draws an
amount, maybe injects a fraud pattern, writes the transaction, pushes it
through the risk pipeline and publishes the results.

Ticks are scheduled with an APScheduler ``AsyncIOScheduler`` interval job
on the running event loop. Ticks may overlap and are not serialized.

Example:
    driver = SimulationDriver(store, config=config, broadcaster=broadcaster)
    job = driver.start()          # one tick now, then every interval
    ...
    driver.stop(job)
    await driver.close()
"""

import asyncio
import random
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import RiskStreamConfig, get_default_config
from ..data.datastore import Datastore
from ..events import Channel, EventBroadcaster, NullBroadcaster
from ..pipeline import PipelineOutcome, RiskPipeline
from ..utils.logging import RiskLogger, get_logger_from_config
from .fraud_patterns import FraudPatternInjector
from .generator import TransactionGenerator


JOB_ID = "riskstream-simulation"
# Upper bound on concurrently running ticks of the interval job
MAX_OVERLAPPING_TICKS = 100


class SimulationState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class SimulationStats:
    """Counters accumulated across ticks."""

    ticks: int = 0
    transactions: int = 0
    alerts: int = 0
    injected: int = 0
    degraded: int = 0
    failures: int = 0
    dropped_events: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SimulationStatus:
    is_running: bool
    state: SimulationState
    interval_seconds: float
    description: str
    stats: SimulationStats = field(default_factory=SimulationStats)

    def to_dict(self) -> dict:
        return {
            "is_running": self.is_running,
            "state": self.state.value,
            "interval_seconds": self.interval_seconds,
            "description": self.description,
            "stats": self.stats.to_dict(),
        }


class SimulationDriver:
    """
    Generates synthetic transactions on a fixed interval.

    The driver never raises from a tick: failures are logged and counted
    and the schedule keeps running. Events are published after the
    pipeline has written its results, and a broadcaster error only drops
    that one event.
    """

    def __init__(
        self,
        store: Datastore,
        config: Optional[RiskStreamConfig] = None,
        pipeline: Optional[RiskPipeline] = None,
        broadcaster: Optional[EventBroadcaster] = None,
        rng: Optional[random.Random] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        logger: Optional[RiskLogger] = None,
        history_size: int = 1000,
    ):
        """
        Initialize the driver.

        Args:
            store: Datastore holding seeded users, devices and merchants.
            config: Configuration shared with the pipeline.
            pipeline: Risk pipeline; built from store and config when omitted.
            broadcaster: Event sink; a NullBroadcaster when omitted.
            rng: Random source for entity picks, amounts and fraud patterns.
            scheduler: Scheduler to add the interval job to; created on start.
            logger: Logger instance.
            history_size: Number of recent outcomes kept in memory.
        """
        self.store = store
        self.config = config or get_default_config()
        self.rng = rng or random.Random(self.config.simulation.seed)
        self.pipeline = pipeline or RiskPipeline(store, self.config, rng=self.rng)
        self.broadcaster = broadcaster or NullBroadcaster()
        self.generator = TransactionGenerator(store, self.config, rng=self.rng)
        self.injector = FraudPatternInjector(store, self.config, rng=self.rng)
        self.logger = logger or get_logger_from_config(
            "riskstream.simulation", self.config.logging
        )

        self.stats = SimulationStats()
        self.recent_outcomes: deque[PipelineOutcome] = deque(maxlen=history_size)

        self._scheduler = scheduler
        self._job: Optional[Job] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SimulationState:
        return SimulationState.RUNNING if self._job is not None else SimulationState.STOPPED

    @property
    def is_running(self) -> bool:
        return self.state is SimulationState.RUNNING

    def start(self) -> Job:
        """
        Start the simulation inside the running event loop.

        One tick is launched immediately; further ticks follow every
        ``simulation.interval_seconds``.

        Returns:
            The APScheduler job handle.

        Raises:
            RuntimeError: If called without a running event loop.
        """
        if self._job is not None:
            self.logger.warning("Simulation already running")
            return self._job

        loop = asyncio.get_running_loop()
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(event_loop=loop)
        if not self._scheduler.running:
            self._scheduler.start()

        task = loop.create_task(self._run_tick())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        self._job = self._scheduler.add_job(
            self._run_tick,
            trigger=IntervalTrigger(seconds=self.config.simulation.interval_seconds),
            id=JOB_ID,
            max_instances=MAX_OVERLAPPING_TICKS,
            coalesce=False,
            replace_existing=True,
        )

        self.logger.info(
            "Simulation started",
            interval_seconds=self.config.simulation.interval_seconds,
        )
        return self._job

    def stop(self, handle: Optional[Job] = None) -> bool:
        """
        Stop scheduling ticks. Ticks already running finish normally.

        Args:
            handle: Job returned by start; defaults to the driver's own job.

        Returns:
            True if a job was removed.
        """
        job = handle or self._job
        if job is None:
            return False

        try:
            job.remove()
        except JobLookupError:
            self.logger.debug("Simulation job already removed", job_id=job.id)

        if self._job is not None and job.id == self._job.id:
            self._job = None

        self.logger.info("Simulation stopped", ticks=self.stats.ticks)
        return True

    def get_status(self) -> SimulationStatus:
        return SimulationStatus(
            is_running=self.is_running,
            state=self.state,
            interval_seconds=self.config.simulation.interval_seconds,
            description=self.config.simulation.description,
            stats=SimulationStats(**self.stats.to_dict()),
        )

    async def wait_for_ticks(self) -> None:
        """Wait for every tick currently in flight."""
        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current and not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Stop, drain in-flight ticks and shut the scheduler down."""
        self.stop()
        await self.wait_for_ticks()
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    async def _run_tick(self) -> Optional[PipelineOutcome]:
        task = asyncio.current_task()
        if task is not None:
            self._tasks.add(task)
        try:
            return await self.tick()
        finally:
            if task is not None:
                self._tasks.discard(task)

    async def tick(self) -> Optional[PipelineOutcome]:
        """
        Simulate one transaction end to end.

        Returns:
            The pipeline outcome, or None when the tick could not complete.
        """
        self.stats.ticks += 1
        try:
            return await self._tick()
        except Exception:
            self.stats.failures += 1
            self.logger.exception("Simulation tick failed")
            return None

    async def _publish(self, channel: Channel, payload: dict) -> bool:
        """Publish one event; a failing broadcaster is logged and skipped."""
        try:
            await self.broadcaster.publish(channel, payload)
        except Exception as e:
            self.stats.dropped_events += 1
            self.logger.warning("Failed to publish event", channel=channel.value, error=str(e))
            return False
        return True

    async def _tick(self) -> Optional[PipelineOutcome]:
        user = await self.generator.pick_user()
        device = await self.generator.pick_device()
        merchant = await self.generator.pick_merchant()
        if user is None or device is None or merchant is None:
            self.logger.warning("Simulation needs at least one user, device and merchant")
            return None

        amount_pattern, amount = self.generator.draw_amount()
        injection = await self.injector.apply(
            self.injector.choose(), user.id, device.id, amount
        )

        transaction = await self.store.insert_transaction(
            user_id=user.id,
            device_id=device.id,
            merchant_id=merchant.id,
            amount=injection.amount,
        )
        outcome = await self.pipeline.process(transaction, notes=injection.notes)

        self.stats.transactions += 1
        self.stats.alerts += int(outcome.alert is not None)
        self.stats.injected += int(injection.applied)
        self.stats.degraded += int(outcome.result.degraded)
        self.recent_outcomes.append(outcome)

        # Events go out only after every pipeline write has landed
        await self._publish(Channel.TRANSACTION, {
            **transaction.to_dict(),
            "user_name": user.name,
            "merchant_name": merchant.name,
            "amount_pattern": amount_pattern,
            "fraud_pattern": injection.pattern.value if injection.applied else None,
            "notes": injection.notes,
        })
        await self._publish(Channel.RISK_SIGNAL, {
            **outcome.signal.to_dict(),
            "risk_level": outcome.result.risk_level,
            "reasons": outcome.result.reasons,
            "confidence": outcome.result.confidence,
        })
        if outcome.alert is not None:
            await self._publish(Channel.ALERT, outcome.alert.to_dict())

        try:
            dashboard = await self.store.get_dashboard_stats(self.config.thresholds.high)
        except Exception as e:
            self.logger.warning("Failed to read dashboard stats", error=str(e))
        else:
            await self._publish(Channel.DASHBOARD_STATS, dashboard.to_dict())

        self.logger.info(
            "Simulated transaction",
            transaction_id=transaction.id,
            amount=transaction.amount,
            pattern=amount_pattern,
            injected=injection.notes or "-",
            risk_score=outcome.risk_score,
            rule_only_score=round(outcome.result.rule_score * 100),
        )
        return outcome
