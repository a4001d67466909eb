"""Run the synthetic transaction simulation from the command line.

Seeds an in-memory datastore with Faker generated users, devices and
merchants, drives the risk pipeline with simulated traffic and prints a
summary of the resulting risk distribution.

Usage:
    # Fifty ticks back to back
    riskstream-simulate --ticks 50 --seed 7

    # Scheduled run: one tick per second for half a minute
    riskstream-simulate --duration 30 --interval 1

    # Retrain the model afterwards and keep every outcome
    riskstream-simulate --ticks 500 --retrain --output outcomes.csv
"""

import argparse
import asyncio
import random
import sys
from pathlib import Path
from typing import Optional

import pandas as pd

from .config import RiskStreamConfig, load_config
from .data.datastore import InMemoryDatastore
from .data.generator import SeedDataGenerator
from .events import RecordingBroadcaster
from .pipeline import RiskPipeline
from .simulation.driver import SimulationDriver
from .utils.logging import get_logger_from_config


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Simulate transactions through the risk-scoring pipeline.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    riskstream-simulate --ticks 50 --seed 7
    riskstream-simulate --duration 30 --interval 1
    riskstream-simulate --ticks 500 --retrain --output outcomes.csv
        """,
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to YAML config file. Default: config/default.yaml if present",
    )

    run_group = parser.add_mutually_exclusive_group()
    run_group.add_argument(
        "-n", "--ticks",
        type=int,
        default=None,
        help="Number of ticks to run back to back. Default: 20",
    )
    run_group.add_argument(
        "-d", "--duration",
        type=float,
        default=None,
        help="Run the scheduled simulation for this many seconds.",
    )

    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between scheduled ticks (with --duration).",
    )
    parser.add_argument(
        "-s", "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility.",
    )
    parser.add_argument(
        "--users",
        type=int,
        default=10,
        help="Number of seeded users. Default: 10",
    )
    parser.add_argument(
        "--devices-per-user",
        type=int,
        default=2,
        help="Devices seeded per user. Default: 2",
    )
    parser.add_argument(
        "--merchants",
        type=int,
        default=8,
        help="Number of seeded merchants. Default: 8",
    )
    parser.add_argument(
        "--model",
        choices=["linear", "logistic"],
        default=None,
        help="Model kind to score and retrain with.",
    )
    parser.add_argument(
        "--retrain",
        action="store_true",
        help="Retrain the model from recorded examples after the run.",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="Write one CSV row per simulated transaction to this path.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the configured log level.",
    )

    return parser.parse_args(argv)


def apply_overrides(config: RiskStreamConfig, args: argparse.Namespace) -> RiskStreamConfig:
    """Fold command line options into the loaded configuration."""
    data = config.model_dump()
    if args.seed is not None:
        data["simulation"]["seed"] = args.seed
    if args.interval is not None:
        data["simulation"]["interval_seconds"] = args.interval
    if args.model is not None:
        data["model"]["kind"] = args.model
    if args.log_level is not None:
        data["logging"]["level"] = args.log_level
    return RiskStreamConfig.model_validate(data)


def summarize(frame: pd.DataFrame) -> str:
    """Human-readable summary of simulated outcomes."""
    if frame.empty:
        return "No transactions were simulated."

    levels = frame["risk_level"].value_counts().reindex(
        ["Critical", "High", "Medium", "Low", "Very Low"], fill_value=0
    )
    lines = [
        "=" * 60,
        "SIMULATION SUMMARY",
        "=" * 60,
        f"  Transactions:        {len(frame)}",
        f"  Alerts:              {int(frame['alerted'].sum())}",
        f"  Degraded results:    {int(frame['degraded'].sum())}",
        f"  Mean risk score:     {frame['risk_score'].mean():.1f}",
        f"  Mean rule score:     {frame['rule_score'].mean():.1f}",
        f"  Mean amount:         ${frame['amount'].mean():,.2f}",
        "",
        "Risk level distribution:",
    ]
    lines += [f"  {level:<10} {count}" for level, count in levels.items()]
    lines.append("=" * 60)
    return "\n".join(lines)


async def run_simulation(
    config: RiskStreamConfig,
    ticks: Optional[int] = None,
    duration: Optional[float] = None,
    num_users: int = 10,
    devices_per_user: int = 2,
    num_merchants: int = 8,
    retrain: bool = False,
) -> pd.DataFrame:
    """
    Seed a store and run the simulation.

    Args:
        config: Effective configuration.
        ticks: Ticks to run back to back; ignored when duration is given.
        duration: Seconds of scheduled simulation.
        num_users: Seeded users.
        devices_per_user: Seeded devices per user.
        num_merchants: Seeded merchants.
        retrain: Retrain the model once the run finishes.

    Returns:
        DataFrame with one row per simulated transaction.
    """
    logger = get_logger_from_config("riskstream.cli", config.logging)
    seed = config.simulation.seed

    store = InMemoryDatastore()
    SeedDataGenerator(seed=seed, locale=config.simulation.locale).populate(
        store,
        num_users=num_users,
        devices_per_user=devices_per_user,
        num_merchants=num_merchants,
    )

    rng = random.Random(seed)
    pipeline = RiskPipeline(store, config, rng=rng)
    await pipeline.initialize()
    driver = SimulationDriver(
        store,
        config=config,
        pipeline=pipeline,
        broadcaster=RecordingBroadcaster(),
        rng=rng,
        history_size=max(ticks or 0, 10000),
    )

    if duration is not None:
        driver.start()
        await asyncio.sleep(duration)
        await driver.close()
    else:
        for _ in range(ticks or 20):
            await driver.tick()

    if retrain:
        record = await pipeline.retrain()
        if record is None:
            logger.info("Retrain skipped", examples=await store.count_training_examples())

    stats = await pipeline.model_manager.get_stats()
    logger.info("Model status", **stats.to_dict())

    return pd.DataFrame([outcome.to_dict() for outcome in driver.recent_outcomes])


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = apply_overrides(load_config(args.config), args)
        frame = asyncio.run(run_simulation(
            config,
            ticks=args.ticks,
            duration=args.duration,
            num_users=args.users,
            devices_per_user=args.devices_per_user,
            num_merchants=args.merchants,
            retrain=args.retrain,
        ))
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    print(summarize(frame))

    if args.output:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(path, index=False)
        print(f"\nOutcomes written to {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
