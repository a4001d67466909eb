"""
Logging helpers for riskstream.

Every component logs through a ``RiskLogger``. Keyword arguments passed to
a log call travel on the record as context fields: the text formatter
appends them as ``key=value`` pairs, the JSON formatter merges them into
the emitted object.

Example:
    logger = get_logger("riskstream.pipeline", level="DEBUG", format="json")
    logger.info("Transaction scored", transaction_id=tx.id, risk_score=81)
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Optional

if TYPE_CHECKING:
    from ..config import LoggingConfig


TEXT_LAYOUT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "context", None) or {}


class TextFormatter(logging.Formatter):
    """Human-readable lines with context fields appended after a pipe."""

    def __init__(self):
        super().__init__(TEXT_LAYOUT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        context = _context_of(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            record.message = f"{record.message} | {pairs}"
        return super().formatMessage(record)


class JsonFormatter(logging.Formatter):
    """One JSON object per record; context fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_of(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _build_handlers(format: str, log_file: Optional[str]) -> list[logging.Handler]:
    formatter = JsonFormatter() if format == "json" else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


class RiskLogger:
    """
    Wrapper around a stdlib logger for riskstream components.

    Besides leveled log calls with context fields it keeps simple
    in-process measurements: named timers and recorded metric values,
    summarized by ``get_metrics_summary``.
    """

    def __init__(
        self,
        name: str = "riskstream",
        level: str = "INFO",
        format: str = "text",
        log_file: Optional[str] = None
    ):
        """
        Configure the named stdlib logger, replacing any handlers it had.

        Args:
            name: Logger name, usually ``riskstream.<component>``.
            level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            format: 'text' or 'json'.
            log_file: Also write to this file when given.
        """
        self.name = name
        self.level = level
        self.format = format
        self.log_file = log_file

        self._logger = logging.getLogger(name)
        self._logger.setLevel(level.upper())
        self._replace_handlers(_build_handlers(format, log_file))

        self._timers: dict[str, float] = {}
        self._measurements: dict[str, list[float]] = {}

    def _replace_handlers(self, handlers: list[logging.Handler]) -> None:
        for old in list(self._logger.handlers):
            self._logger.removeHandler(old)
            old.close()
        for handler in handlers:
            self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        """The wrapped stdlib logger."""
        return self._logger

    def _emit(self, level: int, message: str, exc_info: bool = False, **context) -> None:
        self._logger.log(level, message, exc_info=exc_info, extra={"context": context})

    def debug(self, message: str, **context) -> None:
        self._emit(logging.DEBUG, message, **context)

    def info(self, message: str, **context) -> None:
        self._emit(logging.INFO, message, **context)

    def warning(self, message: str, **context) -> None:
        self._emit(logging.WARNING, message, **context)

    def error(self, message: str, **context) -> None:
        self._emit(logging.ERROR, message, **context)

    def exception(self, message: str, **context) -> None:
        """Log at ERROR with the traceback of the exception being handled."""
        self._emit(logging.ERROR, message, exc_info=True, **context)

    # Measurements

    def _record(self, name: str, value: float) -> None:
        self._measurements.setdefault(name, []).append(value)

    def start_timer(self, operation: str) -> None:
        self._timers[operation] = time.perf_counter()

    def stop_timer(self, operation: str) -> float:
        """Seconds since start_timer(operation); 0.0 if it was never started."""
        started = self._timers.pop(operation, None)
        if started is None:
            return 0.0
        elapsed = time.perf_counter() - started
        self._record(operation, elapsed)
        return elapsed

    @contextmanager
    def timer(self, operation: str, log_result: bool = True) -> Iterator[None]:
        """Time the enclosed block and record it under the operation name."""
        self.start_timer(operation)
        try:
            yield
        finally:
            elapsed = self.stop_timer(operation)
            if log_result:
                self.debug(f"{operation} completed", duration_seconds=round(elapsed, 3))

    def log_metrics(self, **metrics) -> None:
        """Record numeric values and log them in one line."""
        for name, value in metrics.items():
            self._record(name, value)
        self.info("Metrics recorded", **metrics)

    def get_metrics_summary(self) -> dict[str, dict[str, float]]:
        """Count, mean, min, max and last value per timer or metric name."""
        return {
            name: {
                "count": len(values),
                "mean": sum(values) / len(values),
                "min": min(values),
                "max": max(values),
                "last": values[-1],
            }
            for name, values in self._measurements.items()
            if values
        }

    # Domain events

    def log_scoring_result(
        self,
        transaction_id: str,
        risk_score: int,
        rule_score: float,
        confidence: float,
        **extra
    ) -> None:
        """Log a blended score next to its rule-only counterpart."""
        self.info(
            "Transaction scored",
            transaction_id=transaction_id,
            risk_score=risk_score,
            rule_only_score=round(rule_score * 100),
            confidence=round(confidence, 3),
            **extra
        )

    def log_training_result(
        self,
        num_examples: int,
        accuracy: float,
        version: str,
        **extra
    ) -> None:
        self.info(
            "Model retrained",
            examples=num_examples,
            accuracy=round(accuracy, 4),
            version=version,
            **extra
        )


def get_logger(
    name: str = "riskstream",
    level: str = "INFO",
    format: str = "text",
    log_file: Optional[str] = None
) -> RiskLogger:
    """
    Build a RiskLogger.

    Args:
        name: Logger name.
        level: Minimum level name.
        format: 'text' or 'json'.
        log_file: Optional file to log to as well.

    Returns:
        Configured RiskLogger.
    """
    return RiskLogger(name=name, level=level, format=format, log_file=log_file)


def get_logger_from_config(name: str, settings: "LoggingConfig") -> RiskLogger:
    """Build a RiskLogger with the level, format and log file of a logging config section."""
    return get_logger(
        name=name,
        level=settings.level,
        format=settings.format,
        log_file=settings.log_file,
    )
