"""Event fan-out boundary.

The transport that pushes events to dashboards lives outside this package.
The driver only sees ``EventBroadcaster``; when no transport is configured
it gets a ``NullBroadcaster`` and publishing does nothing.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional


class Channel(str, Enum):
    TRANSACTION = "transaction:new"
    RISK_SIGNAL = "risk-signal:new"
    ALERT = "alert:new"
    DASHBOARD_STATS = "dashboard:stats"


def envelope(channel: Channel, payload: Any, timestamp: Optional[datetime] = None) -> dict:
    """Wrap a payload the way subscribers receive it."""
    return {
        "type": channel.value,
        "data": payload,
        "timestamp": (timestamp or datetime.now()).isoformat(),
    }


class EventBroadcaster(ABC):
    """Publishes payloads to subscribers of a channel."""

    @abstractmethod
    async def publish(self, channel: Channel, payload: dict) -> None:
        ...


class NullBroadcaster(EventBroadcaster):
    """Discards every event."""

    async def publish(self, channel: Channel, payload: dict) -> None:
        return None


@dataclass
class RecordingBroadcaster(EventBroadcaster):
    """Keeps every published event in memory, in publish order."""

    clock: Callable[[], datetime] = datetime.now
    events: list[dict] = field(default_factory=list)

    async def publish(self, channel: Channel, payload: dict) -> None:
        self.events.append(envelope(channel, payload, self.clock()))

    def of_type(self, channel: Channel) -> list[dict]:
        """Payloads published on one channel."""
        return [e["data"] for e in self.events if e["type"] == channel.value]

    def clear(self) -> None:
        self.events.clear()
