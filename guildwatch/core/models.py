"""Core data models for guildwatch."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AgentRole(str, Enum):
    """Which side of the relay an agent sits on."""

    OBSERVER = "observer"
    NOTIFIER = "notifier"


class DeliveryStatus(str, Enum):
    """Outcome of handing a record towards the recipient."""

    SUCCESS = "success"
    ERROR = "error"
    QUEUED = "queued"


class SenderState(str, Enum):
    """NotificationSender lifecycle. Transitions only move forward."""

    NOT_READY = "not_ready"
    DRAINING = "draining"
    READY = "ready"


class OverflowPolicy(str, Enum):
    """What the pending queue does with a record when it is full."""

    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"
    REJECT = "reject"


# Wire keys used by the relay endpoint (shared with older deployments)
_WIRE_KEYS = {
    "username": "username",
    "user_id": "userId",
    "guild_name": "guildName",
    "guild_id": "guildId",
    "date": "date",
    "time": "time",
    "timestamp": "timestamp",
    "source": "source",
}


@dataclass(frozen=True)
class NotificationRecord:
    """One detected member join, ready to be rendered for the recipient."""

    username: str
    user_id: str
    guild_name: str
    guild_id: str
    date: str
    time: str
    timestamp: str
    source: str

    def to_wire(self) -> dict[str, str]:
        """Convert to the camelCase JSON body of the relay endpoint."""
        return {wire: getattr(self, attr) for attr, wire in _WIRE_KEYS.items()}


@dataclass(frozen=True)
class DeliveryResult:
    """Result of a delivery or forward attempt.

    ``error`` carries the underlying cause for ``ERROR`` results.
    """

    status: DeliveryStatus
    message: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is DeliveryStatus.SUCCESS

    @property
    def queued(self) -> bool:
        return self.status is DeliveryStatus.QUEUED

    @classmethod
    def success(cls, message: str = "Notification sent") -> "DeliveryResult":
        return cls(DeliveryStatus.SUCCESS, message)

    @classmethod
    def failure(cls, error: BaseException, message: str | None = None) -> "DeliveryResult":
        return cls(DeliveryStatus.ERROR, message or str(error) or type(error).__name__, error)

    @classmethod
    def pending(cls, message: str = "Notifier not ready, notification queued") -> "DeliveryResult":
        return cls(DeliveryStatus.QUEUED, message)

    def to_dict(self) -> dict[str, str]:
        """Response body of the relay endpoint."""
        return {"status": self.status.value, "message": self.message}
