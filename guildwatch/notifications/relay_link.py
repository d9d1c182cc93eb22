"""Notifier-side entry point for records produced by any agent."""

from __future__ import annotations

from guildwatch.core.delivery_queue import DeliveryQueue
from guildwatch.core.errors import QueueFullError
from guildwatch.core.models import DeliveryResult, NotificationRecord
from guildwatch.logging_config import get_logger
from guildwatch.notifications.sender import NotificationSender

logger = get_logger(__name__)


class RelayLink:
    """Deliver a record now, or queue it until the sender is ready.

    A ``queued`` result is not a failure and must not be retried by the caller.
    """

    def __init__(self, sender: NotificationSender, queue: DeliveryQueue) -> None:
        self.sender = sender
        self.queue = queue

    async def forward(self, record: NotificationRecord) -> DeliveryResult:
        logger.info(
            "Received notification from %s: %s",
            record.source or "Observer",
            record.username,
            agent=self.sender.label,
        )
        if self.sender.ready():
            return await self.sender.deliver(record)

        try:
            accepted = self.queue.enqueue(record)
        except QueueFullError as exc:
            logger.error("Notifier not ready and queue full; dropping notification", agent=self.sender.label)
            return DeliveryResult.failure(exc)
        if not accepted:
            return DeliveryResult.failure(QueueFullError("Pending queue full"), "Notifier not ready and queue full")

        logger.info("Notifier not ready, queued notification (depth=%d)", len(self.queue), agent=self.sender.label)
        return DeliveryResult.pending()


class LocalDelivery:
    """Delivery strategy for agents living in the Notifier's process."""

    def __init__(self, relay_link: RelayLink) -> None:
        self.relay_link = relay_link

    async def dispatch(self, record: NotificationRecord) -> DeliveryResult:
        return await self.relay_link.forward(record)

    def describe(self) -> str:
        return f"local ({self.relay_link.sender.label})"
