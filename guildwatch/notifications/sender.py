"""Direct-message delivery to the fixed recipient."""

from __future__ import annotations

from typing import Optional

from guildwatch.constants import DISCORD_MESSAGE_MAX_LENGTH
from guildwatch.core.delivery_queue import DeliveryQueue, DrainStats
from guildwatch.core.errors import DeliveryFailure
from guildwatch.core.models import DeliveryResult, NotificationRecord, SenderState
from guildwatch.core.protocols import CommunityGateway, RecipientHandle
from guildwatch.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SOURCE = "Observer"


def format_notification(record: NotificationRecord) -> str:
    """Render the DM text for one record."""
    source = record.source or DEFAULT_SOURCE
    text = (
        f"🎉 **New Member Alert!** [{source}]\n"
        f"📆 {record.date}\n"
        f"🕐 {record.time}\n"
        f"👤 `{record.username}`\n"
        f"🆔 `{record.user_id}`\n"
        f"🏠 {record.guild_name}"
    )
    return text[:DISCORD_MESSAGE_MAX_LENGTH]


class NotificationSender:
    """Owns the outbound DM channel of the Notifier.

    The sender starts ``NOT_READY``. ``activate()`` is called once the
    gateway has logged in; it drains the pending queue and only then reports
    ready, so queued records always go out before new ones.
    """

    def __init__(
        self,
        gateway: CommunityGateway,
        recipient_id: str,
        queue: DeliveryQueue,
        *,
        label: str,
        drain_interval_s: float = 0.0,
    ) -> None:
        self.gateway = gateway
        self.recipient_id = recipient_id
        self.queue = queue
        self.label = label
        self.drain_interval_s = drain_interval_s
        self.state = SenderState.NOT_READY
        self._recipient: Optional[RecipientHandle] = None

    def ready(self) -> bool:
        return self.state is SenderState.READY

    async def activate(self) -> DrainStats:
        """Move to READY, delivering the backlog first. Later calls are no-ops."""
        if self.state is not SenderState.NOT_READY:
            return DrainStats()

        self.state = SenderState.DRAINING
        try:
            await self._resolve_recipient()
        except DeliveryFailure as exc:
            logger.warning("Recipient %s not resolvable yet: %s", self.recipient_id, exc, agent=self.label)

        try:
            stats = await self.queue.drain_into(self.deliver, interval_s=self.drain_interval_s)
        finally:
            self.state = SenderState.READY
        logger.info("Ready to send DM notifications", agent=self.label, recipient=self.recipient_id)
        return stats

    async def deliver(self, record: NotificationRecord) -> DeliveryResult:
        """Make one send attempt. Never raises for delivery problems."""
        try:
            recipient = await self._resolve_recipient()
            await recipient.send(format_notification(record))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # Drop the cached handle so the next delivery resolves it again.
            self._recipient = None
            failure = exc if isinstance(exc, DeliveryFailure) else DeliveryFailure(f"Failed to send DM: {exc}")
            if failure is not exc:
                failure.__cause__ = exc
            logger.error(
                "Failed to send DM for %s from %s: %s",
                record.username,
                record.guild_name,
                exc,
                agent=self.label,
            )
            return DeliveryResult.failure(failure, str(exc) or type(exc).__name__)

        logger.info(
            "Sent DM for %s from %s (source: %s)",
            record.username,
            record.guild_name,
            record.source or DEFAULT_SOURCE,
            agent=self.label,
        )
        return DeliveryResult.success()

    async def _resolve_recipient(self) -> RecipientHandle:
        if self._recipient is None:
            self._recipient = await self.gateway.fetch_recipient(self.recipient_id)
        return self._recipient
