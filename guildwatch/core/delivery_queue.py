"""In-memory FIFO of notifications waiting for the Notifier to become ready.

Contents are not persisted; a restart loses whatever is still queued.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from guildwatch.core.errors import QueueFullError
from guildwatch.core.models import DeliveryResult, NotificationRecord, OverflowPolicy
from guildwatch.logging_config import get_logger

logger = get_logger(__name__)

DeliverCallback = Callable[[NotificationRecord], Awaitable[DeliveryResult]]


@dataclass
class DrainStats:
    delivered: int = 0
    failed: int = 0


class DeliveryQueue:
    """Bounded FIFO with an explicit overflow policy.

    ``max_size=None`` disables the bound.
    """

    def __init__(
        self,
        *,
        max_size: Optional[int] = None,
        overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        label: str = "",
    ) -> None:
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be positive or None, got {max_size}")
        self.max_size = max_size
        self.overflow = overflow
        self.label = label
        self._items: deque[NotificationRecord] = deque()
        self._draining = False
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._items)

    @property
    def draining(self) -> bool:
        return self._draining

    def enqueue(self, record: NotificationRecord) -> bool:
        """Append a record at the tail.

        Returns:
            False when the record was refused under ``drop_newest``.

        Raises:
            QueueFullError: When full and the policy is ``reject``.
        """
        if self.max_size is not None and len(self._items) >= self.max_size:
            if self.overflow is OverflowPolicy.REJECT:
                raise QueueFullError(f"Pending queue full ({self.max_size} records)")
            self.dropped += 1
            if self.overflow is OverflowPolicy.DROP_NEWEST:
                logger.warning(
                    "Pending queue full; dropping new notification for %s",
                    record.username,
                    agent=self.label,
                    max_size=self.max_size,
                )
                return False
            evicted = self._items.popleft()
            logger.warning(
                "Pending queue full; evicted oldest notification for %s",
                evicted.username,
                agent=self.label,
                max_size=self.max_size,
            )

        self._items.append(record)
        logger.debug("Queued notification (depth=%d)", len(self._items), agent=self.label)
        return True

    async def drain_into(self, deliver: DeliverCallback, *, interval_s: float = 0.0) -> DrainStats:
        """Deliver queued records from the head, one at a time, in arrival order.

        Each delivery is awaited before the next record is dequeued, and the
        queue length is re-checked after every delivery so records appended
        during the drain go out in the same pass. A call made while another
        drain is running returns immediately.
        """
        stats = DrainStats()
        if self._draining or not self._items:
            return stats

        self._draining = True
        logger.info("Processing %d pending notifications", len(self._items), agent=self.label)
        try:
            while self._items:
                record = self._items.popleft()
                result = await deliver(record)
                if result.ok:
                    stats.delivered += 1
                else:
                    stats.failed += 1
                    logger.error(
                        "Dropping pending notification for %s: %s",
                        record.username,
                        result.message,
                        agent=self.label,
                    )
                if self._items and interval_s > 0:
                    await asyncio.sleep(interval_s)
        finally:
            self._draining = False

        logger.info(
            "Pending queue drained (delivered=%d, failed=%d)",
            stats.delivered,
            stats.failed,
            agent=self.label,
        )
        return stats
