"""One parameterised agent type for both relay roles.

An agent owns a gateway session, a watched-community scope and a delivery
strategy. Gateway callbacks only enqueue events; a single dispatcher task
handles them in arrival order, so two handlers of the same agent never run
at the same time.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from guildwatch.core.events import AgentEvent, CommunityJoined, CommunityLeft, MemberJoined, ReconcileScope
from guildwatch.core.models import AgentRole, DeliveryResult, DeliveryStatus
from guildwatch.core.protocols import CommunityGateway, DeliveryStrategy
from guildwatch.core.scope_reconciler import ScopeReconciler
from guildwatch.core.scope_store import CommunityScope
from guildwatch.core.task_registry import TaskRegistry
from guildwatch.core.translator import EventTranslator
from guildwatch.logging_config import get_logger
from guildwatch.notifications.sender import NotificationSender

logger = get_logger(__name__)


class Agent:
    """Observer or Notifier, depending on the strategy and sender it is built with."""

    def __init__(
        self,
        *,
        role: AgentRole,
        label: str,
        gateway: CommunityGateway,
        scope: CommunityScope,
        translator: EventTranslator,
        strategy: DeliveryStrategy,
        task_registry: TaskRegistry,
        sender: Optional[NotificationSender] = None,
        settle_delay_s: float = 5.0,
    ) -> None:
        self.role = role
        self.label = label
        self.gateway = gateway
        self.scope = scope
        self.reconciler = ScopeReconciler(scope)
        self.translator = translator
        self.strategy = strategy
        self.sender = sender
        self.task_registry = task_registry
        self.settle_delay_s = settle_delay_s
        self.started_at: Optional[float] = None
        self._events: asyncio.Queue[AgentEvent] = asyncio.Queue()

    # Lifecycle

    async def start(self) -> None:
        """Load scope, log in, then schedule activation and reconciliation.

        Raises:
            AgentLoginError: If the gateway cannot authenticate. The agent is
                left stopped; callers must not keep running with it.
        """
        await self.scope.load()
        self.task_registry.spawn(self._run_dispatcher(), owner=self.label, name="dispatcher")

        logger.info("Attempting to log in", agent=self.label, delivery=self.strategy.describe())
        try:
            await self.gateway.start(self.submit)
        except BaseException:
            await self.stop()
            raise
        self.started_at = time.monotonic()
        logger.info("Logged in as %s", self.gateway.username, agent=self.label)

        if self.sender is not None:
            self.task_registry.spawn(self.sender.activate(), owner=self.label, name="activate")
        self.task_registry.spawn(self._reconcile_after_settle(), owner=self.label, name="reconcile")

    async def stop(self) -> None:
        """Cancel this agent's dispatcher, activation and pending reconcile, then log out."""
        await self.task_registry.cancel_owner(self.label)
        await self.gateway.stop()
        logger.info("Agent stopped", agent=self.label)

    def submit(self, event: AgentEvent) -> None:
        """Queue a gateway event for the dispatcher. Safe to call from callbacks."""
        self._events.put_nowait(event)

    async def wait_idle(self) -> None:
        """Wait until every submitted event has been handled."""
        await self._events.join()

    async def _reconcile_after_settle(self) -> None:
        logger.info("Waiting %.1fs for guild cache before reconciling", self.settle_delay_s, agent=self.label)
        await asyncio.sleep(self.settle_delay_s)
        self.submit(ReconcileScope())

    async def _run_dispatcher(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self.handle(event)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.error("Handler failed for %s: %s", type(event).__name__, exc, agent=self.label, exc_info=True)
            finally:
                self._events.task_done()

    # Handlers

    async def handle(self, event: AgentEvent) -> None:
        """Handle one event to completion, including any scope persistence."""
        if isinstance(event, MemberJoined):
            await self._on_member_joined(event)
        elif isinstance(event, CommunityJoined):
            logger.info("Joined: %s", event.name, agent=self.label, community=event.community_id)
            await self.scope.add(event.community_id)
        elif isinstance(event, CommunityLeft):
            if await self.scope.discard(event.community_id):
                logger.info("Left: %s", event.name, agent=self.label, community=event.community_id)
        elif isinstance(event, ReconcileScope):
            await self.reconciler.reconcile(self.gateway.live_communities())
        else:
            raise TypeError(f"Unsupported agent event: {event!r}")

    async def _on_member_joined(self, event: MemberJoined) -> Optional[DeliveryResult]:
        if event.community_id not in self.scope:
            return None

        record = self.translator.translate(event, self.label)
        logger.info("New member detected: %s in %s", record.username, record.guild_name, agent=self.label)
        result = await self.strategy.dispatch(record)
        if result.status is DeliveryStatus.ERROR:
            logger.error("Notification for %s dropped: %s", record.username, result.message, agent=self.label)
        return result

    # Status

    def is_ready(self) -> bool:
        return self.gateway.is_ready()

    def status(self) -> dict[str, object]:
        """Read-only snapshot for the status endpoint."""
        snapshot: dict[str, object] = {
            "role": self.role.value,
            "label": self.label,
            "ready": self.is_ready(),
            "username": self.gateway.username,
            "communities": len(self.scope),
        }
        if self.sender is not None:
            snapshot["senderReady"] = self.sender.ready()
            snapshot["pending"] = len(self.sender.queue)
            snapshot["dropped"] = self.sender.queue.dropped
        return snapshot
