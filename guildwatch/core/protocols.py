"""Protocol definitions for the collaborators an agent is wired with."""

from typing import Callable, Optional, Protocol, runtime_checkable

from guildwatch.core.events import AgentEvent
from guildwatch.core.models import DeliveryResult, NotificationRecord

EventSink = Callable[[AgentEvent], None]


@runtime_checkable
class RecipientHandle(Protocol):
    """A resolved direct-message target."""

    async def send(self, content: str) -> object: ...


@runtime_checkable
class CommunityGateway(Protocol):
    """Chat platform session owned by one agent.

    The gateway converts platform callbacks into agent events and pushes them
    into the sink given to ``start``; it never filters or persists anything.
    """

    def is_ready(self) -> bool: ...

    @property
    def username(self) -> Optional[str]: ...

    def live_communities(self) -> set[str]:
        """Identifiers of every guild currently in the client cache."""
        ...

    async def fetch_recipient(self, user_id: str) -> RecipientHandle:
        """Resolve a user for direct messages.

        Raises:
            RecipientNotFound: If the user cannot be resolved.
        """
        ...

    async def start(self, sink: EventSink) -> None:
        """Log in and wait until the session is ready for the first time.

        Raises:
            AgentLoginError: If authentication fails or the session never becomes ready.
        """
        ...

    async def stop(self) -> None: ...


@runtime_checkable
class DeliveryStrategy(Protocol):
    """Where an agent sends the records it produces."""

    async def dispatch(self, record: NotificationRecord) -> DeliveryResult: ...

    def describe(self) -> str: ...
