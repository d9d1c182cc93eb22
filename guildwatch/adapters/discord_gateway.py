"""Discord gateway session for one agent, built on discord.py."""

from __future__ import annotations

import asyncio
import contextlib
import importlib
from types import ModuleType
from typing import Awaitable, Callable, Optional, Protocol

from guildwatch.constants import DEFAULT_LOGIN_TIMEOUT_S
from guildwatch.core.errors import AgentLoginError, RecipientNotFound
from guildwatch.core.events import CommunityJoined, CommunityLeft, MemberJoined
from guildwatch.core.protocols import EventSink, RecipientHandle
from guildwatch.logging_config import get_logger

logger = get_logger(__name__)


class DiscordClientLike(Protocol):
    """Minimal discord.py client surface used by the gateway."""

    user: object | None
    guilds: list[object]

    def event(self, coro: Callable[..., Awaitable[None]]) -> object: ...

    def is_ready(self) -> bool: ...

    def get_user(self, user_id: int, /) -> object | None: ...

    async def fetch_user(self, user_id: int, /) -> object: ...

    async def start(self, token: str) -> None: ...

    async def close(self) -> None: ...


class DiscordGateway:
    """Log one account into Discord and turn its guild events into agent events."""

    def __init__(
        self,
        token: str,
        *,
        label: str,
        login_timeout_s: float = DEFAULT_LOGIN_TIMEOUT_S,
    ) -> None:
        self._discord: ModuleType = importlib.import_module("discord")
        self._token = token.strip() if token else ""
        self.label = label
        self.login_timeout_s = login_timeout_s
        self._client: DiscordClientLike | None = None
        self._gateway_task: asyncio.Task[None] | None = None
        self._ready_event = asyncio.Event()
        self._sink: Optional[EventSink] = None
        self._ready_count = 0

    @property
    def username(self) -> Optional[str]:
        user = self._client.user if self._client is not None else None
        return getattr(user, "name", None)

    def is_ready(self) -> bool:
        return self._client is not None and self._client.is_ready()

    def live_communities(self) -> set[str]:
        if self._client is None:
            return set()
        return {str(getattr(guild, "id")) for guild in self._client.guilds}

    async def start(self, sink: EventSink) -> None:
        """Start the gateway connection and wait for the first READY."""
        if not self._token:
            raise AgentLoginError(f"{self.label}: no Discord token configured")

        intents = self._discord.Intents.default()
        intents.guilds = True
        intents.members = True

        self._sink = sink
        self._client = self._discord.Client(intents=intents)
        self._register_gateway_handlers()
        self._ready_event.clear()
        self._gateway_task = asyncio.create_task(self._client.start(self._token), name=f"{self.label}-gateway")
        self._gateway_task.add_done_callback(self._on_gateway_done)

        ready_wait = asyncio.create_task(self._ready_event.wait())
        done, _ = await asyncio.wait(
            {ready_wait, self._gateway_task},
            timeout=self.login_timeout_s,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if ready_wait in done:
            return

        ready_wait.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ready_wait
        if self._gateway_task in done:
            task_exc = None if self._gateway_task.cancelled() else self._gateway_task.exception()
            raise AgentLoginError(f"{self.label}: login failed: {task_exc}") from task_exc
        await self.stop()
        raise AgentLoginError(f"{self.label}: gateway did not become ready within {self.login_timeout_s:.0f}s")

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.close()
        if self._gateway_task is not None and not self._gateway_task.done():
            self._gateway_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._gateway_task

    async def fetch_recipient(self, user_id: str) -> RecipientHandle:
        if self._client is None:
            raise RecipientNotFound(f"Cannot resolve user {user_id}: gateway not started")
        try:
            snowflake = int(user_id)
        except (TypeError, ValueError) as exc:
            raise RecipientNotFound(f"Invalid user id: {user_id!r}") from exc

        user = self._client.get_user(snowflake)
        if user is None:
            try:
                user = await self._client.fetch_user(snowflake)
            except Exception as exc:  # discord.NotFound / discord.HTTPException
                raise RecipientNotFound(f"Cannot resolve user {user_id}: {exc}") from exc
        return user  # type: ignore[return-value]

    def _on_gateway_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        # Failures before the first READY surface through start().
        if exc is not None and self._ready_count:
            logger.error("Gateway connection terminated: %s", exc, agent=self.label, exc_info=exc)

    def _emit(self, event: CommunityJoined | CommunityLeft | MemberJoined) -> None:
        if self._sink is not None:
            self._sink(event)

    def _register_gateway_handlers(self) -> None:
        """Attach discord.py event coroutines; names must match gateway event names."""
        assert self._client is not None

        async def on_ready() -> None:
            await self._handle_on_ready()

        async def on_guild_join(guild: object) -> None:
            self._emit(CommunityJoined(community_id=str(getattr(guild, "id")), name=str(getattr(guild, "name", ""))))

        async def on_guild_remove(guild: object) -> None:
            self._emit(CommunityLeft(community_id=str(getattr(guild, "id")), name=str(getattr(guild, "name", ""))))

        async def on_member_join(member: object) -> None:
            guild = getattr(member, "guild")
            self._emit(
                MemberJoined(
                    user_id=str(getattr(member, "id")),
                    username=str(getattr(member, "name", "")),
                    community_id=str(getattr(guild, "id")),
                    community_name=str(getattr(guild, "name", "")),
                )
            )

        async def on_error(event_method: str, *_args: object, **_kwargs: object) -> None:
            logger.error("Error in %s handler", event_method, agent=self.label, exc_info=True)

        for handler in (on_ready, on_guild_join, on_guild_remove, on_member_join, on_error):
            self._client.event(handler)

    async def _handle_on_ready(self) -> None:
        self._ready_count += 1
        if self._ready_count > 1:
            logger.info("Gateway session resumed", agent=self.label, username=self.username)
            return
        logger.info(
            "Bot logged in as %s (%d guilds cached)",
            self.username,
            len(self.live_communities()),
            agent=self.label,
        )
        self._ready_event.set()
