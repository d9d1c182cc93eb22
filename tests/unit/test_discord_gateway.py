"""Unit tests for the discord.py gateway wrapper."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from guildwatch.adapters.discord_gateway import DiscordGateway
from guildwatch.core.errors import AgentLoginError, RecipientNotFound
from guildwatch.core.events import AgentEvent, CommunityJoined, CommunityLeft, MemberJoined


class FakeDiscordIntents:
    """Minimal discord.Intents replacement for tests."""

    def __init__(self) -> None:
        self.guilds = False
        self.members = False

    @classmethod
    def default(cls) -> "FakeDiscordIntents":
        return cls()


class FakeDiscordClient:
    """Minimal discord.Client replacement for tests."""

    fail_login: Exception | None = None
    send_ready = True

    def __init__(self, *, intents: FakeDiscordIntents) -> None:
        self.intents = intents
        self.user = SimpleNamespace(id=999, name="guildwatch-bot")
        self.guilds = [SimpleNamespace(id=111, name="One"), SimpleNamespace(id=222, name="Two")]
        self.users: dict[int, object] = {}
        self.fetchable: dict[int, object] = {}
        self.started_token: str | None = None
        self.closed = False
        self._ready = False
        self._closed_event = asyncio.Event()

    def event(self, coro):
        setattr(self, coro.__name__, coro)
        return coro

    def is_ready(self) -> bool:
        return self._ready

    async def start(self, token: str) -> None:
        self.started_token = token
        if self.fail_login is not None:
            raise self.fail_login
        if self.send_ready:
            self._ready = True
            await self.on_ready()
        await self._closed_event.wait()

    async def close(self) -> None:
        self.closed = True
        self._ready = False
        self._closed_event.set()

    def get_user(self, user_id: int) -> object | None:
        return self.users.get(user_id)

    async def fetch_user(self, user_id: int) -> object:
        if user_id not in self.fetchable:
            raise LookupError("404 Not Found (error code: 10013): Unknown User")
        return self.fetchable[user_id]


class FakeDiscordModule:
    """Minimal discord module replacement for tests."""

    Intents = FakeDiscordIntents
    Client = FakeDiscordClient


def _make_gateway(token: str = "token-abc", **kwargs) -> DiscordGateway:
    with patch("guildwatch.adapters.discord_gateway.importlib.import_module", return_value=FakeDiscordModule):
        return DiscordGateway(token, label="Observer", **kwargs)


@pytest.fixture(autouse=True)
def reset_fake_client():
    FakeDiscordClient.fail_login = None
    FakeDiscordClient.send_ready = True
    yield
    FakeDiscordClient.fail_login = None
    FakeDiscordClient.send_ready = True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_start_logs_in_with_guild_and_member_intents() -> None:
    gateway = _make_gateway()
    events: list[AgentEvent] = []

    await gateway.start(events.append)

    client = gateway._client
    assert isinstance(client, FakeDiscordClient)
    assert client.started_token == "token-abc"
    assert client.intents.guilds is True
    assert client.intents.members is True
    assert gateway.is_ready() is True
    assert gateway.username == "guildwatch-bot"
    assert gateway.live_communities() == {"111", "222"}

    await gateway.stop()
    assert client.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_token_fails_before_connecting() -> None:
    gateway = _make_gateway(token="  ")

    with pytest.raises(AgentLoginError):
        await gateway.start(lambda event: None)
    assert gateway._client is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rejected_token_raises_login_error() -> None:
    FakeDiscordClient.fail_login = RuntimeError("Improper token has been passed.")
    gateway = _make_gateway()

    with pytest.raises(AgentLoginError, match="Improper token"):
        await gateway.start(lambda event: None)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_no_ready_within_timeout_raises_and_closes() -> None:
    FakeDiscordClient.send_ready = False
    gateway = _make_gateway(login_timeout_s=0.05)

    with pytest.raises(AgentLoginError, match="did not become ready"):
        await gateway.start(lambda event: None)
    assert gateway._client is not None
    assert gateway._client.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_guild_and_member_callbacks_emit_events() -> None:
    gateway = _make_gateway()
    events: list[AgentEvent] = []
    await gateway.start(events.append)
    client = gateway._client
    guild = SimpleNamespace(id=333, name="Three")

    await client.on_guild_join(guild)
    await client.on_member_join(SimpleNamespace(id=1001, name="alice", guild=guild))
    await client.on_guild_remove(guild)

    assert events == [
        CommunityJoined(community_id="333", name="Three"),
        MemberJoined(user_id="1001", username="alice", community_id="333", community_name="Three"),
        CommunityLeft(community_id="333", name="Three"),
    ]
    await gateway.stop()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_repeated_ready_only_logs() -> None:
    gateway = _make_gateway()
    events: list[AgentEvent] = []
    await gateway.start(events.append)

    await gateway._client.on_ready()

    assert gateway._ready_count == 2
    assert events == []
    await gateway.stop()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_recipient_prefers_cache_then_api() -> None:
    gateway = _make_gateway()
    await gateway.start(lambda event: None)
    cached = SimpleNamespace(name="cached")
    fetched = SimpleNamespace(name="fetched")
    gateway._client.users[42] = cached
    gateway._client.fetchable[43] = fetched

    assert await gateway.fetch_recipient("42") is cached
    assert await gateway.fetch_recipient("43") is fetched
    await gateway.stop()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_recipient_unknown_or_invalid_raises() -> None:
    gateway = _make_gateway()

    with pytest.raises(RecipientNotFound):
        await gateway.fetch_recipient("42")

    await gateway.start(lambda event: None)
    with pytest.raises(RecipientNotFound):
        await gateway.fetch_recipient("not-a-snowflake")
    with pytest.raises(RecipientNotFound, match="Unknown User"):
        await gateway.fetch_recipient("44")
    await gateway.stop()
