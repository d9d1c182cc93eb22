"""Agent event variants.

Gateway callbacks are converted into one of these messages and queued on the
agent's dispatcher, which handles them strictly one at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class CommunityJoined:
    """The agent's account was added to a guild."""

    community_id: str
    name: str


@dataclass(frozen=True)
class CommunityLeft:
    """The agent's account left (or was removed from) a guild."""

    community_id: str
    name: str


@dataclass(frozen=True)
class MemberJoined:
    """Someone joined a guild the agent belongs to."""

    user_id: str
    username: str
    community_id: str
    community_name: str


@dataclass(frozen=True)
class ReconcileScope:
    """Replace the scope with the gateway's live guild list."""


AgentEvent = Union[CommunityJoined, CommunityLeft, MemberJoined, ReconcileScope]
