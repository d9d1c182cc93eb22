"""Exception hierarchy for guildwatch."""

from __future__ import annotations


class GuildwatchError(Exception):
    """Base class for all guildwatch errors."""


class PersistenceError(GuildwatchError):
    """Reading or writing the persisted community scope failed."""


class DeliveryFailure(GuildwatchError):
    """A notification could not be delivered to the recipient."""


class RecipientNotFound(DeliveryFailure):
    """The configured recipient could not be resolved on the platform."""


class RelayTimeout(DeliveryFailure):
    """The Notifier did not answer a relay call within the wait budget."""


class QueueFullError(GuildwatchError):
    """The pending queue is at capacity and the overflow policy is ``reject``."""


class AgentLoginError(GuildwatchError):
    """An agent's platform session could not be authenticated."""
