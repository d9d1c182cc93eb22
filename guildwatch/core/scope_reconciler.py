"""Startup reconciliation of the watched-community scope."""

from __future__ import annotations

from typing import Iterable

from guildwatch.core.scope_store import CommunityScope
from guildwatch.logging_config import get_logger

logger = get_logger(__name__)


class ScopeReconciler:
    """Replace an agent's scope with the guilds its account currently belongs to."""

    def __init__(self, scope: CommunityScope) -> None:
        self.scope = scope

    async def reconcile(self, live_communities: Iterable[str]) -> frozenset[str]:
        """Make the scope equal to ``live_communities`` and persist it.

        An empty live snapshot usually means the gateway cache has not been
        populated yet, so the previous scope is kept instead of dropping
        every community.
        """
        live = set(live_communities)
        if not live:
            logger.warning(
                "No communities in gateway cache; keeping %d previously watched",
                len(self.scope),
                agent=self.scope.label,
            )
            return self.scope.snapshot()

        previous = self.scope.snapshot()
        await self.scope.replace(live)
        logger.info(
            "Reconciled scope: watching %d communities (+%d, -%d)",
            len(live),
            len(live - previous),
            len(previous - live),
            agent=self.scope.label,
        )
        return self.scope.snapshot()
