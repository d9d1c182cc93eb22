"""Durable community scope.

`ScopeStore` owns the JSON file, `CommunityScope` owns the in-memory set an
agent filters events against. The set is always mutated synchronously before
the file write is awaited, so the in-memory view is authoritative and the file
may lag it briefly.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable

from guildwatch.core.errors import PersistenceError
from guildwatch.logging_config import get_logger

logger = get_logger(__name__)


class ScopeStore:
    """Persist a set of community identifiers as a pretty-printed JSON array."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        # Writes run in worker threads; the lock keeps them in call order.
        self._write_lock = asyncio.Lock()

    async def load(self) -> set[str]:
        """Read the persisted scope.

        A missing file is not an error: an empty scope is written and returned.

        Raises:
            PersistenceError: If the file exists but cannot be read or decoded.
        """
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except FileNotFoundError:
            try:
                await self.save(set())
            except PersistenceError as exc:
                logger.warning("Could not initialise scope file %s: %s", self.path, exc)
            else:
                logger.info("Created new scope file %s", self.path)
            return set()
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Failed to read {self.path}: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupt scope file {self.path}: {exc}") from exc

        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            raise PersistenceError(f"Scope file {self.path} must contain a JSON array of strings")
        return set(data)

    async def save(self, communities: Iterable[str]) -> None:
        """Atomically replace the persisted scope.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        payload = json.dumps(sorted(communities), indent=2)
        try:
            async with self._write_lock:
                await asyncio.to_thread(self._write_atomic, payload)
        except OSError as exc:
            raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc

    def _write_atomic(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class CommunityScope:
    """In-memory set of watched communities, persisted after every mutation."""

    def __init__(self, store: ScopeStore, *, label: str) -> None:
        self.store = store
        self.label = label
        self._communities: set[str] = set()

    def __contains__(self, community_id: object) -> bool:
        return community_id in self._communities

    def __len__(self) -> int:
        return len(self._communities)

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._communities)

    async def load(self) -> bool:
        """Load the persisted scope. On failure the current set is kept."""
        try:
            loaded = await self.store.load()
        except PersistenceError as exc:
            logger.error("Error loading scope: %s", exc, agent=self.label)
            return False
        self._communities = loaded
        logger.info("Loaded %d watched communities", len(loaded), agent=self.label)
        return True

    async def add(self, community_id: str) -> None:
        self._communities.add(community_id)
        await self.persist()

    async def discard(self, community_id: str) -> bool:
        """Remove a community. Returns False (and writes nothing) if it was not watched."""
        if community_id not in self._communities:
            return False
        self._communities.discard(community_id)
        await self.persist()
        return True

    async def replace(self, communities: Iterable[str]) -> None:
        self._communities = set(communities)
        await self.persist()

    async def persist(self) -> bool:
        """Write the current set. Failures are logged, never raised."""
        try:
            await self.store.save(self.snapshot())
        except PersistenceError as exc:
            logger.error("Error saving scope: %s", exc, agent=self.label)
            return False
        logger.debug("Saved %d watched communities", len(self._communities), agent=self.label)
        return True
