"""Unit tests for the persisted community scope."""

import asyncio
import json
from pathlib import Path

import pytest

from guildwatch.core.errors import PersistenceError
from guildwatch.core.scope_store import CommunityScope, ScopeStore


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_missing_file_initialises_empty_array(tmp_path: Path) -> None:
    """A missing scope file yields an empty set and writes an empty JSON array."""
    path = tmp_path / "scope.json"
    store = ScopeStore(path)

    loaded = await store.load()

    assert loaded == set()
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_reads_persisted_identifiers(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    path.write_text('["111", "222"]', encoding="utf-8")

    assert await ScopeStore(path).load() == {"111", "222"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_corrupt_file_raises_persistence_error(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        await ScopeStore(path).load()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_undecodable_file_raises_persistence_error(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    path.write_bytes(b'["111", "\xff\xfe"]')

    with pytest.raises(PersistenceError):
        await ScopeStore(path).load()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_rejects_non_string_entries(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    path.write_text("[111, 222]", encoding="utf-8")

    with pytest.raises(PersistenceError):
        await ScopeStore(path).load()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_writes_pretty_printed_array_and_leaves_no_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "scope.json"
    store = ScopeStore(path)

    await store.save({"222", "111"})

    assert path.read_text(encoding="utf-8") == '[\n  "111",\n  "222"\n]'
    assert [p.name for p in path.parent.iterdir()] == ["scope.json"]
    assert await store.load() == {"111", "222"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_failure_raises_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(PersistenceError):
        await ScopeStore(blocker / "scope.json").save({"111"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scope_load_failure_keeps_previous_set(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    scope = CommunityScope(ScopeStore(path), label="Observer")
    await scope.add("111")

    path.write_text("garbage", encoding="utf-8")

    assert await scope.load() is False
    assert scope.snapshot() == {"111"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scope_add_and_discard_persist(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    scope = CommunityScope(ScopeStore(path), label="Observer")

    await scope.add("111")
    await scope.add("222")
    assert json.loads(path.read_text(encoding="utf-8")) == ["111", "222"]

    assert await scope.discard("111") is True
    assert json.loads(path.read_text(encoding="utf-8")) == ["222"]
    assert "111" not in scope
    assert len(scope) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scope_discard_unknown_is_noop_without_write(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    scope = CommunityScope(ScopeStore(path), label="Observer")

    assert await scope.discard("999") is False
    assert not path.exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scope_save_failure_is_non_fatal(tmp_path: Path) -> None:
    """In-memory scope stays authoritative when the file cannot be written."""
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    scope = CommunityScope(ScopeStore(blocker / "scope.json"), label="Notifier")

    await scope.add("111")

    assert "111" in scope


@pytest.mark.unit
@pytest.mark.asyncio
async def test_interleaved_mutations_converge_to_in_memory_state(tmp_path: Path) -> None:
    """After concurrent joins/leaves settle, the file matches memory."""
    path = tmp_path / "scope.json"
    scope = CommunityScope(ScopeStore(path), label="Observer")

    await asyncio.gather(
        scope.add("1"),
        scope.add("2"),
        scope.discard("1"),
        scope.add("3"),
        scope.replace({"3", "4"}),
        scope.add("5"),
        scope.discard("4"),
    )

    assert set(json.loads(path.read_text(encoding="utf-8"))) == set(scope.snapshot())
    assert scope.snapshot() == {"3", "5"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scope_survives_undecodable_file(tmp_path: Path) -> None:
    path = tmp_path / "scope.json"
    scope = CommunityScope(ScopeStore(path), label="Observer")
    await scope.add("keep")
    path.write_bytes(b'["111", "\xff\xfe"]')

    assert await scope.load() is False
    assert scope.snapshot() == {"keep"}
