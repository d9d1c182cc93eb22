"""Unit tests for the owner-keyed task registry."""

import asyncio
from unittest.mock import patch

import pytest

from guildwatch.core.task_registry import TaskRegistry


@pytest.mark.unit
@pytest.mark.asyncio
async def test_tasks_are_named_and_grouped_by_owner():
    registry = TaskRegistry()
    never = asyncio.Event()

    registry.spawn(never.wait(), owner="Observer", name="dispatcher")
    registry.spawn(never.wait(), owner="Notifier", name="dispatcher")
    registry.spawn(never.wait(), owner="Notifier", name="activate")

    assert registry.owned_by("Notifier") == ["Notifier:activate", "Notifier:dispatcher"]
    assert registry.owned_by("Observer") == ["Observer:dispatcher"]
    assert registry.task_count() == 3
    await registry.shutdown(timeout=0.5)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_owner_leaves_other_agents_running():
    registry = TaskRegistry()
    never = asyncio.Event()
    observer_tasks = [registry.spawn(never.wait(), owner="Observer", name=name) for name in ("dispatcher", "reconcile")]
    notifier_task = registry.spawn(never.wait(), owner="Notifier", name="dispatcher")

    await registry.cancel_owner("Observer", timeout=0.5)

    assert all(task.cancelled() for task in observer_tasks)
    assert not notifier_task.done()
    assert registry.owned_by("Observer") == []
    assert registry.owned_by("Notifier") == ["Notifier:dispatcher"]
    await registry.shutdown(timeout=0.5)
    assert notifier_task.cancelled()
    assert registry.task_count() == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finished_task_drops_out():
    registry = TaskRegistry()

    async def activate():
        return "drained"

    assert await registry.spawn(activate(), owner="Notifier", name="activate") == "drained"
    await asyncio.sleep(0)

    assert registry.owned_by("Notifier") == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_crash_is_logged_under_its_owner():
    registry = TaskRegistry()

    async def activate():
        raise RuntimeError("recipient lookup exploded")

    with patch("guildwatch.core.task_registry.logger") as mock_logger:
        task = registry.spawn(activate(), owner="Notifier", name="activate")
        with pytest.raises(RuntimeError):
            await task
        await asyncio.sleep(0)

    mock_logger.error.assert_called_once()
    args, kwargs = mock_logger.error.call_args
    assert args[1] == "Notifier:activate"
    assert kwargs["agent"] == "Notifier"
    assert isinstance(kwargs["exc_info"], RuntimeError)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_owner_does_not_cancel_the_calling_task():
    registry = TaskRegistry()
    outcome: list[str] = []

    async def stop_self():
        await registry.cancel_owner("Observer", timeout=0.5)
        outcome.append("finished")

    await registry.spawn(stop_self(), owner="Observer", name="stopper")

    assert outcome == ["finished"]
