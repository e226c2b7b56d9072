# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from orchestrator.cancellation import CancellationManager


async def _forever() -> None:
    await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_spawn_replaces_task_under_same_key():
    tasks = CancellationManager()

    first = tasks.spawn("negotiation", _forever())
    second = tasks.spawn("negotiation", _forever())
    await asyncio.sleep(0)

    assert first.cancelled()
    assert tasks.is_running("negotiation")
    assert tasks.keys() == ("negotiation",)

    tasks.clear_all()
    await asyncio.sleep(0)
    assert second.cancelled()
    assert len(tasks) == 0


@pytest.mark.asyncio
async def test_cancel_is_idempotent():
    tasks = CancellationManager()
    tasks.spawn("a", _forever())

    assert tasks.cancel("a") is True
    assert tasks.cancel("a") is False
    assert tasks.cancel("missing") is False


@pytest.mark.asyncio
async def test_cancel_prefix_leaves_other_keys():
    tasks = CancellationManager()
    tasks.spawn("recovery:retry:NETWORK", _forever())
    tasks.spawn("recovery:device_switch", _forever())
    tasks.spawn("phases", _forever())

    assert tasks.cancel_prefix("recovery:") == 2
    assert tasks.keys() == ("phases",)

    tasks.clear_all()


@pytest.mark.asyncio
async def test_finished_tasks_forget_themselves():
    tasks = CancellationManager()
    done = asyncio.Event()

    async def _work() -> None:
        done.set()

    tasks.spawn("work", _work())
    await tasks.wait_idle()

    assert done.is_set()
    assert not tasks.is_running("work")
    assert len(tasks) == 0
