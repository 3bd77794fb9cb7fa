"""Tests for the single-flight mutation guard."""

import asyncio

import pytest

from rig_manager.core.errors import OperationInProgress
from rig_manager.core.services.state import MutationGuard


@pytest.mark.asyncio
async def test_hold_tracks_active_label():
    guard = MutationGuard()
    assert not guard.busy
    async with guard.hold("install R 4.4.1"):
        assert guard.busy
        assert guard.active == "install R 4.4.1"
    assert not guard.busy
    assert guard.active is None


@pytest.mark.asyncio
async def test_second_holder_is_rejected_not_queued():
    guard = MutationGuard()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def first():
        async with guard.hold("switch to R 4.3.1"):
            entered.set()
            await release.wait()

    task = asyncio.create_task(first())
    await entered.wait()
    with pytest.raises(OperationInProgress) as excinfo:
        async with guard.hold("install R 4.4.1"):
            pass  # pragma: no cover
    release.set()
    await task

    assert excinfo.value.active == "switch to R 4.3.1"
    assert "already in progress" in str(excinfo.value)


@pytest.mark.asyncio
async def test_released_after_exception():
    guard = MutationGuard()
    with pytest.raises(RuntimeError):
        async with guard.hold("uninstall R 4.2.0"):
            raise RuntimeError("boom")
    assert not guard.busy
