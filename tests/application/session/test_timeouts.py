import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from cadence.application.session import InMemorySessionStore, InactivityTimers


@pytest.mark.asyncio
async def test_timer_fires_once_with_its_key():
    on_expire = AsyncMock()
    timers = InactivityTimers(0.01, on_expire)

    timers.arm("s1")
    assert timers.is_armed("s1")
    await asyncio.sleep(0.1)
    await timers.drain()

    on_expire.assert_awaited_once_with("s1")
    assert not timers.is_armed("s1")


@pytest.mark.asyncio
async def test_rearming_replaces_pending_timer():
    on_expire = AsyncMock()
    timers = InactivityTimers(0.1, on_expire)

    timers.arm("s1")
    await asyncio.sleep(0.06)
    timers.arm("s1")
    await asyncio.sleep(0.06)
    on_expire.assert_not_awaited()

    await asyncio.sleep(0.2)
    await timers.drain()
    on_expire.assert_awaited_once_with("s1")


@pytest.mark.asyncio
async def test_disarm_is_idempotent():
    on_expire = AsyncMock()
    timers = InactivityTimers(0.01, on_expire)

    timers.disarm("never-armed")
    timers.arm("s1")
    timers.disarm("s1")
    timers.disarm("s1")
    await asyncio.sleep(0.05)

    on_expire.assert_not_awaited()

    # Disarming after the timer fired is also a no-op
    timers.arm("s2")
    await asyncio.sleep(0.05)
    await timers.drain()
    timers.disarm("s2")
    on_expire.assert_awaited_once_with("s2")


@pytest.mark.asyncio
async def test_cancel_all():
    on_expire = AsyncMock()
    timers = InactivityTimers(0.01, on_expire)
    for key in ("a", "b", "c"):
        timers.arm(key)

    timers.cancel_all()
    await asyncio.sleep(0.05)

    on_expire.assert_not_awaited()
    assert not any(timers.is_armed(k) for k in ("a", "b", "c"))


@pytest.mark.asyncio
async def test_failing_expiry_is_logged(caplog):
    on_expire = AsyncMock(side_effect=RuntimeError("store offline"))
    timers = InactivityTimers(0.01, on_expire)

    with caplog.at_level(logging.ERROR, logger="cadence.application.session.timeouts"):
        timers.arm("s1")
        await asyncio.sleep(0.05)
        await timers.drain()
        # done callbacks run on the next loop iteration
        await asyncio.sleep(0)

    assert "Session expiry failed" in caplog.text


@pytest.mark.asyncio
async def test_session_store_locks_are_per_session():
    store = InMemorySessionStore()

    assert store.lock("a") is store.lock("a")
    assert store.lock("a") is not store.lock("b")

    async with store.lock("a"):
        assert store.lock("a").locked()
        assert not store.lock("b").locked()


def test_session_store_delete_is_safe_for_unknown_ids():
    store = InMemorySessionStore()
    store.delete("missing")
    assert store.get("missing") is None
    assert store.ids() == []
