"""Tests for per-design commit locks."""
import asyncio

import pytest

from cartcommit.domain.cart.orchestrator import DesignLocks


@pytest.mark.asyncio
async def test_holders_of_same_design_are_serialized():
    locks = DesignLocks()
    events = []

    async def commit(name):
        async with locks.hold("d1"):
            events.append(f"{name}:start")
            await asyncio.sleep(0.01)
            events.append(f"{name}:end")

    await asyncio.gather(commit("a"), commit("b"))

    assert events == ["a:start", "a:end", "b:start", "b:end"]


@pytest.mark.asyncio
async def test_entry_dropped_once_released():
    locks = DesignLocks()

    async with locks.hold("d1"):
        async with locks.hold("d2"):
            assert len(locks) == 2
        assert len(locks) == 1

    assert len(locks) == 0


@pytest.mark.asyncio
async def test_entry_kept_while_someone_waits():
    locks = DesignLocks()
    release = asyncio.Event()

    async def first():
        async with locks.hold("d1"):
            await release.wait()

    async def second():
        async with locks.hold("d1"):
            pass

    tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
    await asyncio.sleep(0)
    assert len(locks) == 1

    release.set()
    await asyncio.gather(*tasks)
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_entry_dropped_when_body_raises():
    locks = DesignLocks()

    with pytest.raises(RuntimeError):
        async with locks.hold("d1"):
            raise RuntimeError("boom")

    assert len(locks) == 0
