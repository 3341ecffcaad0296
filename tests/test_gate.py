from __future__ import annotations

import asyncio

import pytest

from fidelity_converter.errors import ResourceGateTimeout
from fidelity_converter.gate import CONVERSION, FILE_ACCESS, ResourceGate


def build_gate(conversion: int = 2, file_access: int = 5) -> ResourceGate:
    return ResourceGate({CONVERSION: conversion, FILE_ACCESS: file_access})


def test_third_acquisition_waits_for_a_release() -> None:
    async def scenario() -> None:
        gate = build_gate(conversion=2)
        first = await gate.acquire(CONVERSION)
        second = await gate.acquire(CONVERSION)
        third = asyncio.create_task(gate.acquire(CONVERSION))
        await asyncio.sleep(0.05)
        assert not third.done()
        stats = gate.stats().pools[CONVERSION]
        assert stats.available == 0
        assert stats.waiting == 1

        first.release()
        lock = await asyncio.wait_for(third, 1.0)
        assert lock.resource == CONVERSION
        assert lock.wait_ms > 0
        second.release()
        lock.release()
        assert gate.stats().pools[CONVERSION].available == 2

    asyncio.run(scenario())


def test_acquire_times_out_without_leaking_slots() -> None:
    async def scenario() -> None:
        gate = build_gate(conversion=1)
        held = await gate.acquire(CONVERSION)
        with pytest.raises(ResourceGateTimeout) as exc:
            await gate.acquire(CONVERSION, timeout=0.05)
        assert exc.value.code == "GATE_TIMEOUT"
        assert "busy" in exc.value.message
        stats = gate.stats().pools[CONVERSION]
        assert stats.waiting == 0
        assert stats.available == 0
        held.release()
        assert gate.stats().pools[CONVERSION].available == 1

    asyncio.run(scenario())


def test_release_is_idempotent() -> None:
    async def scenario() -> None:
        gate = build_gate(conversion=2)
        lock = await gate.acquire(CONVERSION)
        assert gate.release(lock) is True
        assert gate.release(lock) is False
        assert lock.release() is False
        assert gate.stats().pools[CONVERSION].available == 2

    asyncio.run(scenario())


def test_hold_releases_when_the_protected_operation_raises() -> None:
    async def scenario() -> None:
        gate = build_gate(conversion=1)
        with pytest.raises(RuntimeError):
            async with gate.hold(CONVERSION):
                raise RuntimeError("boom")
        assert gate.stats().pools[CONVERSION].available == 1

    asyncio.run(scenario())


def test_concurrent_cycles_respect_the_bound() -> None:
    async def scenario() -> None:
        gate = build_gate(conversion=2)
        active = 0
        peak = 0

        async def worker(index: int) -> None:
            nonlocal active, peak
            async with gate.hold(CONVERSION):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.001)
                active -= 1
                if index % 3 == 0:
                    raise ValueError(index)

        results = await asyncio.gather(*(worker(i) for i in range(30)), return_exceptions=True)
        assert sum(isinstance(result, ValueError) for result in results) == 10
        assert peak == 2
        stats = gate.stats().pools[CONVERSION]
        assert stats.available == 2
        assert stats.waiting == 0

    asyncio.run(scenario())


def test_keyed_sub_lock_serializes_the_same_key_only() -> None:
    async def scenario() -> None:
        gate = build_gate(file_access=5)
        first = await gate.acquire(FILE_ACCESS, key="report.pdf")
        other = await gate.acquire(FILE_ACCESS, key="summary.pdf", timeout=0.05)
        with pytest.raises(ResourceGateTimeout) as exc:
            await gate.acquire(FILE_ACCESS, key="report.pdf", timeout=0.05)
        assert exc.value.key == "report.pdf"

        stats = gate.stats()
        assert stats.pools[FILE_ACCESS].available == 3
        assert stats.resources["file-access:report.pdf"].available == 0
        assert stats.resources["file-access:summary.pdf"].available == 0

        first.release()
        other.release()
        again = await gate.acquire(FILE_ACCESS, key="report.pdf", timeout=0.05)
        again.release()
        assert gate.stats().pools[FILE_ACCESS].available == 5

    asyncio.run(scenario())


def test_sub_lock_with_higher_concurrency() -> None:
    async def scenario() -> None:
        gate = build_gate(file_access=5)
        locks = [await gate.acquire(FILE_ACCESS, key="shared", max_concurrency=2) for _ in range(2)]
        with pytest.raises(ResourceGateTimeout):
            await gate.acquire(FILE_ACCESS, key="shared", max_concurrency=2, timeout=0.02)
        for lock in locks:
            lock.release()
        assert gate.stats().resources["file-access:shared"].capacity == 2

    asyncio.run(scenario())


@pytest.mark.parametrize("value", [0, -1, True, 1.5])
def test_invalid_max_concurrency_is_rejected(value) -> None:
    async def scenario() -> None:
        gate = build_gate()
        with pytest.raises(ValueError):
            await gate.acquire(FILE_ACCESS, key="a", max_concurrency=value)

    asyncio.run(scenario())


def test_unknown_kind_and_negative_timeout_are_rejected() -> None:
    async def scenario() -> None:
        gate = build_gate()
        with pytest.raises(ValueError):
            await gate.acquire("render")
        with pytest.raises(ValueError):
            await gate.acquire(CONVERSION, timeout=-1)

    asyncio.run(scenario())


def test_invalid_pool_capacity_is_rejected() -> None:
    with pytest.raises(ValueError):
        ResourceGate({CONVERSION: 0})


def test_stats_serialize() -> None:
    gate = build_gate(conversion=3)
    payload = gate.stats().to_dict()
    assert payload["pools"][CONVERSION] == {"capacity": 3, "available": 3, "waiting": 0}
    assert payload["resources"] == {}


def test_idle_gate_can_be_reused_from_a_new_event_loop() -> None:
    gate = build_gate(conversion=1)

    async def contend() -> None:
        first = await gate.acquire(CONVERSION)
        waiter = asyncio.create_task(gate.acquire(CONVERSION, timeout=1.0))
        await asyncio.sleep(0.01)
        first.release()
        (await waiter).release()

    asyncio.run(contend())
    asyncio.run(contend())
    assert gate.stats().pools[CONVERSION].available == 1
