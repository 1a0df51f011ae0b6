"""Tests for the in-flight request table."""

import asyncio

import pytest

from clarity.content.single_flight import SingleFlight


async def test_concurrent_callers_share_one_call():
    flights = SingleFlight()
    calls = 0
    gate = asyncio.Event()

    async def work():
        nonlocal calls
        calls += 1
        await gate.wait()
        return "done"

    tasks = [asyncio.create_task(flights.do("k", work)) for _ in range(3)]
    await asyncio.sleep(0)
    assert "k" in flights
    gate.set()

    assert await asyncio.gather(*tasks) == ["done", "done", "done"]
    assert calls == 1
    assert len(flights) == 0


async def test_sequential_calls_run_again():
    flights = SingleFlight()
    calls = 0

    async def work():
        nonlocal calls
        calls += 1
        return calls

    assert await flights.do("k", work) == 1
    assert await flights.do("k", work) == 2


async def test_cancelled_waiter_does_not_cancel_shared_task():
    flights = SingleFlight()
    gate = asyncio.Event()

    async def work():
        await gate.wait()
        return 42

    first = asyncio.create_task(flights.do("k", work))
    second = asyncio.create_task(flights.do("k", work))
    await asyncio.sleep(0)

    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    gate.set()
    assert await second == 42


async def test_errors_reach_every_waiter():
    flights = SingleFlight()

    async def work():
        await asyncio.sleep(0)
        raise ValueError("bad")

    results = await asyncio.gather(
        flights.do("k", work), flights.do("k", work), return_exceptions=True
    )

    assert all(isinstance(r, ValueError) for r in results)
    assert "k" not in flights
