"""
Tests for the keyed single-flight guard.
"""

import asyncio

import pytest

from vault.single_flight import SingleFlight


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_execution():
    flight = SingleFlight()
    calls = 0
    release = asyncio.Event()

    async def work():
        nonlocal calls
        calls += 1
        await release.wait()
        return "done"

    first = asyncio.create_task(flight.run("k", work))
    await asyncio.sleep(0)
    second = asyncio.create_task(flight.run("k", work))
    await asyncio.sleep(0)
    assert flight.in_flight("k")

    release.set()

    assert await asyncio.gather(first, second) == ["done", "done"]
    assert calls == 1
    assert not flight.in_flight("k")


@pytest.mark.asyncio
async def test_joiners_receive_the_error():
    flight = SingleFlight()
    release = asyncio.Event()

    async def work():
        await release.wait()
        raise ValueError("boom")

    first = asyncio.create_task(flight.run("k", work))
    await asyncio.sleep(0)
    second = asyncio.create_task(flight.run("k", work))
    await asyncio.sleep(0)
    release.set()

    results = await asyncio.gather(first, second, return_exceptions=True)

    assert all(isinstance(result, ValueError) for result in results)


@pytest.mark.asyncio
async def test_different_keys_run_independently():
    flight = SingleFlight()
    calls = []

    async def work(key):
        calls.append(key)
        return key

    results = await asyncio.gather(
        flight.run("a", lambda: work("a")),
        flight.run("b", lambda: work("b")),
    )

    assert results == ["a", "b"]
    assert sorted(calls) == ["a", "b"]


@pytest.mark.asyncio
async def test_key_reusable_after_completion():
    flight = SingleFlight()
    counter = {"value": 0}

    async def work():
        counter["value"] += 1
        return counter["value"]

    assert await flight.run("k", work) == 1
    assert await flight.run("k", work) == 2


@pytest.mark.asyncio
async def test_owner_recorded_while_running():
    flight = SingleFlight()
    release = asyncio.Event()

    first = asyncio.create_task(flight.run("k", release.wait, owner="0xabc123"))
    await asyncio.sleep(0)
    joiner = asyncio.create_task(flight.run("k", release.wait, owner="0xother"))
    await asyncio.sleep(0)

    assert flight.owner_of("k") == "0xabc123"

    release.set()
    await asyncio.gather(first, joiner)

    assert flight.owner_of("k") is None
