import asyncio

import pytest

from ams.core.errors import RemoteError
from ams.services import filter_state
from ams.services.coordinator import DebouncedQueryCoordinator, FetchReason, QueryState

DELAY = 0.02

BASE = filter_state.default_filter_state()


async def wait_for(condition, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def searching(text):
    return filter_state.update(BASE, "search_query", text)


@pytest.mark.asyncio
async def test_rapid_changes_issue_one_fetch_with_final_state():
    calls = []

    async def fetch(filters):
        calls.append(filters)
        return [filters.search_query]

    settled = []
    coordinator = DebouncedQueryCoordinator(
        fetch, BASE, delay=DELAY, on_settled=lambda items, reason: settled.append((items, reason))
    )

    for text in ("q", "qu", "qui", "quiz"):
        coordinator.submit(searching(text))
        await asyncio.sleep(DELAY / 4)

    await coordinator.wait_settled()

    assert calls == [searching("quiz")]
    assert coordinator.state == QueryState.SETTLED
    assert coordinator.items == ("quiz",)
    assert settled == [(("quiz",), FetchReason.FILTERS)]


@pytest.mark.asyncio
async def test_stale_response_is_discarded():
    release_first = asyncio.Event()
    calls, completed, settled = [], [], []

    async def fetch(filters):
        calls.append(filters.search_query)
        if filters.search_query == "a":
            await release_first.wait()
        completed.append(filters.search_query)
        return [filters.search_query]

    coordinator = DebouncedQueryCoordinator(
        fetch, BASE, delay=DELAY, on_settled=lambda items, reason: settled.append(items)
    )

    coordinator.submit(searching("a"))
    await wait_for(lambda: coordinator.state == QueryState.IN_FLIGHT)

    coordinator.submit(searching("b"))
    await wait_for(lambda: coordinator.state == QueryState.SETTLED)
    assert coordinator.items == ("b",)

    release_first.set()
    await coordinator.wait_settled()

    # the older fetch ran to completion but its result was never applied
    assert completed == ["b", "a"]
    assert coordinator.items == ("b",)
    assert settled == [("b",)]


@pytest.mark.asyncio
async def test_remote_error_keeps_previous_items():
    fail = False
    notices = []

    async def fetch(filters):
        if fail:
            raise RemoteError("connection reset")
        return [1, 2, 3]

    coordinator = DebouncedQueryCoordinator(
        fetch, BASE, delay=DELAY, on_error=notices.append, error_notice="Failed to load assessments"
    )

    coordinator.submit(BASE)
    await coordinator.wait_settled()
    assert coordinator.items == (1, 2, 3)

    fail = True
    coordinator.submit(searching("x"))
    await coordinator.wait_settled()

    assert coordinator.state == QueryState.ERROR
    assert coordinator.items == (1, 2, 3)
    assert coordinator.notice == "Failed to load assessments"
    assert notices == ["Failed to load assessments"]

    fail = False
    coordinator.refresh()
    await coordinator.wait_settled()
    assert coordinator.state == QueryState.SETTLED
    assert coordinator.notice is None


@pytest.mark.asyncio
async def test_refresh_reason_is_reported():
    reasons = []

    async def fetch(filters):
        return []

    coordinator = DebouncedQueryCoordinator(
        fetch, BASE, delay=DELAY, on_settled=lambda items, reason: reasons.append(reason)
    )
    coordinator.submit(BASE)
    await coordinator.wait_settled()

    coordinator.refresh()
    await coordinator.wait_settled()

    assert reasons == [FetchReason.FILTERS, FetchReason.REFRESH]


@pytest.mark.asyncio
async def test_refresh_during_pending_user_change_keeps_filters_reason():
    reasons = []

    async def fetch(filters):
        return []

    coordinator = DebouncedQueryCoordinator(
        fetch, BASE, delay=DELAY, on_settled=lambda items, reason: reasons.append(reason)
    )
    coordinator.submit(searching("lab"))
    coordinator.refresh()
    await coordinator.wait_settled()

    assert coordinator.fetch_count == 1
    assert reasons == [FetchReason.FILTERS]


@pytest.mark.asyncio
async def test_close_cancels_pending_timer():
    calls = []

    async def fetch(filters):
        calls.append(filters)
        return []

    coordinator = DebouncedQueryCoordinator(fetch, BASE, delay=DELAY)
    coordinator.submit(BASE)
    coordinator.close()
    await asyncio.sleep(DELAY * 3)

    assert calls == []
    assert coordinator.closed


@pytest.mark.asyncio
async def test_result_arriving_after_close_is_dropped():
    gate = asyncio.Event()
    settled = []

    async def fetch(filters):
        await gate.wait()
        return ["late"]

    coordinator = DebouncedQueryCoordinator(
        fetch, BASE, delay=DELAY, on_settled=lambda items, reason: settled.append(items)
    )
    coordinator.submit(BASE)
    await wait_for(lambda: coordinator.state == QueryState.IN_FLIGHT)

    coordinator.close()
    gate.set()
    await asyncio.sleep(DELAY)

    assert coordinator.items == ()
    assert settled == []


@pytest.mark.asyncio
async def test_unexpected_fetch_failure_moves_to_error():
    notices = []

    async def fetch(filters):
        raise KeyError("course_code")

    coordinator = DebouncedQueryCoordinator(fetch, BASE, delay=DELAY, on_error=notices.append)
    coordinator.submit(BASE)
    await coordinator.wait_settled()

    assert coordinator.state == QueryState.ERROR
    assert coordinator.items == ()
    assert notices == ["Failed to load results"]
