from __future__ import annotations

import asyncio
import gc
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from smallbiz.application.exceptions import PortalUpstreamError
from smallbiz.application.utils.booking_request_cache import BookingRequestCache
from smallbiz.domain.entities.booking_request import BookingRequest, BookingStatus

BUSINESS_ID = uuid.UUID("6f1c2a8e-0000-4000-8000-000000000001")
NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _request(request_id: str) -> BookingRequest:
    return BookingRequest(request_id=request_id, business_id=str(BUSINESS_ID))


class CountingLoader:
    def __init__(self, results, delay: float = 0.0) -> None:
        self._results = list(results)
        self._delay = delay
        self.calls = 0

    async def __call__(self, business_id: uuid.UUID) -> list[BookingRequest]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, Exception):
            raise result
        return result


def test_concurrent_fetches_share_one_call():
    cache = BookingRequestCache(ttl_seconds=60)
    loader = CountingLoader([[_request("a")]], delay=0.05)

    async def run():
        return await asyncio.gather(
            cache.fetch(BUSINESS_ID, loader, NOW),
            cache.fetch(BUSINESS_ID, loader, NOW),
        )

    first, second = asyncio.run(run())

    assert loader.calls == 1
    assert first == second == [_request("a")]
    assert not cache.is_fetching(BUSINESS_ID)


def test_cancelled_caller_still_stores_result():
    cache = BookingRequestCache(ttl_seconds=60)
    loader = CountingLoader([[_request("a")]], delay=0.05)

    async def run():
        caller = asyncio.get_running_loop().create_task(cache.fetch(BUSINESS_ID, loader, NOW))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.1)

    asyncio.run(run())

    assert loader.calls == 1
    assert cache.requests_for(BUSINESS_ID) == [_request("a")]
    assert cache.get(BUSINESS_ID).fetched_at == NOW
    assert not cache.is_fetching(BUSINESS_ID)


def test_cancelled_caller_failure_is_retrieved():
    cache = BookingRequestCache(ttl_seconds=60)
    cache.put(BUSINESS_ID, [_request("old")], NOW - timedelta(minutes=5))
    loader = CountingLoader([PortalUpstreamError("boom", status_code=500)], delay=0.05)
    unhandled = []

    async def run():
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _, context: unhandled.append(context))
        caller = loop.create_task(cache.fetch(BUSINESS_ID, loader, NOW))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.1)
        gc.collect()

    asyncio.run(run())

    assert unhandled == []
    assert cache.requests_for(BUSINESS_ID) == [_request("old")]
    assert not cache.is_fetching(BUSINESS_ID)


def test_failed_fetch_keeps_previous_entry():
    cache = BookingRequestCache(ttl_seconds=60)
    cache.put(BUSINESS_ID, [_request("old")], NOW - timedelta(minutes=5))
    loader = CountingLoader([PortalUpstreamError("boom", status_code=500)])

    result = asyncio.run(cache.fetch(BUSINESS_ID, loader, NOW))

    assert result == [_request("old")]
    assert cache.get(BUSINESS_ID).fetched_at == NOW - timedelta(minutes=5)


def test_failed_fetch_without_entry_is_empty():
    cache = BookingRequestCache()
    loader = CountingLoader([RuntimeError("offline")])

    assert asyncio.run(cache.fetch(BUSINESS_ID, loader, NOW)) == []
    assert cache.get(BUSINESS_ID) is None


def test_ttl_expiry():
    cache = BookingRequestCache(ttl_seconds=60)
    assert cache.is_expired(BUSINESS_ID, NOW)

    cache.put(BUSINESS_ID, [_request("a")], NOW)

    assert not cache.is_expired(BUSINESS_ID, NOW + timedelta(seconds=60))
    assert cache.is_expired(BUSINESS_ID, NOW + timedelta(seconds=61))


def test_get_or_fetch_uses_fresh_entry():
    cache = BookingRequestCache(ttl_seconds=60)
    loader = CountingLoader([[_request("a")], [_request("b")]])

    async def run():
        first = await cache.get_or_fetch(BUSINESS_ID, loader, NOW)
        cached = await cache.get_or_fetch(BUSINESS_ID, loader, NOW + timedelta(seconds=30))
        forced = await cache.get_or_fetch(BUSINESS_ID, loader, NOW + timedelta(seconds=30), force=True)
        return first, cached, forced

    first, cached, forced = asyncio.run(run())

    assert loader.calls == 2
    assert first == cached == [_request("a")]
    assert forced == [_request("b")]


def test_eviction_drops_least_recently_fetched():
    cache = BookingRequestCache(max_entries=2)
    ids = [uuid.uuid4() for _ in range(3)]
    for offset, business_id in enumerate(ids):
        cache.put(business_id, [], NOW + timedelta(seconds=offset))

    assert cache.get(ids[0]) is None
    assert cache.get(ids[1]) is not None
    assert cache.get(ids[2]) is not None


def test_update_request_keeps_fetch_time():
    cache = BookingRequestCache()
    cache.put(BUSINESS_ID, [_request("a"), _request("b")], NOW)

    updated = cache.update_request(BUSINESS_ID, "b", lambda r: r.with_status(BookingStatus.approved))

    assert updated.status == BookingStatus.approved
    assert [r.status for r in cache.requests_for(BUSINESS_ID)] == [BookingStatus.pending, BookingStatus.approved]
    assert cache.get(BUSINESS_ID).fetched_at == NOW
    assert cache.update_request(BUSINESS_ID, "missing", lambda r: r) is None
