from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from smallbiz.domain.entities.booking_request import BookingRequest

BookingRequestLoader = Callable[[uuid.UUID], Awaitable[list[BookingRequest]]]


@dataclass(frozen=True)
class BookingCacheEntry:
    requests: tuple[BookingRequest, ...]
    fetched_at: datetime


class BookingRequestCache:
    """
    Per-business cache of the last fetched booking request list.

    Entries expire `ttl_seconds` after their fetch. At most `max_entries` businesses are kept;
    the least recently fetched one is evicted first. Concurrent fetches for the same business
    share one in-flight task. A failed fetch leaves the previous entry in place.
    """

    def __init__(self, ttl_seconds: float = 60.0, max_entries: int = 32) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._entries: OrderedDict[uuid.UUID, BookingCacheEntry] = OrderedDict()
        self._in_flight: dict[uuid.UUID, asyncio.Task[list[BookingRequest]]] = {}
        self._logger = logging.getLogger(__name__)

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, business_id: uuid.UUID) -> BookingCacheEntry | None:
        return self._entries.get(business_id)

    def requests_for(self, business_id: uuid.UUID) -> list[BookingRequest]:
        entry = self._entries.get(business_id)
        return list(entry.requests) if entry else []

    def is_expired(self, business_id: uuid.UUID, now: datetime) -> bool:
        entry = self._entries.get(business_id)
        if entry is None:
            return True
        return (now - entry.fetched_at).total_seconds() > self._ttl_seconds

    def put(self, business_id: uuid.UUID, requests: list[BookingRequest], fetched_at: datetime) -> None:
        self._entries[business_id] = BookingCacheEntry(requests=tuple(requests), fetched_at=fetched_at)
        self._entries.move_to_end(business_id)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._logger.debug("Evicted booking cache entry", extra={"business_id": str(evicted)})

    def invalidate(self, business_id: uuid.UUID) -> None:
        self._entries.pop(business_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def is_fetching(self, business_id: uuid.UUID) -> bool:
        return business_id in self._in_flight

    def update_request(
        self,
        business_id: uuid.UUID,
        request_id: str,
        transform: Callable[[BookingRequest], BookingRequest],
    ) -> BookingRequest | None:
        """Apply a local (optimistic) change to one cached request. Keeps the entry's fetch time."""
        entry = self._entries.get(business_id)
        if entry is None:
            return None
        updated: BookingRequest | None = None
        requests: list[BookingRequest] = []
        for request in entry.requests:
            if request.request_id == request_id:
                request = transform(request)
                updated = request
            requests.append(request)
        if updated is not None:
            self._entries[business_id] = BookingCacheEntry(requests=tuple(requests), fetched_at=entry.fetched_at)
        return updated

    async def fetch(
        self,
        business_id: uuid.UUID,
        loader: BookingRequestLoader,
        now: datetime,
    ) -> list[BookingRequest]:
        """
        Fetch through `loader`, joining an in-flight fetch for the same business if one exists.
        Returns the fresh list, or the last cached list (possibly empty) if the fetch fails.
        The fetch task stores its own result, so it lands in the cache even if every caller is cancelled.
        """
        task = self._in_flight.get(business_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(loader(business_id))
            self._in_flight[business_id] = task
            task.add_done_callback(lambda done: self._finish_fetch(business_id, done, now))
        try:
            return list(await asyncio.shield(task))
        except Exception:
            return self.requests_for(business_id)

    def _finish_fetch(
        self,
        business_id: uuid.UUID,
        task: asyncio.Task[list[BookingRequest]],
        fetched_at: datetime,
    ) -> None:
        if self._in_flight.get(business_id) is task:
            del self._in_flight[business_id]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._logger.warning(
                "Booking request fetch failed, keeping cached data",
                extra={"business_id": str(business_id), "error": str(error)},
            )
            return
        self.put(business_id, task.result(), fetched_at)

    async def get_or_fetch(
        self,
        business_id: uuid.UUID,
        loader: BookingRequestLoader,
        now: datetime,
        force: bool = False,
    ) -> list[BookingRequest]:
        if force or self.is_expired(business_id, now):
            return await self.fetch(business_id, loader, now)
        return self.requests_for(business_id)
