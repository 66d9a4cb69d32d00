from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from smallbiz.application.ports.portal_backend import PortalBackendPort
from smallbiz.application.utils.booking_request_cache import BookingRequestCache
from smallbiz.domain.entities.booking_request import BookingRequest, BookingStatus


class BookingRequestsUseCase:
    """Booking request list and admin decisions. Decisions update the cached copy optimistically."""

    def __init__(self, portal: PortalBackendPort, cache: BookingRequestCache) -> None:
        self._portal = portal
        self._cache = cache
        self._logger = logging.getLogger(__name__)

    async def list_requests(
        self,
        business_id: uuid.UUID,
        force_remote: bool = False,
        now: datetime | None = None,
    ) -> list[BookingRequest]:
        now = now or datetime.now(timezone.utc)
        return await self._cache.get_or_fetch(
            business_id,
            self._portal.fetch_booking_requests,
            now,
            force=force_remote,
        )

    async def approve(self, business_id: uuid.UUID, request_id: str) -> BookingRequest | None:
        await self._portal.approve_booking_request(business_id, request_id)
        return self._mark(business_id, request_id, BookingStatus.approved)

    async def decline(self, business_id: uuid.UUID, request_id: str) -> BookingRequest | None:
        await self._portal.decline_booking_request(business_id, request_id)
        return self._mark(business_id, request_id, BookingStatus.declined)

    def _mark(self, business_id: uuid.UUID, request_id: str, status: BookingStatus) -> BookingRequest | None:
        updated = self._cache.update_request(business_id, request_id, lambda r: r.with_status(status))
        self._logger.info(
            "Booking request decision sent",
            extra={"business_id": str(business_id), "request_id": request_id, "status": status.value},
        )
        return updated
