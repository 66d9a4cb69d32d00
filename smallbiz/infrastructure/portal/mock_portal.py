from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime

from smallbiz.application.exceptions import PortalUpstreamError
from smallbiz.application.ports.portal_backend import EstimateStatusResult, PortalBackendPort
from smallbiz.domain.entities.booking_request import BookingRequest, BookingStatus


class MockPortalBackend(PortalBackendPort):
    """In-memory portal for local runs and tests."""

    def __init__(self, fetch_delay_seconds: float = 0.0) -> None:
        self._requests: dict[uuid.UUID, list[BookingRequest]] = {}
        self._statuses: dict[str, EstimateStatusResult] = {}
        self._failing_estimates: set[str] = set()
        self._fail_booking_fetch = False
        self._fetch_delay_seconds = fetch_delay_seconds
        self.booking_fetch_count = 0
        self.status_fetch_count = 0
        self.decisions: list[tuple[str, str, str]] = []
        self._logger = logging.getLogger(__name__)

    def set_booking_requests(self, business_id: uuid.UUID, requests: list[BookingRequest]) -> None:
        self._requests[business_id] = list(requests)

    def set_estimate_status(self, estimate_id: uuid.UUID | str, status: str, decided_at: datetime | None = None) -> None:
        normalized = status.strip().lower() or "draft"
        self._statuses[str(estimate_id).lower()] = EstimateStatusResult(status=normalized, decided_at=decided_at)

    def fail_estimate(self, estimate_id: uuid.UUID | str) -> None:
        self._failing_estimates.add(str(estimate_id).lower())

    def fail_booking_fetch(self, failing: bool = True) -> None:
        self._fail_booking_fetch = failing

    async def fetch_booking_requests(self, business_id: uuid.UUID) -> list[BookingRequest]:
        self.booking_fetch_count += 1
        if self._fetch_delay_seconds:
            await asyncio.sleep(self._fetch_delay_seconds)
        if self._fail_booking_fetch:
            raise PortalUpstreamError("Mock portal booking fetch failure", status_code=503)
        return list(self._requests.get(business_id, []))

    async def fetch_estimate_status(self, business_id: str, estimate_id: str) -> EstimateStatusResult:
        self.status_fetch_count += 1
        key = estimate_id.lower()
        if key in self._failing_estimates:
            raise PortalUpstreamError("Mock portal estimate status failure", status_code=500)
        return self._statuses.get(key, EstimateStatusResult(status="draft", decided_at=None))

    async def approve_booking_request(self, business_id: uuid.UUID, request_id: str) -> None:
        self._decide(business_id, request_id, BookingStatus.approved)

    async def decline_booking_request(self, business_id: uuid.UUID, request_id: str) -> None:
        self._decide(business_id, request_id, BookingStatus.declined)

    def _decide(self, business_id: uuid.UUID, request_id: str, status: BookingStatus) -> None:
        self.decisions.append((str(business_id), request_id, status.value))
        requests = self._requests.get(business_id, [])
        self._requests[business_id] = [
            r.with_status(status) if r.request_id == request_id else r for r in requests
        ]
        self._logger.info(
            "Mock booking decision",
            extra={"business_id": str(business_id), "request_id": request_id, "status": status.value},
        )
