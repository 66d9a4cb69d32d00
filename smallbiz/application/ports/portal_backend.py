from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from smallbiz.domain.entities.booking_request import BookingRequest


@dataclass(frozen=True)
class EstimateStatusResult:
    status: str  # normalized (trimmed, lower-cased); "draft" when the portal omits it
    decided_at: datetime | None = None


class PortalBackendPort(ABC):
    @abstractmethod
    async def fetch_booking_requests(self, business_id: uuid.UUID) -> list[BookingRequest]:
        """Fetch every booking request the portal holds for a business."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_estimate_status(self, business_id: str, estimate_id: str) -> EstimateStatusResult:
        raise NotImplementedError

    @abstractmethod
    async def approve_booking_request(self, business_id: uuid.UUID, request_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def decline_booking_request(self, business_id: uuid.UUID, request_id: str) -> None:
        raise NotImplementedError
