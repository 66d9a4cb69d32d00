from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class BookingStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"
    deposit_requested = "deposit_requested"
    deposit_paid = "deposit_paid"
    unknown = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "BookingStatus":
        """Normalize a backend status string. Missing means pending; anything unrecognized is unknown."""
        normalized = (raw or "").strip().lower()
        if not normalized:
            return cls.pending
        try:
            return cls(normalized)
        except ValueError:
            return cls.unknown


@dataclass(frozen=True)
class BookingRequest:
    request_id: str
    business_id: str
    status: BookingStatus = BookingStatus.pending
    slug: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    requested_start: str | None = None  # ISO-8601 or numeric epoch, as sent by the portal
    requested_end: str | None = None
    service_type: str | None = None
    notes: str | None = None
    created_at_ms: int | None = None
    approved_at_ms: int | None = None
    declined_at_ms: int | None = None
    booking_total_amount_cents: int | None = None
    deposit_amount_cents: int | None = None
    deposit_invoice_id: str | None = None
    deposit_paid_at_ms: int | None = None
    final_invoice_id: str | None = None

    def with_status(self, status: BookingStatus) -> "BookingRequest":
        return replace(self, status=status)
