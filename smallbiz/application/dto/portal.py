from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from smallbiz.domain.entities.booking_request import BookingRequest, BookingStatus

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _lookup(data: dict[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    return data.get(_snake(key))


def _as_string(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    return None


_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _as_int(value: Any) -> int | None:
    """Integers the portal can actually send (64-bit). Anything else reads as missing."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if _INT64_MIN <= value <= _INT64_MAX else None
    if isinstance(value, float):
        if value != value or abs(value) == float("inf"):
            return None
        return _as_int(int(value))
    if isinstance(value, str):
        trimmed = value.strip()
        try:
            return _as_int(int(trimmed))
        except ValueError:
            pass
        try:
            return _as_int(float(trimmed))
        except ValueError:
            return None
    return None


def _first_string(data: dict[str, Any], *keys: str) -> str | None:
    """First value among keys that is a non-blank string (numbers are stringified)."""
    for key in keys:
        value = _as_string(_lookup(data, key))
        if value is not None and value.strip():
            return value
    return None


def _first_int(data: dict[str, Any], *keys: str) -> int | None:
    for key in keys:
        value = _as_int(_lookup(data, key))
        if value is not None:
            return value
    return None


class BookingRequestDTO(BaseModel):
    """
    Booking request as served by the portal admin API.
    The backend has shipped several key spellings over time; all of them are accepted here
    so the rest of the code only ever sees one shape.
    """

    model_config = ConfigDict(extra="ignore")

    request_id: str
    business_id: str
    slug: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    requested_start: str | None = None
    requested_end: str | None = None
    service_type: str | None = None
    notes: str | None = None
    status: str = "pending"
    created_at_ms: int | None = None
    approved_at_ms: int | None = None
    declined_at_ms: int | None = None
    booking_total_amount_cents: int | None = None
    deposit_amount_cents: int | None = None
    deposit_invoice_id: str | None = None
    deposit_paid_at_ms: int | None = None
    final_invoice_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _resolve_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            "request_id": _first_string(data, "requestId", "id", "bookingRequestId"),
            "business_id": _first_string(data, "businessId", "businessID"),
            "slug": _first_string(data, "slug"),
            "client_name": _first_string(data, "clientName", "customerName"),
            "client_email": _first_string(data, "clientEmail", "customerEmail"),
            "client_phone": _first_string(data, "clientPhone", "customerPhone"),
            "requested_start": _first_string(data, "requestedStart", "requestedStartAt", "startAt"),
            "requested_end": _first_string(data, "requestedEnd", "requestedEndAt", "endAt"),
            "service_type": _first_string(data, "serviceType", "serviceName"),
            "notes": _first_string(data, "notes", "message"),
            "status": _first_string(data, "status") or "pending",
            "created_at_ms": _first_int(data, "createdAtMs", "createdAt"),
            "approved_at_ms": _first_int(data, "approvedAtMs", "approvedAt"),
            "declined_at_ms": _first_int(data, "declinedAtMs", "declinedAt"),
            "booking_total_amount_cents": _first_int(data, "bookingTotalAmountCents"),
            "deposit_amount_cents": _first_int(data, "depositAmountCents"),
            "deposit_invoice_id": _first_string(data, "depositInvoiceId"),
            "deposit_paid_at_ms": _first_int(data, "depositPaidAtMs"),
            "final_invoice_id": _first_string(data, "finalInvoiceId"),
        }

    def to_domain(self) -> BookingRequest:
        return BookingRequest(
            request_id=self.request_id,
            business_id=self.business_id,
            status=BookingStatus.parse(self.status),
            slug=self.slug,
            client_name=self.client_name,
            client_email=self.client_email,
            client_phone=self.client_phone,
            requested_start=self.requested_start,
            requested_end=self.requested_end,
            service_type=self.service_type,
            notes=self.notes,
            created_at_ms=self.created_at_ms,
            approved_at_ms=self.approved_at_ms,
            declined_at_ms=self.declined_at_ms,
            booking_total_amount_cents=self.booking_total_amount_cents,
            deposit_amount_cents=self.deposit_amount_cents,
            deposit_invoice_id=self.deposit_invoice_id,
            deposit_paid_at_ms=self.deposit_paid_at_ms,
            final_invoice_id=self.final_invoice_id,
        )


class BookingRequestsEnvelopeDTO(BaseModel):
    requests: list[dict[str, Any]]


class EstimateStatusDTO(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: str | None = None
    decided_at: str | int | float | None = Field(default=None, alias="decidedAt")
    accepted_at: str | int | float | None = Field(default=None, alias="acceptedAt")
    declined_at: str | int | float | None = Field(default=None, alias="declinedAt")
    updated_at: str | int | float | None = Field(default=None, alias="updatedAt")

    def normalized_status(self) -> str:
        return (self.status or "").strip().lower() or "draft"
