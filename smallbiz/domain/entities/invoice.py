from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class DocumentType(str, Enum):
    invoice = "invoice"
    estimate = "estimate"

    @classmethod
    def parse(cls, raw: str | None) -> "DocumentType":
        normalized = (raw or "").strip().lower()
        return cls.estimate if normalized == cls.estimate.value else cls.invoice


class EstimateStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    declined = "declined"

    @classmethod
    def parse(cls, raw: str | None) -> "EstimateStatus | None":
        normalized = (raw or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return None

    @property
    def is_decision(self) -> bool:
        return self in (EstimateStatus.accepted, EstimateStatus.declined)


def to_cents(amount: float) -> int:
    """Dollars to cents, rounding half away from zero."""
    scaled = abs(amount) * 100.0
    cents = int(math.floor(scaled + 0.5))
    return -cents if amount < 0 else cents


@dataclass
class LineItem:
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class Invoice:
    business_id: uuid.UUID
    issue_date: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    invoice_number: str = ""
    due_date: datetime | None = None
    line_items: list[LineItem] = field(default_factory=list)
    tax_rate: float = 0.0
    discount_amount: float = 0.0
    is_paid: bool = False
    document_type: DocumentType = DocumentType.invoice
    # Estimate workflow
    estimate_status: EstimateStatus = EstimateStatus.draft
    estimate_accepted_at: datetime | None = None
    estimate_declined_at: datetime | None = None
    paid_at: datetime | None = None
    client_id: uuid.UUID | None = None
    job_id: uuid.UUID | None = None
    source_booking_request_id: str | None = None

    @property
    def is_estimate(self) -> bool:
        return self.document_type == DocumentType.estimate

    @property
    def subtotal(self) -> float:
        return sum(item.line_total for item in self.line_items)

    @property
    def discounted_subtotal(self) -> float:
        return max(0.0, self.subtotal - self.discount_amount)

    @property
    def tax_amount(self) -> float:
        return self.discounted_subtotal * self.tax_rate

    @property
    def total(self) -> float:
        return self.discounted_subtotal + self.tax_amount

    @property
    def total_cents(self) -> int:
        return to_cents(self.total)

    @property
    def has_booking_source(self) -> bool:
        return bool((self.source_booking_request_id or "").strip())

    def resolved_paid_date(self) -> datetime | None:
        """Date a paid invoice counts toward revenue. Falls back to the issue date."""
        if not self.is_paid:
            return None
        return self.paid_at or self.issue_date
