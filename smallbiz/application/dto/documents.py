from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from smallbiz.application.utils.date_parser import ms_to_datetime, parse_iso8601
from smallbiz.domain.entities.client import Client
from smallbiz.domain.entities.estimate_decision import EstimateDecisionRecord
from smallbiz.domain.entities.invoice import DocumentType, EstimateStatus, Invoice, LineItem
from smallbiz.domain.entities.job import Job, JobStage

# v1 records had no paid_at; the paid date lived under paidAt / paidDate / paidAtMs, if anywhere.
INVOICE_SCHEMA_VERSION = 2


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _legacy_paid_at(data: dict[str, Any]) -> datetime | None:
    for key in ("paidAt", "paidDate", "paid_date"):
        raw = data.get(key)
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            parsed = parse_iso8601(raw)
            if parsed is not None:
                return parsed
    for key in ("paidAtMs", "paid_at_ms"):
        raw = data.get(key)
        try:
            value = float(raw) if raw is not None and not isinstance(raw, bool) else None
        except (OverflowError, TypeError, ValueError):
            value = None
        if value is not None and value > 0:
            return ms_to_datetime(value)
    return None


class LineItemDTO(BaseModel):
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0


class InvoiceRecordDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    schema_version: int = INVOICE_SCHEMA_VERSION
    id: uuid.UUID
    business_id: uuid.UUID
    invoice_number: str = ""
    issue_date: datetime
    due_date: datetime | None = None
    line_items: list[LineItemDTO] = Field(default_factory=list)
    tax_rate: float = 0.0
    discount_amount: float = 0.0
    is_paid: bool = False
    document_type: str = DocumentType.invoice.value
    estimate_status: str = EstimateStatus.draft.value
    estimate_accepted_at: datetime | None = None
    estimate_declined_at: datetime | None = None
    paid_at: datetime | None = None
    client_id: uuid.UUID | None = None
    job_id: uuid.UUID | None = None
    source_booking_request_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("paid_at") is not None:
            return data
        upgraded = dict(data)
        upgraded["paid_at"] = _legacy_paid_at(data)
        upgraded["schema_version"] = INVOICE_SCHEMA_VERSION
        return upgraded

    @field_validator("issue_date", "due_date", "estimate_accepted_at", "estimate_declined_at", "paid_at")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return _aware(value)

    def to_domain(self) -> Invoice:
        return Invoice(
            id=self.id,
            business_id=self.business_id,
            invoice_number=self.invoice_number,
            issue_date=self.issue_date,
            due_date=self.due_date,
            line_items=[
                LineItem(description=i.description, quantity=i.quantity, unit_price=i.unit_price)
                for i in self.line_items
            ],
            tax_rate=self.tax_rate,
            discount_amount=self.discount_amount,
            is_paid=self.is_paid,
            document_type=DocumentType.parse(self.document_type),
            estimate_status=EstimateStatus.parse(self.estimate_status) or EstimateStatus.draft,
            estimate_accepted_at=self.estimate_accepted_at,
            estimate_declined_at=self.estimate_declined_at,
            paid_at=self.paid_at,
            client_id=self.client_id,
            job_id=self.job_id,
            source_booking_request_id=self.source_booking_request_id,
        )

    @classmethod
    def from_domain(cls, invoice: Invoice) -> "InvoiceRecordDTO":
        return cls(
            id=invoice.id,
            business_id=invoice.business_id,
            invoice_number=invoice.invoice_number,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            line_items=[
                LineItemDTO(description=i.description, quantity=i.quantity, unit_price=i.unit_price)
                for i in invoice.line_items
            ],
            tax_rate=invoice.tax_rate,
            discount_amount=invoice.discount_amount,
            is_paid=invoice.is_paid,
            document_type=invoice.document_type.value,
            estimate_status=invoice.estimate_status.value,
            estimate_accepted_at=invoice.estimate_accepted_at,
            estimate_declined_at=invoice.estimate_declined_at,
            paid_at=invoice.paid_at,
            client_id=invoice.client_id,
            job_id=invoice.job_id,
            source_booking_request_id=invoice.source_booking_request_id,
        )


class JobRecordDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: uuid.UUID
    business_id: uuid.UUID
    client_id: uuid.UUID | None = None
    title: str = ""
    notes: str = ""
    start_date: datetime
    end_date: datetime | None = None
    location_name: str = ""
    status: str = "scheduled"
    stage: str = JobStage.booked.value
    source_booking_request_id: str | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return _aware(value)

    def to_domain(self) -> Job:
        return Job(
            id=self.id,
            business_id=self.business_id,
            client_id=self.client_id,
            title=self.title,
            notes=self.notes,
            start_date=self.start_date,
            end_date=self.end_date,
            location_name=self.location_name,
            status=self.status,
            stage=JobStage.parse(self.stage),
            source_booking_request_id=self.source_booking_request_id,
        )

    @classmethod
    def from_domain(cls, job: Job) -> "JobRecordDTO":
        return cls(
            id=job.id,
            business_id=job.business_id,
            client_id=job.client_id,
            title=job.title,
            notes=job.notes,
            start_date=job.start_date,
            end_date=job.end_date,
            location_name=job.location_name,
            status=job.status,
            stage=job.stage.value,
            source_booking_request_id=job.source_booking_request_id,
        )


class ClientRecordDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: uuid.UUID
    business_id: uuid.UUID
    name: str = ""
    email: str = ""
    phone: str = ""
    portal_enabled: bool = True

    def to_domain(self) -> Client:
        return Client(
            id=self.id,
            business_id=self.business_id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            portal_enabled=self.portal_enabled,
        )

    @classmethod
    def from_domain(cls, client: Client) -> "ClientRecordDTO":
        return cls(
            id=client.id,
            business_id=client.business_id,
            name=client.name,
            email=client.email,
            phone=client.phone,
            portal_enabled=client.portal_enabled,
        )


class DecisionRecordDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    estimate_id: str
    status: str
    decided_at_ms: int
    business_id: str = ""
    updated_at: float = 0.0

    def to_domain(self) -> EstimateDecisionRecord | None:
        status = EstimateStatus.parse(self.status)
        if status is None or not status.is_decision:
            return None
        return EstimateDecisionRecord(
            estimate_id=self.estimate_id,
            status=status,
            decided_at_ms=self.decided_at_ms,
            business_id=self.business_id,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_domain(cls, record: EstimateDecisionRecord) -> "DecisionRecordDTO":
        return cls(
            estimate_id=record.estimate_id,
            status=record.status.value,
            decided_at_ms=record.decided_at_ms,
            business_id=record.business_id,
            updated_at=record.updated_at,
        )
