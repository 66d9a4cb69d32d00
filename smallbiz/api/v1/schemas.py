from datetime import datetime
from pydantic import BaseModel, Field

from smallbiz.domain.entities.analytics import AnalyticsRange, AnalyticsSnapshot
from smallbiz.domain.entities.booking_request import BookingRequest
from smallbiz.domain.entities.dashboard import DashboardMetrics


class BookingRequestSchema(BaseModel):
    request_id: str
    business_id: str
    status: str
    slug: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    requested_start: str | None = None
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

    @classmethod
    def from_domain(cls, request: BookingRequest) -> "BookingRequestSchema":
        return cls(
            request_id=request.request_id,
            business_id=request.business_id,
            status=request.status.value,
            slug=request.slug,
            client_name=request.client_name,
            client_email=request.client_email,
            client_phone=request.client_phone,
            requested_start=request.requested_start,
            requested_end=request.requested_end,
            service_type=request.service_type,
            notes=request.notes,
            created_at_ms=request.created_at_ms,
            approved_at_ms=request.approved_at_ms,
            declined_at_ms=request.declined_at_ms,
            booking_total_amount_cents=request.booking_total_amount_cents,
            deposit_amount_cents=request.deposit_amount_cents,
            deposit_invoice_id=request.deposit_invoice_id,
            deposit_paid_at_ms=request.deposit_paid_at_ms,
            final_invoice_id=request.final_invoice_id,
        )


class TrendPointSchema(BaseModel):
    date: datetime
    requests: int
    approved: int


class FunnelRowSchema(BaseModel):
    id: str
    title: str
    count: int
    ratio: float


class ServiceStatSchema(BaseModel):
    id: str
    name: str
    count: int
    ratio: float


class AnalyticsDeltaSchema(BaseModel):
    requests: int
    approved: int
    declined: int
    deposit_requested: int
    deposits_paid: int
    revenue_cents: int


class AnalyticsSnapshotSchema(BaseModel):
    range: AnalyticsRange
    range_label: str
    range_subtitle: str
    generated_at: datetime
    total_requests: int
    pending_count: int
    approved_count: int
    declined_count: int
    deposit_requested_count: int
    deposits_paid_count: int
    conversion_rate: float
    deposit_conversion_rate: float
    deposit_revenue_cents: int
    paid_invoice_revenue_cents: int
    total_revenue_cents: int
    trend: list[TrendPointSchema] = Field(default_factory=list)
    funnel: list[FunnelRowSchema] = Field(default_factory=list)
    top_services: list[ServiceStatSchema] = Field(default_factory=list)
    recent_activity: list[BookingRequestSchema] = Field(default_factory=list)
    delta: AnalyticsDeltaSchema | None = None

    @classmethod
    def from_domain(cls, snapshot: AnalyticsSnapshot) -> "AnalyticsSnapshotSchema":
        delta = snapshot.delta
        return cls(
            range=snapshot.range,
            range_label=snapshot.range.short_label,
            range_subtitle=snapshot.range.subtitle,
            generated_at=snapshot.generated_at,
            total_requests=snapshot.total_requests,
            pending_count=snapshot.pending_count,
            approved_count=snapshot.approved_count,
            declined_count=snapshot.declined_count,
            deposit_requested_count=snapshot.deposit_requested_count,
            deposits_paid_count=snapshot.deposits_paid_count,
            conversion_rate=snapshot.conversion_rate,
            deposit_conversion_rate=snapshot.deposit_conversion_rate,
            deposit_revenue_cents=snapshot.deposit_revenue_cents,
            paid_invoice_revenue_cents=snapshot.paid_invoice_revenue_cents,
            total_revenue_cents=snapshot.total_revenue_cents,
            trend=[TrendPointSchema(date=p.date, requests=p.requests, approved=p.approved) for p in snapshot.trend],
            funnel=[FunnelRowSchema(id=r.id, title=r.title, count=r.count, ratio=r.ratio) for r in snapshot.funnel],
            top_services=[
                ServiceStatSchema(id=s.id, name=s.name, count=s.count, ratio=s.ratio) for s in snapshot.top_services
            ],
            recent_activity=[BookingRequestSchema.from_domain(b) for b in snapshot.recent_activity],
            delta=(
                AnalyticsDeltaSchema(
                    requests=delta.requests,
                    approved=delta.approved,
                    declined=delta.declined,
                    deposit_requested=delta.deposit_requested,
                    deposits_paid=delta.deposits_paid,
                    revenue_cents=delta.revenue_cents,
                )
                if delta else None
            ),
        )


class DashboardMetricsSchema(BaseModel):
    weekly_paid_cents: int
    monthly_paid_cents: int
    upcoming_job_count: int

    @classmethod
    def from_domain(cls, metrics: DashboardMetrics) -> "DashboardMetricsSchema":
        return cls(
            weekly_paid_cents=metrics.weekly_paid_cents,
            monthly_paid_cents=metrics.monthly_paid_cents,
            upcoming_job_count=metrics.upcoming_job_count,
        )


class BookingDecisionResponseSchema(BaseModel):
    request_id: str
    status: str
    request: BookingRequestSchema | None = None


class SyncReportSchema(BaseModel):
    checked: int
    updated: int
    failed: int
    applied_before: int
    applied_after: int


class EstimateDecisionLinkSchema(BaseModel):
    url: str = Field(min_length=1)


class EstimateDecisionResponseSchema(BaseModel):
    accepted: bool
    estimate_id: str | None = None
    status: str | None = None
    decided_at_ms: int | None = None
    business_id: str | None = None
