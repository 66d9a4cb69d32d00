from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from smallbiz.domain.entities.booking_request import BookingRequest
from smallbiz.domain.entities.business_calendar import BusinessCalendar


class AnalyticsRange(str, Enum):
    days7 = "days7"
    days30 = "days30"
    days90 = "days90"
    ytd = "ytd"

    @property
    def short_label(self) -> str:
        return {
            AnalyticsRange.days7: "7D",
            AnalyticsRange.days30: "30D",
            AnalyticsRange.days90: "90D",
            AnalyticsRange.ytd: "YTD",
        }[self]

    @property
    def subtitle(self) -> str:
        return {
            AnalyticsRange.days7: "last 7 days",
            AnalyticsRange.days30: "last 30 days",
            AnalyticsRange.days90: "last 90 days",
            AnalyticsRange.ytd: "year to date",
        }[self]

    @property
    def uses_weekly_buckets(self) -> bool:
        return self in (AnalyticsRange.days90, AnalyticsRange.ytd)

    def period_start(self, now: datetime, calendar: BusinessCalendar) -> datetime:
        if self == AnalyticsRange.ytd:
            return calendar.start_of_year(now)
        days = {AnalyticsRange.days7: 7, AnalyticsRange.days30: 30, AnalyticsRange.days90: 90}[self]
        return calendar.add_days(now, -days)


class DetailFilterKind(str, Enum):
    all = "all"
    pending = "pending"
    approved = "approved"
    declined = "declined"
    deposit_requested = "deposit_requested"
    deposit_paid = "deposit_paid"
    service_type = "service_type"


@dataclass(frozen=True)
class AnalyticsDetailFilter:
    kind: DetailFilterKind = DetailFilterKind.all
    service_name: str | None = None  # only for service_type

    @classmethod
    def for_service(cls, name: str) -> "AnalyticsDetailFilter":
        return cls(kind=DetailFilterKind.service_type, service_name=name)


@dataclass(frozen=True)
class TrendPoint:
    date: datetime
    requests: int
    approved: int


@dataclass(frozen=True)
class FunnelRow:
    id: str
    title: str
    count: int
    ratio: float


@dataclass(frozen=True)
class ServiceStat:
    id: str
    name: str
    count: int
    ratio: float


@dataclass(frozen=True)
class AnalyticsDelta:
    requests: int
    approved: int
    declined: int
    deposit_requested: int
    deposits_paid: int
    revenue_cents: int


@dataclass(frozen=True)
class AnalyticsSnapshot:
    range: AnalyticsRange
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

    trend: list[TrendPoint] = field(default_factory=list)
    funnel: list[FunnelRow] = field(default_factory=list)
    top_services: list[ServiceStat] = field(default_factory=list)
    recent_activity: list[BookingRequest] = field(default_factory=list)
    in_range_bookings: list[BookingRequest] = field(default_factory=list)

    delta: AnalyticsDelta | None = None
