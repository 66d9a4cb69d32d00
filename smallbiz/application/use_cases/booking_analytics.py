from __future__ import annotations

import uuid
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from smallbiz.application.utils.date_parser import (
    DISTANT_PAST,
    epoch_to_datetime,
    parse_booking_start,
)
from smallbiz.domain.entities.analytics import (
    AnalyticsDelta,
    AnalyticsDetailFilter,
    AnalyticsRange,
    AnalyticsSnapshot,
    DetailFilterKind,
    FunnelRow,
    ServiceStat,
    TrendPoint,
)
from smallbiz.domain.entities.booking_request import BookingRequest, BookingStatus
from smallbiz.domain.entities.business_calendar import BusinessCalendar
from smallbiz.domain.entities.invoice import DocumentType, Invoice
from smallbiz.domain.entities.job import Job

RECENT_ACTIVITY_LIMIT = 8
TOP_SERVICES_LIMIT = 5
UNSPECIFIED_SERVICE = "Unspecified"


def parse_business_id(raw: str | None) -> uuid.UUID | None:
    """Portal business ids are UUID strings. Anything unparsable matches no business."""
    if not raw:
        return None
    try:
        return uuid.UUID(raw.strip())
    except (ValueError, AttributeError, TypeError):
        return None


def safe_rate(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def normalize_service_name(raw: str | None) -> str:
    trimmed = (raw or "").strip()
    return trimmed or UNSPECIFIED_SERVICE


@dataclass(frozen=True)
class _WindowTotals:
    total_requests: int
    approved_count: int
    declined_count: int
    deposit_requested_count: int
    deposits_paid_count: int
    deposit_revenue_cents: int
    paid_invoice_revenue_cents: int

    @property
    def total_revenue_cents(self) -> int:
        return max(0, self.deposit_revenue_cents) + max(0, self.paid_invoice_revenue_cents)


class BookingAnalyticsEngine:
    """
    Reduces booking requests and invoices into a dashboard snapshot.

    Pure: no I/O, no shared state. The same inputs (including `now`) always give the same snapshot.
    Records with unparsable dates or business ids are excluded, never raised on.
    """

    @staticmethod
    def booking_date(booking: BookingRequest) -> datetime:
        """
        Resolve when a booking happened: creation epoch first, then the requested start
        (ISO-8601 or numeric epoch). Unresolvable bookings sort as the distant past.
        """
        if booking.created_at_ms is not None and booking.created_at_ms > 0:
            resolved = epoch_to_datetime(booking.created_at_ms)
            if resolved is not None:
                return resolved
        resolved = parse_booking_start(booking.requested_start)
        if resolved is not None:
            return resolved
        return DISTANT_PAST

    @staticmethod
    def has_deposit_requested(booking: BookingRequest) -> bool:
        if booking.status in (BookingStatus.deposit_requested, BookingStatus.deposit_paid):
            return True
        if (booking.deposit_invoice_id or "").strip():
            return True
        return (booking.deposit_amount_cents or 0) > 0

    @staticmethod
    def has_deposit_paid(booking: BookingRequest) -> bool:
        if booking.deposit_paid_at_ms is not None:
            return True
        return booking.status == BookingStatus.deposit_paid

    @classmethod
    def matches_filter(cls, booking: BookingRequest, detail_filter: AnalyticsDetailFilter) -> bool:
        kind = detail_filter.kind
        if kind == DetailFilterKind.all:
            return True
        if kind == DetailFilterKind.pending:
            return booking.status == BookingStatus.pending
        if kind == DetailFilterKind.approved:
            return booking.status == BookingStatus.approved
        if kind == DetailFilterKind.declined:
            return booking.status == BookingStatus.declined
        if kind == DetailFilterKind.deposit_requested:
            return cls.has_deposit_requested(booking)
        if kind == DetailFilterKind.deposit_paid:
            return cls.has_deposit_paid(booking)
        return normalize_service_name(booking.service_type) == normalize_service_name(detail_filter.service_name)

    @classmethod
    def detail_list(cls, snapshot: AnalyticsSnapshot, detail_filter: AnalyticsDetailFilter) -> list[BookingRequest]:
        """In-range bookings matching a drill-down filter, newest first."""
        matching = [b for b in snapshot.in_range_bookings if cls.matches_filter(b, detail_filter)]
        return sorted(matching, key=cls.booking_date, reverse=True)

    @classmethod
    def build_snapshot(
        cls,
        booking_requests: Sequence[BookingRequest],
        invoices: Sequence[Invoice],
        jobs: Sequence[Job],
        business_id: uuid.UUID,
        time_range: AnalyticsRange,
        now: datetime | None = None,
        calendar: BusinessCalendar | None = None,
    ) -> AnalyticsSnapshot:
        # jobs: reserved for job-derived metrics.
        calendar = calendar or BusinessCalendar()
        now = calendar.localize(now) if now is not None else datetime.now(calendar.timezone)
        start = time_range.period_start(now, calendar)

        business_bookings = cls._for_business(booking_requests, business_id)
        in_range = [b for b in business_bookings if start <= cls.booking_date(b) <= now]

        totals = cls._window_totals(in_range, invoices, business_id, start, now, include_end=True, calendar=calendar)
        pending_count = sum(1 for b in in_range if b.status == BookingStatus.pending)

        recent_activity = sorted(in_range, key=cls.booking_date, reverse=True)[:RECENT_ACTIVITY_LIMIT]

        return AnalyticsSnapshot(
            range=time_range,
            generated_at=now,
            total_requests=totals.total_requests,
            pending_count=pending_count,
            approved_count=totals.approved_count,
            declined_count=totals.declined_count,
            deposit_requested_count=totals.deposit_requested_count,
            deposits_paid_count=totals.deposits_paid_count,
            conversion_rate=safe_rate(totals.approved_count, totals.total_requests),
            deposit_conversion_rate=safe_rate(totals.deposits_paid_count, totals.deposit_requested_count),
            deposit_revenue_cents=max(0, totals.deposit_revenue_cents),
            paid_invoice_revenue_cents=max(0, totals.paid_invoice_revenue_cents),
            total_revenue_cents=max(0, totals.total_revenue_cents),
            trend=cls._build_trend(in_range, time_range, start, now, calendar),
            funnel=cls._build_funnel(totals),
            top_services=cls._build_top_services(in_range),
            recent_activity=recent_activity,
            in_range_bookings=in_range,
            delta=cls._build_delta(business_bookings, invoices, business_id, start, now, totals, calendar),
        )

    @staticmethod
    def _for_business(bookings: Iterable[BookingRequest], business_id: uuid.UUID) -> list[BookingRequest]:
        return [b for b in bookings if parse_business_id(b.business_id) == business_id]

    @classmethod
    def _window_totals(
        cls,
        bookings: Sequence[BookingRequest],
        invoices: Sequence[Invoice],
        business_id: uuid.UUID,
        start: datetime,
        end: datetime,
        include_end: bool,
        calendar: BusinessCalendar,
    ) -> _WindowTotals:
        deposit_revenue = sum(
            max(0, b.deposit_amount_cents or 0) for b in bookings if cls.has_deposit_paid(b)
        )
        invoice_revenue = sum(
            max(0, invoice.total_cents)
            for invoice in invoices
            if cls._counts_as_booking_revenue(invoice, business_id, start, end, include_end, calendar)
        )
        return _WindowTotals(
            total_requests=len(bookings),
            approved_count=sum(1 for b in bookings if b.status == BookingStatus.approved),
            declined_count=sum(1 for b in bookings if b.status == BookingStatus.declined),
            deposit_requested_count=sum(1 for b in bookings if cls.has_deposit_requested(b)),
            deposits_paid_count=sum(1 for b in bookings if cls.has_deposit_paid(b)),
            deposit_revenue_cents=max(0, deposit_revenue),
            paid_invoice_revenue_cents=max(0, invoice_revenue),
        )

    @staticmethod
    def _counts_as_booking_revenue(
        invoice: Invoice,
        business_id: uuid.UUID,
        start: datetime,
        end: datetime,
        include_end: bool,
        calendar: BusinessCalendar,
    ) -> bool:
        if invoice.business_id != business_id:
            return False
        if invoice.document_type != DocumentType.invoice or not invoice.is_paid:
            return False
        if not invoice.has_booking_source:
            return False
        issued = calendar.localize(invoice.issue_date)
        if include_end:
            return start <= issued <= end
        return start <= issued < end

    @classmethod
    def _bucket(cls, value: datetime, weekly: bool, calendar: BusinessCalendar) -> datetime:
        if weekly:
            return calendar.start_of_week(value)
        return calendar.start_of_day(value)

    @classmethod
    def _build_trend(
        cls,
        bookings: Sequence[BookingRequest],
        time_range: AnalyticsRange,
        start: datetime,
        end: datetime,
        calendar: BusinessCalendar,
    ) -> list[TrendPoint]:
        weekly = time_range.uses_weekly_buckets
        requests: Counter[datetime] = Counter()
        approved: Counter[datetime] = Counter()
        for booking in bookings:
            bucket = cls._bucket(cls.booking_date(booking), weekly, calendar)
            requests[bucket] += 1
            if booking.status == BookingStatus.approved:
                approved[bucket] += 1

        step = 7 if weekly else 1
        points: list[TrendPoint] = []
        cursor = cls._bucket(start, weekly, calendar)
        end_bucket = cls._bucket(end, weekly, calendar)
        while cursor <= end_bucket:
            points.append(TrendPoint(date=cursor, requests=requests[cursor], approved=approved[cursor]))
            # Re-bucket after stepping so DST shifts never leave the cursor off midnight.
            cursor = cls._bucket(calendar.add_days(cursor, step) + timedelta(hours=12), weekly, calendar)
        return points

    @staticmethod
    def _build_funnel(totals: _WindowTotals) -> list[FunnelRow]:
        total = totals.total_requests
        return [
            FunnelRow(id="requests", title="Requests", count=total, ratio=1.0),
            FunnelRow(
                id="deposit_requested",
                title="Deposit Requested",
                count=totals.deposit_requested_count,
                ratio=safe_rate(totals.deposit_requested_count, total),
            ),
            FunnelRow(
                id="deposits_paid",
                title="Deposits Paid",
                count=totals.deposits_paid_count,
                ratio=safe_rate(totals.deposits_paid_count, total),
            ),
            FunnelRow(
                id="approved",
                title="Approved",
                count=totals.approved_count,
                ratio=safe_rate(totals.approved_count, total),
            ),
        ]

    @staticmethod
    def _build_top_services(bookings: Sequence[BookingRequest]) -> list[ServiceStat]:
        total = max(1, len(bookings))
        counts = Counter(normalize_service_name(b.service_type) for b in bookings)
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [
            ServiceStat(id=name, name=name, count=count, ratio=safe_rate(count, total))
            for name, count in ranked[:TOP_SERVICES_LIMIT]
        ]

    @classmethod
    def _build_delta(
        cls,
        business_bookings: Sequence[BookingRequest],
        invoices: Sequence[Invoice],
        business_id: uuid.UUID,
        current_start: datetime,
        now: datetime,
        current: _WindowTotals,
        calendar: BusinessCalendar,
    ) -> AnalyticsDelta | None:
        # Measured in UTC so the interval is real elapsed time across DST changes.
        current_start = current_start.astimezone(timezone.utc)
        interval = now.astimezone(timezone.utc) - current_start
        if interval <= timedelta(0):
            return None
        previous_start = current_start - interval
        previous_bookings = [
            b for b in business_bookings if previous_start <= cls.booking_date(b) < current_start
        ]
        previous = cls._window_totals(
            previous_bookings,
            invoices,
            business_id,
            previous_start,
            current_start,
            include_end=False,
            calendar=calendar,
        )
        return AnalyticsDelta(
            requests=current.total_requests - previous.total_requests,
            approved=current.approved_count - previous.approved_count,
            declined=current.declined_count - previous.declined_count,
            deposit_requested=current.deposit_requested_count - previous.deposit_requested_count,
            deposits_paid=current.deposits_paid_count - previous.deposits_paid_count,
            revenue_cents=current.total_revenue_cents - previous.total_revenue_cents,
        )
