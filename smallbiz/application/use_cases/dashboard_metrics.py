from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime

from smallbiz.application.ports.portal_backend import PortalBackendPort
from smallbiz.application.use_cases.booking_analytics import parse_business_id
from smallbiz.application.utils.booking_request_cache import BookingRequestCache
from smallbiz.application.utils.date_parser import ms_to_datetime
from smallbiz.domain.entities.booking_request import BookingRequest
from smallbiz.domain.entities.business_calendar import BusinessCalendar
from smallbiz.domain.entities.dashboard import DashboardMetrics
from smallbiz.domain.entities.invoice import Invoice
from smallbiz.domain.entities.job import Job


class DashboardMetricsService:
    @staticmethod
    def compute(
        invoices: Sequence[Invoice],
        jobs: Sequence[Job],
        booking_requests: Sequence[BookingRequest],
        business_id: uuid.UUID,
        now: datetime,
        calendar: BusinessCalendar,
    ) -> DashboardMetrics:
        """
        Paid totals for the last 7 days and the current calendar month, plus upcoming jobs.

        Invoice revenue is attributed to the invoice's paid date (issue date when unknown).
        Deposit revenue is attributed to the deposit's paid timestamp.
        """
        now = calendar.localize(now)
        weekly_start = calendar.add_days(now, -7)
        month_start, month_end = calendar.month_interval(now)

        def in_week(value: datetime) -> bool:
            return weekly_start <= value <= now

        def in_month(value: datetime) -> bool:
            return month_start <= value < month_end

        weekly = 0
        monthly = 0

        for invoice in invoices:
            if invoice.business_id != business_id or not invoice.is_paid or invoice.is_estimate:
                continue
            paid_date = invoice.resolved_paid_date()
            if paid_date is None:
                continue
            paid_date = calendar.localize(paid_date)
            amount = max(0, invoice.total_cents)
            if in_week(paid_date):
                weekly += amount
            if in_month(paid_date):
                monthly += amount

        for request in booking_requests:
            if parse_business_id(request.business_id) != business_id:
                continue
            amount = request.deposit_amount_cents or 0
            if amount <= 0 or request.deposit_paid_at_ms is None:
                continue
            paid_date = ms_to_datetime(request.deposit_paid_at_ms)
            if paid_date is None:
                continue
            if in_week(paid_date):
                weekly += amount
            if in_month(paid_date):
                monthly += amount

        upcoming = sum(
            1
            for job in jobs
            if job.business_id == business_id
            and calendar.localize(job.start_date) >= now
            and not job.is_completed
        )

        return DashboardMetrics(
            weekly_paid_cents=weekly,
            monthly_paid_cents=monthly,
            upcoming_job_count=upcoming,
        )


class DashboardMetricsVM:
    """
    Dashboard headline metrics for the active business.

    Booking requests come from the portal through a shared TTL cache. A refresh goes to the
    portal when forced, when the business changed, or when the cached list is stale; a failed
    fetch falls back to the cached list so the metrics go stale instead of dropping to zero.
    """

    def __init__(
        self,
        portal: PortalBackendPort,
        cache: BookingRequestCache,
        calendar: BusinessCalendar | None = None,
    ) -> None:
        self._portal = portal
        self._cache = cache
        self._calendar = calendar or BusinessCalendar()
        self._last_business_id: uuid.UUID | None = None
        self._metrics = DashboardMetrics()
        self._subscribers: list[Callable[[DashboardMetrics], None]] = []
        self._logger = logging.getLogger(__name__)

    @property
    def metrics(self) -> DashboardMetrics:
        return self._metrics

    @property
    def weekly_paid_cents(self) -> int:
        return self._metrics.weekly_paid_cents

    @property
    def monthly_paid_cents(self) -> int:
        return self._metrics.monthly_paid_cents

    @property
    def upcoming_job_count(self) -> int:
        return self._metrics.upcoming_job_count

    def subscribe(self, callback: Callable[[DashboardMetrics], None]) -> Callable[[], None]:
        """Register a listener for published metrics. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, metrics: DashboardMetrics) -> None:
        self._metrics = metrics
        for callback in list(self._subscribers):
            callback(metrics)

    async def refresh(
        self,
        invoices: Sequence[Invoice],
        jobs: Sequence[Job],
        business_id: uuid.UUID | None,
        force_remote: bool = False,
        now: datetime | None = None,
    ) -> DashboardMetrics:
        if business_id is None:
            self._last_business_id = None
            self._publish(DashboardMetrics())
            return self._metrics

        now = self._calendar.localize(now) if now is not None else datetime.now(self._calendar.timezone)
        business_changed = self._last_business_id != business_id
        self._last_business_id = business_id

        should_fetch = force_remote or business_changed or self._cache.is_expired(business_id, now)
        if should_fetch:
            booking_requests = await self._cache.fetch(business_id, self._portal.fetch_booking_requests, now)
        else:
            booking_requests = self._cache.requests_for(business_id)

        metrics = DashboardMetricsService.compute(
            invoices=invoices,
            jobs=jobs,
            booking_requests=booking_requests,
            business_id=business_id,
            now=now,
            calendar=self._calendar,
        )
        self._publish(metrics)
        self._logger.debug(
            "Dashboard metrics refreshed",
            extra={"business_id": str(business_id), "fetched": should_fetch},
        )
        return metrics
