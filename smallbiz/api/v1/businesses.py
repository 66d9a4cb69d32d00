import uuid

from fastapi import APIRouter, Depends, HTTPException, Query

from smallbiz.api.v1.schemas import (
    AnalyticsSnapshotSchema,
    BookingDecisionResponseSchema,
    BookingRequestSchema,
    DashboardMetricsSchema,
)
from smallbiz.application.exceptions import (
    PortalConfigurationError,
    PortalContractError,
    PortalUpstreamError,
)
from smallbiz.application.ports.document_store import DocumentStorePort
from smallbiz.application.use_cases.booking_analytics import BookingAnalyticsEngine
from smallbiz.application.use_cases.booking_requests import BookingRequestsUseCase
from smallbiz.application.use_cases.dashboard_metrics import DashboardMetricsVM
from smallbiz.domain.entities.analytics import AnalyticsDetailFilter, AnalyticsRange, DetailFilterKind
from smallbiz.domain.entities.business_calendar import BusinessCalendar
from smallbiz.wiring.dependencies import (
    get_booking_requests_use_case,
    get_calendar,
    get_dashboard_vm,
    get_document_store,
)

router = APIRouter(prefix="/businesses/{business_id}")


async def _snapshot(
    business_id: uuid.UUID,
    time_range: AnalyticsRange,
    force_remote: bool,
    bookings: BookingRequestsUseCase,
    store: DocumentStorePort,
    calendar: BusinessCalendar,
):
    requests = await bookings.list_requests(business_id, force_remote=force_remote)
    return BookingAnalyticsEngine.build_snapshot(
        booking_requests=requests,
        invoices=store.list_invoices(business_id),
        jobs=store.list_jobs(business_id),
        business_id=business_id,
        time_range=time_range,
        calendar=calendar,
    )


@router.get("/analytics", response_model=AnalyticsSnapshotSchema)
async def analytics(
    business_id: uuid.UUID,
    time_range: AnalyticsRange = Query(AnalyticsRange.days30, alias="range"),
    force_remote: bool = False,
    bookings: BookingRequestsUseCase = Depends(get_booking_requests_use_case),
    store: DocumentStorePort = Depends(get_document_store),
    calendar: BusinessCalendar = Depends(get_calendar),
):
    snapshot = await _snapshot(business_id, time_range, force_remote, bookings, store, calendar)
    return AnalyticsSnapshotSchema.from_domain(snapshot)


@router.get("/analytics/bookings", response_model=list[BookingRequestSchema])
async def analytics_bookings(
    business_id: uuid.UUID,
    time_range: AnalyticsRange = Query(AnalyticsRange.days30, alias="range"),
    kind: DetailFilterKind = Query(DetailFilterKind.all, alias="filter"),
    service: str | None = None,
    bookings: BookingRequestsUseCase = Depends(get_booking_requests_use_case),
    store: DocumentStorePort = Depends(get_document_store),
    calendar: BusinessCalendar = Depends(get_calendar),
):
    if kind == DetailFilterKind.service_type:
        if not service or not service.strip():
            raise HTTPException(status_code=400, detail="service is required for the service_type filter")
        detail_filter = AnalyticsDetailFilter.for_service(service)
    else:
        detail_filter = AnalyticsDetailFilter(kind=kind)

    snapshot = await _snapshot(business_id, time_range, False, bookings, store, calendar)
    return [BookingRequestSchema.from_domain(b) for b in BookingAnalyticsEngine.detail_list(snapshot, detail_filter)]


@router.get("/dashboard", response_model=DashboardMetricsSchema)
async def dashboard(
    business_id: uuid.UUID,
    force_remote: bool = False,
    vm: DashboardMetricsVM = Depends(get_dashboard_vm),
    store: DocumentStorePort = Depends(get_document_store),
):
    metrics = await vm.refresh(
        invoices=store.list_invoices(business_id),
        jobs=store.list_jobs(business_id),
        business_id=business_id,
        force_remote=force_remote,
    )
    return DashboardMetricsSchema.from_domain(metrics)


@router.get("/booking-requests", response_model=list[BookingRequestSchema])
async def booking_requests(
    business_id: uuid.UUID,
    force_remote: bool = False,
    bookings: BookingRequestsUseCase = Depends(get_booking_requests_use_case),
):
    requests = await bookings.list_requests(business_id, force_remote=force_remote)
    return [BookingRequestSchema.from_domain(r) for r in requests]


@router.post("/booking-requests/{request_id}/approve", response_model=BookingDecisionResponseSchema)
async def approve_booking_request(
    business_id: uuid.UUID,
    request_id: str,
    bookings: BookingRequestsUseCase = Depends(get_booking_requests_use_case),
):
    try:
        updated = await bookings.approve(business_id, request_id)
    except PortalConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except (PortalUpstreamError, PortalContractError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return BookingDecisionResponseSchema(
        request_id=request_id,
        status="approved",
        request=BookingRequestSchema.from_domain(updated) if updated else None,
    )


@router.post("/booking-requests/{request_id}/decline", response_model=BookingDecisionResponseSchema)
async def decline_booking_request(
    business_id: uuid.UUID,
    request_id: str,
    bookings: BookingRequestsUseCase = Depends(get_booking_requests_use_case),
):
    try:
        updated = await bookings.decline(business_id, request_id)
    except PortalConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except (PortalUpstreamError, PortalContractError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return BookingDecisionResponseSchema(
        request_id=request_id,
        status="declined",
        request=BookingRequestSchema.from_domain(updated) if updated else None,
    )
