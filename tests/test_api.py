from __future__ import annotations

import inspect
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from smallbiz.application.exceptions import PortalConfigurationError, PortalUpstreamError
from smallbiz.application.use_cases.booking_requests import BookingRequestsUseCase
from smallbiz.application.use_cases.dashboard_metrics import DashboardMetricsVM
from smallbiz.application.use_cases.estimate_acceptance import EstimateAcceptanceHandler
from smallbiz.application.use_cases.estimate_decisions import EstimateDecisionSync
from smallbiz.application.use_cases.estimate_portal_sync import EstimatePortalSyncService, EstimateSyncPoller
from smallbiz.application.utils.booking_request_cache import BookingRequestCache
from smallbiz.application.utils.date_parser import to_epoch_ms
from smallbiz.domain.entities.booking_request import BookingRequest, BookingStatus
from smallbiz.domain.entities.business_calendar import BusinessCalendar
from smallbiz.domain.entities.client import Client
from smallbiz.domain.entities.invoice import DocumentType, EstimateStatus, Invoice
from smallbiz.infrastructure.portal.mock_portal import MockPortalBackend
from smallbiz.infrastructure.store.memory_store import MemoryDecisionQueue, MemoryDocumentStore
from smallbiz.main import app
from smallbiz.wiring import dependencies

BUSINESS_ID = uuid.UUID("6f1c2a8e-0000-4000-8000-000000000001")


class FailingPortal(MockPortalBackend):
    def __init__(self, error: Exception) -> None:
        super().__init__()
        self._error = error

    async def approve_booking_request(self, business_id, request_id):
        raise self._error


@pytest.fixture
def env():
    portal = MockPortalBackend()
    store = MemoryDocumentStore()
    queue = MemoryDecisionQueue()
    cache = BookingRequestCache()
    calendar = BusinessCalendar()
    decisions = EstimateDecisionSync(store=store, queue=queue)
    service = EstimatePortalSyncService(
        portal=portal,
        store=store,
        decisions=decisions,
        acceptance=EstimateAcceptanceHandler(store=store),
    )
    poller = EstimateSyncPoller(service)

    state = {"portal": portal}
    app.dependency_overrides[dependencies.get_document_store] = lambda: store
    app.dependency_overrides[dependencies.get_calendar] = lambda: calendar
    app.dependency_overrides[dependencies.get_booking_requests_use_case] = lambda: BookingRequestsUseCase(
        portal=state["portal"], cache=cache
    )
    app.dependency_overrides[dependencies.get_dashboard_vm] = lambda: DashboardMetricsVM(
        portal=state["portal"], cache=cache, calendar=calendar
    )
    app.dependency_overrides[dependencies.get_estimate_sync_poller] = lambda: poller
    app.dependency_overrides[dependencies.get_decision_sync] = lambda: decisions

    yield {"portal": portal, "store": store, "queue": queue, "cache": cache, "state": state}

    app.dependency_overrides.clear()


def _recent_booking(request_id: str, **kwargs) -> BookingRequest:
    created = datetime.now(timezone.utc) - timedelta(days=1)
    return BookingRequest(
        request_id=request_id,
        business_id=str(BUSINESS_ID),
        created_at_ms=to_epoch_ms(created),
        **kwargs,
    )


def test_health():
    assert TestClient(app).get("/health").json() == {"status": "ok"}


def test_analytics_snapshot(env):
    env["portal"].set_booking_requests(
        BUSINESS_ID,
        [
            _recent_booking(
                "r1",
                status=BookingStatus.approved,
                service_type="Haircut",
                deposit_amount_cents=5000,
                deposit_paid_at_ms=to_epoch_ms(datetime.now(timezone.utc)),
            ),
            _recent_booking("r2"),
        ],
    )

    response = TestClient(app).get(f"/api/v1/businesses/{BUSINESS_ID}/analytics", params={"range": "days7"})

    assert response.status_code == 200
    body = response.json()
    assert body["range"] == "days7"
    assert body["range_label"] == "7D"
    assert body["total_requests"] == 2
    assert body["approved_count"] == 1
    assert body["deposit_revenue_cents"] == 5000
    assert body["conversion_rate"] == 0.5
    assert body["top_services"][0]["name"] == "Haircut"
    assert len(body["trend"]) == 8


def test_analytics_rejects_bad_input(env):
    client = TestClient(app)

    assert client.get("/api/v1/businesses/not-a-uuid/analytics").status_code == 422
    assert client.get(f"/api/v1/businesses/{BUSINESS_ID}/analytics", params={"range": "days365"}).status_code == 422
    missing_service = client.get(
        f"/api/v1/businesses/{BUSINESS_ID}/analytics/bookings", params={"filter": "service_type"}
    )
    assert missing_service.status_code == 400


def test_analytics_detail_list(env):
    env["portal"].set_booking_requests(
        BUSINESS_ID,
        [_recent_booking("r1", status=BookingStatus.approved), _recent_booking("r2", status=BookingStatus.declined)],
    )

    response = TestClient(app).get(
        f"/api/v1/businesses/{BUSINESS_ID}/analytics/bookings", params={"filter": "declined"}
    )

    assert response.status_code == 200
    assert [b["request_id"] for b in response.json()] == ["r2"]


def test_dashboard(env):
    env["portal"].set_booking_requests(
        BUSINESS_ID,
        [_recent_booking("r1", deposit_amount_cents=1200, deposit_paid_at_ms=to_epoch_ms(datetime.now(timezone.utc)))],
    )

    response = TestClient(app).get(f"/api/v1/businesses/{BUSINESS_ID}/dashboard")

    assert response.status_code == 200
    assert response.json()["weekly_paid_cents"] == 1200


def test_booking_request_approve_updates_cached_list(env):
    env["portal"].set_booking_requests(BUSINESS_ID, [_recent_booking("r1")])
    client = TestClient(app)
    client.get(f"/api/v1/businesses/{BUSINESS_ID}/booking-requests")

    response = client.post(f"/api/v1/businesses/{BUSINESS_ID}/booking-requests/r1/approve")

    assert response.status_code == 200
    assert response.json()["request"]["status"] == "approved"
    listed = client.get(f"/api/v1/businesses/{BUSINESS_ID}/booking-requests").json()
    assert listed[0]["status"] == "approved"
    assert env["portal"].booking_fetch_count == 1
    assert env["portal"].decisions == [(str(BUSINESS_ID), "r1", "approved")]


def test_booking_request_decline(env):
    response = TestClient(app).post(f"/api/v1/businesses/{BUSINESS_ID}/booking-requests/r9/decline")

    assert response.status_code == 200
    assert response.json() == {"request_id": "r9", "status": "declined", "request": None}


@pytest.mark.parametrize(
    "error,status_code",
    [
        (PortalUpstreamError("down", status_code=500), 502),
        (PortalConfigurationError("no key"), 503),
    ],
)
def test_booking_request_errors_map_to_http(env, error, status_code):
    env["state"]["portal"] = FailingPortal(error)

    response = TestClient(app).post(f"/api/v1/businesses/{BUSINESS_ID}/booking-requests/r1/approve")

    assert response.status_code == status_code


def test_estimate_sync_endpoint(env):
    store = env["store"]
    client_record = Client(business_id=BUSINESS_ID, name="Ana")
    store.save_client(client_record)
    estimate = Invoice(
        business_id=BUSINESS_ID,
        issue_date=datetime(2024, 6, 1, tzinfo=timezone.utc),
        document_type=DocumentType.estimate,
        estimate_status=EstimateStatus.sent,
        client_id=client_record.id,
    )
    store.save_invoice(estimate)
    env["portal"].set_estimate_status(estimate.id, "accepted")

    response = TestClient(app).post("/api/v1/estimates/sync")

    assert response.status_code == 200
    assert response.json() == {"checked": 1, "updated": 1, "failed": 0, "applied_before": 0, "applied_after": 0}
    assert store.get_invoice(estimate.id).estimate_status == EstimateStatus.accepted


def test_estimate_decision_link(env):
    estimate_id = uuid.uuid4()

    accepted = TestClient(app).post(
        "/portal/estimate-decision",
        json={"url": f"smallbizworkspace://estimate/{estimate_id}?status=declined&decidedAtMs=1718011800000"},
    )
    ignored = TestClient(app).post("/portal/estimate-decision", json={"url": "smallbizworkspace://settings"})

    assert accepted.status_code == 200
    assert accepted.json()["accepted"] is True
    assert accepted.json()["estimate_id"] == str(estimate_id)
    assert accepted.json()["decided_at_ms"] == 1718011800000
    assert ignored.json() == {
        "accepted": False,
        "estimate_id": None,
        "status": None,
        "decided_at_ms": None,
        "business_id": None,
    }
    assert len(env["queue"].list_records()) == 1


def test_routes_are_coroutines():
    endpoints = [route.endpoint for route in app.routes if isinstance(route, APIRoute)]

    assert endpoints
    assert all(inspect.iscoroutinefunction(endpoint) for endpoint in endpoints)
