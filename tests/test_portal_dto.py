from __future__ import annotations

import pytest
from pydantic import ValidationError

from smallbiz.application.dto.portal import BookingRequestDTO, EstimateStatusDTO
from smallbiz.domain.entities.booking_request import BookingStatus


def test_booking_request_camel_case_payload():
    request = BookingRequestDTO.model_validate(
        {
            "requestId": "req-1",
            "businessId": "6F1C2A8E-0000-4000-8000-000000000001",
            "clientName": "Ana",
            "requestedStart": "2024-06-10T09:30:00Z",
            "serviceType": "Haircut",
            "status": "Deposit_Paid",
            "createdAtMs": 1718011800000,
            "depositAmountCents": "5000",
            "depositPaidAtMs": 1718015400000.0,
        }
    ).to_domain()

    assert request.request_id == "req-1"
    assert request.client_name == "Ana"
    assert request.service_type == "Haircut"
    assert request.status == BookingStatus.deposit_paid
    assert request.created_at_ms == 1718011800000
    assert request.deposit_amount_cents == 5000
    assert request.deposit_paid_at_ms == 1718015400000


def test_booking_request_legacy_keys():
    request = BookingRequestDTO.model_validate(
        {
            "id": "req-2",
            "business_id": "biz",
            "customerName": "Bo",
            "startAt": 1718011800,
            "serviceName": "Color",
            "message": "Please call first",
        }
    ).to_domain()

    assert request.request_id == "req-2"
    assert request.business_id == "biz"
    assert request.client_name == "Bo"
    assert request.requested_start == "1718011800"
    assert request.service_type == "Color"
    assert request.notes == "Please call first"
    assert request.status == BookingStatus.pending


def test_booking_request_integers_outside_int64_are_missing():
    request = BookingRequestDTO.model_validate(
        {
            "requestId": "r",
            "businessId": "b",
            "createdAtMs": 10**400,
            "depositAmountCents": str(2**63),
            "depositPaidAtMs": "1e400",
        }
    ).to_domain()
    edge = BookingRequestDTO.model_validate(
        {"requestId": "r", "businessId": "b", "createdAtMs": 2**63 - 1}
    ).to_domain()

    assert request.created_at_ms is None
    assert request.deposit_amount_cents is None
    assert request.deposit_paid_at_ms is None
    assert edge.created_at_ms == 2**63 - 1


def test_booking_request_unknown_status():
    request = BookingRequestDTO.model_validate(
        {"requestId": "r", "businessId": "b", "status": "rescheduled"}
    ).to_domain()

    assert request.status == BookingStatus.unknown


def test_booking_request_requires_id():
    with pytest.raises(ValidationError):
        BookingRequestDTO.model_validate({"businessId": "b"})


def test_estimate_status_defaults_to_draft():
    assert EstimateStatusDTO.model_validate({}).normalized_status() == "draft"
    assert EstimateStatusDTO.model_validate({"status": "  "}).normalized_status() == "draft"
    assert EstimateStatusDTO.model_validate({"status": " Accepted "}).normalized_status() == "accepted"


def test_estimate_status_date_aliases():
    decoded = EstimateStatusDTO.model_validate(
        {"status": "declined", "declinedAt": "2024-06-10T09:30:00Z", "updatedAt": 1718011800000}
    )

    assert decoded.decided_at is None
    assert decoded.declined_at == "2024-06-10T09:30:00Z"
    assert decoded.updated_at == 1718011800000
