from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx
from pydantic import ValidationError

from smallbiz.application.dto.portal import BookingRequestDTO, BookingRequestsEnvelopeDTO, EstimateStatusDTO
from smallbiz.application.exceptions import (
    PortalConfigurationError,
    PortalContractError,
    PortalUpstreamError,
)
from smallbiz.application.ports.portal_backend import EstimateStatusResult, PortalBackendPort
from smallbiz.application.utils.date_parser import parse_portal_date
from smallbiz.core.config import settings
from smallbiz.domain.entities.booking_request import BookingRequest


def portal_id(value: uuid.UUID | str) -> str:
    """The portal keys records by upper-case UUID strings."""
    return str(value).strip().upper()


class PortalBackendClient(PortalBackendPort):
    def __init__(
        self,
        base_url: str | None = None,
        admin_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.PORTAL_BASE_URL).rstrip("/")
        self._admin_key = admin_key if admin_key is not None else settings.PORTAL_ADMIN_KEY
        self._client = client or httpx.AsyncClient(timeout=timeout or settings.PORTAL_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

    def _require_admin_key(self) -> str:
        key = (self._admin_key or "").strip()
        if not key:
            raise PortalConfigurationError("PORTAL_ADMIN_KEY is required for portal admin calls")
        return key

    async def _request(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, url, params=params, json=payload, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error("Portal request failed", extra={"path": path, "error": str(e)})
            raise PortalUpstreamError(f"Portal request to {path} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            self._logger.error(
                "Portal backend error",
                extra={"path": path, "status": resp.status_code, "body": resp.text[:500]},
            )
            raise PortalUpstreamError(
                f"Portal backend HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return resp

    @staticmethod
    def _decode_json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise PortalContractError(f"Portal backend returned non-JSON body: {resp.text[:200]}") from e

    async def fetch_booking_requests(self, business_id: uuid.UUID) -> list[BookingRequest]:
        key = self._require_admin_key()
        self._logger.info("Fetch booking requests", extra={"business_id": str(business_id)})
        resp = await self._request(
            "GET",
            "/api/booking/admin/requests",
            headers={"x-admin-key": key},
            params={"businessId": portal_id(business_id)},
        )
        data = self._decode_json(resp)
        try:
            if isinstance(data, dict):
                data = BookingRequestsEnvelopeDTO.model_validate(data).requests
            if not isinstance(data, list):
                raise PortalContractError("Booking requests response is neither a list nor an envelope")
            return [BookingRequestDTO.model_validate(item).to_domain() for item in data]
        except ValidationError as e:
            raise PortalContractError(f"Booking requests decode failed: {e}") from e

    async def fetch_estimate_status(self, business_id: str, estimate_id: str) -> EstimateStatusResult:
        key = self._require_admin_key()
        resp = await self._request(
            "GET",
            "/api/portal/estimate/status",
            headers={"x-portal-admin": key},
            params={"businessId": portal_id(business_id), "estimateId": portal_id(estimate_id)},
        )
        data = self._decode_json(resp)
        try:
            decoded = EstimateStatusDTO.model_validate(data)
        except ValidationError as e:
            raise PortalContractError(f"Estimate status decode failed: {e}") from e

        decided_at = (
            parse_portal_date(decoded.decided_at)
            or parse_portal_date(decoded.accepted_at)
            or parse_portal_date(decoded.declined_at)
            or parse_portal_date(decoded.updated_at)
        )
        return EstimateStatusResult(status=decoded.normalized_status(), decided_at=decided_at)

    async def approve_booking_request(self, business_id: uuid.UUID, request_id: str) -> None:
        await self._send_booking_decision("/api/booking/admin/approve", business_id, request_id)

    async def decline_booking_request(self, business_id: uuid.UUID, request_id: str) -> None:
        await self._send_booking_decision("/api/booking/admin/decline", business_id, request_id)

    async def _send_booking_decision(self, path: str, business_id: uuid.UUID, request_id: str) -> None:
        key = self._require_admin_key()
        await self._request(
            "POST",
            path,
            headers={"x-admin-key": key, "Content-Type": "application/json"},
            payload={"businessId": portal_id(business_id), "requestId": request_id},
        )
        self._logger.info(
            "Booking decision sent",
            extra={"path": path, "business_id": str(business_id), "request_id": request_id},
        )

    async def aclose(self) -> None:
        await self._client.aclose()
