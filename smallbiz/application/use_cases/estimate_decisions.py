from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from urllib.parse import parse_qs, urlsplit

from smallbiz.application.ports.decision_queue import DecisionQueuePort
from smallbiz.application.ports.document_store import DocumentStorePort
from smallbiz.application.utils.date_parser import ms_to_datetime, parse_epoch_ms, to_epoch_ms
from smallbiz.domain.entities.estimate_decision import DecisionPayload, EstimateDecisionRecord
from smallbiz.domain.entities.invoice import EstimateStatus, Invoice


def normalize_decision(status: str | None) -> EstimateStatus | None:
    """Only accepted/declined are decisions; everything else is ignored."""
    parsed = EstimateStatus.parse(status)
    if parsed is None or not parsed.is_decision:
        return None
    return parsed


def set_estimate_decision(estimate: Invoice, status: str | EstimateStatus, decided_at_ms: int) -> bool:
    """Apply a decision to an estimate in place. Returns False when status is not a decision."""
    normalized = normalize_decision(status.value if isinstance(status, EstimateStatus) else status)
    if normalized is None:
        return False
    estimate.estimate_status = normalized
    decided_at = ms_to_datetime(decided_at_ms)
    if normalized == EstimateStatus.accepted:
        estimate.estimate_accepted_at = decided_at
        estimate.estimate_declined_at = None
    else:
        estimate.estimate_declined_at = decided_at
        estimate.estimate_accepted_at = None
    return True


def _parse_uuid(raw: str | None) -> uuid.UUID | None:
    if not raw:
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        return None


class EstimateDecisionSync:
    """
    Local decision queue for estimates.

    Decisions can arrive out of band (portal return deep link) while the matching estimate
    is not loaded yet or the device is offline. They are queued and replayed into the
    document store whenever `apply_pending_decisions` runs.
    """

    def __init__(
        self,
        store: DocumentStorePort,
        queue: DecisionQueuePort,
        deep_link_scheme: str = "smallbizworkspace",
    ) -> None:
        self._store = store
        self._queue = queue
        self._deep_link_scheme = deep_link_scheme.lower()
        self._logger = logging.getLogger(__name__)

    def upsert_decision(
        self,
        business_id: str,
        estimate_id: str,
        status: str,
        decided_at_ms: int,
    ) -> EstimateDecisionRecord | None:
        normalized = normalize_decision(status)
        if normalized is None:
            return None
        record = EstimateDecisionRecord(
            estimate_id=estimate_id,
            status=normalized,
            decided_at_ms=decided_at_ms,
            business_id=business_id,
            updated_at=time.time(),
        )
        self._queue.upsert(record)
        return record

    def apply_pending_decisions(self) -> int:
        """Replay queued decisions into local estimates. Applied entries leave the queue."""
        records = self._queue.list_records()
        if not records:
            return 0

        by_estimate: dict[str, EstimateDecisionRecord] = {}
        for record in records:
            # list_records is newest first; keep the newest per estimate
            by_estimate.setdefault(record.estimate_id.lower(), record)

        applied = 0
        for estimate in self._store.list_estimates():
            record = by_estimate.get(str(estimate.id).lower())
            if record is None or not record.matches_business(estimate.business_id):
                continue
            if set_estimate_decision(estimate, record.status, record.decided_at_ms):
                self._store.save_invoice(estimate)
                applied += 1
            self._queue.remove(record.estimate_id)

        if applied:
            self._logger.info("Applied queued estimate decisions", extra={"applied": applied})
        return applied

    def parse_decision_url(self, url: str) -> DecisionPayload | None:
        """
        Parse a portal return link, e.g.
        smallbizworkspace://estimate/<id>?status=accepted&businessId=<uuid>&decidedAtMs=<ms>
        smallbizworkspace://portal/estimate/<id>?status=declined
        https://portal.example.com/estimate/<id>?status=accepted
        """
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            return None
        query = parse_qs(parts.query)

        def first(name: str) -> str | None:
            values = query.get(name)
            return values[0] if values else None

        status = normalize_decision(first("status"))
        if status is None:
            return None
        estimate_id = self._parse_estimate_id(parts.scheme, parts.netloc, parts.path)
        if estimate_id is None:
            return None

        decided_at_ms = parse_epoch_ms(first("decidedAtMs") or first("decidedAt"))
        if decided_at_ms is None:
            decided_at_ms = int(round(time.time() * 1000.0))

        return DecisionPayload(
            estimate_id=estimate_id,
            status=status,
            decided_at_ms=decided_at_ms,
            business_id=_parse_uuid(first("businessId")),
        )

    def _parse_estimate_id(self, scheme: str, host: str, path: str) -> uuid.UUID | None:
        segments = [s for s in path.split("/") if s]
        host = host.lower()

        if scheme.lower() == self._deep_link_scheme:
            if host == "estimate" and segments:
                return _parse_uuid(segments[0])
            if len(segments) >= 2 and segments[0].lower() == "estimate":
                return _parse_uuid(segments[1])
            return None

        for index, segment in enumerate(segments[:-1]):
            if segment.lower() == "estimate":
                return _parse_uuid(segments[index + 1])
        return None

    def handle_decision_url(self, url: str) -> DecisionPayload | None:
        payload = self.parse_decision_url(url)
        if payload is None:
            self._logger.info("Ignoring unrecognized estimate decision link", extra={"url": url})
            return None

        business_id = str(payload.business_id) if payload.business_id else ""
        self.upsert_decision(
            business_id=business_id,
            estimate_id=str(payload.estimate_id),
            status=payload.status.value,
            decided_at_ms=payload.decided_at_ms,
        )

        estimate = self._store.get_invoice(payload.estimate_id)
        if (
            estimate is not None
            and estimate.is_estimate
            and (payload.business_id is None or estimate.business_id == payload.business_id)
        ):
            set_estimate_decision(estimate, payload.status, payload.decided_at_ms)
            self._store.save_invoice(estimate)

        self.apply_pending_decisions()
        self._logger.info(
            "Estimate decision received",
            extra={"estimate_id": str(payload.estimate_id), "status": payload.status.value},
        )
        return payload


def decided_at_ms_or_now(decided_at: datetime | None) -> int:
    if decided_at is None:
        return int(round(time.time() * 1000.0))
    return to_epoch_ms(decided_at)
