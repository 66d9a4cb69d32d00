from __future__ import annotations

import logging

from smallbiz.application.ports.document_store import DocumentStorePort
from smallbiz.domain.entities.invoice import EstimateStatus, Invoice
from smallbiz.domain.entities.job import Job


class EstimateAcceptanceHandler:
    def __init__(self, store: DocumentStorePort) -> None:
        self._store = store
        self._logger = logging.getLogger(__name__)

    def handle_accepted(self, estimate: Invoice) -> Job | None:
        """Create the follow-up job for an accepted estimate. No-op if it already has one."""
        if not estimate.is_estimate or estimate.estimate_status != EstimateStatus.accepted:
            return None
        if estimate.job_id is not None:
            return None

        client = self._store.get_client(estimate.client_id) if estimate.client_id else None
        client_name = (client.name.strip() if client else "") or "Client"
        estimate_number = estimate.invoice_number.strip() or str(estimate.id)[:8].upper()

        job = Job(
            business_id=estimate.business_id,
            client_id=estimate.client_id,
            title=f"Job - {client_name} ({estimate_number})",
            notes=f"Created from estimate {estimate_number}",
            start_date=estimate.issue_date,
            end_date=estimate.due_date,
            status="scheduled",
        )
        self._store.save_job(job)
        estimate.job_id = job.id
        self._store.save_invoice(estimate)

        self._logger.info(
            "Job created from accepted estimate",
            extra={"estimate_id": str(estimate.id), "job_id": str(job.id)},
        )
        return job
