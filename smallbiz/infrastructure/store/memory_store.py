from __future__ import annotations

import copy
import uuid

from smallbiz.application.ports.decision_queue import DecisionQueuePort
from smallbiz.application.ports.document_store import DocumentStorePort
from smallbiz.domain.entities.client import Client
from smallbiz.domain.entities.estimate_decision import EstimateDecisionRecord
from smallbiz.domain.entities.invoice import Invoice
from smallbiz.domain.entities.job import Job


class MemoryDocumentStore(DocumentStorePort):
    """Process-local store. Hands out copies so callers must save to persist changes."""

    def __init__(self) -> None:
        self._invoices: dict[uuid.UUID, Invoice] = {}
        self._jobs: dict[uuid.UUID, Job] = {}
        self._clients: dict[uuid.UUID, Client] = {}

    def list_invoices(self, business_id: uuid.UUID | None = None) -> list[Invoice]:
        return [
            copy.deepcopy(i)
            for i in self._invoices.values()
            if business_id is None or i.business_id == business_id
        ]

    def list_estimates(self) -> list[Invoice]:
        estimates = [copy.deepcopy(i) for i in self._invoices.values() if i.is_estimate]
        estimates.sort(key=lambda i: i.issue_date, reverse=True)
        return estimates

    def get_invoice(self, invoice_id: uuid.UUID) -> Invoice | None:
        invoice = self._invoices.get(invoice_id)
        return copy.deepcopy(invoice) if invoice else None

    def save_invoice(self, invoice: Invoice) -> None:
        self._invoices[invoice.id] = copy.deepcopy(invoice)

    def list_jobs(self, business_id: uuid.UUID | None = None) -> list[Job]:
        return [
            copy.deepcopy(j)
            for j in self._jobs.values()
            if business_id is None or j.business_id == business_id
        ]

    def save_job(self, job: Job) -> None:
        self._jobs[job.id] = copy.deepcopy(job)

    def get_client(self, client_id: uuid.UUID) -> Client | None:
        client = self._clients.get(client_id)
        return copy.deepcopy(client) if client else None

    def save_client(self, client: Client) -> None:
        self._clients[client.id] = copy.deepcopy(client)


class MemoryDecisionQueue(DecisionQueuePort):
    def __init__(self) -> None:
        self._records: dict[str, EstimateDecisionRecord] = {}

    def upsert(self, record: EstimateDecisionRecord) -> None:
        self._records[record.estimate_id.lower()] = record

    def list_records(self) -> list[EstimateDecisionRecord]:
        return sorted(self._records.values(), key=lambda r: r.updated_at, reverse=True)

    def remove(self, estimate_id: str) -> None:
        self._records.pop(estimate_id.lower(), None)
