from __future__ import annotations

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from smallbiz.application.dto.documents import (
    ClientRecordDTO,
    DecisionRecordDTO,
    InvoiceRecordDTO,
    JobRecordDTO,
)
from smallbiz.application.ports.decision_queue import DecisionQueuePort
from smallbiz.application.ports.document_store import DocumentStorePort
from smallbiz.domain.entities.client import Client
from smallbiz.domain.entities.estimate_decision import EstimateDecisionRecord
from smallbiz.domain.entities.invoice import Invoice
from smallbiz.domain.entities.job import Job

FILE_VERSION = 1


class _JsonCollection:
    """One JSON file holding a list of records keyed by `key_field`."""

    def __init__(self, path: Path, model: type[BaseModel], key_field: str) -> None:
        self._path = path
        self._model = model
        self._key_field = key_field
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def load(self) -> dict[str, Any]:
        """Load records (caller holds the lock). Missing or corrupted files read as empty."""
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            self._logger.warning("Unreadable store file, starting empty", extra={"path": str(self._path), "error": str(e)})
            return {}

        raw_records = data.get("records", []) if isinstance(data, dict) else data
        records: dict[str, Any] = {}
        for raw in raw_records if isinstance(raw_records, list) else []:
            try:
                record = self._model.model_validate(raw)
            except ValidationError as e:
                self._logger.warning("Skipping invalid stored record", extra={"path": str(self._path), "error": str(e)})
                continue
            records[str(getattr(record, self._key_field)).lower()] = record
        return records

    def save(self, records: dict[str, Any]) -> None:
        """Write all records atomically (caller holds the lock)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": FILE_VERSION,
            "records": [r.model_dump(mode="json") for r in records.values()],
        }
        temp_path = self._path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            temp_path.replace(self._path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)
            raise


class JsonDocumentStore(DocumentStorePort):
    def __init__(self, data_dir: str = "./data") -> None:
        root = Path(data_dir)
        root.mkdir(parents=True, exist_ok=True)
        self._invoices = _JsonCollection(root / "invoices.json", InvoiceRecordDTO, "id")
        self._jobs = _JsonCollection(root / "jobs.json", JobRecordDTO, "id")
        self._clients = _JsonCollection(root / "clients.json", ClientRecordDTO, "id")

    def list_invoices(self, business_id: uuid.UUID | None = None) -> list[Invoice]:
        with self._invoices.lock:
            records = self._invoices.load()
        invoices = [r.to_domain() for r in records.values()]
        return [i for i in invoices if business_id is None or i.business_id == business_id]

    def list_estimates(self) -> list[Invoice]:
        estimates = [i for i in self.list_invoices() if i.is_estimate]
        estimates.sort(key=lambda i: i.issue_date, reverse=True)
        return estimates

    def get_invoice(self, invoice_id: uuid.UUID) -> Invoice | None:
        with self._invoices.lock:
            record = self._invoices.load().get(str(invoice_id).lower())
        return record.to_domain() if record else None

    def save_invoice(self, invoice: Invoice) -> None:
        with self._invoices.lock:
            records = self._invoices.load()
            records[str(invoice.id).lower()] = InvoiceRecordDTO.from_domain(invoice)
            self._invoices.save(records)

    def list_jobs(self, business_id: uuid.UUID | None = None) -> list[Job]:
        with self._jobs.lock:
            records = self._jobs.load()
        jobs = [r.to_domain() for r in records.values()]
        return [j for j in jobs if business_id is None or j.business_id == business_id]

    def save_job(self, job: Job) -> None:
        with self._jobs.lock:
            records = self._jobs.load()
            records[str(job.id).lower()] = JobRecordDTO.from_domain(job)
            self._jobs.save(records)

    def get_client(self, client_id: uuid.UUID) -> Client | None:
        with self._clients.lock:
            record = self._clients.load().get(str(client_id).lower())
        return record.to_domain() if record else None

    def save_client(self, client: Client) -> None:
        with self._clients.lock:
            records = self._clients.load()
            records[str(client.id).lower()] = ClientRecordDTO.from_domain(client)
            self._clients.save(records)


class JsonDecisionQueue(DecisionQueuePort):
    def __init__(self, data_dir: str = "./data") -> None:
        self._records = _JsonCollection(Path(data_dir) / "estimate_decisions.json", DecisionRecordDTO, "estimate_id")

    def upsert(self, record: EstimateDecisionRecord) -> None:
        with self._records.lock:
            records = self._records.load()
            records[record.estimate_id.lower()] = DecisionRecordDTO.from_domain(record)
            self._records.save(records)

    def list_records(self) -> list[EstimateDecisionRecord]:
        with self._records.lock:
            records = self._records.load()
        decoded = [r.to_domain() for r in records.values()]
        result = [r for r in decoded if r is not None]
        result.sort(key=lambda r: r.updated_at, reverse=True)
        return result

    def remove(self, estimate_id: str) -> None:
        with self._records.lock:
            records = self._records.load()
            if records.pop(estimate_id.lower(), None) is not None:
                self._records.save(records)
