from __future__ import annotations

import uuid
from abc import ABC, abstractmethod

from smallbiz.domain.entities.client import Client
from smallbiz.domain.entities.invoice import Invoice
from smallbiz.domain.entities.job import Job


class DocumentStorePort(ABC):
    @abstractmethod
    def list_invoices(self, business_id: uuid.UUID | None = None) -> list[Invoice]:
        """All invoices and estimates, optionally limited to one business."""
        raise NotImplementedError

    @abstractmethod
    def list_estimates(self) -> list[Invoice]:
        """Estimates only, newest issue date first."""
        raise NotImplementedError

    @abstractmethod
    def get_invoice(self, invoice_id: uuid.UUID) -> Invoice | None:
        raise NotImplementedError

    @abstractmethod
    def save_invoice(self, invoice: Invoice) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_jobs(self, business_id: uuid.UUID | None = None) -> list[Job]:
        raise NotImplementedError

    @abstractmethod
    def save_job(self, job: Job) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_client(self, client_id: uuid.UUID) -> Client | None:
        raise NotImplementedError

    @abstractmethod
    def save_client(self, client: Client) -> None:
        raise NotImplementedError
