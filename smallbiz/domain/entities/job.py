from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class JobStage(str, Enum):
    booked = "booked"
    in_progress = "in_progress"
    completed = "completed"
    canceled = "canceled"

    @classmethod
    def parse(cls, raw: str | None) -> "JobStage":
        normalized = (raw or "").strip().lower().replace(" ", "_").replace("-", "_")
        if normalized == "inprogress":
            normalized = cls.in_progress.value
        try:
            return cls(normalized)
        except ValueError:
            return cls.booked


@dataclass
class Job:
    business_id: uuid.UUID
    start_date: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    client_id: uuid.UUID | None = None
    title: str = ""
    notes: str = ""
    end_date: datetime | None = None
    location_name: str = ""
    status: str = "scheduled"  # legacy free-text status, kept alongside stage
    stage: JobStage = JobStage.booked
    source_booking_request_id: str | None = None

    @property
    def is_completed(self) -> bool:
        if self.status.strip().lower() == "completed":
            return True
        return self.stage == JobStage.completed
