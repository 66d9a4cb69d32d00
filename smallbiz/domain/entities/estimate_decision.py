from __future__ import annotations

import uuid
from dataclasses import dataclass

from smallbiz.domain.entities.invoice import EstimateStatus


@dataclass(frozen=True)
class EstimateDecisionRecord:
    estimate_id: str
    status: EstimateStatus  # accepted | declined
    decided_at_ms: int
    business_id: str = ""  # empty matches any business
    updated_at: float = 0.0

    def matches_business(self, business_id: uuid.UUID) -> bool:
        return not self.business_id or self.business_id.lower() == str(business_id).lower()


@dataclass(frozen=True)
class DecisionPayload:
    estimate_id: uuid.UUID
    status: EstimateStatus
    decided_at_ms: int
    business_id: uuid.UUID | None = None
