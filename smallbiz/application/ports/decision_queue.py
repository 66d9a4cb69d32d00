from abc import ABC, abstractmethod

from smallbiz.domain.entities.estimate_decision import EstimateDecisionRecord


class DecisionQueuePort(ABC):
    @abstractmethod
    def upsert(self, record: EstimateDecisionRecord) -> None:
        """
        Queue a locally received decision.
        Replaces any record already queued for the same estimate.
        """
        raise NotImplementedError

    @abstractmethod
    def list_records(self) -> list[EstimateDecisionRecord]:
        """Queued records, most recently updated first."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, estimate_id: str) -> None:
        raise NotImplementedError
