from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from smallbiz.application.ports.document_store import DocumentStorePort
from smallbiz.application.ports.portal_backend import PortalBackendPort
from smallbiz.application.use_cases.estimate_acceptance import EstimateAcceptanceHandler
from smallbiz.application.use_cases.estimate_decisions import (
    EstimateDecisionSync,
    decided_at_ms_or_now,
    normalize_decision,
    set_estimate_decision,
)
from smallbiz.domain.entities.invoice import EstimateStatus, Invoice

DEFAULT_MAX_COUNT = 40
SYNCABLE_STATUSES = (EstimateStatus.sent, EstimateStatus.draft)


@dataclass(frozen=True)
class SyncReport:
    checked: int = 0
    updated: int = 0
    failed: int = 0
    applied_before: int = 0
    applied_after: int = 0


class EstimatePortalSyncService:
    """
    Best-effort reconciliation of local estimates against the portal.

    Estimates are checked one at a time. A failure for one estimate is logged and skipped;
    it never aborts the batch or touches local state. No retries: callers poll.
    """

    def __init__(
        self,
        portal: PortalBackendPort,
        store: DocumentStorePort,
        decisions: EstimateDecisionSync,
        acceptance: EstimateAcceptanceHandler,
        max_count: int = DEFAULT_MAX_COUNT,
    ) -> None:
        self._portal = portal
        self._store = store
        self._decisions = decisions
        self._acceptance = acceptance
        self._max_count = max_count
        self._logger = logging.getLogger(__name__)

    def _candidates(self, max_count: int) -> list[Invoice]:
        selected: list[Invoice] = []
        for estimate in self._store.list_estimates():
            if estimate.estimate_status not in SYNCABLE_STATUSES:
                continue
            client = self._store.get_client(estimate.client_id) if estimate.client_id else None
            if client is None or not client.portal_enabled:
                continue
            selected.append(estimate)
            if len(selected) >= max_count:
                break
        return selected

    async def sync(self, max_count: int | None = None) -> SyncReport:
        applied_before = self._decisions.apply_pending_decisions()

        checked = 0
        updated = 0
        failed = 0
        for estimate in self._candidates(max_count or self._max_count):
            checked += 1
            try:
                remote = await self._portal.fetch_estimate_status(
                    business_id=str(estimate.business_id),
                    estimate_id=str(estimate.id),
                )
            except Exception as e:
                failed += 1
                self._logger.debug(
                    "Estimate status fetch failed",
                    extra={"estimate_id": str(estimate.id), "error": str(e)},
                )
                continue

            remote_status = remote.status.strip().lower()
            if remote_status == estimate.estimate_status.value:
                continue

            decision = normalize_decision(remote_status)
            if decision is None:
                self._logger.debug(
                    "Remote estimate status is not a decision",
                    extra={"estimate_id": str(estimate.id), "status": remote_status},
                )
                continue

            set_estimate_decision(estimate, decision, decided_at_ms_or_now(remote.decided_at))
            if decision == EstimateStatus.accepted:
                try:
                    self._acceptance.handle_accepted(estimate)
                except Exception as e:
                    self._logger.warning(
                        "Acceptance handler failed",
                        extra={"estimate_id": str(estimate.id), "error": str(e)},
                    )
            self._store.save_invoice(estimate)
            updated += 1

        applied_after = self._decisions.apply_pending_decisions()

        report = SyncReport(
            checked=checked,
            updated=updated,
            failed=failed,
            applied_before=applied_before,
            applied_after=applied_after,
        )
        extra = {"checked": checked, "updated": updated, "failed": failed}
        if updated or failed or applied_before or applied_after:
            self._logger.info("Estimate sync run", extra=extra)
        else:
            self._logger.debug("Estimate sync run", extra=extra)
        return report


class EstimateSyncPoller:
    """Runs estimate sync on a fixed interval while the app is in the foreground."""

    def __init__(self, service: EstimatePortalSyncService, interval_seconds: float = 90.0) -> None:
        self._service = service
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._logger.info("Estimate sync poller started", extra={"interval": self._interval_seconds})

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("Estimate sync poller stopped")

    async def trigger(self) -> SyncReport:
        """One-off sync (pull to refresh). Serialized with the periodic runs."""
        async with self._lock:
            return await self._service.sync()

    async def _run(self) -> None:
        while True:
            try:
                await self.trigger()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.exception("Estimate sync run crashed", extra={"error": str(e)})
            await asyncio.sleep(self._interval_seconds)
