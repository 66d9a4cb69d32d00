from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from smallbiz.application.use_cases.estimate_acceptance import EstimateAcceptanceHandler
from smallbiz.application.use_cases.estimate_decisions import EstimateDecisionSync
from smallbiz.application.use_cases.estimate_portal_sync import EstimatePortalSyncService, EstimateSyncPoller
from smallbiz.application.utils.date_parser import to_epoch_ms
from smallbiz.domain.entities.client import Client
from smallbiz.domain.entities.invoice import DocumentType, EstimateStatus, Invoice
from smallbiz.infrastructure.portal.mock_portal import MockPortalBackend
from smallbiz.infrastructure.store.memory_store import MemoryDecisionQueue, MemoryDocumentStore

BUSINESS_ID = uuid.UUID("6f1c2a8e-0000-4000-8000-000000000001")
ISSUED = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)
DECIDED = datetime(2024, 6, 3, 15, 0, tzinfo=timezone.utc)


def _setup(max_count: int = 40):
    store = MemoryDocumentStore()
    queue = MemoryDecisionQueue()
    portal = MockPortalBackend()
    decisions = EstimateDecisionSync(store=store, queue=queue)
    service = EstimatePortalSyncService(
        portal=portal,
        store=store,
        decisions=decisions,
        acceptance=EstimateAcceptanceHandler(store=store),
        max_count=max_count,
    )
    client = Client(business_id=BUSINESS_ID, name="Ana Lopez")
    store.save_client(client)
    return store, queue, portal, decisions, service, client


def _estimate(client: Client, status: EstimateStatus = EstimateStatus.sent, issued: datetime = ISSUED, **kwargs) -> Invoice:
    return Invoice(
        business_id=BUSINESS_ID,
        issue_date=issued,
        document_type=DocumentType.estimate,
        estimate_status=status,
        client_id=client.id,
        **kwargs,
    )


def test_accepted_estimate_applied_despite_other_failure():
    store, _, portal, _, service, client = _setup()
    accepted = _estimate(client, invoice_number="EST-7")
    broken = _estimate(client, issued=ISSUED + timedelta(days=1))
    store.save_invoice(accepted)
    store.save_invoice(broken)
    portal.set_estimate_status(accepted.id, "accepted", DECIDED)
    portal.fail_estimate(broken.id)

    report = asyncio.run(service.sync())

    assert report.checked == 2
    assert report.updated == 1
    assert report.failed == 1

    saved = store.get_invoice(accepted.id)
    assert saved.estimate_status == EstimateStatus.accepted
    assert saved.estimate_accepted_at == DECIDED
    assert saved.estimate_declined_at is None
    assert store.get_invoice(broken.id).estimate_status == EstimateStatus.sent


def test_acceptance_creates_linked_job():
    store, _, portal, _, service, client = _setup()
    estimate = _estimate(client, invoice_number="EST-7")
    store.save_invoice(estimate)
    portal.set_estimate_status(estimate.id, "Accepted", DECIDED)

    asyncio.run(service.sync())

    jobs = store.list_jobs(BUSINESS_ID)
    assert len(jobs) == 1
    assert jobs[0].title == "Job - Ana Lopez (EST-7)"
    assert jobs[0].client_id == client.id
    assert store.get_invoice(estimate.id).job_id == jobs[0].id

    # a second pass finds nothing left to do
    report = asyncio.run(service.sync())
    assert report.checked == 0
    assert len(store.list_jobs(BUSINESS_ID)) == 1


def test_declined_estimate_without_timestamp_uses_now():
    store, _, portal, _, service, client = _setup()
    estimate = _estimate(client)
    store.save_invoice(estimate)
    portal.set_estimate_status(estimate.id, "declined")

    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    asyncio.run(service.sync())

    saved = store.get_invoice(estimate.id)
    assert saved.estimate_status == EstimateStatus.declined
    assert saved.estimate_declined_at >= before
    assert store.list_jobs() == []


def test_non_decision_remote_statuses_are_ignored():
    store, _, portal, _, service, client = _setup()
    viewed = _estimate(client)
    draft = _estimate(client, status=EstimateStatus.draft)
    store.save_invoice(viewed)
    store.save_invoice(draft)
    portal.set_estimate_status(viewed.id, "viewed")
    portal.set_estimate_status(draft.id, "sent")

    report = asyncio.run(service.sync())

    assert report.checked == 2
    assert report.updated == 0
    assert store.get_invoice(viewed.id).estimate_status == EstimateStatus.sent
    assert store.get_invoice(draft.id).estimate_status == EstimateStatus.draft


def test_candidates_skip_decided_and_portal_disabled():
    store, _, portal, _, service, client = _setup()
    offline = Client(business_id=BUSINESS_ID, name="No Portal", portal_enabled=False)
    store.save_client(offline)
    store.save_invoice(_estimate(client, status=EstimateStatus.accepted))
    store.save_invoice(_estimate(offline))
    store.save_invoice(Invoice(business_id=BUSINESS_ID, issue_date=ISSUED, document_type=DocumentType.estimate))
    store.save_invoice(Invoice(business_id=BUSINESS_ID, issue_date=ISSUED, client_id=client.id))

    report = asyncio.run(service.sync())

    assert report.checked == 0
    assert portal.status_fetch_count == 0


def test_sync_caps_batch_newest_first():
    store, _, portal, _, service, client = _setup(max_count=2)
    estimates = [_estimate(client, issued=ISSUED + timedelta(days=i)) for i in range(4)]
    for estimate in estimates:
        store.save_invoice(estimate)
        portal.set_estimate_status(estimate.id, "accepted", DECIDED)

    report = asyncio.run(service.sync())

    assert report.checked == 2
    assert store.get_invoice(estimates[3].id).estimate_status == EstimateStatus.accepted
    assert store.get_invoice(estimates[2].id).estimate_status == EstimateStatus.accepted
    assert store.get_invoice(estimates[0].id).estimate_status == EstimateStatus.sent


def test_sync_replays_queued_decisions_first():
    store, queue, portal, decisions, service, client = _setup()
    estimate = _estimate(client)
    store.save_invoice(estimate)
    decisions.upsert_decision(str(BUSINESS_ID), str(estimate.id), "declined", to_epoch_ms(DECIDED))

    report = asyncio.run(service.sync())

    assert report.applied_before == 1
    assert report.checked == 0
    assert store.get_invoice(estimate.id).estimate_declined_at == DECIDED
    assert queue.list_records() == []


def test_poller_runs_until_stopped():
    store, _, portal, _, service, client = _setup()
    estimate = _estimate(client)
    store.save_invoice(estimate)
    portal.set_estimate_status(estimate.id, "accepted", DECIDED)
    poller = EstimateSyncPoller(service, interval_seconds=0.01)

    async def run():
        poller.start()
        assert poller.is_running
        await asyncio.sleep(0.05)
        await poller.stop()
        return poller.is_running

    assert asyncio.run(run()) is False
    assert portal.status_fetch_count >= 1
    assert store.get_invoice(estimate.id).estimate_status == EstimateStatus.accepted


def test_poller_trigger_returns_report():
    store, _, portal, _, service, client = _setup()
    store.save_invoice(_estimate(client))
    poller = EstimateSyncPoller(service)

    report = asyncio.run(poller.trigger())

    assert report.checked == 1
    assert report.updated == 0
