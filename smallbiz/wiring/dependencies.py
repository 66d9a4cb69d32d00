from functools import lru_cache
import logging

from smallbiz.core.config import settings
from smallbiz.application.ports.decision_queue import DecisionQueuePort
from smallbiz.application.ports.document_store import DocumentStorePort
from smallbiz.application.ports.portal_backend import PortalBackendPort
from smallbiz.application.use_cases.booking_requests import BookingRequestsUseCase
from smallbiz.application.use_cases.dashboard_metrics import DashboardMetricsVM
from smallbiz.application.use_cases.estimate_acceptance import EstimateAcceptanceHandler
from smallbiz.application.use_cases.estimate_decisions import EstimateDecisionSync
from smallbiz.application.use_cases.estimate_portal_sync import EstimatePortalSyncService, EstimateSyncPoller
from smallbiz.application.utils.booking_request_cache import BookingRequestCache
from smallbiz.domain.entities.business_calendar import BusinessCalendar
from smallbiz.infrastructure.portal.mock_portal import MockPortalBackend
from smallbiz.infrastructure.portal.portal_client import PortalBackendClient
from smallbiz.infrastructure.store.json_store import JsonDecisionQueue, JsonDocumentStore
from smallbiz.infrastructure.store.memory_store import MemoryDecisionQueue, MemoryDocumentStore


_document_store: DocumentStorePort | None = None
_decision_queue: DecisionQueuePort | None = None
_poller: EstimateSyncPoller | None = None


def _use_json_store() -> bool:
    return settings.STORE_PROVIDER.strip().lower() == "json"


@lru_cache
def get_portal_backend() -> PortalBackendPort:
    logger = logging.getLogger(__name__)
    if not (settings.PORTAL_ADMIN_KEY or "").strip() and settings.ENV.lower() in {"dev", "local"}:
        logger.info("Using MockPortalBackend (admin key missing, ENV=dev/local)")
        return MockPortalBackend()
    logger.info("Using PortalBackendClient", extra={"base_url": settings.PORTAL_BASE_URL})
    return PortalBackendClient()


@lru_cache
def get_calendar() -> BusinessCalendar:
    return BusinessCalendar.from_settings(settings.BUSINESS_TIMEZONE, settings.WEEK_FIRST_WEEKDAY)


@lru_cache
def get_booking_cache() -> BookingRequestCache:
    return BookingRequestCache(
        ttl_seconds=settings.DASHBOARD_CACHE_TTL_SECONDS,
        max_entries=settings.DASHBOARD_CACHE_MAX_ENTRIES,
    )


def get_document_store() -> DocumentStorePort:
    global _document_store
    if _document_store is None:
        _document_store = JsonDocumentStore(settings.DATA_DIR) if _use_json_store() else MemoryDocumentStore()
    return _document_store


def get_decision_queue() -> DecisionQueuePort:
    global _decision_queue
    if _decision_queue is None:
        _decision_queue = JsonDecisionQueue(settings.DATA_DIR) if _use_json_store() else MemoryDecisionQueue()
    return _decision_queue


def get_decision_sync() -> EstimateDecisionSync:
    return EstimateDecisionSync(
        store=get_document_store(),
        queue=get_decision_queue(),
        deep_link_scheme=settings.DEEP_LINK_SCHEME,
    )


def get_estimate_sync_service() -> EstimatePortalSyncService:
    store = get_document_store()
    return EstimatePortalSyncService(
        portal=get_portal_backend(),
        store=store,
        decisions=get_decision_sync(),
        acceptance=EstimateAcceptanceHandler(store=store),
        max_count=settings.ESTIMATE_SYNC_MAX_COUNT,
    )


def get_estimate_sync_poller() -> EstimateSyncPoller:
    global _poller
    if _poller is None:
        _poller = EstimateSyncPoller(
            service=get_estimate_sync_service(),
            interval_seconds=settings.ESTIMATE_SYNC_INTERVAL_SECONDS,
        )
    return _poller


@lru_cache
def get_dashboard_vm() -> DashboardMetricsVM:
    return DashboardMetricsVM(
        portal=get_portal_backend(),
        cache=get_booking_cache(),
        calendar=get_calendar(),
    )


def get_booking_requests_use_case() -> BookingRequestsUseCase:
    return BookingRequestsUseCase(portal=get_portal_backend(), cache=get_booking_cache())


def reset_container() -> None:
    """Drop cached singletons so the next request rebuilds them from current settings."""
    global _document_store, _decision_queue, _poller
    _document_store = None
    _decision_queue = None
    _poller = None
    for factory in (get_portal_backend, get_calendar, get_booking_cache, get_dashboard_vm):
        factory.cache_clear()
