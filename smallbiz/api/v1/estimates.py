from fastapi import APIRouter, Depends

from smallbiz.api.v1.schemas import SyncReportSchema
from smallbiz.application.use_cases.estimate_portal_sync import EstimateSyncPoller
from smallbiz.wiring.dependencies import get_estimate_sync_poller

router = APIRouter()


@router.post("/estimates/sync", response_model=SyncReportSchema)
async def sync_estimates(poller: EstimateSyncPoller = Depends(get_estimate_sync_poller)):
    # Failures are per estimate and show up in the report, not as HTTP errors.
    report = await poller.trigger()
    return SyncReportSchema(
        checked=report.checked,
        updated=report.updated,
        failed=report.failed,
        applied_before=report.applied_before,
        applied_after=report.applied_after,
    )
