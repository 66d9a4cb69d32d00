from __future__ import annotations

from fastapi import APIRouter, Depends

from smallbiz.api.v1.schemas import EstimateDecisionLinkSchema, EstimateDecisionResponseSchema
from smallbiz.application.use_cases.estimate_decisions import EstimateDecisionSync
from smallbiz.wiring.dependencies import get_decision_sync


router = APIRouter()


@router.post("/portal/estimate-decision", response_model=EstimateDecisionResponseSchema)
async def estimate_decision(
    body: EstimateDecisionLinkSchema,
    decisions: EstimateDecisionSync = Depends(get_decision_sync),
) -> EstimateDecisionResponseSchema:
    """Portal return link. Unrecognized links are acknowledged but ignored."""
    payload = decisions.handle_decision_url(body.url)
    if payload is None:
        return EstimateDecisionResponseSchema(accepted=False)
    return EstimateDecisionResponseSchema(
        accepted=True,
        estimate_id=str(payload.estimate_id),
        status=payload.status.value,
        decided_at_ms=payload.decided_at_ms,
        business_id=str(payload.business_id) if payload.business_id else None,
    )
