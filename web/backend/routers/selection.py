#!/usr/bin/env python3
"""
Selection endpoints - finalize the winning expert.
"""

from fastapi import APIRouter, Depends

from core.app_context import AppContext
from pipeline.runner import select_expert, reassign_expert
from ..dependencies import get_app_context
from ..models.requests import SelectionRequest, ReassignRequest
from ..models.responses import SelectionResponse
from ..utils import parse_uuid

router = APIRouter(prefix="/api", tags=["selection"])


@router.post("/briefs/{brief_id}/selection", response_model=SelectionResponse)
def select(
    brief_id: str,
    request: SelectionRequest,
    ctx: AppContext = Depends(get_app_context)
):
    """
    Select an accepted expert as the brief's winner.

    Returns 409 when another expert was already selected.
    """
    result = select_expert(ctx, parse_uuid(brief_id, "brief_id"), request.expert_id)
    return SelectionResponse(success=True, **result)


@router.post("/admin/briefs/{brief_id}/reassign", response_model=SelectionResponse)
def reassign(
    brief_id: str,
    request: ReassignRequest,
    ctx: AppContext = Depends(get_app_context)
):
    """Admin: move the brief to another accepted expert."""
    result = reassign_expert(
        ctx,
        parse_uuid(brief_id, "brief_id"),
        request.expert_id,
        actor_id=request.actor_id
    )
    return SelectionResponse(success=True, **result)
