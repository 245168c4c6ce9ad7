#!/usr/bin/env python3
"""
Matching endpoints - rank candidates for a brief and invite the shortlist.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.app_context import AppContext
from core.errors import NotFoundError
from pipeline.runner import run_ranking, run_matching_and_invite
from ..dependencies import get_db, get_app_context
from ..services.marketplace_service import MarketplaceQueryService
from ..models.requests import RankRequest
from ..models.responses import (
    RankingResponse,
    MatchAndInviteResponse,
    MatchingRunsResponse,
    InvitesResponse
)
from ..utils import parse_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/briefs", tags=["matching"])


@router.post("/{brief_id}/matches", response_model=RankingResponse)
def rank_brief(
    brief_id: str,
    request: Optional[RankRequest] = None,
    ctx: AppContext = Depends(get_app_context)
):
    """
    Rank the candidate pool for a brief without inviting anyone.

    A brief that does not exist gives brief_found=false and no candidates;
    the run is recorded either way.
    """
    request = request or RankRequest()
    result = run_ranking(
        ctx,
        parse_uuid(brief_id, "brief_id"),
        min_score=request.min_score,
        max_results=request.max_results,
        widen=request.widen
    )
    return RankingResponse(success=True, **result.to_dict())


@router.post("/{brief_id}/invites", response_model=MatchAndInviteResponse)
def invite_shortlist(
    brief_id: str,
    request: Optional[RankRequest] = None,
    ctx: AppContext = Depends(get_app_context)
):
    """
    Rank a brief and send invites to the shortlist.

    Experts already invited to the brief are skipped.
    """
    request = request or RankRequest()
    result = run_matching_and_invite(
        ctx,
        parse_uuid(brief_id, "brief_id"),
        min_score=request.min_score,
        max_results=request.max_results,
        widen=request.widen
    )
    if not result.ranking['brief_found']:
        raise NotFoundError(f"Brief {brief_id} not found")

    return MatchAndInviteResponse(
        success=True,
        brief_id=str(result.brief_id),
        ranking=RankingResponse(success=True, **result.ranking),
        invited=result.invited,
        skipped=result.skipped
    )


@router.get("/{brief_id}/runs", response_model=MatchingRunsResponse)
def get_matching_runs(
    brief_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Audit trail of ranking runs for a brief, newest first."""
    runs = MarketplaceQueryService(db).list_runs(parse_uuid(brief_id, "brief_id"), limit=limit)
    return MatchingRunsResponse(success=True, count=len(runs), runs=runs)


@router.get("/{brief_id}/invites", response_model=InvitesResponse)
def get_brief_invites(
    brief_id: str,
    db: Session = Depends(get_db)
):
    """All invites of a brief; lapsed 'sent' invites show effective_status 'expired'."""
    invites = MarketplaceQueryService(db).list_brief_invites(parse_uuid(brief_id, "brief_id"))
    return InvitesResponse(success=True, count=len(invites), invites=invites)
