#!/usr/bin/env python3
"""
Invite endpoints - expert responses and invite reporting.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.app_context import AppContext
from pipeline.runner import respond_to_invite, view_invite
from ..dependencies import get_db, get_app_context
from ..services.marketplace_service import MarketplaceQueryService
from ..models.requests import RespondRequest, ViewRequest
from ..models.responses import InviteActionResponse, InvitesResponse, ExpiredInvitesResponse
from ..utils import parse_uuid

router = APIRouter(prefix="/api", tags=["invites"])


@router.post("/invites/{invite_id}/respond", response_model=InviteActionResponse)
def respond(
    invite_id: str,
    request: RespondRequest,
    ctx: AppContext = Depends(get_app_context)
):
    """
    Accept or decline an invite.

    Returns 400 when the invite has expired or was already answered.
    """
    result = respond_to_invite(
        ctx,
        parse_uuid(invite_id, "invite_id"),
        request.action,
        message=request.message,
        proposal_details=request.proposal_details,
        expert_id=request.expert_id
    )
    return InviteActionResponse(success=True, **result)


@router.post("/invites/{invite_id}/view", response_model=InviteActionResponse)
def mark_viewed(
    invite_id: str,
    request: Optional[ViewRequest] = None,
    ctx: AppContext = Depends(get_app_context)
):
    """Record the first time the expert opened the invite."""
    expert_id = request.expert_id if request else None
    invite = view_invite(ctx, parse_uuid(invite_id, "invite_id"), expert_id=expert_id)
    return InviteActionResponse(success=True, invite=invite)


@router.get("/experts/{expert_id}/invites/pending", response_model=InvitesResponse)
def get_pending_invites(
    expert_id: str,
    db: Session = Depends(get_db)
):
    """Invites the expert can still answer."""
    invites = MarketplaceQueryService(db).list_pending_for_expert(parse_uuid(expert_id, "expert_id"))
    return InvitesResponse(success=True, count=len(invites), invites=invites)


@router.get("/invites/expired", response_model=ExpiredInvitesResponse)
def get_expired_invites(db: Session = Depends(get_db)):
    """'sent' invites past their response window, grouped by brief. Nothing is modified."""
    grouped = MarketplaceQueryService(db).list_expired()
    return ExpiredInvitesResponse(
        success=True,
        count=sum(len(invites) for invites in grouped.values()),
        briefs=grouped
    )
