#!/usr/bin/env python3
"""
Response models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any


class CandidateSummary(BaseModel):
    """One ranked candidate."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "expert_id": "550e8400-e29b-41d4-a716-446655440000",
                "score": 0.91,
                "components": {"outcome": 1.0, "tools": 1.0, "industry": 1.0, "availability": 1.0, "history": 0.5},
                "cert_bonus": 0.1,
                "reasons": ["Outcome fit: Sales Uplift", "Tools: HubSpot"],
                "flags": [],
                "snapshot": {"band_min": 10000, "band_max": 20000, "tools": ["HubSpot"]}
            }
        }
    )

    expert_id: str
    score: float
    components: Dict[str, float]
    cert_bonus: float = 0.0
    reasons: List[str] = []
    flags: List[str] = []
    snapshot: Dict[str, Any] = {}


class RankingResponse(BaseModel):
    success: bool
    brief_id: str
    brief_found: bool
    run_id: Optional[str] = None
    candidates: List[CandidateSummary]
    metadata: Dict[str, Any]


class InviteSummary(BaseModel):
    """Invite read model; effective_status is 'expired' for a lapsed 'sent' invite."""
    id: str
    brief_id: str
    expert_id: str
    status: str
    effective_status: str
    respondable: bool
    score_at_invite: float
    reasons: List[str] = []
    flags: List[str] = []
    invitation_message: Optional[str] = None
    sent_at: Optional[str] = None
    expires_at: Optional[str] = None
    viewed_at: Optional[str] = None
    responded_at: Optional[str] = None
    response_message: Optional[str] = None
    proposal_details: Optional[Dict[str, Any]] = None


class MatchAndInviteResponse(BaseModel):
    success: bool
    brief_id: str
    ranking: RankingResponse
    invited: List[InviteSummary]
    skipped: List[str]


class InvitesResponse(BaseModel):
    success: bool
    count: int
    invites: List[InviteSummary]


class ExpiredInvitesResponse(BaseModel):
    success: bool
    count: int
    briefs: Dict[str, List[InviteSummary]]


class InviteActionResponse(BaseModel):
    success: bool
    invite: InviteSummary
    brief_status: Optional[str] = None


class SelectionResponse(BaseModel):
    success: bool
    brief_id: str
    expert_id: str
    invite: InviteSummary
    not_selected: List[str]
    previous_expert_id: Optional[str] = None
    already_selected: bool = False


class MatchingRunSummary(BaseModel):
    id: str
    brief_id: str
    min_score: float
    max_results: int
    widen: bool
    weights: Dict[str, Any]
    pool_size: int
    result_count: int
    brief_found: bool
    scoring_errors: int = 0
    created_at: Optional[str] = None


class MatchingRunsResponse(BaseModel):
    success: bool
    count: int
    runs: List[MatchingRunSummary]


class NotificationSummary(BaseModel):
    id: str
    type: str
    title: str
    body: Optional[str] = None
    cta_text: Optional[str] = None
    cta_url: Optional[str] = None
    related_brief_id: Optional[str] = None
    read_at: Optional[str] = None
    created_at: Optional[str] = None


class NotificationsResponse(BaseModel):
    success: bool
    count: int
    unread: int
    notifications: List[NotificationSummary]


class MarkReadResponse(BaseModel):
    success: bool
    notification: NotificationSummary


class QueueStatusResponse(BaseModel):
    """Response with notification queue status."""
    success: bool
    status: str
    queue_length: int = Field(ge=0)
    redis_connected: bool


class MatchingSettingsResponse(BaseModel):
    success: bool
    settings: Dict[str, Any]
