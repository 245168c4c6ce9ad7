#!/usr/bin/env python3
"""
Request models for API endpoints.
"""

import uuid
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class RankRequest(BaseModel):
    """Request to rank (and optionally invite) candidates for a brief."""
    min_score: Optional[float] = Field(None, description="Minimum total score, defaults to the admin setting")
    max_results: Optional[int] = Field(None, ge=1, le=100, description="Maximum candidates returned")
    widen: bool = Field(default=False, description="Marks a re-run with a lowered threshold")


class RespondRequest(BaseModel):
    """An expert's answer to an invite."""
    action: str = Field(..., description="accept or decline")
    message: Optional[str] = Field(None, max_length=5000)
    proposal_details: Optional[Dict[str, Any]] = Field(
        None,
        description="estimated_hours, hourly_rate, timeline_days, approach_summary (accept only)"
    )
    expert_id: Optional[uuid.UUID] = Field(None, description="Acting expert; must own the invite")


class ViewRequest(BaseModel):
    expert_id: Optional[uuid.UUID] = None


class SelectionRequest(BaseModel):
    """Client's choice of winning expert."""
    expert_id: uuid.UUID


class ReassignRequest(BaseModel):
    """Admin override of the winning expert."""
    expert_id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None


class MatchingSettingsUpdate(BaseModel):
    """Admin matching settings; omitted keys are left unchanged."""
    outcome_weight: Optional[float] = Field(None, ge=0)
    tools_weight: Optional[float] = Field(None, ge=0)
    industry_weight: Optional[float] = Field(None, ge=0)
    availability_weight: Optional[float] = Field(None, ge=0)
    history_weight: Optional[float] = Field(None, ge=0)
    cert_boost: Optional[float] = Field(None, ge=0)
    boost_verified_certs: Optional[bool] = None
    tool_synonyms: Optional[Dict[str, Any]] = None
    industry_synonyms: Optional[Dict[str, Any]] = None
    min_score_default: Optional[float] = Field(None, ge=0)
    max_invites_default: Optional[int] = Field(None, ge=1, le=100)
    sla_hours: Optional[int] = Field(None, ge=1)
