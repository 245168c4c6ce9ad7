#!/usr/bin/env python3
"""
Test suite configuration and utilities.

All tests can be run with standard Python tools:

    # Run all tests
    python -m pytest tests/ -v

    # Skip the tests that create SQLite databases
    python -m pytest tests/ -v -m "not db"

    # Using unittest
    python -m unittest discover tests -v

Database tests run against SQLite (in memory, or a temporary file when
several threads need their own connections). The schema is portable:
Uuid columns and JSON with a JSONB variant on PostgreSQL.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.scorer import MatchCandidateResult
from database.models import (
    Base, Profile, Brief, ExpertProfile, ExpertCertification, CaseStudy, ExpertInvite
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ============ Engines ============

def make_memory_engine():
    """Single shared in-memory SQLite connection, usable from the TestClient thread."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


def make_file_engine(path: str):
    """
    File-backed SQLite for tests where threads hold their own connections.

    Transactions start with BEGIN IMMEDIATE so concurrent writers queue on
    the database lock instead of failing with 'database is locked'.
    """
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    return engine


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ============ Seed data ============

def add_profile(session, role: str = 'expert', full_name: Optional[str] = None, email: Optional[str] = None) -> Profile:
    user_id = uuid.uuid4()
    profile = Profile(
        user_id=user_id,
        full_name=full_name or f"{role.title()} {str(user_id)[:6]}",
        email=email if email is not None else f"{role}-{str(user_id)[:8]}@example.com",
        role=role,
    )
    session.add(profile)
    session.flush()
    return profile


def add_expert(
    session,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    outcomes: Optional[List[str]] = None,
    tools: Optional[List[str]] = None,
    industries: Optional[List[str]] = None,
    weekly_hours: Optional[int] = 40,
    band_min: Optional[float] = None,
    band_max: Optional[float] = None,
    verified_cert_tools: Optional[List[str]] = None,
    case_study_tags: Optional[List[str]] = None,
    is_active: bool = True,
) -> ExpertProfile:
    profile = add_profile(session, role='expert', full_name=full_name, email=email)
    expert = ExpertProfile(
        user_id=profile.user_id,
        headline="Automation expert",
        outcome_preferences=outcomes or [],
        tools=tools or [],
        practical_skills=[],
        industries=industries or [],
        availability_weekly_hours=weekly_hours,
        outcome_band_min=band_min,
        outcome_band_max=band_max,
        is_active=is_active,
    )
    session.add(expert)
    session.flush()

    for tool in verified_cert_tools or []:
        session.add(ExpertCertification(user_id=profile.user_id, tool=tool, status='verified', verified_at=NOW))
    if case_study_tags is not None:
        session.add(CaseStudy(
            user_id=profile.user_id,
            title="Delivered project",
            outcome_tags=case_study_tags,
            is_verified=True,
        ))
    session.flush()
    return expert


def add_brief(
    session,
    client: Optional[Profile] = None,
    title: str = "CRM automation",
    outcomes: Optional[List[str]] = None,
    tools: Optional[List[str]] = None,
    industries: Optional[List[str]] = None,
    budget_max: Optional[float] = None,
    urgency: Optional[str] = 'standard',
    status: str = 'submitted',
    created_at: Optional[datetime] = None,
) -> Brief:
    client = client or add_profile(session, role='client')
    structured: Dict[str, Any] = {
        'outcomes': outcomes or [],
        'tools': tools or [],
        'industries': industries or [],
    }
    if budget_max is not None:
        structured['budget_max'] = budget_max

    brief = Brief(
        id=uuid.uuid4(),
        client_user_id=client.user_id,
        title=title,
        structured_brief=structured,
        urgency=urgency,
        status=status,
    )
    if created_at is not None:
        brief.created_at = created_at
    session.add(brief)
    session.flush()
    return brief


def add_invite(
    session,
    brief: Brief,
    expert: ExpertProfile,
    status: str = 'sent',
    score: float = 0.8,
    sent_at: datetime = NOW,
    window_hours: int = 120,
    proposal_details: Optional[Dict[str, Any]] = None,
) -> ExpertInvite:
    invite = ExpertInvite(
        brief_id=brief.id,
        expert_user_id=expert.user_id,
        status=status,
        score_at_invite=score,
        reasons=["Tools: HubSpot"],
        flags=[],
        invitation_message="You have been matched.",
        sent_at=sent_at,
        expires_at=sent_at + timedelta(hours=window_hours),
        responded_at=sent_at + timedelta(hours=1) if status != 'sent' else None,
        proposal_details=proposal_details,
    )
    session.add(invite)
    session.flush()
    return invite


def candidate(candidate_id: Any, score: float = 0.8, reasons: Optional[List[str]] = None, flags: Optional[List[str]] = None) -> MatchCandidateResult:
    return MatchCandidateResult(
        candidate_id=candidate_id,
        score=score,
        components={'outcome': 1.0},
        reasons=reasons if reasons is not None else ["Outcome fit: Sales Uplift"],
        flags=flags or [],
    )
