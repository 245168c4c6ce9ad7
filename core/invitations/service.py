#!/usr/bin/env python3
"""
Invitation Lifecycle Manager.

Turns ranked candidates into time-boxed invites and applies expert
actions to them. Every write is a conditional UPDATE on the expected
current status, so responses from different experts on the same brief
run fully in parallel and a stale or expired invite is refused rather
than overwritten.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from core.errors import ConflictError, InvalidTransitionError, NotFoundError
from core.events import EventType, LifecycleEvent, invite_changed
from core.invitations.messages import build_invitation_message
from core.invitations.state import (
    BriefStatus, InviteStatus, RESPONSE_ACTIONS, is_expired
)
from core.scorer import MatchCandidateResult
from core.utils import utcnow, ensure_utc
from database.models import ExpertInvite
from database.repository import MarketplaceRepository

logger = logging.getLogger(__name__)


class ProposalDetails(BaseModel):
    """Structured proposal attached to an acceptance, handed on to proposal creation."""
    model_config = ConfigDict(extra='forbid')

    estimated_hours: Optional[float] = None
    hourly_rate: Optional[float] = None
    timeline_days: Optional[int] = None
    approach_summary: Optional[str] = None


@dataclass
class InviteCreationResult:
    brief_id: Any
    created: List[ExpertInvite] = field(default_factory=list)
    skipped: List[Any] = field(default_factory=list)
    events: List[LifecycleEvent] = field(default_factory=list)


@dataclass
class InviteResponseResult:
    invite: ExpertInvite
    brief_status: Optional[str] = None
    events: List[LifecycleEvent] = field(default_factory=list)


class InvitationService:
    """
    Creates invites and drives them through sent -> accepted | declined.

    Args:
        response_window_hours: Time an expert has to respond (default 120h)
    """

    def __init__(self, response_window_hours: int = 120):
        self.response_window = timedelta(hours=response_window_hours)

    # ============ Creation ============

    def _build_invite(self, brief, candidate: MatchCandidateResult, now: datetime) -> ExpertInvite:
        expires_at = now + self.response_window
        return ExpertInvite(
            brief_id=brief.id,
            expert_user_id=candidate.candidate_id,
            status=InviteStatus.SENT.value,
            score_at_invite=candidate.score,
            reasons=list(candidate.reasons),
            flags=list(candidate.flags),
            invitation_message=build_invitation_message(brief.title, candidate.reasons, candidate.flags, expires_at),
            sent_at=now,
            expires_at=expires_at,
        )

    def _sent_event(self, brief, invite: ExpertInvite) -> LifecycleEvent:
        return LifecycleEvent(
            event_type=EventType.INVITE_SENT,
            brief_id=brief.id,
            expert_id=invite.expert_user_id,
            invite_id=invite.id,
            payload={
                'brief_title': brief.title,
                'score': invite.score_at_invite,
                'reasons': list(invite.reasons or []),
                'expires_at': ensure_utc(invite.expires_at).isoformat(),
            },
        )

    def create_invites(
        self,
        repo: MarketplaceRepository,
        brief_id: Any,
        candidates: Iterable[MatchCandidateResult],
        now: Optional[datetime] = None
    ) -> InviteCreationResult:
        """
        Create one 'sent' invite per ranked candidate.

        Pairs that already have an invite are skipped, never duplicated.
        The brief moves to proposal_ready once at least one invite exists.

        Raises:
            NotFoundError: If the brief does not exist
        """
        now = now or utcnow()
        brief = repo.briefs.get_by_id(brief_id)
        if brief is None:
            raise NotFoundError(f"Brief {brief_id} not found")

        result = InviteCreationResult(brief_id=brief_id)
        already_invited = repo.invites.invited_expert_ids(brief_id)

        for candidate in candidates:
            if candidate.candidate_id in already_invited:
                logger.info(f"Skipping duplicate invite for expert {candidate.candidate_id} on brief {brief_id}")
                result.skipped.append(candidate.candidate_id)
                continue

            invite = self._build_invite(brief, candidate, now)
            if not repo.invites.add_if_absent(invite):
                result.skipped.append(candidate.candidate_id)
                continue

            already_invited.add(candidate.candidate_id)
            result.created.append(invite)
            result.events.append(self._sent_event(brief, invite))
            result.events.append(invite_changed(invite))

        if result.created:
            repo.briefs.set_status(
                brief_id,
                BriefStatus.PROPOSAL_READY.value,
                only_from=[BriefStatus.SUBMITTED.value, BriefStatus.NEEDS_MORE_EXPERTS.value]
            )

        logger.info(f"Brief {brief_id}: {len(result.created)} invites created, {len(result.skipped)} skipped")
        return result

    def create_invite(
        self,
        repo: MarketplaceRepository,
        brief_id: Any,
        candidate: MatchCandidateResult,
        now: Optional[datetime] = None
    ) -> InviteCreationResult:
        """Create a single invite; an existing (brief, expert) pair is a Conflict."""
        result = self.create_invites(repo, brief_id, [candidate], now=now)
        if not result.created:
            raise ConflictError(f"Expert {candidate.candidate_id} is already invited to brief {brief_id}")
        return result

    # ============ Expert actions ============

    def _load_for_expert(self, repo: MarketplaceRepository, invite_id: Any, expert_id: Optional[Any]) -> ExpertInvite:
        invite = repo.invites.get_by_id(invite_id)
        # Someone else's invite is reported as missing
        if invite is None or (expert_id is not None and invite.expert_user_id != expert_id):
            raise NotFoundError(f"Invite {invite_id} not found")
        return invite

    def mark_viewed(
        self,
        repo: MarketplaceRepository,
        invite_id: Any,
        expert_id: Optional[Any] = None,
        now: Optional[datetime] = None
    ) -> ExpertInvite:
        """Record the first view of a 'sent' invite. Later views keep the first timestamp."""
        now = now or utcnow()
        invite = self._load_for_expert(repo, invite_id, expert_id)
        if repo.invites.mark_viewed(invite.id, now):
            logger.info(f"Invite {invite.id} viewed by expert {invite.expert_user_id}")
            repo.db.refresh(invite)
        return invite

    def respond(
        self,
        repo: MarketplaceRepository,
        invite_id: Any,
        action: str,
        message: Optional[str] = None,
        proposal_details: Optional[Dict[str, Any]] = None,
        expert_id: Optional[Any] = None,
        now: Optional[datetime] = None
    ) -> InviteResponseResult:
        """
        Accept or decline an invite.

        Args:
            repo: Repository bound to the caller's unit of work
            invite_id: Invite being answered
            action: 'accept' or 'decline'
            message: Optional note to the client
            proposal_details: Hours, rate, timeline and approach (accept only)
            expert_id: Acting expert; must own the invite when given
            now: Clock override

        Raises:
            NotFoundError: Unknown invite, or not the acting expert's
            InvalidTransitionError: Unknown action, expired or already answered
        """
        now = now or utcnow()
        new_status = RESPONSE_ACTIONS.get((action or "").strip().lower())
        if new_status is None:
            raise InvalidTransitionError(f"Unknown invite action '{action}'. Valid options: accept, decline")

        invite = self._load_for_expert(repo, invite_id, expert_id)

        details = None
        if new_status == InviteStatus.ACCEPTED and proposal_details:
            details = ProposalDetails.model_validate(proposal_details).model_dump(exclude_none=True)

        if not repo.invites.record_response(invite.id, new_status.value, now, message=message, proposal_details=details):
            reason = "expired" if is_expired(invite, now) else f"already {invite.status}"
            logger.info(f"Rejected {action} on invite {invite.id}: {reason}")
            raise InvalidTransitionError(f"Invite {invite.id} is not respondable ({reason})")

        repo.db.refresh(invite)
        brief = repo.briefs.get_by_id(invite.brief_id)
        brief_title = brief.title if brief is not None else ""
        result = InviteResponseResult(invite=invite)

        if new_status == InviteStatus.ACCEPTED:
            if repo.briefs.set_status(
                invite.brief_id,
                BriefStatus.EXPERT_RESPONSES_RECEIVED.value,
                only_from=[BriefStatus.SUBMITTED.value, BriefStatus.PROPOSAL_READY.value, BriefStatus.NEEDS_MORE_EXPERTS.value]
            ):
                result.brief_status = BriefStatus.EXPERT_RESPONSES_RECEIVED.value
            result.events.append(LifecycleEvent(
                event_type=EventType.INVITE_ACCEPTED,
                brief_id=invite.brief_id,
                expert_id=invite.expert_user_id,
                invite_id=invite.id,
                payload={
                    'brief_title': brief_title,
                    'response_message': message,
                    'proposal_details': details or {},
                },
            ))
        else:
            result.events.append(LifecycleEvent(
                event_type=EventType.INVITE_DECLINED,
                brief_id=invite.brief_id,
                expert_id=invite.expert_user_id,
                invite_id=invite.id,
                payload={'brief_title': brief_title, 'response_message': message},
            ))
            if repo.invites.count_live(invite.brief_id, now) == 0 and repo.briefs.set_status(
                invite.brief_id,
                BriefStatus.NEEDS_MORE_EXPERTS.value,
                only_from=[BriefStatus.SUBMITTED.value, BriefStatus.PROPOSAL_READY.value]
            ):
                result.brief_status = BriefStatus.NEEDS_MORE_EXPERTS.value
                result.events.append(LifecycleEvent(
                    event_type=EventType.BRIEF_NEEDS_MORE_EXPERTS,
                    brief_id=invite.brief_id,
                    payload={'brief_title': brief_title},
                ))

        result.events.append(invite_changed(invite))
        logger.info(f"Invite {invite.id} {invite.status} by expert {invite.expert_user_id}")
        return result

    # ============ Queries ============

    def list_pending_for_expert(
        self,
        repo: MarketplaceRepository,
        expert_id: Any,
        now: Optional[datetime] = None
    ) -> List[ExpertInvite]:
        """Invites the expert can still answer; expired ones are excluded."""
        return repo.invites.list_pending_for_expert(expert_id, now or utcnow())

    def find_expired(
        self,
        repo: MarketplaceRepository,
        now: Optional[datetime] = None
    ) -> Dict[Any, List[ExpertInvite]]:
        """
        'sent' invites past their window, grouped by brief.

        Reporting only: nothing is written, expiry stays derived.
        """
        grouped: Dict[Any, List[ExpertInvite]] = defaultdict(list)
        for invite in repo.invites.list_expired(now or utcnow()):
            grouped[invite.brief_id].append(invite)
        return dict(grouped)

    def briefs_needing_rollover(
        self,
        repo: MarketplaceRepository,
        now: Optional[datetime] = None
    ) -> List[Any]:
        """Unresolved briefs whose invites have all run out without an acceptance."""
        now = now or utcnow()
        brief_ids = []
        for brief_id in self.find_expired(repo, now):
            brief = repo.briefs.get_by_id(brief_id)
            if brief is None or brief.selected_expert_id is not None:
                continue
            if repo.invites.count_live(brief_id, now) == 0:
                brief_ids.append(brief_id)
        return brief_ids

    # ============ Reminders ============

    def collect_expert_nudges(
        self,
        repo: MarketplaceRepository,
        after_hours: int = 48,
        now: Optional[datetime] = None
    ) -> List[LifecycleEvent]:
        """
        Claim reminders for invites still unanswered after `after_hours`.

        Only invites that can still be answered qualify. Each invite is
        claimed with a set-once update, so it is reminded at most once.
        """
        now = now or utcnow()
        events = []
        for invite in repo.invites.list_unanswered_since(now - timedelta(hours=after_hours), now):
            if not repo.invites.mark_nudged(invite.id, now):
                continue
            events.append(LifecycleEvent(
                event_type=EventType.EXPERT_NUDGE_PROPOSE,
                brief_id=invite.brief_id,
                expert_id=invite.expert_user_id,
                invite_id=invite.id,
                payload={
                    'brief_title': invite.brief.title,
                    'expires_at': ensure_utc(invite.expires_at).isoformat(),
                },
            ))
        logger.info(f"Claimed {len(events)} expert reminder(s)")
        return events

    def collect_client_nudges(
        self,
        repo: MarketplaceRepository,
        after_hours: int = 72,
        now: Optional[datetime] = None
    ) -> List[LifecycleEvent]:
        """Claim one reminder per brief whose client has left accepted experts waiting."""
        now = now or utcnow()
        events = []
        for brief, accepted_count in repo.briefs.list_awaiting_choice(now - timedelta(hours=after_hours)):
            if not repo.briefs.mark_client_nudged(brief.id, now):
                continue
            events.append(LifecycleEvent(
                event_type=EventType.CLIENT_NUDGE_CHOOSE,
                brief_id=brief.id,
                payload={
                    'brief_title': brief.title,
                    'client_user_id': str(brief.client_user_id) if brief.client_user_id else None,
                    'accepted_count': accepted_count,
                },
            ))
        logger.info(f"Claimed {len(events)} client reminder(s)")
        return events
