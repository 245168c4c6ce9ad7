"""Marketplace workflows shared by main.py and the web application.

Each workflow runs its business logic inside one marketplace_uow() and
hands the resulting events to the notification service only after that
unit of work has committed. Results are returned as plain data because
ORM objects do not outlive their session.
"""

import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from core.app_context import AppContext
from core.events import LifecycleEvent
from core.invitations import InvitationService, InviteCreationResult
from core.invitations.state import BriefStatus, describe_invite
from core.ranker import CandidateRanker, RankingResult
from core.selection import SelectionCoordinator
from core.settings import EffectiveMatchingSettings, resolve_matching_settings
from core.utils import utcnow
from database.repository import MarketplaceRepository
from database.uow import marketplace_uow

logger = logging.getLogger(__name__)


@dataclass
class MatchAndInviteResult:
    """Result of ranking a brief and inviting its shortlist."""
    brief_id: Any
    ranking: Dict[str, Any]
    invited: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    events_published: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'brief_id': str(self.brief_id),
            'ranking': self.ranking,
            'invited': self.invited,
            'skipped': self.skipped,
            'events_published': self.events_published,
        }


@dataclass
class BatchResult:
    """Outcome of a batch workflow over many briefs."""
    processed: int = 0
    invited: int = 0
    failed: int = 0
    brief_ids: List[str] = field(default_factory=list)
    execution_time: float = 0.0


@dataclass
class NudgeResult:
    """Reminders claimed in one pass and how many were handed to delivery."""
    claimed: int = 0
    published: int = 0
    brief_ids: List[str] = field(default_factory=list)


# ============ Wiring helpers ============

def effective_settings(ctx: AppContext, repo: MarketplaceRepository) -> EffectiveMatchingSettings:
    """Configured defaults overlaid with the admin settings table."""
    return resolve_matching_settings(repo.settings.get_all(), ctx.config.matching, ctx.config.invitations)


def build_ranker(ctx: AppContext, settings: EffectiveMatchingSettings) -> CandidateRanker:
    return CandidateRanker.from_config(
        ctx.config.matching,
        scoring_config=settings.scoring,
        min_score=settings.min_score,
        max_results=settings.max_results,
    )


def publish_events(ctx: AppContext, events: List[LifecycleEvent]) -> int:
    """Hand committed events to the notification service. Delivery problems are logged, never raised."""
    published = 0
    for event in events:
        try:
            ctx.notification_service.publish(event)
            published += 1
        except Exception as e:
            logger.error(f"Failed to publish {event.event_type.value} ({event.event_id}): {e}")
    return published


def _invite_creation_summary(creation: InviteCreationResult, now: datetime) -> Dict[str, Any]:
    return {
        'invited': [describe_invite(invite, now) for invite in creation.created],
        'skipped': [str(expert_id) for expert_id in creation.skipped],
    }


# ============ Ranking and invitation ============

def run_ranking(
    ctx: AppContext,
    brief_id: Any,
    min_score: Optional[float] = None,
    max_results: Optional[int] = None,
    widen: bool = False
) -> RankingResult:
    """Rank the candidate pool for a brief and record the run."""
    with marketplace_uow(ctx.session_factory) as repo:
        settings = effective_settings(ctx, repo)
        ranker = build_ranker(ctx, settings)
        return ranker.rank(repo, brief_id, min_score=min_score, max_results=max_results, widen=widen)


def run_matching_and_invite(
    ctx: AppContext,
    brief_id: Any,
    min_score: Optional[float] = None,
    max_results: Optional[int] = None,
    widen: bool = False,
    now: Optional[datetime] = None
) -> MatchAndInviteResult:
    """
    Rank a brief and invite the shortlist.

    The ranking run, the invites and the brief status change commit
    together; invite.sent notifications go out afterwards.
    """
    now = now or utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        settings = effective_settings(ctx, repo)
        ranking = build_ranker(ctx, settings).rank(
            repo, brief_id, min_score=min_score, max_results=max_results, widen=widen
        )
        result = MatchAndInviteResult(brief_id=brief_id, ranking=ranking.to_dict())

        if not ranking.brief_found:
            return result

        events: List[LifecycleEvent] = []
        if ranking.candidates:
            invitations = InvitationService(response_window_hours=settings.response_window_hours)
            creation = invitations.create_invites(repo, brief_id, ranking.candidates, now=now)
            summary = _invite_creation_summary(creation, now)
            result.invited = summary['invited']
            result.skipped = summary['skipped']
            events = creation.events
        else:
            logger.info(f"Brief {brief_id}: no candidates above {ranking.metadata.get('min_score_used')}")

        repo.briefs.mark_matched(brief_id, now)

    result.events_published = publish_events(ctx, events)
    return result


def auto_match_pending_briefs(ctx: AppContext, now: Optional[datetime] = None) -> BatchResult:
    """
    Match and invite every recently submitted brief that was never matched.

    Each brief runs in its own unit of work; one failing brief is logged
    and does not stop the rest.
    """
    start = time.time()
    now = now or utcnow()
    since = now - timedelta(hours=ctx.config.invitations.auto_match_lookback_hours)

    with marketplace_uow(ctx.session_factory) as repo:
        brief_ids = [b.id for b in repo.briefs.list_unmatched_since(since, statuses=(BriefStatus.SUBMITTED.value,))]

    logger.info(f"Auto-match: {len(brief_ids)} brief(s) submitted since {since.isoformat()} without a match run")

    batch = BatchResult()
    for brief_id in brief_ids:
        batch.processed += 1
        try:
            result = run_matching_and_invite(ctx, brief_id, now=now)
            batch.invited += len(result.invited)
            batch.brief_ids.append(str(brief_id))
        except Exception as e:
            batch.failed += 1
            logger.error(f"Auto-match failed for brief {brief_id}: {e}")

    batch.execution_time = time.time() - start
    logger.info(f"Auto-match complete: {batch.processed} processed, {batch.invited} invited, {batch.failed} failed")
    return batch


def rollover_expired(ctx: AppContext, now: Optional[datetime] = None) -> BatchResult:
    """
    Invite fresh candidates to briefs whose every invite ran out unanswered.

    Expired invites are left as they are; the next rollover_count
    candidates of a fresh ranking who were never invited get invites.
    """
    start = time.time()
    now = now or utcnow()
    rollover_count = ctx.config.invitations.rollover_count

    with marketplace_uow(ctx.session_factory) as repo:
        settings = effective_settings(ctx, repo)
        invitations = InvitationService(response_window_hours=settings.response_window_hours)
        brief_ids = invitations.briefs_needing_rollover(repo, now)

    batch = BatchResult()
    for brief_id in brief_ids:
        batch.processed += 1
        try:
            events: List[LifecycleEvent] = []
            with marketplace_uow(ctx.session_factory) as repo:
                already_invited = repo.invites.invited_expert_ids(brief_id)
                ranking = build_ranker(ctx, settings).rank(
                    repo, brief_id, max_results=len(already_invited) + rollover_count
                )
                fresh = [c for c in ranking.candidates if c.candidate_id not in already_invited][:rollover_count]
                if fresh:
                    creation = invitations.create_invites(repo, brief_id, fresh, now=now)
                    batch.invited += len(creation.created)
                    events = creation.events
                else:
                    logger.warning(f"Rollover for brief {brief_id}: no uninvited candidates left")
            publish_events(ctx, events)
            batch.brief_ids.append(str(brief_id))
        except Exception as e:
            batch.failed += 1
            logger.error(f"Rollover failed for brief {brief_id}: {e}")

    batch.execution_time = time.time() - start
    logger.info(f"Rollover complete: {batch.processed} brief(s), {batch.invited} new invite(s)")
    return batch


# ============ Reminders ============

def nudge_pending_experts(ctx: AppContext, now: Optional[datetime] = None) -> NudgeResult:
    """Remind experts whose invite is still unanswered after expert_nudge_after_hours."""
    now = now or utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        events = InvitationService().collect_expert_nudges(
            repo, after_hours=ctx.config.invitations.expert_nudge_after_hours, now=now
        )

    result = NudgeResult(claimed=len(events), brief_ids=[str(e.brief_id) for e in events])
    result.published = publish_events(ctx, events)
    return result


def nudge_clients_to_choose(ctx: AppContext, now: Optional[datetime] = None) -> NudgeResult:
    """Remind clients who have accepted experts but no selection after client_nudge_after_hours."""
    now = now or utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        events = InvitationService().collect_client_nudges(
            repo, after_hours=ctx.config.invitations.client_nudge_after_hours, now=now
        )

    result = NudgeResult(claimed=len(events), brief_ids=[str(e.brief_id) for e in events])
    result.published = publish_events(ctx, events)
    return result


# ============ Expert actions ============

def view_invite(ctx: AppContext, invite_id: Any, expert_id: Optional[Any] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        invite = InvitationService().mark_viewed(repo, invite_id, expert_id=expert_id, now=now)
        return describe_invite(invite, now)


def respond_to_invite(
    ctx: AppContext,
    invite_id: Any,
    action: str,
    message: Optional[str] = None,
    proposal_details: Optional[Dict[str, Any]] = None,
    expert_id: Optional[Any] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Accept or decline an invite, then notify."""
    now = now or utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        response = InvitationService().respond(
            repo, invite_id, action,
            message=message,
            proposal_details=proposal_details,
            expert_id=expert_id,
            now=now
        )
        summary = {
            'invite': describe_invite(response.invite, now),
            'brief_status': response.brief_status,
        }
        events = response.events

    publish_events(ctx, events)
    return summary


# ============ Selection ============

def _selection_summary(selection, now: datetime) -> Dict[str, Any]:
    return {
        'brief_id': str(selection.brief_id),
        'expert_id': str(selection.expert_id),
        'invite': describe_invite(selection.invite, now),
        'not_selected': [str(invite.expert_user_id) for invite in selection.not_selected],
        'previous_expert_id': str(selection.previous_expert_id) if selection.previous_expert_id else None,
        'already_selected': selection.already_selected,
    }


def select_expert(ctx: AppContext, brief_id: Any, expert_id: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Finalize the client's choice; ConflictError if the brief is already resolved."""
    now = now or utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        selection = SelectionCoordinator().select_expert(repo, brief_id, expert_id, now=now)
        summary = _selection_summary(selection, now)
        events = selection.events

    publish_events(ctx, events)
    return summary


def reassign_expert(
    ctx: AppContext,
    brief_id: Any,
    expert_id: Any,
    actor_id: Optional[Any] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Admin override of the brief's winner."""
    now = now or utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        selection = SelectionCoordinator().reassign(repo, brief_id, expert_id, actor_id=actor_id, now=now)
        summary = _selection_summary(selection, now)
        events = selection.events

    publish_events(ctx, events)
    return summary


# ============ Notifications ============

def process_email_outbox(ctx: AppContext, batch_size: Optional[int] = None) -> Dict[str, int]:
    """Resend queued and failed outbox rows."""
    return ctx.dispatcher.process_outbox(batch_size=batch_size)
