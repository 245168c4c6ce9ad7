#!/usr/bin/env python3
"""
Selection Coordinator - at most one winner per brief.

Selection and admin reassignment share one path. The brief row is
claimed with a single conditional UPDATE on selected_expert_id (NULL for
a first selection, the current winner for a reassignment). Two callers
racing for the same brief serialize on that row; the one that finds the
column already changed gets ConflictError and its transaction is rolled
back by the unit of work, leaving no partial state.

Transitions here are never retried.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from core.errors import ConflictError, InvalidTransitionError, NotFoundError
from core.events import EventType, LifecycleEvent, invite_changed
from core.invitations.state import InviteStatus
from core.utils import utcnow
from database.models import ExpertInvite
from database.repository import MarketplaceRepository

logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    brief_id: Any
    expert_id: Any
    invite: ExpertInvite
    not_selected: List[ExpertInvite] = field(default_factory=list)
    previous_expert_id: Optional[Any] = None
    already_selected: bool = False
    events: List[LifecycleEvent] = field(default_factory=list)


class SelectionCoordinator:

    def select_expert(
        self,
        repo: MarketplaceRepository,
        brief_id: Any,
        expert_id: Any,
        now: Optional[datetime] = None
    ) -> SelectionResult:
        """
        Finalize an accepted invite as the brief's winner.

        Raises:
            NotFoundError: Brief or invite missing
            InvalidTransitionError: The expert's invite is not 'accepted'
            ConflictError: The brief already has a winner
        """
        return self._finalize(repo, brief_id, expert_id, now or utcnow(), reassign=False)

    def reassign(
        self,
        repo: MarketplaceRepository,
        brief_id: Any,
        expert_id: Any,
        actor_id: Optional[Any] = None,
        now: Optional[datetime] = None
    ) -> SelectionResult:
        """
        Admin move of the win to another accepted expert.

        The previous winner becomes not_selected. A concurrent selection or
        reassignment that lands first turns this call into a ConflictError.
        """
        logger.info(f"Reassignment of brief {brief_id} to expert {expert_id} requested by {actor_id or 'admin'}")
        return self._finalize(repo, brief_id, expert_id, now or utcnow(), reassign=True, actor_id=actor_id)

    def _finalize(
        self,
        repo: MarketplaceRepository,
        brief_id: Any,
        expert_id: Any,
        now: datetime,
        reassign: bool,
        actor_id: Optional[Any] = None
    ) -> SelectionResult:
        brief = repo.briefs.get_by_id(brief_id)
        if brief is None:
            raise NotFoundError(f"Brief {brief_id} not found")

        invite = repo.invites.get_for_pair(brief_id, expert_id)
        if invite is None:
            raise NotFoundError(f"No invite for expert {expert_id} on brief {brief_id}")

        current = brief.selected_expert_id

        if current is not None and current == expert_id and invite.status == InviteStatus.SELECTED.value:
            logger.info(f"Expert {expert_id} is already selected for brief {brief_id}")
            return SelectionResult(brief_id=brief_id, expert_id=expert_id, invite=invite, already_selected=True)

        if current is not None and not reassign:
            raise ConflictError(f"Brief {brief_id} already resolved")

        if invite.status != InviteStatus.ACCEPTED.value:
            raise InvalidTransitionError(
                f"Invite for expert {expert_id} on brief {brief_id} is '{invite.status}'; only accepted invites can be selected"
            )

        if not repo.briefs.claim_selection(brief_id, expert_id, expected_current=current):
            logger.warning(f"Selection conflict on brief {brief_id}: expert {expert_id} lost the race")
            raise ConflictError(f"Brief {brief_id} already resolved")

        if not repo.invites.transition(invite.id, InviteStatus.ACCEPTED.value, InviteStatus.SELECTED.value, now):
            raise ConflictError(f"Invite {invite.id} changed while selecting")

        demoted: List[ExpertInvite] = []
        previous_expert_id = None
        if reassign and current is not None:
            previous = repo.invites.get_for_pair(brief_id, current)
            if previous is not None and repo.invites.transition(
                previous.id, InviteStatus.SELECTED.value, InviteStatus.NOT_SELECTED.value, now
            ):
                demoted.append(previous)
                previous_expert_id = current

        demoted.extend(repo.invites.demote_accepted_siblings(brief_id, invite.id, now))

        repo.db.refresh(brief)
        repo.db.refresh(invite)
        for loser in demoted:
            repo.db.refresh(loser)

        result = SelectionResult(
            brief_id=brief_id,
            expert_id=expert_id,
            invite=invite,
            not_selected=demoted,
            previous_expert_id=previous_expert_id,
        )
        result.events = self._build_events(brief, invite, demoted, reassign, actor_id)

        logger.info(
            f"Brief {brief_id} resolved: expert {expert_id} selected, "
            f"{len(demoted)} not selected{' (reassigned)' if reassign else ''}"
        )
        return result

    def _build_events(self, brief, invite: ExpertInvite, demoted: List[ExpertInvite], reassign: bool, actor_id) -> List[LifecycleEvent]:
        events = [LifecycleEvent(
            event_type=EventType.PROPOSAL_ACCEPTED,
            brief_id=brief.id,
            expert_id=invite.expert_user_id,
            invite_id=invite.id,
            payload={
                'brief_title': brief.title,
                'client_user_id': str(brief.client_user_id) if brief.client_user_id else None,
                'score_at_invite': invite.score_at_invite,
                'proposal_details': invite.proposal_details or {},
                'reassigned': reassign,
                'actor_id': str(actor_id) if actor_id else None,
            },
        ), invite_changed(invite)]

        for loser in demoted:
            events.append(LifecycleEvent(
                event_type=EventType.SELECTION_NOT_SELECTED,
                brief_id=brief.id,
                expert_id=loser.expert_user_id,
                invite_id=loser.id,
                payload={'brief_title': brief.title},
            ))
            events.append(invite_changed(loser))
        return events
