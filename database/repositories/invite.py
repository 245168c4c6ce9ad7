import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.exc import IntegrityError

from database.models import Brief, ExpertInvite
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class InviteRepository(BaseRepository):
    """
    ExpertInvite persistence.

    Every status change is a single conditional UPDATE that names the
    status it expects to leave; callers check the returned flag instead
    of reading then writing.
    """

    def get_by_id(self, invite_id: Any) -> Optional[ExpertInvite]:
        stmt = select(ExpertInvite).where(ExpertInvite.id == invite_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_for_pair(self, brief_id: Any, expert_id: Any) -> Optional[ExpertInvite]:
        stmt = select(ExpertInvite).where(
            ExpertInvite.brief_id == brief_id,
            ExpertInvite.expert_user_id == expert_id
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_brief(self, brief_id: Any) -> List[ExpertInvite]:
        stmt = (
            select(ExpertInvite)
            .where(ExpertInvite.brief_id == brief_id)
            .order_by(ExpertInvite.score_at_invite.desc(), ExpertInvite.expert_user_id)
        )
        return self.db.execute(stmt).scalars().all()

    def invited_expert_ids(self, brief_id: Any) -> Set[Any]:
        stmt = select(ExpertInvite.expert_user_id).where(ExpertInvite.brief_id == brief_id)
        return set(self.db.execute(stmt).scalars().all())

    def add_if_absent(self, invite: ExpertInvite) -> bool:
        """
        Insert an invite unless the (brief, expert) pair already exists.

        The insert runs in a savepoint so a unique violation from a
        concurrent creator only discards this row.
        """
        try:
            with self.db.begin_nested():
                self.db.add(invite)
                self.db.flush()
        except IntegrityError:
            logger.info(f"Invite for brief {invite.brief_id} / expert {invite.expert_user_id} already exists")
            return False
        return True

    def mark_viewed(self, invite_id: Any, now: datetime) -> bool:
        result = self.db.execute(
            update(ExpertInvite)
            .where(
                ExpertInvite.id == invite_id,
                ExpertInvite.status == 'sent',
                ExpertInvite.viewed_at.is_(None)
            )
            .values(viewed_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def record_response(
        self,
        invite_id: Any,
        new_status: str,
        now: datetime,
        message: Optional[str] = None,
        proposal_details: Optional[Dict[str, Any]] = None
    ) -> bool:
        """sent -> accepted | declined, only while the invite has not expired."""
        result = self.db.execute(
            update(ExpertInvite)
            .where(
                ExpertInvite.id == invite_id,
                ExpertInvite.status == 'sent',
                ExpertInvite.expires_at > now
            )
            .values(
                status=new_status,
                responded_at=now,
                response_message=message,
                proposal_details=proposal_details,
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def transition(self, invite_id: Any, from_status: str, to_status: str, now: datetime) -> bool:
        result = self.db.execute(
            update(ExpertInvite)
            .where(ExpertInvite.id == invite_id, ExpertInvite.status == from_status)
            .values(status=to_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def demote_accepted_siblings(self, brief_id: Any, winner_invite_id: Any, now: datetime) -> List[ExpertInvite]:
        """accepted -> not_selected for every other invite of the brief. Returns the demoted invites."""
        siblings = self.db.execute(
            select(ExpertInvite)
            .where(
                ExpertInvite.brief_id == brief_id,
                ExpertInvite.id != winner_invite_id,
                ExpertInvite.status == 'accepted'
            )
            .with_for_update()
        ).scalars().all()

        demoted = []
        for sibling in siblings:
            if self.transition(sibling.id, 'accepted', 'not_selected', now):
                demoted.append(sibling)
        return demoted

    def list_pending_for_expert(self, expert_id: Any, now: datetime) -> List[ExpertInvite]:
        """Invites the expert can still respond to."""
        stmt = (
            select(ExpertInvite)
            .where(
                ExpertInvite.expert_user_id == expert_id,
                ExpertInvite.status == 'sent',
                ExpertInvite.expires_at > now
            )
            .order_by(ExpertInvite.expires_at)
        )
        return self.db.execute(stmt).scalars().all()

    def list_expired(self, now: datetime, brief_id: Optional[Any] = None) -> List[ExpertInvite]:
        """'sent' invites whose response window has closed. Rows are not modified."""
        stmt = select(ExpertInvite).where(
            ExpertInvite.status == 'sent',
            ExpertInvite.expires_at <= now
        )
        if brief_id is not None:
            stmt = stmt.where(ExpertInvite.brief_id == brief_id)
        return self.db.execute(stmt.order_by(ExpertInvite.brief_id, ExpertInvite.expires_at)).scalars().all()

    def count_live(self, brief_id: Any, now: datetime) -> int:
        """Invites still in play: respondable, accepted or selected."""
        stmt = (
            select(func.count())
            .select_from(ExpertInvite)
            .where(
                ExpertInvite.brief_id == brief_id,
                or_(
                    ExpertInvite.status.in_(['accepted', 'selected']),
                    and_(ExpertInvite.status == 'sent', ExpertInvite.expires_at > now)
                )
            )
        )
        return self.db.execute(stmt).scalar_one()

    def count_by_status(self, brief_id: Any) -> Dict[str, int]:
        stmt = (
            select(ExpertInvite.status, func.count())
            .where(ExpertInvite.brief_id == brief_id)
            .group_by(ExpertInvite.status)
        )
        return {status: count for status, count in self.db.execute(stmt).all()}

    def list_unanswered_since(self, sent_before: datetime, now: datetime) -> List[ExpertInvite]:
        """
        Respondable invites sent before `sent_before` on briefs still waiting
        for proposals, that have not been reminded yet.
        """
        stmt = (
            select(ExpertInvite)
            .join(Brief, Brief.id == ExpertInvite.brief_id)
            .where(
                ExpertInvite.status == 'sent',
                ExpertInvite.sent_at <= sent_before,
                ExpertInvite.expires_at > now,
                ExpertInvite.nudged_at.is_(None),
                Brief.status == 'proposal_ready',
            )
            .order_by(ExpertInvite.sent_at)
        )
        return self.db.execute(stmt).scalars().all()

    def mark_nudged(self, invite_id: Any, now: datetime) -> bool:
        """Set nudged_at once, while the invite is still 'sent'."""
        result = self.db.execute(
            update(ExpertInvite)
            .where(
                ExpertInvite.id == invite_id,
                ExpertInvite.status == 'sent',
                ExpertInvite.nudged_at.is_(None)
            )
            .values(nudged_at=now, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
