import logging
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, func

from database.models import Brief, ExpertInvite
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class BriefRepository(BaseRepository):
    def get_by_id(self, brief_id: Any) -> Optional[Brief]:
        stmt = select(Brief).where(Brief.id == brief_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def claim_selection(self, brief_id: Any, expert_id: Any, expected_current: Optional[Any] = None) -> bool:
        """
        Compare-and-set selected_expert_id in a single conditional UPDATE.

        Only succeeds when the column still holds expected_current (NULL for a
        first selection). Concurrent callers serialize on the row; the loser
        sees rowcount 0.
        """
        condition = (
            Brief.selected_expert_id.is_(None)
            if expected_current is None
            else Brief.selected_expert_id == expected_current
        )
        result = self.db.execute(
            update(Brief)
            .where(Brief.id == brief_id, condition)
            .values(selected_expert_id=expert_id, status='expert_selected', updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_status(self, brief_id: Any, status: str, only_from: Optional[Sequence[str]] = None) -> bool:
        """Move a brief to status, optionally only from one of the given statuses."""
        stmt = update(Brief).where(Brief.id == brief_id)
        if only_from:
            stmt = stmt.where(Brief.status.in_(list(only_from)))
        result = self.db.execute(
            stmt.values(status=status, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_matched(self, brief_id: Any, when: datetime) -> None:
        self.db.execute(
            update(Brief)
            .where(Brief.id == brief_id)
            .values(matched_at=when)
            .execution_options(synchronize_session=False)
        )

    def list_unmatched_since(self, since: datetime, statuses: Sequence[str] = ('submitted',)) -> List[Brief]:
        """Briefs created after `since` that no ranking has been run for."""
        stmt = (
            select(Brief)
            .where(
                Brief.created_at >= since,
                Brief.matched_at.is_(None),
                Brief.status.in_(list(statuses))
            )
            .order_by(Brief.created_at)
        )
        return self.db.execute(stmt).scalars().all()

    def list_awaiting_choice(self, accepted_before: datetime) -> List[Tuple[Brief, int]]:
        """
        Unresolved briefs whose first acceptance came in before `accepted_before`
        and whose client has not been reminded yet, with their accepted count.
        """
        accepted = (
            select(
                ExpertInvite.brief_id,
                func.min(ExpertInvite.responded_at).label('first_accepted_at'),
                func.count().label('accepted_count'),
            )
            .where(ExpertInvite.status == 'accepted')
            .group_by(ExpertInvite.brief_id)
            .subquery()
        )
        stmt = (
            select(Brief, accepted.c.accepted_count)
            .join(accepted, accepted.c.brief_id == Brief.id)
            .where(
                Brief.selected_expert_id.is_(None),
                Brief.client_nudged_at.is_(None),
                Brief.status == 'expert_responses_received',
                accepted.c.first_accepted_at <= accepted_before,
            )
            .order_by(accepted.c.first_accepted_at)
        )
        return [(brief, count) for brief, count in self.db.execute(stmt).all()]

    def mark_client_nudged(self, brief_id: Any, now: datetime) -> bool:
        """Set client_nudged_at once, while no expert is selected."""
        result = self.db.execute(
            update(Brief)
            .where(
                Brief.id == brief_id,
                Brief.selected_expert_id.is_(None),
                Brief.client_nudged_at.is_(None)
            )
            .values(client_nudged_at=now, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
