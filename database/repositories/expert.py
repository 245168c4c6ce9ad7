import logging
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from database.models import ExpertProfile, Profile
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ExpertRepository(BaseRepository):
    def get_candidate_pool(self) -> List[ExpertProfile]:
        """All active experts with certifications and case studies eagerly loaded."""
        stmt = (
            select(ExpertProfile)
            .where(ExpertProfile.is_active.is_(True))
            .options(
                selectinload(ExpertProfile.certifications),
                selectinload(ExpertProfile.case_studies),
            )
            .order_by(ExpertProfile.user_id)
        )
        return self.db.execute(stmt).scalars().all()

    def get_expert(self, user_id: Any) -> Optional[ExpertProfile]:
        stmt = (
            select(ExpertProfile)
            .where(ExpertProfile.user_id == user_id)
            .options(
                selectinload(ExpertProfile.certifications),
                selectinload(ExpertProfile.case_studies),
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_profile(self, user_id: Any) -> Optional[Profile]:
        stmt = select(Profile).where(Profile.user_id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()
