import logging
from typing import Any, Dict, List

from sqlalchemy import select, func

from database.models import MatchingRun
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MatchingRunRepository(BaseRepository):
    def record_run(
        self,
        brief_id: Any,
        min_score: float,
        max_results: int,
        widen: bool,
        weights: Dict[str, Any],
        pool_size: int,
        result_count: int,
        brief_found: bool = True,
        scoring_errors: int = 0
    ) -> MatchingRun:
        run = MatchingRun(
            brief_id=brief_id,
            min_score=min_score,
            max_results=max_results,
            widen=widen,
            weights=weights,
            pool_size=pool_size,
            result_count=result_count,
            brief_found=brief_found,
            scoring_errors=scoring_errors,
        )
        self.db.add(run)
        self.db.flush()
        return run

    def list_for_brief(self, brief_id: Any, limit: int = 50) -> List[MatchingRun]:
        stmt = (
            select(MatchingRun)
            .where(MatchingRun.brief_id == brief_id)
            .order_by(MatchingRun.created_at.desc())
            .limit(limit)
        )
        return self.db.execute(stmt).scalars().all()

    def count_for_brief(self, brief_id: Any) -> int:
        stmt = select(func.count()).select_from(MatchingRun).where(MatchingRun.brief_id == brief_id)
        return self.db.execute(stmt).scalar_one()
