import logging

from sqlalchemy.orm import Session

from database.repositories import (
    BriefRepository,
    ExpertRepository,
    InviteRepository,
    MatchingRunRepository,
    NotificationRepository,
    SettingsRepository,
)

logger = logging.getLogger(__name__)


class MarketplaceRepository:
    """
    All repositories bound to one Session.

    This is what a unit of work hands out; services take it as their
    only persistence dependency.
    """

    def __init__(self, db: Session):
        self.db = db
        self.briefs = BriefRepository(db)
        self.experts = ExpertRepository(db)
        self.invites = InviteRepository(db)
        self.runs = MatchingRunRepository(db)
        self.notifications = NotificationRepository(db)
        self.settings = SettingsRepository(db)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
