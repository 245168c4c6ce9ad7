#!/usr/bin/env python3
"""
Read-side queries for briefs, invites, matching runs and notifications.

Writes that change invite or brief state go through pipeline.runner so
their events are published after commit.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.errors import NotFoundError
from core.invitations import InvitationService, describe_invite
from core.utils import utcnow
from database.models import MatchingRun, Notification
from database.repository import MarketplaceRepository
from ..utils import safe_datetime_iso, safe_str

logger = logging.getLogger(__name__)


def _run_to_dict(run: MatchingRun) -> Dict[str, Any]:
    return {
        'id': str(run.id),
        'brief_id': str(run.brief_id),
        'min_score': run.min_score,
        'max_results': run.max_results,
        'widen': bool(run.widen),
        'weights': run.weights or {},
        'pool_size': run.pool_size,
        'result_count': run.result_count,
        'brief_found': bool(run.brief_found),
        'scoring_errors': run.scoring_errors or 0,
        'created_at': safe_datetime_iso(run.created_at),
    }


def _notification_to_dict(notification: Notification) -> Dict[str, Any]:
    return {
        'id': str(notification.id),
        'type': notification.type,
        'title': notification.title,
        'body': notification.body,
        'cta_text': notification.cta_text,
        'cta_url': notification.cta_url,
        'related_brief_id': safe_str(notification.related_brief_id),
        'read_at': safe_datetime_iso(notification.read_at),
        'created_at': safe_datetime_iso(notification.created_at),
    }


class MarketplaceQueryService:
    """Queries behind the reporting and notification endpoints."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MarketplaceRepository(db)

    def list_runs(self, brief_id: Any, limit: int = 50) -> List[Dict[str, Any]]:
        return [_run_to_dict(run) for run in self.repo.runs.list_for_brief(brief_id, limit=limit)]

    def list_brief_invites(self, brief_id: Any) -> List[Dict[str, Any]]:
        """Every invite of a brief, best score first, with derived expiry."""
        if self.repo.briefs.get_by_id(brief_id) is None:
            raise NotFoundError(f"Brief {brief_id} not found")
        now = utcnow()
        return [describe_invite(invite, now) for invite in self.repo.invites.list_for_brief(brief_id)]

    def list_pending_for_expert(self, expert_id: Any) -> List[Dict[str, Any]]:
        now = utcnow()
        invites = InvitationService().list_pending_for_expert(self.repo, expert_id, now=now)
        return [describe_invite(invite, now) for invite in invites]

    def list_expired(self) -> Dict[str, List[Dict[str, Any]]]:
        now = utcnow()
        grouped = InvitationService().find_expired(self.repo, now=now)
        return {
            str(brief_id): [describe_invite(invite, now) for invite in invites]
            for brief_id, invites in grouped.items()
        }

    def list_notifications(self, user_id: Any, unread_only: bool = False, limit: int = 50) -> Dict[str, Any]:
        notifications = self.repo.notifications.list_for_user(user_id, unread_only=unread_only, limit=limit)
        return {
            'notifications': [_notification_to_dict(n) for n in notifications],
            'unread': self.repo.notifications.count_unread(user_id),
        }

    def mark_notification_read(self, notification_id: Any) -> Dict[str, Any]:
        """Set read_at once; repeated calls return the first timestamp."""
        if self.repo.notifications.get_notification(notification_id) is None:
            raise NotFoundError(f"Notification {notification_id} not found")

        if self.repo.notifications.mark_read(notification_id, utcnow()):
            self.db.commit()

        notification = self.repo.notifications.get_notification(notification_id)
        self.db.refresh(notification)
        return _notification_to_dict(notification)
