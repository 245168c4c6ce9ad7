import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func

from database.models import EmailOutbox, Notification
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository):
    # ============ Email outbox ============

    def get_outbox_by_dedup(self, dedup_key: str) -> Optional[EmailOutbox]:
        stmt = select(EmailOutbox).where(EmailOutbox.dedup_key == dedup_key)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_outbox(self, outbox_id: Any) -> Optional[EmailOutbox]:
        stmt = select(EmailOutbox).where(EmailOutbox.id == outbox_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_outbox(
        self,
        dedup_key: str,
        to_email: str,
        template_code: str,
        payload: Dict[str, Any],
        subject: Optional[str] = None,
        event_id: Optional[str] = None
    ) -> EmailOutbox:
        entry = EmailOutbox(
            dedup_key=dedup_key,
            event_id=event_id,
            to_email=to_email,
            template_code=template_code,
            payload=payload,
            subject=subject,
            status='queued',
            attempts=0,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def mark_outbox_sent(self, outbox_id: Any, provider_id: Optional[str], attempts: int, now: datetime) -> None:
        self.db.execute(
            update(EmailOutbox)
            .where(EmailOutbox.id == outbox_id)
            .values(status='sent', provider_id=provider_id, error=None, attempts=attempts, sent_at=now)
            .execution_options(synchronize_session=False)
        )

    def mark_outbox_failed(self, outbox_id: Any, error: str, attempts: int) -> None:
        self.db.execute(
            update(EmailOutbox)
            .where(EmailOutbox.id == outbox_id)
            .values(status='failed', error=error[:2000], attempts=attempts)
            .execution_options(synchronize_session=False)
        )

    def list_retryable_outbox(self, limit: int, max_attempts: int) -> List[EmailOutbox]:
        """queued or failed rows that still have attempts left, oldest first."""
        stmt = (
            select(EmailOutbox)
            .where(
                EmailOutbox.status.in_(['queued', 'failed']),
                EmailOutbox.attempts < max_attempts
            )
            .order_by(EmailOutbox.created_at, EmailOutbox.id)
            .limit(limit)
        )
        return self.db.execute(stmt).scalars().all()

    # ============ In-app notifications ============

    def get_notification(self, notification_id: Any) -> Optional[Notification]:
        stmt = select(Notification).where(Notification.id == notification_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_notification_by_dedup(self, dedup_key: str) -> Optional[Notification]:
        stmt = select(Notification).where(Notification.dedup_key == dedup_key)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_notification(
        self,
        dedup_key: str,
        user_id: Any,
        type: str,
        title: str,
        body: Optional[str] = None,
        cta_text: Optional[str] = None,
        cta_url: Optional[str] = None,
        related_brief_id: Optional[Any] = None
    ) -> Notification:
        """Create the notification unless one with the same dedup key exists."""
        existing = self.get_notification_by_dedup(dedup_key)
        if existing is not None:
            return existing

        notification = Notification(
            dedup_key=dedup_key,
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            cta_text=cta_text,
            cta_url=cta_url,
            related_brief_id=related_brief_id,
        )
        self.db.add(notification)
        self.db.flush()
        return notification

    def list_for_user(self, user_id: Any, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
        return self.db.execute(stmt).scalars().all()

    def mark_read(self, notification_id: Any, now: datetime) -> bool:
        """Set read_at once; later calls leave the first value."""
        result = self.db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.read_at.is_(None))
            .values(read_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def count_unread(self, user_id: Any) -> int:
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read_at.is_(None))
        )
        return self.db.execute(stmt).scalar_one()
