import uuid

from sqlalchemy import Column, Text, TIMESTAMP, Integer, Uuid, UniqueConstraint, Index, func

from .base import Base, JSONType


class EmailOutbox(Base):
    """
    One email delivery, queued -> sent | failed.

    dedup_key is (event, recipient, template) so a redelivered event
    finds its existing row instead of sending twice.
    """
    __tablename__ = 'email_outbox'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Text, nullable=True)
    dedup_key = Column(Text, nullable=False)

    to_email = Column(Text, nullable=False)
    template_code = Column(Text, nullable=False)
    payload = Column(JSONType, default=dict)
    subject = Column(Text, nullable=True)

    status = Column(Text, nullable=False, default='queued')  # queued, sent, failed
    provider_id = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    sent_at = Column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint('dedup_key', name='uq_email_outbox_dedup'),
        Index('idx_email_outbox_status', 'status', 'created_at'),
    )


class Notification(Base):
    """
    In-app notification shown to a user.

    Written for every dispatched event regardless of email outcome.
    read_at is set once.
    """
    __tablename__ = 'notifications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    type = Column(Text, nullable=False)  # template code
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=True)
    cta_text = Column(Text, nullable=True)
    cta_url = Column(Text, nullable=True)
    related_brief_id = Column(Uuid, nullable=True)
    dedup_key = Column(Text, nullable=False)

    read_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('dedup_key', name='uq_notifications_dedup'),
        Index('idx_notifications_user_created', 'user_id', 'created_at'),
    )
