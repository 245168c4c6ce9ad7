import uuid

from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Numeric, Uuid, UniqueConstraint, Index, func
from sqlalchemy.orm import relationship, validates

from .base import Base, JSONType


class ExpertInvite(Base):
    """
    One expert being offered one brief.

    Status moves sent -> accepted | declined -> selected | not_selected.
    Expiry is never stored as a status: a 'sent' invite past expires_at
    is treated as expired wherever it is read.

    Rows are never deleted; they are the audit trail of who was offered what.
    """
    __tablename__ = 'expert_invites'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    brief_id = Column(Uuid, ForeignKey('briefs.id'), nullable=False)
    expert_user_id = Column(Uuid, ForeignKey('profiles.user_id'), nullable=False)

    status = Column(Text, nullable=False, default='sent')

    # Frozen at creation; later re-scoring never touches it
    score_at_invite = Column(Numeric(6, 3, asdecimal=False), nullable=False)
    reasons = Column(JSONType, default=list)
    flags = Column(JSONType, default=list)
    invitation_message = Column(Text, nullable=True)

    sent_at = Column(TIMESTAMP(timezone=True), nullable=False)
    expires_at = Column(TIMESTAMP(timezone=True), nullable=False)
    viewed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    responded_at = Column(TIMESTAMP(timezone=True), nullable=True)
    # Set once when the "still waiting on your proposal" reminder goes out
    nudged_at = Column(TIMESTAMP(timezone=True), nullable=True)
    response_message = Column(Text, nullable=True)
    # estimated_hours, hourly_rate, timeline_days, approach_summary
    proposal_details = Column(JSONType, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    brief = relationship("Brief", back_populates="invites")
    expert = relationship("Profile")

    __table_args__ = (
        UniqueConstraint('brief_id', 'expert_user_id', name='uq_invite_brief_expert'),
        Index('idx_invite_brief_status', 'brief_id', 'status'),
        Index('idx_invite_expert_status', 'expert_user_id', 'status', 'expires_at'),
    )

    @validates('score_at_invite')
    def _freeze_score(self, key, value):
        if self.score_at_invite is not None:
            raise ValueError("score_at_invite cannot be changed once the invite exists")
        return value
