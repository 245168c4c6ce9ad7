import uuid

from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Uuid, Index, func
from sqlalchemy.orm import relationship

from .base import Base, JSONType


class Brief(Base):
    """
    A client's requirement set, used as matching input.

    Authored outside the core. The core writes status, matched_at and
    selected_expert_id only.
    """
    __tablename__ = 'briefs'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_user_id = Column(Uuid, ForeignKey('profiles.user_id'), nullable=True)
    title = Column(Text, nullable=False)

    # outcomes, tools, industries, goal, budget_min, budget_max
    structured_brief = Column(JSONType, default=dict)
    budget_range = Column(Text, nullable=True)  # free text, e.g. "$5,000 - $10,000"
    urgency = Column(Text, nullable=True)  # asap, urgent, standard, flexible

    status = Column(Text, nullable=False, default='submitted')
    selected_expert_id = Column(Uuid, nullable=True)
    matched_at = Column(TIMESTAMP(timezone=True), nullable=True)
    # Set once when the client is reminded to choose among accepted experts
    client_nudged_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    client = relationship("Profile")
    invites = relationship("ExpertInvite", back_populates="brief", order_by="ExpertInvite.sent_at")

    __table_args__ = (
        Index('idx_briefs_status_created', 'status', 'created_at'),
    )
