import uuid

from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Boolean, Integer, Numeric, Uuid, Index, func
from sqlalchemy.orm import relationship

from .base import Base, JSONType


class ExpertProfile(Base):
    """
    An expert's declared capability set.

    Owned by the expert; read-only to the matching core.
    """
    __tablename__ = 'expert_profiles'

    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), primary_key=True)
    headline = Column(Text)

    outcome_preferences = Column(JSONType, default=list)
    tools = Column(JSONType, default=list)
    practical_skills = Column(JSONType, default=list)
    industries = Column(JSONType, default=list)

    availability_weekly_hours = Column(Integer, nullable=True)
    outcome_band_min = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    outcome_band_max = Column(Numeric(12, 2, asdecimal=False), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    profile = relationship("Profile")
    certifications = relationship("ExpertCertification", back_populates="expert")
    case_studies = relationship("CaseStudy", back_populates="expert")


class ExpertCertification(Base):
    """A tool certification held by an expert (verified, pending or rejected)."""
    __tablename__ = 'expert_certifications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('expert_profiles.user_id', ondelete='CASCADE'), nullable=False)
    tool = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default='pending')
    verified_at = Column(TIMESTAMP(timezone=True), nullable=True)

    expert = relationship("ExpertProfile", back_populates="certifications")

    __table_args__ = (
        Index('idx_certifications_user', 'user_id', 'status'),
    )


class CaseStudy(Base):
    """A delivered project an expert can point to as evidence."""
    __tablename__ = 'case_studies'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('expert_profiles.user_id', ondelete='CASCADE'), nullable=False)
    title = Column(Text, nullable=False)
    outcome_tags = Column(JSONType, default=list)
    tools = Column(JSONType, default=list)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    expert = relationship("ExpertProfile", back_populates="case_studies")
