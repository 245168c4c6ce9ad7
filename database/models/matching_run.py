import uuid

from sqlalchemy import Column, TIMESTAMP, Boolean, Integer, Numeric, Uuid, Index, func

from .base import Base, JSONType


class MatchingRun(Base):
    """
    Audit record of one ranking pass.

    Written once per rank call, including runs that found nobody and
    runs for a brief that does not exist (brief_found = false), so
    brief_id is deliberately not a foreign key.
    """
    __tablename__ = 'matching_runs'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    brief_id = Column(Uuid, nullable=False)

    min_score = Column(Numeric(6, 3, asdecimal=False), nullable=False)
    max_results = Column(Integer, nullable=False)
    widen = Column(Boolean, nullable=False, default=False)
    weights = Column(JSONType, default=dict)

    pool_size = Column(Integer, nullable=False, default=0)
    result_count = Column(Integer, nullable=False, default=0)
    brief_found = Column(Boolean, nullable=False, default=True)
    scoring_errors = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('idx_matching_runs_brief', 'brief_id', 'created_at'),
    )
