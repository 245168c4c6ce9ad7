from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, func

from .base import Base


class AdminSetting(Base):
    """Admin-tunable key/value setting. Values are JSON encoded."""
    __tablename__ = 'admin_settings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), unique=True, nullable=False, index=True)
    value = Column(Text)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
