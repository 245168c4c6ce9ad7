import uuid

from sqlalchemy import Column, Text, TIMESTAMP, Uuid, func

from .base import Base


class Profile(Base):
    """
    A marketplace user (client, expert or admin).

    The matching core only reads profiles to resolve notification
    recipients and display names.
    """
    __tablename__ = 'profiles'

    user_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(Text)
    email = Column(Text)
    organization = Column(Text)
    role = Column(Text, nullable=False, default='client')  # client, expert, admin
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
