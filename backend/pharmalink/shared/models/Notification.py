# pharmalink/shared/models/Notification.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from pharmalink.core.database import Base


class Notification(Base):
    """
    Notification in-app. `data` porte le contexte (alert_id, distance_km,
    mission_id…) utilisé par le front pour la navigation.
    """
    __tablename__ = "notifications"

    id      = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type    = Column(String, nullable=False)
    title   = Column(String, nullable=False)
    content = Column(String, nullable=True)
    data    = Column(JSON, nullable=False, default=dict)
    read    = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PushToken(Base):
    __tablename__ = "push_tokens"

    id       = Column(Integer, primary_key=True, index=True)
    user_id  = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token    = Column(String, nullable=False)
    platform = Column(String, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_push_user_token"),
    )
