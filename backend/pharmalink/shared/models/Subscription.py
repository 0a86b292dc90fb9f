# pharmalink/shared/models/Subscription.py
"""
Abonnement + compteurs d'usage mensuels.

MonthlyUsage : une ligne par (user, mois). Les compteurs ne sont
incrémentés que par subscription/repository.increment_usage().
"""
from sqlalchemy import (
    Column, Integer, Boolean, Date, DateTime, ForeignKey,
    Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.sql import func

from pharmalink.core.database import Base
from pharmalink.shared.enums import SubscriptionTier


class Subscription(Base):
    __tablename__ = "subscriptions"

    id      = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    tier    = Column(SAEnum(SubscriptionTier, values_callable=lambda e: [m.value for m in e]),
                     default=SubscriptionTier.FREE, nullable=False)

    started_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    auto_renew = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Subscription user={self.user_id} tier={self.tier}>"


class MonthlyUsage(Base):
    __tablename__ = "monthly_usage"

    id      = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    period  = Column(Date, nullable=False)   # 1er jour du mois

    missions_published = Column(Integer, default=0, nullable=False)
    missions_confirmed = Column(Integer, default=0, nullable=False)   # MER consommées
    alerts_sent        = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "period", name="uq_usage_user_period"),
    )
