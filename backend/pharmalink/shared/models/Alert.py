# pharmalink/shared/models/Alert.py
"""
Modèles des alertes urgentes.

UrgentAlert          : un besoin de remplacement daté et géolocalisé
UrgentAlertResponse  : la réponse d'un candidat (une seule par couple alerte/candidat)

Cycle alerte   : ACTIVE → FILLED | CANCELLED | EXPIRED (tous terminaux)
Cycle réponse  : INTERESTED → ACCEPTED | REJECTED
"""
from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, ForeignKey,
    ARRAY, Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pharmalink.core.database import Base
from pharmalink.shared.enums import AlertStatus, CreatorType, PositionType, ResponseStatus


def _values(enum_cls):
    return [m.value for m in enum_cls]


class UrgentAlert(Base):
    __tablename__ = "urgent_alerts"

    id           = Column(Integer, primary_key=True, index=True)
    creator_id   = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    creator_type = Column(SAEnum(CreatorType, values_callable=_values), nullable=False)

    title                = Column(String, nullable=False)
    description          = Column(String, nullable=True)
    position_type        = Column(SAEnum(PositionType, values_callable=_values), nullable=False)
    required_specialties = Column(ARRAY(String), nullable=False, default=list)

    start_date = Column(Date, nullable=False)
    end_date   = Column(Date, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    latitude  = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius_km = Column(Integer, nullable=False, default=30)
    city      = Column(String, nullable=True)

    hourly_rate = Column(Float, nullable=True)

    status         = Column(SAEnum(AlertStatus, values_callable=_values),
                            default=AlertStatus.ACTIVE, nullable=False, index=True)
    notified_count = Column(Integer, default=0, nullable=False)
    filled_at      = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    responses = relationship("UrgentAlertResponse", back_populates="alert", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<UrgentAlert id={self.id} creator={self.creator_id} status={self.status}>"


class UrgentAlertResponse(Base):
    """
    Unicité (alert_id, candidate_id) garantie par la base.
    « Au plus une ACCEPTED par alerte » est garanti par l'arbitrage,
    pas par une contrainte.
    """
    __tablename__ = "urgent_alert_responses"

    id           = Column(Integer, primary_key=True, index=True)
    alert_id     = Column(Integer, ForeignKey("urgent_alerts.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    status        = Column(SAEnum(ResponseStatus, values_callable=_values),
                           default=ResponseStatus.INTERESTED, nullable=False)
    message       = Column(String, nullable=True)
    response_time = Column(DateTime(timezone=True), server_default=func.now())
    updated_at    = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("alert_id", "candidate_id", name="uq_alert_candidate"),
    )

    alert     = relationship("UrgentAlert", back_populates="responses")
    candidate = relationship("User")

    def __repr__(self):
        return f"<UrgentAlertResponse alert={self.alert_id} candidate={self.candidate_id} status={self.status}>"
