# pharmalink/shared/models/Mission.py
"""
Modèles des missions d'animation.

Mission               : engagement payant client (pharmacie / labo) ↔ animateur
AnimatorAvailability  : jours réservés dans le calendrier de l'animateur

Le statut ne s'écrit que via modules/missions/service (machine à états
engine/missions/state_machine.py), jamais par un patch direct.
"""
from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, ForeignKey,
    Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pharmalink.core.database import Base
from pharmalink.shared.enums import AvailabilityStatus, CreatorType, MissionStatus


def _values(enum_cls):
    return [m.value for m in enum_cls]


class Mission(Base):
    __tablename__ = "animation_missions"

    id          = Column(Integer, primary_key=True, index=True)
    client_id   = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_type = Column(SAEnum(CreatorType, values_callable=_values), nullable=False)
    animator_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    match_id    = Column(Integer, nullable=True)

    title                = Column(String, nullable=False)
    description          = Column(String, nullable=True)
    mission_type         = Column(String, nullable=True)
    specialties_required = Column(ARRAY(String), nullable=False, default=list)

    city       = Column(String, nullable=True)
    department = Column(String, nullable=True)
    region     = Column(String, nullable=True)
    latitude   = Column(Float, nullable=True)
    longitude  = Column(Float, nullable=True)

    start_date = Column(Date, nullable=False)
    end_date   = Column(Date, nullable=False)

    daily_rate_min = Column(Float, nullable=True)
    daily_rate_max = Column(Float, nullable=True)
    daily_rate     = Column(Float, nullable=True)   # tarif convenu dans la proposition

    status = Column(SAEnum(MissionStatus, values_callable=_values),
                    default=MissionStatus.DRAFT, nullable=False, index=True)

    connection_fee    = Column(Float, nullable=True)   # MER facturée à la confirmation
    fee_included      = Column(String, nullable=True)  # "included" | "charged"

    proposal_sent_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at      = Column(DateTime(timezone=True), nullable=True)
    confirmed_at     = Column(DateTime(timezone=True), nullable=True)
    assigned_at      = Column(DateTime(timezone=True), nullable=True)
    started_at       = Column(DateTime(timezone=True), nullable=True)
    completed_at     = Column(DateTime(timezone=True), nullable=True)
    cancelled_at     = Column(DateTime(timezone=True), nullable=True)
    cancel_reason    = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    client   = relationship("User", foreign_keys=[client_id])
    animator = relationship("User", foreign_keys=[animator_id])

    def __repr__(self):
        return f"<Mission id={self.id} client={self.client_id} status={self.status}>"


class AnimatorAvailability(Base):
    __tablename__ = "animator_availability"

    id          = Column(Integer, primary_key=True, index=True)
    animator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date        = Column(Date, nullable=False)
    status      = Column(SAEnum(AvailabilityStatus, values_callable=_values),
                         default=AvailabilityStatus.BOOKED, nullable=False)
    mission_id  = Column(Integer, ForeignKey("animation_missions.id"), nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("animator_id", "date", name="uq_animator_day"),
    )
