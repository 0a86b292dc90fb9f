# pharmalink/shared/models/User.py
"""
Modèles liés aux utilisateurs.

Stratégie de découpage :
- User                    : identité + type + dernière position connue
- NotificationPreference  : opt-in alertes urgentes + rayon accepté
- AnimatorProfile         : spécialités d'animation (filtre des alertes labo)

La position (current_latitude / current_longitude) est celle utilisée
par le moteur d'éligibilité. Un utilisateur sans position ne reçoit
aucune alerte.
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, Float,
    DateTime, ForeignKey, ARRAY, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pharmalink.core.database import Base
from pharmalink.shared.enums import UserType, RECRUITER_TYPES


class User(Base):
    __tablename__ = "users"

    id         = Column(Integer, primary_key=True, index=True)
    email      = Column(String, unique=True, index=True, nullable=False)
    user_type  = Column(SAEnum(UserType, values_callable=lambda e: [m.value for m in e]),
                        nullable=False, index=True)
    first_name = Column(String, nullable=True)
    last_name  = Column(String, nullable=True)
    photo_url  = Column(String, nullable=True)
    is_active  = Column(Boolean, default=True)

    current_latitude  = Column(Float, nullable=True)
    current_longitude = Column(Float, nullable=True)
    current_city      = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # ── Relations 1:1 ────────────────────────────────────────
    notification_preference = relationship(
        "NotificationPreference", back_populates="user",
        uselist=False, cascade="all, delete-orphan",
    )
    animator_profile = relationship(
        "AnimatorProfile", back_populates="user",
        uselist=False, cascade="all, delete-orphan",
    )

    # ── Helpers ──────────────────────────────────────────────
    @property
    def is_recruiter(self) -> bool:
        return self.user_type in RECRUITER_TYPES

    @property
    def is_animator(self) -> bool:
        return self.user_type == UserType.ANIMATEUR

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email

    def __repr__(self):
        return f"<User id={self.id} email={self.email} type={self.user_type}>"


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id      = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    urgent_alerts_enabled   = Column(Boolean, default=True, nullable=False)
    urgent_alerts_radius_km = Column(Integer, nullable=True)   # None → rayon par défaut

    user = relationship("User", back_populates="notification_preference")


class AnimatorProfile(Base):
    """
    Profil freelance. id = users.id (relation 1:1 stricte).
    animation_specialties : ex. ["dermo", "oncologie", "capillaire"]
    """
    __tablename__ = "animator_profiles"

    id = Column(Integer, ForeignKey("users.id"), primary_key=True)

    animation_specialties = Column(ARRAY(String), nullable=False, default=list)
    mobility_zones        = Column(ARRAY(String), nullable=False, default=list)
    daily_rate_min        = Column(Float, nullable=True)
    average_rating        = Column(Float, nullable=True)
    missions_completed    = Column(Integer, default=0)

    user = relationship("User", back_populates="animator_profile")

    def __repr__(self):
        return f"<AnimatorProfile id={self.id} specialties={self.animation_specialties}>"
