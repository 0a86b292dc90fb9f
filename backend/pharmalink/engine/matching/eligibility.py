# engine/matching/eligibility.py
"""
Éligibilité géographique et métier aux alertes urgentes.

Deux sens de lecture, une seule règle :

    Côté alerte (fan-out à la création)
        compute_eligible_recipients(alert, profiles)
        → qui notifier ?

    Côté destinataire (listing)
        filter_alerts_for_viewer(alerts, viewer)
        → quelles alertes afficher, triées par distance ?

Règle d'éligibilité :
    1. le destinataire a activé les alertes urgentes et possède une position
    2. distance(haversine) ≤ min(alert.radius_km, préférence destinataire)
    3. rôle :
        - alerte PHARMACY    → user_type == alert.position_type
        - alerte LABORATORY  → user_type == animateur
    4. alerte LABORATORY avec required_specialties non vide
        → au moins UNE spécialité commune (OU, pas ET)

Fonctions pures : les profils arrivent déjà chargés (RPC géo ou ORM),
aucune dépendance à la base ni à FastAPI.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

from pharmalink.engine.geo.distance import (
    DEFAULT_RADIUS_KM,
    display_km,
    effective_radius_km,
    has_location,
    haversine_km,
    within_radius,
)
from pharmalink.shared.enums import CreatorType, UserType


# ── Structures ────────────────────────────────────────────────────────────────

@dataclass
class RecipientProfile:
    """Vue minimale d'un destinataire potentiel (ligne RPC ou User ORM)."""
    user_id: int
    user_type: str
    latitude: Optional[float]
    longitude: Optional[float]
    alerts_enabled: bool = True
    radius_pref_km: Optional[float] = None
    specialties: List[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Any) -> "RecipientProfile":
        """Construit depuis une ligne renvoyée par find_*_for_urgent_alert."""
        return cls(
            user_id=row.user_id,
            user_type=_value(row.user_type),
            latitude=row.latitude,
            longitude=row.longitude,
            alerts_enabled=bool(getattr(row, "urgent_alerts_enabled", True)),
            radius_pref_km=getattr(row, "urgent_alerts_radius_km", None),
            specialties=list(getattr(row, "specialties", None) or []),
        )

    @classmethod
    def from_user(cls, user: Any) -> "RecipientProfile":
        prefs = getattr(user, "notification_preference", None)
        animator = getattr(user, "animator_profile", None)
        return cls(
            user_id=user.id,
            user_type=_value(user.user_type),
            latitude=user.current_latitude,
            longitude=user.current_longitude,
            alerts_enabled=bool(prefs.urgent_alerts_enabled) if prefs else False,
            radius_pref_km=prefs.urgent_alerts_radius_km if prefs else None,
            specialties=list(animator.animation_specialties or []) if animator else [],
        )


@dataclass
class EligibleRecipient:
    user_id: int
    distance_km: float      # arrondi affichage

    def to_notification_data(self, alert_id: int) -> dict:
        return {"alert_id": alert_id, "distance_km": self.distance_km}


@dataclass
class AlertMatch:
    alert: Any
    distance_km: float


# ── Prédicats ─────────────────────────────────────────────────────────────────

def _value(v: Any) -> str:
    return v.value if hasattr(v, "value") else str(v)


def specialties_match(required: Optional[Sequence[str]], offered: Optional[Iterable[str]]) -> bool:
    """Aucune exigence → True. Sinon au moins une spécialité commune."""
    if not required:
        return True
    return bool(set(required) & set(offered or ()))


def role_matches(alert: Any, user_type: str) -> bool:
    creator_type = CreatorType(_value(alert.creator_type))
    if creator_type == CreatorType.PHARMACY:
        return user_type == _value(alert.position_type)
    if creator_type == CreatorType.LABORATORY:
        return user_type == UserType.ANIMATEUR.value
    raise ValueError(f"creator_type non géré : {creator_type}")


def _distance_if_in_range(
    alert: Any,
    profile: RecipientProfile,
    default_radius_km: float,
) -> Optional[float]:
    """Distance brute si le profil est dans le rayon effectif, sinon None."""
    if not profile.alerts_enabled or not has_location(profile.latitude, profile.longitude):
        return None
    if not has_location(alert.latitude, alert.longitude):
        return None
    distance = haversine_km(profile.latitude, profile.longitude, alert.latitude, alert.longitude)
    radius = effective_radius_km(alert.radius_km, profile.radius_pref_km, default_radius_km)
    return distance if within_radius(distance, radius) else None


def is_eligible(
    alert: Any,
    profile: RecipientProfile,
    default_radius_km: float = DEFAULT_RADIUS_KM,
) -> Optional[float]:
    """Retourne la distance brute si `profile` est éligible à `alert`, None sinon."""
    if profile.user_id == alert.creator_id:
        return None
    if not role_matches(alert, profile.user_type):
        return None
    if _value(alert.creator_type) == CreatorType.LABORATORY.value:
        if not specialties_match(alert.required_specialties, profile.specialties):
            return None
    return _distance_if_in_range(alert, profile, default_radius_km)


# ── Fan-out ───────────────────────────────────────────────────────────────────

def compute_eligible_recipients(
    alert: Any,
    profiles: Iterable[RecipientProfile],
    default_radius_km: float = DEFAULT_RADIUS_KM,
) -> List[EligibleRecipient]:
    """
    Filtre exact appliqué aux lignes renvoyées par la RPC géo.
    Un même user_id n'apparaît qu'une fois. Tri par distance croissante.
    """
    seen: set = set()
    recipients: List[EligibleRecipient] = []
    for profile in profiles:
        if profile.user_id in seen:
            continue
        distance = is_eligible(alert, profile, default_radius_km)
        if distance is None:
            continue
        seen.add(profile.user_id)
        recipients.append(EligibleRecipient(user_id=profile.user_id, distance_km=display_km(distance)))
    return sorted(recipients, key=lambda r: r.distance_km)


# ── Listing côté destinataire ─────────────────────────────────────────────────

def filter_alerts_for_viewer(
    alerts: Iterable[Any],
    viewer: RecipientProfile,
    default_radius_km: float = DEFAULT_RADIUS_KM,
) -> List[AlertMatch]:
    """
    Alertes visibles par `viewer`, enrichies de distance_km et triées
    par distance croissante. Alertes désactivées ou position absente → [].
    """
    if not viewer.alerts_enabled or not has_location(viewer.latitude, viewer.longitude):
        return []

    matches: List[AlertMatch] = []
    for alert in alerts:
        distance = is_eligible(alert, viewer, default_radius_km)
        if distance is None:
            continue
        matches.append(AlertMatch(alert=alert, distance_km=display_km(distance)))
    return sorted(matches, key=lambda m: m.distance_km)
