# engine/geo/distance.py
"""
Distance orthodromique (haversine) et règles de rayon.

Contrat partagé par :
    - l'éligibilité des destinataires d'une alerte (engine/matching)
    - les listings géo-filtrés (alertes actives, missions à proximité)

Règles :
    - R = 6371 km, formule haversine standard
    - la comparaison au rayon se fait sur la distance NON arrondie
    - borne inclusive : distance == rayon → inclus
    - arrondi à 1 décimale uniquement pour l'affichage
"""
from __future__ import annotations

import math
from typing import Optional


# ── Constantes ────────────────────────────────────────────────────────────────

EARTH_RADIUS_KM: float = 6371.0
DEFAULT_RADIUS_KM: int = 30


# ── Distance ──────────────────────────────────────────────────────────────────

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def display_km(distance_km: float) -> float:
    """Arrondi d'affichage (1 décimale)."""
    return round(distance_km, 1)


# ── Rayon ─────────────────────────────────────────────────────────────────────

def effective_radius_km(
    alert_radius_km: Optional[float],
    preference_radius_km: Optional[float],
    default_km: float = DEFAULT_RADIUS_KM,
) -> float:
    """
    min(rayon de l'alerte, rayon accepté par le destinataire).
    Une valeur absente ou nulle retombe sur default_km.
    """
    return min(alert_radius_km or default_km, preference_radius_km or default_km)


def within_radius(distance_km: float, radius_km: float) -> bool:
    return distance_km <= radius_km


def has_location(lat: Optional[float], lon: Optional[float]) -> bool:
    return lat is not None and lon is not None
