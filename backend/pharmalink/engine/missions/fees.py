# engine/missions/fees.py
"""
Frais de mise en relation (MER), quotas d'abonnement et arithmétique de durée.

Grille (par mois calendaire) :

    ┌──────────────┬──────────┬──────────────┬──────────────┬─────────────┐
    │ Rôle         │ Tier     │ MER incluses │ Frais hors   │ Alertes     │
    │              │          │              │ quota        │ urgentes    │
    ├──────────────┼──────────┼──────────────┼──────────────┼─────────────┤
    │ laboratoire  │ free     │ 0            │ 10 / 15 / 20 │ 0           │
    │              │ starter  │ 3            │ 15           │ 1           │
    │              │ pro      │ 10           │ 10           │ 5           │
    │              │ business │ illimité     │ -            │ illimité    │
    │ titulaire    │ free     │ 0            │ 5 / 8 / 10   │ 1           │
    │              │ pro      │ 1            │ 8            │ 5           │
    │              │ business │ 5            │ 5            │ illimité    │
    │ animateur    │ *        │ illimité     │ jamais       │ 0           │
    └──────────────┴──────────┴──────────────┴──────────────┴─────────────┘

    Frais par palier (tier free) selon la durée : 1-2 j / 3-5 j / 6+ j.

None = illimité partout dans ce module.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional, Tuple

from pharmalink.shared.enums import SubscriptionTier, UserType
from pharmalink.shared.exceptions import DomainValidationError


# ── Grille ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TierLimits:
    mer_included: Optional[int]                     # None → illimité
    mer_fee_after_quota: Optional[int] = None       # frais fixe hors quota
    mer_fee_tiered: Optional[Tuple[int, int, int]] = None   # (1-2 j, 3-5 j, 6+ j)
    alerts_per_month: Optional[int] = 0
    missions_publishable: Optional[int] = None

    @property
    def unlimited_contacts(self) -> bool:
        return self.mer_included is None


_ANIMATOR = TierLimits(mer_included=None, alerts_per_month=0)

LIMITS: Dict[UserType, Dict[SubscriptionTier, TierLimits]] = {
    UserType.LABORATOIRE: {
        SubscriptionTier.FREE:     TierLimits(0,    mer_fee_tiered=(10, 15, 20), alerts_per_month=0,    missions_publishable=1),
        SubscriptionTier.STARTER:  TierLimits(3,    mer_fee_after_quota=15,      alerts_per_month=1,    missions_publishable=3),
        SubscriptionTier.PRO:      TierLimits(10,   mer_fee_after_quota=10,      alerts_per_month=5,    missions_publishable=15),
        SubscriptionTier.BUSINESS: TierLimits(None,                              alerts_per_month=None, missions_publishable=None),
    },
    UserType.TITULAIRE: {
        SubscriptionTier.FREE:     TierLimits(0,    mer_fee_tiered=(5, 8, 10),   alerts_per_month=1,    missions_publishable=0),
        SubscriptionTier.PRO:      TierLimits(1,    mer_fee_after_quota=8,       alerts_per_month=5,    missions_publishable=2),
        SubscriptionTier.BUSINESS: TierLimits(5,    mer_fee_after_quota=5,       alerts_per_month=None, missions_publishable=5),
    },
    UserType.ANIMATEUR: {
        SubscriptionTier.FREE:    _ANIMATOR,
        SubscriptionTier.PREMIUM: _ANIMATOR,
    },
}


def limits_for(user_type: UserType, tier: Optional[SubscriptionTier]) -> TierLimits:
    """Tier inconnu pour ce rôle → limites du tier free."""
    grid = LIMITS.get(UserType(user_type))
    if grid is None:
        return TierLimits(mer_included=0, alerts_per_month=0)
    tier = SubscriptionTier(tier) if tier else SubscriptionTier.FREE
    return grid.get(tier, grid[SubscriptionTier.FREE])


def remaining(limit: Optional[int], used: int) -> Optional[int]:
    """None si illimité, sinon max(0, limit - used)."""
    if limit is None:
        return None
    return max(0, limit - used)


# ── Durée / montant ───────────────────────────────────────────────────────────

def inclusive_day_count(start_date: date, end_date: date) -> int:
    """10/06 → 12/06 = 3 jours. Jours entiers, aucun arrondi."""
    if end_date < start_date:
        raise DomainValidationError("La date de fin doit suivre la date de début.")
    return (end_date - start_date).days + 1


def payout_total(daily_rate, start_date: date, end_date: date) -> Decimal:
    """Rémunération animateur = tarif journalier × jours inclusifs (exact)."""
    return Decimal(str(daily_rate)) * inclusive_day_count(start_date, end_date)


def booked_days(start_date: date, end_date: date):
    """Chaque jour du calendrier couvert par la mission, bornes incluses."""
    for offset in range(inclusive_day_count(start_date, end_date)):
        yield start_date + timedelta(days=offset)


def expiry_for(end_date: date) -> datetime:
    """Une alerte expire à minuit UTC le lendemain de sa date de fin."""
    return datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)


# ── Frais de mise en relation ─────────────────────────────────────────────────

@dataclass
class ConnectionFee:
    amount: int
    included: bool
    fee_structure: Optional[str] = None       # "fixed" | "tiered" | None
    message: str = ""


def _tiered_fee(grid: Tuple[int, int, int], mission_days: int) -> int:
    if mission_days <= 2:
        return grid[0]
    if mission_days <= 5:
        return grid[1]
    return grid[2]


def calculate_connection_fee(
    user_type: UserType,
    tier: Optional[SubscriptionTier],
    mission_days: int,
    used_this_month: int = 0,
) -> ConnectionFee:
    limits = limits_for(user_type, tier)

    if limits.unlimited_contacts:
        return ConnectionFee(0, True, message="Inclus dans votre abonnement (illimité)")
    if used_this_month < limits.mer_included:
        return ConnectionFee(
            0, True,
            message=f"Inclus dans votre abonnement ({used_this_month + 1}/{limits.mer_included})",
        )

    if limits.mer_fee_after_quota is not None:
        amount, structure = limits.mer_fee_after_quota, "fixed"
    elif limits.mer_fee_tiered:
        amount, structure = _tiered_fee(limits.mer_fee_tiered, mission_days), "tiered"
    else:
        amount, structure = 0, None

    message = f"Frais de mise en relation: {amount}€" if amount > 0 else "Mise en relation gratuite"
    return ConnectionFee(amount, False, structure, message)


@dataclass
class FeeStatus:
    """Vue calculée (jamais persistée) présentée avant confirmation."""
    amount: int
    days: int
    included_in_subscription: bool
    tier: str
    contacts_max: Optional[int]
    contacts_remaining: Optional[int]
    message: str = ""
    unlimited: bool = field(default=False)

    def to_dict(self) -> dict:
        return {
            "amount":                   self.amount,
            "days":                     self.days,
            "included_in_subscription": self.included_in_subscription,
            "tier":                     self.tier,
            "contacts_max":             self.contacts_max,
            "contacts_remaining":       self.contacts_remaining,
            "unlimited":                self.unlimited,
            "message":                  self.message,
        }


def check_fee_status(
    user_type: UserType,
    tier: Optional[SubscriptionTier],
    start_date: date,
    end_date: date,
    used_this_month: int = 0,
) -> FeeStatus:
    """
    Tier illimité → included_in_subscription=True, aucun compteur restant.
    Quota épuisé ou tier free → montant concret à payer.
    """
    tier = SubscriptionTier(tier) if tier else SubscriptionTier.FREE
    days = inclusive_day_count(start_date, end_date)
    limits = limits_for(user_type, tier)
    fee = calculate_connection_fee(user_type, tier, days, used_this_month)

    return FeeStatus(
        amount=fee.amount,
        days=days,
        included_in_subscription=fee.included,
        tier=tier.value,
        contacts_max=limits.mer_included,
        contacts_remaining=remaining(limits.mer_included, used_this_month),
        message=fee.message,
        unlimited=limits.unlimited_contacts,
    )
