# modules/subscription/service.py
"""
Quotas d'abonnement : alertes urgentes et mises en relation (MER).

Les grilles vivent dans engine/missions/fees.py ; ce service se contente
de lire tier + compteurs et d'appeler l'engine.
"""
from datetime import date
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.engine.missions.fees import (
    FeeStatus,
    check_fee_status,
    limits_for,
    remaining,
)
from pharmalink.modules.subscription.repository import SubscriptionRepository, month_start
from pharmalink.shared.exceptions import QuotaExceededError

logger = structlog.get_logger(__name__)

repo = SubscriptionRepository()


def _quota(limit: Optional[int], used: int) -> dict:
    return {
        "used":      used,
        "max":       limit,
        "remaining": remaining(limit, used),
        "unlimited": limit is None,
    }


class SubscriptionService:

    async def get_status(self, db: AsyncSession, user, today: Optional[date] = None) -> dict:
        today = today or date.today()
        tier = await repo.get_tier(db, user.id)
        usage = await repo.get_usage(db, user.id, today)
        limits = limits_for(user.user_type, tier)

        return {
            "tier":     tier,
            "period":   month_start(today),
            "contacts": _quota(limits.mer_included, usage.missions_confirmed if usage else 0),
            "alerts":   _quota(limits.alerts_per_month, usage.alerts_sent if usage else 0),
        }

    # ── Alertes urgentes ──────────────────────────────────────

    async def ensure_alert_quota(self, db: AsyncSession, user, today: Optional[date] = None) -> None:
        today = today or date.today()
        tier = await repo.get_tier(db, user.id)
        limit = limits_for(user.user_type, tier).alerts_per_month
        if limit is None:
            return
        used = await repo.get_counter(db, user.id, "alerts_sent", today)
        if used >= limit:
            logger.info("subscription.alert_quota_reached", user_id=user.id, tier=tier.value, used=used)
            raise QuotaExceededError(
                "Quota d'alertes urgentes atteint pour ce mois.", code="ALERT_QUOTA_REACHED"
            )

    async def record_alert_sent(
        self, db: AsyncSession, user_id: int, today: Optional[date] = None, commit: bool = True
    ) -> None:
        await repo.increment_usage(db, user_id, "alerts_sent", today or date.today(), commit=commit)

    # ── Mise en relation ──────────────────────────────────────

    async def fee_status(
        self,
        db: AsyncSession,
        user,
        start_date: date,
        end_date: date,
        today: Optional[date] = None,
    ) -> FeeStatus:
        today = today or date.today()
        tier = await repo.get_tier(db, user.id)
        used = await repo.get_counter(db, user.id, "missions_confirmed", today)
        return check_fee_status(user.user_type, tier, start_date, end_date, used)

    async def record_connection(
        self, db: AsyncSession, user_id: int, today: Optional[date] = None, commit: bool = True
    ) -> None:
        await repo.increment_usage(db, user_id, "missions_confirmed", today or date.today(), commit=commit)

    async def record_mission_published(
        self, db: AsyncSession, user_id: int, today: Optional[date] = None, commit: bool = True
    ) -> None:
        await repo.increment_usage(db, user_id, "missions_published", today or date.today(), commit=commit)
