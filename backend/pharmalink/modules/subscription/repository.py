# modules/subscription/repository.py
"""
Accès DB abonnement + compteurs mensuels.

increment_usage() est le SEUL point d'écriture des compteurs
(alerts_sent, missions_confirmed, missions_published).
"""
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.shared.enums import SubscriptionTier
from pharmalink.shared.models import MonthlyUsage, Subscription

USAGE_COUNTERS = ("alerts_sent", "missions_confirmed", "missions_published")


def month_start(day: date) -> date:
    return day.replace(day=1)


class SubscriptionRepository:

    async def get_subscription(self, db: AsyncSession, user_id: int) -> Optional[Subscription]:
        r = await db.execute(select(Subscription).where(Subscription.user_id == user_id))
        return r.scalar_one_or_none()

    async def get_tier(self, db: AsyncSession, user_id: int) -> SubscriptionTier:
        """Aucun abonnement → free."""
        sub = await self.get_subscription(db, user_id)
        return SubscriptionTier(sub.tier) if sub else SubscriptionTier.FREE

    async def get_usage(
        self, db: AsyncSession, user_id: int, period: date
    ) -> Optional[MonthlyUsage]:
        r = await db.execute(
            select(MonthlyUsage).where(
                MonthlyUsage.user_id == user_id,
                MonthlyUsage.period == month_start(period),
            )
        )
        return r.scalar_one_or_none()

    async def get_counter(self, db: AsyncSession, user_id: int, counter: str, period: date) -> int:
        usage = await self.get_usage(db, user_id, period)
        if not usage:
            return 0
        return getattr(usage, counter) or 0

    async def increment_usage(
        self,
        db: AsyncSession,
        user_id: int,
        counter: str,
        period: date,
        commit: bool = True,
    ) -> None:
        """Upsert atomique (user, mois) → counter + 1."""
        if counter not in USAGE_COUNTERS:
            raise ValueError(f"Compteur inconnu : {counter}")
        column = getattr(MonthlyUsage, counter)
        stmt = (
            pg_insert(MonthlyUsage)
            .values(user_id=user_id, period=month_start(period), **{counter: 1})
            .on_conflict_do_update(
                constraint="uq_usage_user_period",
                set_={counter: column + 1},
            )
        )
        await db.execute(stmt)
        if commit:
            await db.commit()
