# modules/missions/repository.py
"""
Accès DB des missions d'animation et du calendrier animateur.

transition() est l'unique écriture de statut :
    UPDATE ... WHERE id = :id AND status IN (:sources) RETURNING *
puis, dans la même transaction, réservation ou libération des jours
et hook before_commit (compteurs d'usage).
Zéro ligne mise à jour → None (course perdue ou état invalide).
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.core.database import BeforeCommit
from pharmalink.engine.missions.fees import booked_days
from pharmalink.shared.enums import AvailabilityStatus, MissionStatus
from pharmalink.shared.models import AnimatorAvailability, Mission, User


class MissionRepository:

    # ── CRUD ──────────────────────────────────────────────────

    async def get_by_id(self, db: AsyncSession, mission_id: int) -> Optional[Mission]:
        r = await db.execute(select(Mission).where(Mission.id == mission_id))
        return r.scalar_one_or_none()

    async def get_user(self, db: AsyncSession, user_id: int) -> Optional[User]:
        r = await db.execute(select(User).where(User.id == user_id))
        return r.scalar_one_or_none()

    async def create(self, db: AsyncSession, fields: Dict[str, Any]) -> Mission:
        mission = Mission(status=MissionStatus.DRAFT, **fields)
        db.add(mission)
        await db.commit()
        await db.refresh(mission)
        return mission

    async def update_fields(self, db: AsyncSession, mission: Mission, patch: Dict[str, Any]) -> Mission:
        for field, value in patch.items():
            setattr(mission, field, value)
        await db.commit()
        await db.refresh(mission)
        return mission

    async def delete_draft(self, db: AsyncSession, mission_id: int) -> bool:
        r = await db.execute(
            delete(Mission).where(Mission.id == mission_id, Mission.status == MissionStatus.DRAFT)
        )
        await db.commit()
        return bool(r.rowcount)

    # ── Transitions ───────────────────────────────────────────

    async def transition(
        self,
        db: AsyncSession,
        mission_id: int,
        sources: Iterable[MissionStatus],
        values: Dict[str, Any],
        where_extra: Sequence = (),
        book_for_animator: Optional[int] = None,
        release_days: bool = False,
        before_commit: Optional[BeforeCommit] = None,
    ) -> Optional[Mission]:
        r = await db.execute(
            update(Mission)
            .where(Mission.id == mission_id, Mission.status.in_(list(sources)), *where_extra)
            .values(**values)
            .returning(Mission)
            .execution_options(populate_existing=True)
        )
        mission = r.scalar_one_or_none()
        if mission is None:
            return None

        if book_for_animator is not None:
            await self._book_days(db, book_for_animator, mission.id, mission.start_date, mission.end_date)
        if release_days:
            await db.execute(delete(AnimatorAvailability).where(AnimatorAvailability.mission_id == mission_id))
        try:
            if before_commit is not None:
                await before_commit(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return mission

    async def _book_days(
        self, db: AsyncSession, animator_id: int, mission_id: int, start: date, end: date
    ) -> None:
        rows = [
            {"animator_id": animator_id, "date": day, "status": AvailabilityStatus.BOOKED, "mission_id": mission_id}
            for day in booked_days(start, end)
        ]
        stmt = pg_insert(AnimatorAvailability).values(rows)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_animator_day",
            set_={"status": stmt.excluded.status, "mission_id": stmt.excluded.mission_id},
        )
        await db.execute(stmt)

    # ── Listings ──────────────────────────────────────────────

    async def get_by_client(
        self,
        db: AsyncSession,
        client_id: int,
        status: Optional[MissionStatus] = None,
        statuses: Optional[Sequence[MissionStatus]] = None,
        limit: Optional[int] = None,
    ) -> List[Mission]:
        q = select(Mission).where(Mission.client_id == client_id)
        if status:
            q = q.where(Mission.status == status)
        if statuses:
            q = q.where(Mission.status.in_(list(statuses)))
        q = q.order_by(Mission.created_at.desc())
        if limit:
            q = q.limit(limit)
        r = await db.execute(q)
        return r.scalars().all()

    async def get_by_animator(
        self,
        db: AsyncSession,
        animator_id: int,
        status: Optional[MissionStatus] = None,
        statuses: Optional[Sequence[MissionStatus]] = None,
    ) -> List[Mission]:
        q = select(Mission).where(Mission.animator_id == animator_id)
        if status:
            q = q.where(Mission.status == status)
        if statuses:
            q = q.where(Mission.status.in_(list(statuses)))
        r = await db.execute(q.order_by(Mission.start_date.asc()))
        return r.scalars().all()

    async def list_open_from(self, db: AsyncSession, today: date) -> List[Mission]:
        r = await db.execute(
            select(Mission).where(
                Mission.status == MissionStatus.OPEN,
                Mission.start_date >= today,
                Mission.latitude.is_not(None),
                Mission.longitude.is_not(None),
            )
        )
        return r.scalars().all()

    async def search_open(
        self,
        db: AsyncSession,
        today: date,
        regions: Optional[Sequence[str]] = None,
        mission_type: Optional[str] = None,
        min_daily_rate: Optional[float] = None,
        specialties: Optional[Sequence[str]] = None,
        limit: int = 20,
    ) -> List[Mission]:
        """Missions ouvertes à venir, par date de début croissante."""
        q = select(Mission).where(
            Mission.status == MissionStatus.OPEN,
            Mission.start_date >= today,
        )
        if regions:
            q = q.where(Mission.region.in_(list(regions)))
        if mission_type:
            q = q.where(Mission.mission_type == mission_type)
        if min_daily_rate:
            q = q.where(Mission.daily_rate_max >= min_daily_rate)
        if specialties:
            q = q.where(Mission.specialties_required.overlap(list(specialties)))
        r = await db.execute(q.order_by(Mission.start_date.asc()).limit(limit))
        return r.scalars().all()
