# modules/alerts/repository.py
"""
Accès DB des alertes urgentes et de leurs réponses.

Points d'attention :
- les changements de statut sont des UPDATE conditionnels
  (WHERE status = 'active') : zéro ligne → l'appelant a perdu la course
- l'arbitrage d'acceptation est une seule fonction SQL
  (accept_urgent_alert_candidate), donc une seule transaction
- la recherche géo passe par les fonctions SQL find_*_for_urgent_alert
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, literal_column, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pharmalink.core.database import BeforeCommit
from pharmalink.shared.enums import AlertStatus, CreatorType, ResponseStatus
from pharmalink.shared.exceptions import DuplicateResponseError
from pharmalink.shared.models import UrgentAlert, UrgentAlertResponse, User

UNIQUE_VIOLATION = "23505"


def _sqlstate(exc: IntegrityError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class AlertRepository:

    # ── Alertes ───────────────────────────────────────────────

    async def get_by_id(self, db: AsyncSession, alert_id: int) -> Optional[UrgentAlert]:
        r = await db.execute(select(UrgentAlert).where(UrgentAlert.id == alert_id))
        return r.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        fields: Dict[str, Any],
        before_commit: Optional[BeforeCommit] = None,
    ) -> UrgentAlert:
        alert = UrgentAlert(status=AlertStatus.ACTIVE, notified_count=0, **fields)
        db.add(alert)
        try:
            if before_commit is not None:
                await before_commit(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(alert)
        return alert

    async def update_fields(
        self, db: AsyncSession, alert: UrgentAlert, patch: Dict[str, Any]
    ) -> UrgentAlert:
        for field, value in patch.items():
            setattr(alert, field, value)
        await db.commit()
        await db.refresh(alert)
        return alert

    async def transition_status(
        self,
        db: AsyncSession,
        alert_id: int,
        to_status: AlertStatus,
        **extra,
    ) -> Optional[UrgentAlert]:
        """ACTIVE → to_status. None si l'alerte n'était plus active."""
        r = await db.execute(
            update(UrgentAlert)
            .where(UrgentAlert.id == alert_id, UrgentAlert.status == AlertStatus.ACTIVE)
            .values(status=to_status, **extra)
            .returning(UrgentAlert)
        )
        alert = r.scalar_one_or_none()
        await db.commit()
        return alert

    async def set_notified_count(self, db: AsyncSession, alert_id: int, count: int) -> None:
        await db.execute(
            update(UrgentAlert).where(UrgentAlert.id == alert_id).values(notified_count=count)
        )
        await db.commit()

    async def get_by_creator(
        self,
        db: AsyncSession,
        creator_id: int,
        status: Optional[AlertStatus] = None,
        statuses: Optional[Sequence[AlertStatus]] = None,
        limit: Optional[int] = None,
    ) -> List[UrgentAlert]:
        q = select(UrgentAlert).where(UrgentAlert.creator_id == creator_id)
        if status:
            q = q.where(UrgentAlert.status == status)
        if statuses:
            q = q.where(UrgentAlert.status.in_(list(statuses)))
        q = q.order_by(UrgentAlert.created_at.desc())
        if limit:
            q = q.limit(limit)
        r = await db.execute(q)
        return r.scalars().all()

    async def list_open(
        self,
        db: AsyncSession,
        creator_type: CreatorType,
        now: datetime,
        position_type: Optional[str] = None,
    ) -> List[UrgentAlert]:
        """Alertes ACTIVE et non échues pour un type de créateur."""
        q = select(UrgentAlert).where(
            UrgentAlert.status == AlertStatus.ACTIVE,
            UrgentAlert.creator_type == creator_type,
            UrgentAlert.expires_at > now,
        )
        if position_type:
            q = q.where(UrgentAlert.position_type == position_type)
        r = await db.execute(q)
        return r.scalars().all()

    async def expire_overdue(self, db: AsyncSession, now: datetime) -> int:
        r = await db.execute(
            update(UrgentAlert)
            .where(UrgentAlert.status == AlertStatus.ACTIVE, UrgentAlert.expires_at <= now)
            .values(status=AlertStatus.EXPIRED)
        )
        await db.commit()
        return r.rowcount or 0

    # ── Recherche géo (fonctions SQL) ─────────────────────────

    async def find_candidates(self, db: AsyncSession, alert: UrgentAlert) -> List[Any]:
        fn = func.find_candidates_for_urgent_alert(
            alert.latitude, alert.longitude, alert.radius_km, _enum_value(alert.position_type)
        )
        r = await db.execute(select(literal_column("*")).select_from(fn))
        return r.all()

    async def find_animators(self, db: AsyncSession, alert: UrgentAlert) -> List[Any]:
        fn = func.find_animators_for_urgent_alert(
            alert.latitude, alert.longitude, alert.radius_km, list(alert.required_specialties or [])
        )
        r = await db.execute(select(literal_column("*")).select_from(fn))
        return r.all()

    # ── Réponses ──────────────────────────────────────────────

    async def create_response(
        self, db: AsyncSession, alert_id: int, candidate_id: int, message: Optional[str]
    ) -> UrgentAlertResponse:
        response = UrgentAlertResponse(
            alert_id=alert_id,
            candidate_id=candidate_id,
            status=ResponseStatus.INTERESTED,
            message=message,
        )
        db.add(response)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if _sqlstate(e) == UNIQUE_VIOLATION:
                raise DuplicateResponseError() from e
            raise
        await db.refresh(response)
        return response

    async def get_response(
        self, db: AsyncSession, alert_id: int, candidate_id: int
    ) -> Optional[UrgentAlertResponse]:
        r = await db.execute(
            select(UrgentAlertResponse)
            .where(
                UrgentAlertResponse.alert_id == alert_id,
                UrgentAlertResponse.candidate_id == candidate_id,
            )
            .execution_options(populate_existing=True)
        )
        return r.scalar_one_or_none()

    async def has_responded(self, db: AsyncSession, alert_id: int, candidate_id: int) -> bool:
        r = await db.execute(
            select(UrgentAlertResponse.id).where(
                UrgentAlertResponse.alert_id == alert_id,
                UrgentAlertResponse.candidate_id == candidate_id,
            )
        )
        return r.scalar_one_or_none() is not None

    async def list_responses(self, db: AsyncSession, alert_id: int) -> List[UrgentAlertResponse]:
        r = await db.execute(
            select(UrgentAlertResponse)
            .options(
                selectinload(UrgentAlertResponse.candidate).selectinload(User.animator_profile)
            )
            .where(UrgentAlertResponse.alert_id == alert_id)
            .order_by(UrgentAlertResponse.response_time.asc())
        )
        return r.scalars().all()

    async def reject_response(
        self, db: AsyncSession, alert_id: int, candidate_id: int
    ) -> Optional[UrgentAlertResponse]:
        """INTERESTED → REJECTED. None si la réponse n'était plus en attente."""
        r = await db.execute(
            update(UrgentAlertResponse)
            .where(
                UrgentAlertResponse.alert_id == alert_id,
                UrgentAlertResponse.candidate_id == candidate_id,
                UrgentAlertResponse.status == ResponseStatus.INTERESTED,
            )
            .values(status=ResponseStatus.REJECTED)
            .returning(UrgentAlertResponse)
        )
        response = r.scalar_one_or_none()
        await db.commit()
        return response

    async def accept_candidate_atomic(
        self, db: AsyncSession, alert_id: int, candidate_id: int
    ) -> str:
        """
        Arbitrage en une transaction :
            réponse ciblée → ACCEPTED, autres INTERESTED → REJECTED,
            alerte ACTIVE → FILLED (filled_at = now()).
        Retourne 'accepted' | 'alert_not_active' | 'response_not_found'
                 | 'response_not_interested'.
        """
        r = await db.execute(select(func.accept_urgent_alert_candidate(alert_id, candidate_id)))
        outcome = r.scalar()
        await db.commit()
        return outcome


def _enum_value(v: Any) -> str:
    return v.value if hasattr(v, "value") else v
