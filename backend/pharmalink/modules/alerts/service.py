# modules/alerts/service.py
"""
Orchestration des alertes urgentes.

Cycle de vie :
    create_*  → ACTIVE (+ fan-out des notifications, jamais bloquant)
    respond   → réponse INTERESTED (unique par candidat)
    accept    → arbitrage atomique : 1 ACCEPTED, autres REJECTED, alerte FILLED
    cancel / mark_as_filled → clôture manuelle par le créateur
    expire_overdue → sweep planifié, ACTIVE échue → EXPIRED

Une alerte dont expires_at est passé est traitée comme close
(respond / accept refusés) même avant le passage du sweep.
"""
import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.core.config import settings
from pharmalink.engine.matching.eligibility import (
    RecipientProfile,
    compute_eligible_recipients,
    filter_alerts_for_viewer,
    role_matches,
)
from pharmalink.engine.missions.fees import expiry_for
from pharmalink.infra.notifications import sink
from pharmalink.modules.alerts.repository import AlertRepository
from pharmalink.modules.alerts.schemas import ActiveAlertOut, AlertOut, ResponseOut
from pharmalink.modules.subscription.service import SubscriptionService
from pharmalink.shared.enums import (
    AlertStatus,
    CreatorType,
    NotificationType,
    PositionType,
    UserType,
)
from pharmalink.shared.exceptions import (
    AccessDeniedError,
    AlertClosedError,
    ArbitrationError,
    ConflictError,
    DomainValidationError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)

repo = AlertRepository()
subscriptions = SubscriptionService()

HOURS_PER_DAY = 8
ARBITRATION_BACKOFF_SECONDS = 0.05
NON_NULLABLE_FIELDS = ("title", "start_date", "end_date", "radius_km", "required_specialties")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_open(alert, now: datetime) -> bool:
    return AlertStatus(alert.status) == AlertStatus.ACTIVE and alert.expires_at > now


class AlertService:

    # ── Lecture ───────────────────────────────────────────────

    async def get_by_id(self, db: AsyncSession, alert_id: int):
        alert = await repo.get_by_id(db, alert_id)
        if not alert:
            raise NotFoundError("Alerte introuvable.")
        return alert

    async def _get_owned(self, db: AsyncSession, alert_id: int, creator):
        alert = await self.get_by_id(db, alert_id)
        if alert.creator_id != creator.id:
            raise AccessDeniedError("Accès refusé.")
        return alert

    async def get_by_creator(
        self,
        db: AsyncSession,
        creator,
        status: Optional[AlertStatus] = None,
        statuses: Optional[Sequence[AlertStatus]] = None,
        limit: Optional[int] = None,
    ) -> List:
        return await repo.get_by_creator(db, creator.id, status=status, statuses=statuses, limit=limit)

    # ── Création ──────────────────────────────────────────────

    async def create_for_pharmacy(self, db: AsyncSession, creator, payload):
        if UserType(creator.user_type) != UserType.TITULAIRE:
            raise AccessDeniedError("Seul un pharmacien titulaire peut publier cette alerte.")
        fields = self._base_fields(payload)
        fields.update(
            position_type=payload.position_type,
            required_specialties=[],
            hourly_rate=payload.hourly_rate,
        )
        return await self._create(db, creator, CreatorType.PHARMACY, fields)

    async def create_for_laboratory(self, db: AsyncSession, creator, payload):
        if UserType(creator.user_type) != UserType.LABORATOIRE:
            raise AccessDeniedError("Seul un laboratoire peut publier cette alerte.")
        fields = self._base_fields(payload)
        fields.update(
            position_type=PositionType.ANIMATEUR,
            required_specialties=list(dict.fromkeys(payload.specialties or [])),
            hourly_rate=(payload.daily_rate / HOURS_PER_DAY) if payload.daily_rate else None,
        )
        return await self._create(db, creator, CreatorType.LABORATORY, fields)

    def _base_fields(self, payload) -> dict:
        if payload.end_date < payload.start_date:
            raise DomainValidationError("La date de fin doit suivre la date de début.")
        return {
            "title":       payload.title.strip(),
            "description": payload.description or None,
            "start_date":  payload.start_date,
            "end_date":    payload.end_date,
            "expires_at":  expiry_for(payload.end_date),
            "latitude":    payload.latitude,
            "longitude":   payload.longitude,
            "radius_km":   payload.radius_km or settings.DEFAULT_ALERT_RADIUS_KM,
            "city":        payload.city,
        }

    async def _create(self, db: AsyncSession, creator, creator_type: CreatorType, fields: dict):
        await subscriptions.ensure_alert_quota(db, creator)

        alert = await repo.create(
            db,
            {"creator_id": creator.id, "creator_type": creator_type, **fields},
            before_commit=lambda session: subscriptions.record_alert_sent(session, creator.id, commit=False),
        )
        logger.info("alert.created", alert_id=alert.id, creator_type=creator_type.value)

        # Instantané avant le fan-out : un rollback éventuel expire l'objet ORM.
        created = AlertOut.model_validate(alert)
        notified = await self._fan_out(db, alert)
        return created.model_copy(update={"notified_count": notified})

    async def _fan_out(self, db: AsyncSession, alert) -> int:
        """
        Éligibilité + notifications. Toute erreur est loggée et absorbée :
        l'alerte existe déjà et reste valide avec notified_count = 0.
        """
        alert_id = alert.id
        try:
            if CreatorType(alert.creator_type) == CreatorType.LABORATORY:
                rows = await repo.find_animators(db, alert)
                title = "🚨 Mission urgente disponible"
            else:
                rows = await repo.find_candidates(db, alert)
                title = "🚨 Alerte urgente près de chez vous"

            recipients = compute_eligible_recipients(
                alert,
                [RecipientProfile.from_row(row) for row in rows],
                settings.DEFAULT_PREFERENCE_RADIUS_KM,
            )
            if not recipients:
                logger.info("alert.fanout_done", alert_id=alert_id, recipients=0)
                return 0

            await sink.notify_many(db, [
                {
                    "user_id": r.user_id,
                    "type":    NotificationType.URGENT_ALERT,
                    "title":   title,
                    "content": alert.title,
                    "data":    r.to_notification_data(alert_id),
                }
                for r in recipients
            ])
            await repo.set_notified_count(db, alert_id, len(recipients))
        except Exception:
            logger.error("alert.fanout_failed", alert_id=alert_id, exc_info=True)
            await db.rollback()
            return 0

        logger.info("alert.fanout_done", alert_id=alert_id, recipients=len(recipients))
        return len(recipients)

    # ── Modification / clôture ────────────────────────────────

    async def update(self, db: AsyncSession, alert_id: int, creator, payload):
        alert = await self._get_owned(db, alert_id, creator)
        if not _is_open(alert, _utcnow()):
            raise AlertClosedError()

        patch = payload.model_dump(exclude_unset=True)
        for field in NON_NULLABLE_FIELDS:
            if field in patch and patch[field] is None:
                raise DomainValidationError(f"Le champ {field} ne peut pas être vide.")
        if "required_specialties" in patch and CreatorType(alert.creator_type) != CreatorType.LABORATORY:
            raise DomainValidationError("Les spécialités ne concernent que les alertes laboratoire.")

        start = patch.get("start_date", alert.start_date)
        end = patch.get("end_date", alert.end_date)
        if end < start:
            raise DomainValidationError("La date de fin doit suivre la date de début.")
        if "end_date" in patch:
            patch["expires_at"] = expiry_for(end)

        if not patch:
            return alert
        return await repo.update_fields(db, alert, patch)

    async def cancel(self, db: AsyncSession, alert_id: int, creator):
        await self._get_owned(db, alert_id, creator)
        alert = await repo.transition_status(db, alert_id, AlertStatus.CANCELLED)
        if not alert:
            raise AlertClosedError()
        logger.info("alert.cancelled", alert_id=alert_id)
        return alert

    async def mark_as_filled(self, db: AsyncSession, alert_id: int, creator):
        await self._get_owned(db, alert_id, creator)
        alert = await repo.transition_status(
            db, alert_id, AlertStatus.FILLED, filled_at=_utcnow()
        )
        if not alert:
            raise AlertClosedError()
        logger.info("alert.filled", alert_id=alert_id, via="manual")
        return alert

    async def expire_overdue(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        count = await repo.expire_overdue(db, now or _utcnow())
        logger.info("alert.expiry_sweep", expired=count)
        return count

    # ── Listings géo-filtrés ──────────────────────────────────

    async def get_active_for_candidate(self, db: AsyncSession, user) -> List[ActiveAlertOut]:
        viewer = RecipientProfile.from_user(user)
        if not viewer.alerts_enabled or viewer.latitude is None or viewer.longitude is None:
            return []
        alerts = await repo.list_open(
            db, CreatorType.PHARMACY, _utcnow(), position_type=viewer.user_type
        )
        return self._to_listing(alerts, viewer)

    async def get_active_for_animator(self, db: AsyncSession, user) -> List[ActiveAlertOut]:
        viewer = RecipientProfile.from_user(user)
        if not viewer.alerts_enabled or viewer.latitude is None or viewer.longitude is None:
            return []
        alerts = await repo.list_open(db, CreatorType.LABORATORY, _utcnow())
        return self._to_listing(alerts, viewer)

    def _to_listing(self, alerts, viewer: RecipientProfile) -> List[ActiveAlertOut]:
        matches = filter_alerts_for_viewer(alerts, viewer, settings.DEFAULT_PREFERENCE_RADIUS_KM)
        return [
            ActiveAlertOut.model_validate(m.alert).model_copy(update={"distance_km": m.distance_km})
            for m in matches
        ]

    # ── Réponses ──────────────────────────────────────────────

    async def get_responses(self, db: AsyncSession, alert_id: int, creator) -> List:
        await self._get_owned(db, alert_id, creator)
        return await repo.list_responses(db, alert_id)

    async def has_responded(self, db: AsyncSession, alert_id: int, candidate_id: int) -> bool:
        return await repo.has_responded(db, alert_id, candidate_id)

    async def respond(self, db: AsyncSession, alert_id: int, candidate, message: Optional[str] = None):
        alert = await self.get_by_id(db, alert_id)
        if not _is_open(alert, _utcnow()):
            raise AlertClosedError()
        if alert.creator_id == candidate.id:
            raise AccessDeniedError("Vous ne pouvez pas répondre à votre propre alerte.")
        if not role_matches(alert, UserType(candidate.user_type).value):
            raise AccessDeniedError("Cette alerte ne correspond pas à votre profil.")

        response = ResponseOut.model_validate(
            await repo.create_response(db, alert_id, candidate.id, message)
        )
        logger.info("alert.response_received", alert_id=alert_id, candidate_id=candidate.id)

        await self._notify_safely(
            db, alert.creator_id, NotificationType.ALERT_RESPONSE,
            "Nouvelle réponse à votre alerte", alert.title,
            {"alert_id": alert_id, "candidate_id": candidate.id},
        )
        return response

    async def accept_candidate(self, db: AsyncSession, alert_id: int, candidate_id: int, creator):
        alert = await self._get_owned(db, alert_id, creator)
        if not _is_open(alert, _utcnow()):
            raise AlertClosedError()
        alert_title = alert.title

        outcome = await self._arbitrate(db, alert_id, candidate_id)
        # Perdant d'une acceptation concurrente inclus : FOR UPDATE sur l'alerte côté SQL
        if outcome == "alert_not_active":
            logger.info("alert.arbitration_conflict", alert_id=alert_id, candidate_id=candidate_id)
            raise AlertClosedError()
        if outcome == "response_not_found":
            raise NotFoundError("Réponse introuvable.")
        if outcome == "response_not_interested":
            raise ConflictError("Cette réponse a déjà été traitée.", code="RESPONSE_ALREADY_HANDLED")

        logger.info("alert.filled", alert_id=alert_id, via="accept", candidate_id=candidate_id)
        await self._notify_safely(
            db, candidate_id, NotificationType.ALERT_ACCEPTED,
            "Votre candidature a été retenue", alert_title,
            {"alert_id": alert_id},
        )
        return await repo.get_response(db, alert_id, candidate_id)

    async def _arbitrate(self, db: AsyncSession, alert_id: int, candidate_id: int) -> str:
        """
        Une tentative = une transaction complète (fonction SQL).
        Erreur base → rollback intégral, donc relance sûre.
        """
        max_retries = max(1, settings.ARBITRATION_MAX_RETRIES)
        for attempt in range(max_retries):
            try:
                return await repo.accept_candidate_atomic(db, alert_id, candidate_id)
            except DBAPIError:
                await db.rollback()
                logger.warning(
                    "alert.arbitration_retry",
                    alert_id=alert_id, attempt=attempt + 1, exc_info=True,
                )
            if attempt < max_retries - 1:
                await asyncio.sleep(ARBITRATION_BACKOFF_SECONDS * (2 ** attempt))

        logger.error("alert.arbitration_failed", alert_id=alert_id, candidate_id=candidate_id)
        raise ArbitrationError()

    async def reject_candidate(self, db: AsyncSession, alert_id: int, candidate_id: int, creator):
        await self._get_owned(db, alert_id, creator)
        response = await repo.reject_response(db, alert_id, candidate_id)
        if response:
            return response
        if not await repo.has_responded(db, alert_id, candidate_id):
            raise NotFoundError("Réponse introuvable.")
        raise ConflictError("Cette réponse a déjà été traitée.", code="RESPONSE_ALREADY_HANDLED")

    # ── Helpers ───────────────────────────────────────────────

    async def _notify_safely(self, db, user_id, type, title, content, data) -> None:
        try:
            await sink.notify(db, user_id, type, title, content, data)
        except Exception:
            logger.error("notification.failed", user_id=user_id, type=type.value, exc_info=True)
            await db.rollback()
