# modules/missions/service.py
"""
Orchestration du cycle de vie d'une mission d'animation.

Chaque transition :
    1. contrôle de rôle (propriétaire client ou animateur lié)
    2. engine.missions.state_machine.assert_transition (acteur + état source)
    3. UPDATE conditionnel sur l'état source (repository.transition)
       → zéro ligne = un autre acteur a gagné la course → InvalidTransitionError
    4. log mission.transition + notification de la contrepartie

Frais de mise en relation : calculés à la volée (check_fee_status),
figés sur la mission à la confirmation.
"""
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.core.database import BeforeCommit
from pharmalink.engine.geo.distance import display_km, haversine_km, within_radius
from pharmalink.engine.missions.state_machine import (
    assert_transition,
    is_terminal,
    rates_locked,
    schedule_locked,
)
from pharmalink.infra.notifications import sink
from pharmalink.modules.missions.repository import MissionRepository
from pharmalink.modules.missions.schemas import MissionNearbyOut
from pharmalink.modules.subscription.service import SubscriptionService
from pharmalink.shared.enums import (
    MissionActor,
    MissionStatus,
    NotificationType,
    UserType,
    creator_type_for,
)
from pharmalink.shared.exceptions import (
    AccessDeniedError,
    ConflictError,
    DomainValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from pharmalink.shared.models import Mission

logger = structlog.get_logger(__name__)

repo = MissionRepository()
subscriptions = SubscriptionService()

RATE_FIELDS = ("daily_rate_min", "daily_rate_max")
SCHEDULE_FIELDS = ("start_date", "end_date")
REQUIRED_FIELDS = ("title", "start_date", "end_date", "specialties_required")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _reject_nulls(patch: dict, fields: Sequence[str]) -> None:
    """null explicite sur une colonne NOT NULL → erreur de validation."""
    for field in fields:
        if field in patch and patch[field] is None:
            raise DomainValidationError(f"Le champ {field} ne peut pas être vide.")


def _check_dates(start: date, end: date) -> None:
    if end < start:
        raise DomainValidationError("La date de fin doit suivre la date de début.")


def _check_rates(rate_min: Optional[float], rate_max: Optional[float]) -> None:
    if rate_min is not None and rate_max is not None and rate_min > rate_max:
        raise DomainValidationError("Le tarif minimum dépasse le tarif maximum.")


class MissionService:

    # ── Lecture ───────────────────────────────────────────────

    async def _get(self, db: AsyncSession, mission_id: int):
        mission = await repo.get_by_id(db, mission_id)
        if not mission:
            raise NotFoundError("Mission introuvable.")
        return mission

    async def _get_owned(self, db: AsyncSession, mission_id: int, client):
        mission = await self._get(db, mission_id)
        if mission.client_id != client.id:
            raise AccessDeniedError("Accès refusé.")
        return mission

    async def get_by_id(self, db: AsyncSession, mission_id: int, user):
        """Client propriétaire, animateur lié, ou n'importe qui si la mission est ouverte."""
        mission = await self._get(db, mission_id)
        if user.id in (mission.client_id, mission.animator_id):
            return mission
        if MissionStatus(mission.status) == MissionStatus.OPEN:
            return mission
        raise AccessDeniedError("Accès refusé.")

    async def get_by_client(
        self,
        db: AsyncSession,
        client,
        status: Optional[MissionStatus] = None,
        statuses: Optional[Sequence[MissionStatus]] = None,
        limit: Optional[int] = None,
    ) -> List:
        return await repo.get_by_client(db, client.id, status=status, statuses=statuses, limit=limit)

    async def get_by_animator(
        self,
        db: AsyncSession,
        animator,
        status: Optional[MissionStatus] = None,
        statuses: Optional[Sequence[MissionStatus]] = None,
    ) -> List:
        return await repo.get_by_animator(db, animator.id, status=status, statuses=statuses)

    async def search_nearby(
        self,
        db: AsyncSession,
        latitude: float,
        longitude: float,
        radius_km: float,
        today: Optional[date] = None,
    ) -> List[MissionNearbyOut]:
        """Missions ouvertes à venir dans le rayon, triées par distance."""
        missions = await repo.list_open_from(db, today or date.today())
        results = []
        for mission in missions:
            if mission.latitude is None or mission.longitude is None:
                continue
            distance = haversine_km(latitude, longitude, mission.latitude, mission.longitude)
            if not within_radius(distance, radius_km):
                continue
            results.append(
                MissionNearbyOut.model_validate(mission).model_copy(update={"distance_km": display_km(distance)})
            )
        return sorted(results, key=lambda m: m.distance_km)

    async def search_open(
        self,
        db: AsyncSession,
        animator,
        mission_type: Optional[str] = None,
        min_daily_rate: Optional[float] = None,
        specialties: Optional[Sequence[str]] = None,
        ignore_zones: bool = False,
        limit: int = 20,
        today: Optional[date] = None,
    ) -> List:
        """
        Missions ouvertes pour un animateur. Par défaut restreintes aux
        régions de ses zones de mobilité (aucune zone → aucune restriction).
        """
        regions = None
        profile = getattr(animator, "animator_profile", None)
        if not ignore_zones and profile is not None:
            regions = list(profile.mobility_zones or []) or None
        return await repo.search_open(
            db,
            today or date.today(),
            regions=regions,
            mission_type=mission_type,
            min_daily_rate=min_daily_rate,
            specialties=specialties,
            limit=limit,
        )

    # ── Création / édition ────────────────────────────────────

    async def create(self, db: AsyncSession, client, payload):
        _check_dates(payload.start_date, payload.end_date)
        rate_min = payload.daily_rate_min or payload.daily_rate
        rate_max = payload.daily_rate_max or payload.daily_rate
        _check_rates(rate_min, rate_max)

        mission = await repo.create(db, {
            "client_id":            client.id,
            "client_type":          creator_type_for(UserType(client.user_type)),
            "title":                payload.title.strip(),
            "description":          payload.description or None,
            "mission_type":         payload.mission_type,
            "specialties_required": list(dict.fromkeys(payload.specialties or [])),
            "start_date":           payload.start_date,
            "end_date":             payload.end_date,
            "daily_rate_min":       rate_min,
            "daily_rate_max":       rate_max,
            "latitude":             payload.latitude,
            "longitude":            payload.longitude,
            "city":                 payload.city,
            "department":           payload.department,
            "region":               payload.region,
        })
        logger.info("mission.created", mission_id=mission.id, client_id=client.id)
        return mission

    async def update(self, db: AsyncSession, mission_id: int, client, payload):
        mission = await self._get_owned(db, mission_id, client)
        if is_terminal(mission.status):
            raise ConflictError("Cette mission est clôturée.", code="MISSION_CLOSED")

        patch = payload.model_dump(exclude_unset=True)
        _reject_nulls(patch, REQUIRED_FIELDS)
        if any(f in patch for f in RATE_FIELDS) and rates_locked(mission.status):
            raise ConflictError(
                "Le tarif ne peut plus être modifié après acceptation de la proposition.",
                code="RATES_LOCKED",
            )
        if any(f in patch for f in SCHEDULE_FIELDS) and schedule_locked(mission.status):
            raise ConflictError(
                "Les dates ne peuvent plus être modifiées une fois la proposition envoyée.",
                code="SCHEDULE_LOCKED",
            )

        _check_dates(patch.get("start_date", mission.start_date), patch.get("end_date", mission.end_date))
        _check_rates(
            patch.get("daily_rate_min", mission.daily_rate_min),
            patch.get("daily_rate_max", mission.daily_rate_max),
        )
        if not patch:
            return mission
        return await repo.update_fields(db, mission, patch)

    async def delete(self, db: AsyncSession, mission_id: int, client) -> None:
        mission = await self._get_owned(db, mission_id, client)
        if MissionStatus(mission.status) != MissionStatus.DRAFT:
            raise InvalidTransitionError(
                "Seul un brouillon peut être supprimé.", current=mission.status
            )
        if not await repo.delete_draft(db, mission_id):
            raise InvalidTransitionError("Seul un brouillon peut être supprimé.")

    # ── Transitions ───────────────────────────────────────────

    async def _transition(
        self,
        db: AsyncSession,
        mission,
        action: str,
        actor: MissionActor,
        values: Optional[dict] = None,
        where_extra: Sequence = (),
        book_for_animator: Optional[int] = None,
        release_days: bool = False,
        before_commit: Optional[BeforeCommit] = None,
    ):
        current = MissionStatus(mission.status)
        transition = assert_transition(action, current, actor)
        updated = await repo.transition(
            db,
            mission.id,
            transition.sources,
            {"status": transition.target, **(values or {})},
            where_extra=where_extra,
            book_for_animator=book_for_animator,
            release_days=release_days,
            before_commit=before_commit,
        )
        if updated is None:
            logger.info("mission.transition_conflict", mission_id=mission.id, action=action, seen=current.value)
            raise InvalidTransitionError(transition.invalid_message, current=current, target=transition.target)

        logger.info(
            "mission.transition",
            mission_id=updated.id,
            from_status=current.value,
            to_status=transition.target.value,
            actor=actor.value,
        )
        return updated

    async def publish(self, db: AsyncSession, mission_id: int, client):
        mission = await self._get_owned(db, mission_id, client)
        return await self._transition(
            db, mission, "publish", MissionActor.CLIENT,
            before_commit=lambda session: subscriptions.record_mission_published(session, client.id, commit=False),
        )

    async def send_proposal(self, db: AsyncSession, mission_id: int, client, payload):
        mission = await self._get_owned(db, mission_id, client)
        _check_dates(payload.start_date, payload.end_date)

        animator = await repo.get_user(db, payload.animator_id)
        if not animator or UserType(animator.user_type) != UserType.ANIMATEUR:
            raise DomainValidationError("Animateur introuvable.")

        values = {
            "animator_id":      payload.animator_id,
            "match_id":         payload.match_id,
            "start_date":       payload.start_date,
            "end_date":         payload.end_date,
            "daily_rate":       payload.daily_rate,
            "city":             payload.city,
            "description":      payload.description,
            "proposal_sent_at": _utcnow(),
        }
        if payload.latitude is not None and payload.longitude is not None:
            values.update(latitude=payload.latitude, longitude=payload.longitude)

        mission = await self._transition(db, mission, "send_proposal", MissionActor.CLIENT, values)
        await self._notify(
            db, payload.animator_id, NotificationType.MISSION_PROPOSAL,
            "Nouvelle proposition de mission", mission,
        )
        return mission

    async def accept_proposal(self, db: AsyncSession, mission_id: int, animator):
        mission = await self._get(db, mission_id)
        self._ensure_bound_animator(mission, animator)
        mission = await self._transition(
            db, mission, "accept_proposal", MissionActor.ANIMATOR,
            {"accepted_at": _utcnow()},
            where_extra=(Mission.animator_id == animator.id,),
        )
        await self._notify(
            db, mission.client_id, NotificationType.MISSION_ACCEPTED,
            "Proposition acceptée", mission,
        )
        return mission

    async def decline_proposal(self, db: AsyncSession, mission_id: int, animator):
        """La mission redevient ouverte aux autres animateurs."""
        mission = await self._get(db, mission_id)
        self._ensure_bound_animator(mission, animator)
        mission = await self._transition(
            db, mission, "decline_proposal", MissionActor.ANIMATOR,
            {"animator_id": None, "match_id": None, "daily_rate": None, "proposal_sent_at": None},
            where_extra=(Mission.animator_id == animator.id,),
        )
        await self._notify(
            db, mission.client_id, NotificationType.MISSION_DECLINED,
            "Proposition déclinée", mission,
        )
        return mission

    def _ensure_bound_animator(self, mission, animator) -> None:
        if mission.animator_id != animator.id:
            raise AccessDeniedError("Cette proposition ne vous est pas destinée.")

    async def check_fee_status(self, db: AsyncSession, mission_id: int, client) -> dict:
        mission = await self._get_owned(db, mission_id, client)
        status = await subscriptions.fee_status(db, client, mission.start_date, mission.end_date)
        return status.to_dict()

    async def confirm(self, db: AsyncSession, mission_id: int, client, animator_id: int):
        """
        animator_accepted → confirmed. L'acceptation des frais / CGV est
        vérifiée par l'appelant ; ici les frais sont figés et, s'ils sont
        inclus, le quota de mises en relation est décompté.
        """
        mission = await self._get_owned(db, mission_id, client)
        if mission.animator_id != animator_id:
            raise ConflictError("L'animateur ne correspond pas à la proposition acceptée.", code="ANIMATOR_MISMATCH")

        fee = await subscriptions.fee_status(db, client, mission.start_date, mission.end_date)
        record = None
        if fee.included_in_subscription:
            record = lambda session: subscriptions.record_connection(session, client.id, commit=False)
        mission = await self._transition(
            db, mission, "confirm", MissionActor.CLIENT,
            {
                "confirmed_at":   _utcnow(),
                "connection_fee": fee.amount,
                "fee_included":   "included" if fee.included_in_subscription else "charged",
            },
            where_extra=(Mission.animator_id == animator_id,),
            book_for_animator=animator_id,
            before_commit=record,
        )
        logger.info(
            "mission.fee_settled", mission_id=mission_id, amount=fee.amount,
            included=fee.included_in_subscription, tier=fee.tier,
        )
        await self._notify(
            db, animator_id, NotificationType.MISSION_CONFIRMED,
            "Mission confirmée", mission,
        )
        return mission

    async def assign_animator(self, db: AsyncSession, mission_id: int, client, animator_id: int):
        mission = await self._get_owned(db, mission_id, client)
        animator = await repo.get_user(db, animator_id)
        if not animator or UserType(animator.user_type) != UserType.ANIMATEUR:
            raise DomainValidationError("Animateur introuvable.")
        return await self._transition(
            db, mission, "assign", MissionActor.CLIENT,
            {"animator_id": animator_id, "assigned_at": _utcnow()},
            book_for_animator=animator_id,
        )

    async def start(self, db: AsyncSession, mission_id: int, client):
        mission = await self._get_owned(db, mission_id, client)
        return await self._transition(
            db, mission, "start", MissionActor.CLIENT, {"started_at": _utcnow()}
        )

    async def complete(self, db: AsyncSession, mission_id: int, client):
        """Débloque l'éligibilité aux avis croisés (completed_at)."""
        mission = await self._get_owned(db, mission_id, client)
        mission = await self._transition(
            db, mission, "complete", MissionActor.CLIENT, {"completed_at": _utcnow()}
        )
        if mission.animator_id:
            await self._notify(
                db, mission.animator_id, NotificationType.MISSION_COMPLETED,
                "Mission terminée", mission,
            )
        return mission

    async def cancel(
        self,
        db: AsyncSession,
        mission_id: int,
        client=None,
        reason: Optional[str] = None,
        actor: MissionActor = MissionActor.CLIENT,
    ):
        """Client propriétaire, ou système (client=None, actor=SYSTEM). Libère le calendrier."""
        if actor == MissionActor.SYSTEM:
            mission = await self._get(db, mission_id)
        else:
            mission = await self._get_owned(db, mission_id, client)
        mission = await self._transition(
            db, mission, "cancel", actor,
            {"cancelled_at": _utcnow(), "cancel_reason": reason},
            release_days=True,
        )
        if mission.animator_id:
            await self._notify(
                db, mission.animator_id, NotificationType.MISSION_CANCELLED,
                "Mission annulée", mission,
            )
        return mission

    # ── Helpers ───────────────────────────────────────────────

    async def _notify(self, db: AsyncSession, user_id: int, type: NotificationType, title: str, mission) -> None:
        """Notification de la contrepartie. Un échec est loggé, jamais propagé."""
        mission_id, mission_title = mission.id, mission.title
        try:
            await sink.notify(db, user_id, type, title, mission_title, {"mission_id": mission_id})
        except Exception:
            logger.error("notification.failed", user_id=user_id, type=type.value, mission_id=mission_id, exc_info=True)
            await db.rollback()
            await db.refresh(mission)
