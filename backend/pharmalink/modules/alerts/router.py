# modules/alerts/router.py
"""
Endpoints des alertes urgentes.
Couvre : création (pharmacie / labo), clôture, listings géo-filtrés,
réponses candidats, arbitrage d'acceptation, sweep d'expiration.

Règle : zéro logique métier ici. Tout passe par alert_service.
Les erreurs typées (shared/exceptions) sont traduites par main.py.
"""
from typing import List, Optional

from fastapi import APIRouter, Query, status

from pharmalink.shared.deps import (
    DbDep, UserDep, CreatorDep, ResponderDep, CronDep,
)
from pharmalink.shared.enums import AlertStatus, UserType
from pharmalink.modules.alerts.service import AlertService
from pharmalink.modules.alerts.schemas import (
    PharmacyAlertCreateIn,
    LaboratoryAlertCreateIn,
    AlertUpdateIn,
    AlertOut,
    ActiveAlertOut,
    RespondIn,
    ResponseOut,
    ResponseDetailOut,
    HasRespondedOut,
    ExpireSweepOut,
)

router = APIRouter(prefix="/alerts", tags=["Urgent alerts"])
service = AlertService()


# ── Création ───────────────────────────────────────────────

@router.post(
    "/pharmacy",
    response_model=AlertOut,
    status_code=status.HTTP_201_CREATED,
    summary="Publier une alerte urgente (titulaire)",
)
async def create_pharmacy_alert(payload: PharmacyAlertCreateIn, db: DbDep, creator: CreatorDep):
    """Notifie les candidats du bon profil dans le rayon. Un échec de notification ne bloque pas."""
    return await service.create_for_pharmacy(db, creator, payload)


@router.post(
    "/laboratory",
    response_model=AlertOut,
    status_code=status.HTTP_201_CREATED,
    summary="Publier une alerte urgente (laboratoire → animateurs)",
)
async def create_laboratory_alert(payload: LaboratoryAlertCreateIn, db: DbDep, creator: CreatorDep):
    return await service.create_for_laboratory(db, creator, payload)


# ── Listings ───────────────────────────────────────────────

@router.get("/mine", response_model=List[AlertOut], summary="Mes alertes")
async def list_my_alerts(
    db: DbDep,
    creator: CreatorDep,
    alert_status: Optional[AlertStatus] = Query(None, alias="status"),
    statuses: Optional[List[AlertStatus]] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
):
    return await service.get_by_creator(
        db, creator, status=alert_status, statuses=statuses, limit=limit
    )


@router.get(
    "/active",
    response_model=List[ActiveAlertOut],
    summary="Alertes actives autour de moi",
    description="Triées par distance croissante. Liste vide si alertes désactivées ou position inconnue.",
)
async def list_active_alerts(db: DbDep, current_user: ResponderDep):
    if UserType(current_user.user_type) == UserType.ANIMATEUR:
        return await service.get_active_for_animator(db, current_user)
    return await service.get_active_for_candidate(db, current_user)


@router.get("/{alert_id}", response_model=AlertOut, summary="Détail d'une alerte")
async def get_alert(alert_id: int, db: DbDep, current_user: UserDep):
    return await service.get_by_id(db, alert_id)


# ── Modification / clôture ─────────────────────────────────

@router.patch("/{alert_id}", response_model=AlertOut, summary="Modifier une alerte active")
async def update_alert(alert_id: int, payload: AlertUpdateIn, db: DbDep, creator: CreatorDep):
    return await service.update(db, alert_id, creator, payload)


@router.post("/{alert_id}/cancel", response_model=AlertOut, summary="Annuler une alerte")
async def cancel_alert(alert_id: int, db: DbDep, creator: CreatorDep):
    return await service.cancel(db, alert_id, creator)


@router.post("/{alert_id}/filled", response_model=AlertOut, summary="Marquer comme pourvue")
async def mark_alert_filled(alert_id: int, db: DbDep, creator: CreatorDep):
    return await service.mark_as_filled(db, alert_id, creator)


# ── Réponses ───────────────────────────────────────────────

@router.get(
    "/{alert_id}/responses",
    response_model=List[ResponseDetailOut],
    summary="Réponses reçues (ordre d'arrivée)",
)
async def list_responses(alert_id: int, db: DbDep, creator: CreatorDep):
    return await service.get_responses(db, alert_id, creator)


@router.post(
    "/{alert_id}/responses",
    response_model=ResponseOut,
    status_code=status.HTTP_201_CREATED,
    summary="Répondre à une alerte",
)
async def respond_to_alert(alert_id: int, payload: RespondIn, db: DbDep, current_user: ResponderDep):
    """409 ALREADY_RESPONDED si une réponse existe déjà, 409 ALERT_CLOSED si l'alerte est close."""
    return await service.respond(db, alert_id, current_user, payload.message)


@router.get(
    "/{alert_id}/responses/me",
    response_model=HasRespondedOut,
    summary="Ai-je déjà répondu ?",
)
async def has_responded(alert_id: int, db: DbDep, current_user: UserDep):
    return {"responded": await service.has_responded(db, alert_id, current_user.id)}


@router.post(
    "/{alert_id}/responses/{candidate_id}/accept",
    response_model=ResponseOut,
    summary="Retenir un candidat",
    description="Arbitrage atomique : les autres réponses en attente sont rejetées, l'alerte passe à pourvue.",
)
async def accept_candidate(alert_id: int, candidate_id: int, db: DbDep, creator: CreatorDep):
    return await service.accept_candidate(db, alert_id, candidate_id, creator)


@router.post(
    "/{alert_id}/responses/{candidate_id}/reject",
    response_model=ResponseOut,
    summary="Écarter un candidat",
)
async def reject_candidate(alert_id: int, candidate_id: int, db: DbDep, creator: CreatorDep):
    return await service.reject_candidate(db, alert_id, candidate_id, creator)


# ── Tâche planifiée ────────────────────────────────────────

@router.post(
    "/expire",
    response_model=ExpireSweepOut,
    summary="Expirer les alertes échues (cron)",
    include_in_schema=False,
)
async def expire_alerts(db: DbDep, _: CronDep):
    return {"expired": await service.expire_overdue(db)}
