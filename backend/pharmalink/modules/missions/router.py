# modules/missions/router.py
"""
Endpoints du cycle de vie d'une mission d'animation.
Couvre : CRUD brouillon, publication, proposition / réponse animateur,
frais de mise en relation, confirmation, exécution, annulation.

Règle : zéro logique métier ici. Tout passe par mission_service.
"""
from typing import List, Optional

from fastapi import APIRouter, Query, Response, status

from pharmalink.shared.deps import DbDep, UserDep, CreatorDep, AnimatorDep
from pharmalink.shared.enums import MissionStatus
from pharmalink.modules.missions.service import MissionService
from pharmalink.modules.missions.schemas import (
    MissionCreateIn,
    MissionUpdateIn,
    MissionOut,
    MissionNearbyOut,
    ProposalIn,
    ConfirmIn,
    AssignIn,
    CancelIn,
)
from pharmalink.modules.subscription.schemas import FeeStatusOut

router = APIRouter(prefix="/missions", tags=["Missions"])
service = MissionService()


# ─────────────────────────────────────────────
# LISTINGS
# ─────────────────────────────────────────────

@router.get("/mine", response_model=List[MissionOut], summary="Missions que j'ai créées")
async def list_client_missions(
    db: DbDep,
    client: CreatorDep,
    mission_status: Optional[MissionStatus] = Query(None, alias="status"),
    statuses: Optional[List[MissionStatus]] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
):
    return await service.get_by_client(db, client, status=mission_status, statuses=statuses, limit=limit)


@router.get("/assigned", response_model=List[MissionOut], summary="Mes missions (animateur)")
async def list_animator_missions(
    db: DbDep,
    animator: AnimatorDep,
    mission_status: Optional[MissionStatus] = Query(None, alias="status"),
    statuses: Optional[List[MissionStatus]] = Query(None),
):
    return await service.get_by_animator(db, animator, status=mission_status, statuses=statuses)


@router.get("/nearby", response_model=List[MissionNearbyOut], summary="Missions ouvertes à proximité")
async def search_nearby(
    db: DbDep,
    current_user: UserDep,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(30, gt=0, le=500),
):
    return await service.search_nearby(db, latitude, longitude, radius_km)


@router.get("/open", response_model=List[MissionOut], summary="Missions ouvertes (animateur)")
async def search_open_missions(
    db: DbDep,
    animator: AnimatorDep,
    mission_type: Optional[str] = Query(None),
    min_daily_rate: Optional[float] = Query(None, ge=0),
    specialties: Optional[List[str]] = Query(None),
    ignore_zones: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
):
    return await service.search_open(
        db, animator,
        mission_type=mission_type,
        min_daily_rate=min_daily_rate,
        specialties=specialties,
        ignore_zones=ignore_zones,
        limit=limit,
    )


# ─────────────────────────────────────────────
# CRUD
# ─────────────────────────────────────────────

@router.post("/", response_model=MissionOut, status_code=status.HTTP_201_CREATED, summary="Créer un brouillon")
async def create_mission(payload: MissionCreateIn, db: DbDep, client: CreatorDep):
    return await service.create(db, client, payload)


@router.get("/{mission_id}", response_model=MissionOut, summary="Détail d'une mission")
async def get_mission(mission_id: int, db: DbDep, current_user: UserDep):
    return await service.get_by_id(db, mission_id, current_user)


@router.patch("/{mission_id}", response_model=MissionOut, summary="Modifier une mission")
async def update_mission(mission_id: int, payload: MissionUpdateIn, db: DbDep, client: CreatorDep):
    return await service.update(db, mission_id, client, payload)


@router.delete("/{mission_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Supprimer un brouillon")
async def delete_mission(mission_id: int, db: DbDep, client: CreatorDep):
    await service.delete(db, mission_id, client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─────────────────────────────────────────────
# CYCLE DE VIE
# ─────────────────────────────────────────────

@router.post("/{mission_id}/publish", response_model=MissionOut, summary="Publier (draft → open)")
async def publish_mission(mission_id: int, db: DbDep, client: CreatorDep):
    return await service.publish(db, mission_id, client)


@router.post("/{mission_id}/proposal", response_model=MissionOut, summary="Envoyer une proposition")
async def send_proposal(mission_id: int, payload: ProposalIn, db: DbDep, client: CreatorDep):
    return await service.send_proposal(db, mission_id, client, payload)


@router.post("/{mission_id}/proposal/accept", response_model=MissionOut, summary="Accepter la proposition")
async def accept_proposal(mission_id: int, db: DbDep, animator: AnimatorDep):
    return await service.accept_proposal(db, mission_id, animator)


@router.post("/{mission_id}/proposal/decline", response_model=MissionOut, summary="Décliner la proposition")
async def decline_proposal(mission_id: int, db: DbDep, animator: AnimatorDep):
    return await service.decline_proposal(db, mission_id, animator)


@router.get("/{mission_id}/fee", response_model=FeeStatusOut, summary="Frais de mise en relation")
async def get_fee_status(mission_id: int, db: DbDep, client: CreatorDep):
    return await service.check_fee_status(db, mission_id, client)


@router.post("/{mission_id}/confirm", response_model=MissionOut, summary="Confirmer la mission")
async def confirm_mission(mission_id: int, payload: ConfirmIn, db: DbDep, client: CreatorDep):
    """Le front a fait accepter frais et CGV avant cet appel."""
    return await service.confirm(db, mission_id, client, payload.animator_id)


@router.post("/{mission_id}/assign", response_model=MissionOut, summary="Assigner directement un animateur")
async def assign_animator(mission_id: int, payload: AssignIn, db: DbDep, client: CreatorDep):
    return await service.assign_animator(db, mission_id, client, payload.animator_id)


@router.post("/{mission_id}/start", response_model=MissionOut, summary="Démarrer la mission")
async def start_mission(mission_id: int, db: DbDep, client: CreatorDep):
    return await service.start(db, mission_id, client)


@router.post("/{mission_id}/complete", response_model=MissionOut, summary="Terminer la mission")
async def complete_mission(mission_id: int, db: DbDep, client: CreatorDep):
    return await service.complete(db, mission_id, client)


@router.post("/{mission_id}/cancel", response_model=MissionOut, summary="Annuler la mission")
async def cancel_mission(mission_id: int, db: DbDep, client: CreatorDep, payload: Optional[CancelIn] = None):
    return await service.cancel(db, mission_id, client, reason=payload.reason if payload else None)
