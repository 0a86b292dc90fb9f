# modules/notifications/router.py
"""
Centre de notifications de l'utilisateur connecté.

Règle : zéro requête ici. Tout passe par notification_service.
Les erreurs métier (NotFoundError, AccessDeniedError) sont traduites
par le handler global de main.py.
"""
from typing import List

from fastapi import APIRouter, Query, status

from pharmalink.shared.deps import DbDep, UserDep
from pharmalink.modules.notifications.service import NotificationService
from pharmalink.modules.notifications.schemas import (
    NotificationOut,
    UnreadCountOut,
    MarkAllReadOut,
    PushTokenIn,
    PushTokenOut,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])
service = NotificationService()


@router.get("/", response_model=List[NotificationOut], summary="Mes notifications")
async def list_my_notifications(
    db: DbDep,
    current_user: UserDep,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
):
    return await service.list_mine(db, current_user, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCountOut, summary="Nombre de non lues")
async def get_unread_count(db: DbDep, current_user: UserDep):
    return {"unread": await service.unread_count(db, current_user)}


@router.post("/{notification_id}/read", response_model=NotificationOut, summary="Marquer comme lue")
async def mark_notification_read(notification_id: int, db: DbDep, current_user: UserDep):
    return await service.mark_read(db, notification_id, current_user)


@router.post("/read-all", response_model=MarkAllReadOut, summary="Tout marquer comme lu")
async def mark_all_read(db: DbDep, current_user: UserDep):
    return {"updated": await service.mark_all_read(db, current_user)}


@router.post(
    "/push-token",
    response_model=PushTokenOut,
    status_code=status.HTTP_201_CREATED,
    summary="Enregistrer un token push Expo",
)
async def register_push_token(payload: PushTokenIn, db: DbDep, current_user: UserDep):
    return await service.register_push_token(db, current_user, payload.token, payload.platform)
