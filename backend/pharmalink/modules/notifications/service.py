# modules/notifications/service.py
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.modules.notifications.repository import NotificationRepository
from pharmalink.shared.exceptions import AccessDeniedError, NotFoundError

repo = NotificationRepository()


class NotificationService:

    async def list_mine(self, db: AsyncSession, user, unread_only: bool = False, limit: int = 50) -> List:
        return await repo.list_for_user(db, user.id, unread_only=unread_only, limit=limit)

    async def unread_count(self, db: AsyncSession, user) -> int:
        return await repo.unread_count(db, user.id)

    async def mark_read(self, db: AsyncSession, notification_id: int, user):
        notification = await repo.get_by_id(db, notification_id)
        if not notification:
            raise NotFoundError("Notification introuvable.")
        if notification.user_id != user.id:
            raise AccessDeniedError("Accès refusé.")
        if notification.read:
            return notification
        return await repo.mark_read(db, notification)

    async def mark_all_read(self, db: AsyncSession, user) -> int:
        return await repo.mark_all_read(db, user.id)

    async def register_push_token(self, db: AsyncSession, user, token: str, platform=None):
        return await repo.upsert_push_token(db, user.id, token, platform)
