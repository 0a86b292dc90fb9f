# modules/notifications/repository.py
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.shared.models import Notification, PushToken


class NotificationRepository:

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        q = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            q = q.where(Notification.read == False)
        r = await db.execute(q.order_by(Notification.created_at.desc()).limit(limit))
        return r.scalars().all()

    async def unread_count(self, db: AsyncSession, user_id: int) -> int:
        r = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read == False,
            )
        )
        return r.scalar() or 0

    async def get_by_id(self, db: AsyncSession, notification_id: int) -> Optional[Notification]:
        r = await db.execute(select(Notification).where(Notification.id == notification_id))
        return r.scalar_one_or_none()

    async def mark_read(self, db: AsyncSession, notification: Notification) -> Notification:
        notification.read = True
        await db.commit()
        await db.refresh(notification)
        return notification

    async def mark_all_read(self, db: AsyncSession, user_id: int) -> int:
        r = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read == False)
            .values(read=True)
        )
        await db.commit()
        return r.rowcount or 0

    async def upsert_push_token(
        self, db: AsyncSession, user_id: int, token: str, platform: Optional[str]
    ) -> PushToken:
        r = await db.execute(
            select(PushToken).where(PushToken.user_id == user_id, PushToken.token == token)
        )
        push_token = r.scalar_one_or_none()
        if push_token:
            push_token.platform = platform
        else:
            push_token = PushToken(user_id=user_id, token=token, platform=platform)
            db.add(push_token)
        await db.commit()
        await db.refresh(push_token)
        return push_token
