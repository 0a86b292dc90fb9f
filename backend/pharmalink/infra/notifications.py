# pharmalink/infra/notifications.py
"""
Notification Sink : enregistrements in-app + push Expo optionnel.

Fire-and-forget du point de vue métier : un échec de push est loggé,
jamais propagé. L'écriture in-app, elle, suit la session appelante.
"""
from typing import Dict, Iterable, List, Optional

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.core.config import settings
from pharmalink.shared.enums import NotificationType
from pharmalink.shared.models import Notification, PushToken

logger = structlog.get_logger(__name__)


class NotificationSink:

    async def notify(
        self,
        db: AsyncSession,
        user_id: int,
        type: NotificationType,
        title: str,
        content: Optional[str] = None,
        data: Optional[Dict] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=NotificationType(type).value,
            title=title,
            content=content,
            data=data or {},
        )
        db.add(notification)
        await db.commit()
        await db.refresh(notification)
        await self._push_quietly(db, [user_id], title, content, data)
        return notification

    async def notify_many(self, db: AsyncSession, notifications: List[Dict]) -> int:
        """Insertion groupée : une seule transaction pour tout le lot."""
        if not notifications:
            return 0
        db.add_all([
            Notification(
                user_id=n["user_id"],
                type=NotificationType(n["type"]).value,
                title=n["title"],
                content=n.get("content"),
                data=n.get("data") or {},
            )
            for n in notifications
        ])
        await db.commit()

        first = notifications[0]
        await self._push_quietly(db, [n["user_id"] for n in notifications], first["title"], first.get("content"))
        return len(notifications)

    # ── Push Expo ─────────────────────────────────────────────

    async def _push_quietly(
        self,
        db: AsyncSession,
        user_ids: List[int],
        title: str,
        body: Optional[str] = None,
        data: Optional[Dict] = None,
    ) -> int:
        """Appelé après le commit in-app : aucune erreur de push ne remonte."""
        try:
            return await self.push(db, user_ids, title, body, data)
        except Exception:
            logger.warning("push.dispatch_failed", exc_info=True, recipients=len(user_ids))
            return 0

    async def push(
        self,
        db: AsyncSession,
        user_ids: Iterable[int],
        title: str,
        body: Optional[str] = None,
        data: Optional[Dict] = None,
    ) -> int:
        if not settings.PUSH_ENABLED:
            return 0

        user_ids = list(user_ids)
        r = await db.execute(select(PushToken.token).where(PushToken.user_id.in_(user_ids)))
        tokens = r.scalars().all()
        if not tokens:
            return 0

        messages = [
            {"to": token, "title": title, "body": body or "", "data": data or {}, "sound": "default"}
            for token in tokens
        ]
        try:
            async with httpx.AsyncClient(timeout=settings.PUSH_TIMEOUT_SECONDS) as client:
                response = await client.post(settings.EXPO_PUSH_URL, json=messages)
                response.raise_for_status()
        except (httpx.RequestError, httpx.HTTPStatusError):
            logger.warning("push.dispatch_failed", exc_info=True, recipients=len(user_ids))
            return 0

        logger.info("push.dispatched", messages=len(messages))
        return len(messages)


sink = NotificationSink()
