# modules/notifications/schemas.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationOut(BaseModel):
    id: int
    type: str
    title: str
    content: Optional[str] = None
    data: Dict[str, Any] = {}
    read: bool = False
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class UnreadCountOut(BaseModel):
    unread: int


class MarkAllReadOut(BaseModel):
    updated: int


class PushTokenIn(BaseModel):
    token: str = Field(..., min_length=1)
    platform: Optional[str] = None


class PushTokenOut(BaseModel):
    id: int
    token: str
    platform: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)
