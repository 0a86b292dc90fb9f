# modules/alerts/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import date, datetime

from pharmalink.shared.enums import AlertStatus, CreatorType, PositionType, ResponseStatus, UserType


# ── Création ───────────────────────────────────────────────

class _AlertBaseIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: date
    end_date: date
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_km: Optional[int] = Field(None, gt=0, le=500)
    city: Optional[str] = None


class PharmacyAlertCreateIn(_AlertBaseIn):
    position_type: PositionType
    hourly_rate: Optional[float] = Field(None, ge=0)


class LaboratoryAlertCreateIn(_AlertBaseIn):
    """position_type forcé à 'animateur' côté service."""
    specialties: List[str] = []
    daily_rate: Optional[float] = Field(None, ge=0)   # stocké en hourly_rate = daily_rate / 8


class AlertUpdateIn(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    radius_km: Optional[int] = Field(None, gt=0, le=500)
    city: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    required_specialties: Optional[List[str]] = None


# ── Lecture ────────────────────────────────────────────────

class AlertOut(BaseModel):
    id: int
    creator_id: int
    creator_type: CreatorType
    title: str
    description: Optional[str] = None
    position_type: PositionType
    required_specialties: List[str] = []
    start_date: date
    end_date: date
    expires_at: datetime
    latitude: float
    longitude: float
    radius_km: int
    city: Optional[str] = None
    hourly_rate: Optional[float] = None
    status: AlertStatus
    notified_count: int = 0
    filled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ActiveAlertOut(AlertOut):
    distance_km: Optional[float] = None


# ── Réponses ───────────────────────────────────────────────

class RespondIn(BaseModel):
    message: Optional[str] = Field(None, max_length=1000)


class CandidateSummaryOut(BaseModel):
    id: int
    user_type: UserType
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    photo_url: Optional[str] = None
    current_city: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ResponseOut(BaseModel):
    id: int
    alert_id: int
    candidate_id: int
    status: ResponseStatus
    message: Optional[str] = None
    response_time: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ResponseDetailOut(ResponseOut):
    candidate: Optional[CandidateSummaryOut] = None


class HasRespondedOut(BaseModel):
    responded: bool


class ExpireSweepOut(BaseModel):
    expired: int
