# modules/missions/schemas.py
from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from pharmalink.engine.missions.fees import inclusive_day_count, payout_total
from pharmalink.shared.enums import CreatorType, MissionStatus


# ── Création / édition ─────────────────────────────────────

class MissionCreateIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    mission_type: Optional[str] = None
    specialties: List[str] = []
    start_date: date
    end_date: date
    daily_rate: Optional[float] = Field(None, gt=0)
    daily_rate_min: Optional[float] = Field(None, gt=0)
    daily_rate_max: Optional[float] = Field(None, gt=0)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    city: Optional[str] = None
    department: Optional[str] = None
    region: Optional[str] = None


class MissionUpdateIn(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    mission_type: Optional[str] = None
    specialties_required: Optional[List[str]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    daily_rate_min: Optional[float] = Field(None, gt=0)
    daily_rate_max: Optional[float] = Field(None, gt=0)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    city: Optional[str] = None
    department: Optional[str] = None
    region: Optional[str] = None


# ── Cycle de vie ───────────────────────────────────────────

class ProposalIn(BaseModel):
    """Conditions de la proposition : toutes obligatoires sauf coordonnées et match."""
    animator_id: int
    match_id: Optional[int] = None
    start_date: date
    end_date: date
    daily_rate: float = Field(..., gt=0)
    city: str = Field(..., min_length=1)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    description: str = Field(..., min_length=1)


class ConfirmIn(BaseModel):
    animator_id: int


class AssignIn(BaseModel):
    animator_id: int


class CancelIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# ── Lecture ────────────────────────────────────────────────

class MissionOut(BaseModel):
    id: int
    client_id: int
    client_type: CreatorType
    animator_id: Optional[int] = None
    match_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    mission_type: Optional[str] = None
    specialties_required: List[str] = []
    city: Optional[str] = None
    department: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    start_date: date
    end_date: date
    daily_rate_min: Optional[float] = None
    daily_rate_max: Optional[float] = None
    daily_rate: Optional[float] = None
    status: MissionStatus
    connection_fee: Optional[float] = None
    fee_included: Optional[str] = None
    proposal_sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def duration_days(self) -> int:
        return inclusive_day_count(self.start_date, self.end_date)

    @computed_field
    @property
    def total_payout(self) -> Optional[Decimal]:
        if self.daily_rate is None:
            return None
        return payout_total(self.daily_rate, self.start_date, self.end_date)


class MissionNearbyOut(MissionOut):
    distance_km: Optional[float] = None
