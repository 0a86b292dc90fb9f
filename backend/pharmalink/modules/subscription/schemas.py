# modules/subscription/schemas.py
from datetime import date
from typing import Optional

from pydantic import BaseModel

from pharmalink.shared.enums import SubscriptionTier


class QuotaOut(BaseModel):
    used: int
    max: Optional[int] = None          # None → illimité
    remaining: Optional[int] = None
    unlimited: bool = False


class SubscriptionStatusOut(BaseModel):
    tier: SubscriptionTier
    period: date
    contacts: QuotaOut
    alerts: QuotaOut


class FeeStatusOut(BaseModel):
    amount: int
    days: int
    included_in_subscription: bool
    tier: str
    contacts_max: Optional[int] = None
    contacts_remaining: Optional[int] = None
    unlimited: bool = False
    message: str = ""
