# modules/subscription/router.py
"""
Statut d'abonnement : tier + quotas du mois en cours.
"""
from fastapi import APIRouter

from pharmalink.shared.deps import DbDep, UserDep
from pharmalink.modules.subscription.service import SubscriptionService
from pharmalink.modules.subscription.schemas import SubscriptionStatusOut

router = APIRouter(prefix="/subscription", tags=["Subscription"])
service = SubscriptionService()


@router.get(
    "/me",
    response_model=SubscriptionStatusOut,
    summary="Mon abonnement et mes quotas",
)
async def get_my_subscription(db: DbDep, current_user: UserDep):
    return await service.get_status(db, current_user)
