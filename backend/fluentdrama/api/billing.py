"""Subscription routes."""
from fastapi import APIRouter, Depends

from fluentdrama.api.deps import AppServices, current_user, get_services
from fluentdrama.models.user import SubscribeRequest, User

router = APIRouter(prefix="/api", tags=["billing"])


@router.post("/subscribe")
async def subscribe(
    body: SubscribeRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> dict:
    updated, payment = await services.subscriptions.subscribe(user, body.tier, body.provider)
    return {"success": True, "user": updated.public().to_wire(), "paymentData": payment}


@router.post("/cancel-subscription")
def cancel_subscription(
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> dict:
    updated = services.subscriptions.cancel(user)
    return {"success": True, "user": updated.public().to_wire()}
