"""Usage routes for the signed-in user."""
from typing import Optional

from fastapi import APIRouter, Body, Depends

from fluentdrama.api.deps import AppServices, current_user, get_services
from fluentdrama.models.base import CamelModel
from fluentdrama.models.user import (
    CheckUsageResponse,
    IncrementUsageResponse,
    UsageMetric,
    User,
)

router = APIRouter(prefix="/api", tags=["usage"])


class UsageRequest(CamelModel):
    type: UsageMetric = UsageMetric.conversation


@router.post("/check-usage", response_model=CheckUsageResponse)
def check_usage(
    body: Optional[UsageRequest] = Body(None),
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> CheckUsageResponse:
    metric = body.type if body else UsageMetric.conversation
    status = services.ledger.check_quota(user.id, metric)
    return CheckUsageResponse(
        can_use=status.allowed,
        current_usage=status.current,
        limit=status.limit,
        tier=status.tier,
        days_until_reset=status.days_until_reset,
    )


@router.post("/increment-usage", response_model=IncrementUsageResponse)
def increment_usage(
    body: Optional[UsageRequest] = Body(None),
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> IncrementUsageResponse:
    metric = body.type if body else UsageMetric.conversation
    return IncrementUsageResponse(new_usage=services.ledger.increment(user.id, metric))
