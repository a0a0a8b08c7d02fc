"""Admin-only user management."""
from fastapi import APIRouter, Depends

from fluentdrama.api.deps import AppServices, admin_user, get_services
from fluentdrama.core.errors import NotFoundError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.user import AdminSubscriptionUpdate, User, UserPublic

logger = setup_logging("admin")

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(admin_user)])


@router.get("/users", response_model=list[UserPublic])
def list_users(services: AppServices = Depends(get_services)) -> list[UserPublic]:
    return [user.public() for user in services.storage.list_users()]


@router.get("/user/{email}", response_model=UserPublic)
def get_user_by_email(
    email: str, services: AppServices = Depends(get_services)
) -> UserPublic:
    user = services.storage.get_user_by_email(email.lower())
    if user is None:
        raise NotFoundError("User not found")
    return user.public()


@router.put("/user/{user_id}/subscription", response_model=UserPublic)
def update_subscription(
    user_id: str,
    body: AdminSubscriptionUpdate,
    admin: User = Depends(admin_user),
    services: AppServices = Depends(get_services),
) -> UserPublic:
    user = services.subscriptions.admin_set_tier(user_id, body.tier)
    logger.info(
        "Admin %s set tier %s", admin.id, body.tier.value, extra={"user_id": user_id}
    )
    return user.public()


@router.put("/user/{user_id}/reset-usage", response_model=UserPublic)
def reset_usage(
    user_id: str, services: AppServices = Depends(get_services)
) -> UserPublic:
    if services.storage.get_user(user_id) is None:
        raise NotFoundError("User not found")
    services.ledger.reset(user_id)
    return services.storage.get_user(user_id).public()
