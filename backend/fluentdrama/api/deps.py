"""FastAPI dependencies: service container, session user, admin guard."""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from fluentdrama.core.errors import ForbiddenError, ServiceUnavailableError
from fluentdrama.models.user import User
from fluentdrama.services.auth import AuthService, GoogleOAuthClient
from fluentdrama.services.characters import CharacterRegistry
from fluentdrama.services.dialogue import DialogueService
from fluentdrama.services.image import CharacterImageService
from fluentdrama.services.payments import SubscriptionService
from fluentdrama.services.scenario import ScenarioResolver
from fluentdrama.services.scenes import SceneService
from fluentdrama.services.speech import SpeechService
from fluentdrama.services.storage import Storage
from fluentdrama.services.usage import UsageLedger

SESSION_USER_KEY = "user_id"


@dataclass
class AppServices:
    storage: Storage
    auth: AuthService
    ledger: UsageLedger
    registry: CharacterRegistry
    resolver: ScenarioResolver
    dialogue: DialogueService
    speech: SpeechService
    images: CharacterImageService
    scenes: SceneService
    subscriptions: SubscriptionService
    google: Optional[GoogleOAuthClient] = None


def get_services(request: Request) -> AppServices:
    """Return the container built at startup, or 503 when startup failed."""
    services: AppServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise ServiceUnavailableError()
    return services


def current_user(
    request: Request, services: AppServices = Depends(get_services)
) -> User:
    """The logged-in user (401 otherwise)."""
    return services.auth.user_for_session(request.session.get(SESSION_USER_KEY))


def admin_user(
    user: User = Depends(current_user), services: AppServices = Depends(get_services)
) -> User:
    if not services.ledger.is_admin(user):
        raise ForbiddenError("Admin access required")
    return user
