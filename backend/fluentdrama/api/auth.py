"""Account routes: register, login, logout, current user, Google sign-in."""
import asyncio
import secrets

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from fluentdrama.api.deps import SESSION_USER_KEY, AppServices, current_user, get_services
from fluentdrama.core.errors import ServiceUnavailableError, UpstreamError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.user import LoginRequest, RegisterRequest, User, UserPublic

logger = setup_logging("auth_router")

router = APIRouter(prefix="/api", tags=["auth"])

OAUTH_STATE_KEY = "oauth_state"


@router.post("/register", response_model=UserPublic, status_code=201)
def register(
    body: RegisterRequest,
    request: Request,
    services: AppServices = Depends(get_services),
) -> UserPublic:
    user = services.auth.register(body)
    request.session[SESSION_USER_KEY] = user.id
    return user.public()


@router.post("/login", response_model=UserPublic)
def login(
    body: LoginRequest,
    request: Request,
    services: AppServices = Depends(get_services),
) -> UserPublic:
    user = services.auth.authenticate(body.email, body.password)
    request.session[SESSION_USER_KEY] = user.id
    return user.public()


@router.post("/logout")
async def logout(request: Request) -> dict:
    request.session.clear()
    return {"message": "Logged out"}


@router.get("/user", response_model=UserPublic)
async def get_user(user: User = Depends(current_user)) -> UserPublic:
    return user.public()


@router.get("/google")
async def google_login(
    request: Request, services: AppServices = Depends(get_services)
) -> RedirectResponse:
    if services.google is None or not services.google.configured:
        raise ServiceUnavailableError("Google sign-in is not configured")
    state = secrets.token_urlsafe(16)
    request.session[OAUTH_STATE_KEY] = state
    return RedirectResponse(services.google.authorization_url(state))


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str = "",
    state: str = "",
    services: AppServices = Depends(get_services),
) -> RedirectResponse:
    if services.google is None or not services.google.configured:
        raise ServiceUnavailableError("Google sign-in is not configured")
    expected = request.session.pop(OAUTH_STATE_KEY, None)
    if not code or not expected or state != expected:
        logger.warning("Rejected Google callback with bad state")
        return RedirectResponse("/auth", status_code=302)
    try:
        profile = await services.google.fetch_profile(code)
    except UpstreamError:
        return RedirectResponse("/auth", status_code=302)
    user = await asyncio.to_thread(services.auth.google_user, profile)
    request.session[SESSION_USER_KEY] = user.id
    return RedirectResponse("/", status_code=302)
