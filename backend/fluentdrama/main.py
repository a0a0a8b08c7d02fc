"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from fluentdrama.api.deps import AppServices
from fluentdrama.core.config import Settings, get_settings
from fluentdrama.core.errors import AppError, app_error_handler, unhandled_error_handler
from fluentdrama.core.logging import setup_logging
from fluentdrama.core.middleware import JSONBoxMiddleware
from fluentdrama.services.orchestrator import SceneTimings

logger = setup_logging("main")


def build_services(settings: Settings) -> AppServices:
    """Wire every service from settings."""
    from fluentdrama.services.auth import AuthService, GoogleOAuthClient
    from fluentdrama.services.characters import CharacterRegistry
    from fluentdrama.services.dialogue import DialogueService
    from fluentdrama.services.image import CharacterImageService
    from fluentdrama.services.payments import PaddleClient, SubscriptionService
    from fluentdrama.services.scenario import ScenarioResolver
    from fluentdrama.services.scenes import SceneService
    from fluentdrama.services.speech import SpeechService
    from fluentdrama.services.storage import build_storage
    from fluentdrama.services.usage import UsageLedger

    storage = build_storage(settings.storage_backend, settings.gcp_project_id)
    ledger = UsageLedger(storage, settings.admin_emails)
    registry = CharacterRegistry(storage)
    resolver = ScenarioResolver()
    dialogue = DialogueService(api_key=settings.gemini_api_key, model=settings.chat_model)
    speech = SpeechService(
        api_key=settings.gemini_api_key,
        tts_model=settings.tts_model,
        transcription_model=settings.transcription_model,
        min_audio_bytes=settings.min_audio_bytes,
    )
    timings = SceneTimings(
        opening_playback_delay=settings.opening_playback_delay,
        reply_playback_delay=settings.reply_playback_delay,
        auto_listen_delay=settings.auto_listen_delay,
        call_timeout=settings.external_call_timeout,
        min_audio_bytes=settings.min_audio_bytes,
    )
    return AppServices(
        storage=storage,
        auth=AuthService(storage, settings.admin_emails),
        ledger=ledger,
        registry=registry,
        resolver=resolver,
        dialogue=dialogue,
        speech=speech,
        images=CharacterImageService(
            api_key=settings.gemini_api_key,
            model=settings.image_model,
            images_dir=Path(settings.images_dir),
        ),
        scenes=SceneService(storage, registry, resolver, ledger, dialogue, speech, timings),
        subscriptions=SubscriptionService(
            storage,
            PaddleClient(
                settings.paddle_api_key,
                settings.paddle_api_url,
                timeout=settings.external_call_timeout,
            ),
            settings.paddle_price_ids,
        ),
        google=GoogleOAuthClient(
            settings.google_client_id,
            settings.google_client_secret,
            settings.google_redirect_uri,
            timeout=settings.external_call_timeout,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize services at startup, clean up at shutdown."""
    if getattr(app.state, "services", None) is None:
        try:
            app.state.services = build_services(get_settings())
            logger.info("Services initialized successfully")
        except Exception as exc:
            logger.error(
                "Service initialization failed, running in degraded mode",
                exc_info=True,
                extra={"error_type": type(exc).__name__},
            )
            app.state.services = None

    yield

    services: AppServices | None = getattr(app.state, "services", None)
    if services is not None:
        services.scenes.close_all()
        if services.google is not None:
            await services.google.aclose()
        if services.subscriptions.paddle is not None:
            await services.subscriptions.paddle.aclose()


app = FastAPI(
    title="FluentDrama",
    description="Japanese conversation practice through AI drama scenes",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(JSONBoxMiddleware)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret, same_site="lax")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[f"http://localhost:{settings.frontend_port}"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

from fluentdrama.api.admin import router as admin_router  # noqa: E402
from fluentdrama.api.ai import router as ai_router  # noqa: E402
from fluentdrama.api.auth import router as auth_router  # noqa: E402
from fluentdrama.api.billing import router as billing_router  # noqa: E402
from fluentdrama.api.characters import router as characters_router  # noqa: E402
from fluentdrama.api.scenes import router as scenes_router  # noqa: E402
from fluentdrama.api.usage import router as usage_router  # noqa: E402

for router in (
    auth_router,
    usage_router,
    billing_router,
    ai_router,
    characters_router,
    admin_router,
    scenes_router,
):
    app.include_router(router)

# Serve generated portraits at /images
_images_dir = Path(settings.images_dir)
_images_dir.mkdir(parents=True, exist_ok=True)
app.mount("/images", StaticFiles(directory=str(_images_dir)), name="images")


@app.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Always returns HTTP 200; check `services` for actual status.
    """
    services: AppServices | None = getattr(request.app.state, "services", None)
    logger.info("Health check requested")
    return {
        "status": "ok",
        "version": app.version,
        "services": {
            "app": "ok" if services is not None else "unavailable",
            "ai_provider": "ok" if get_settings().gemini_api_key else "not_configured",
        },
    }
