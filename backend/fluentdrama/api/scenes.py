"""Practice scene routes driving the server-side dialogue state machine."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from fluentdrama.api.deps import AppServices, current_user, get_services
from fluentdrama.models.character import Audience
from fluentdrama.models.dialogue import TurnResult
from fluentdrama.models.scenario import PresetScenario
from fluentdrama.models.scene import (
    HandsFreeRequest,
    SceneCreateRequest,
    SceneSnapshot,
    TurnRequest,
)
from fluentdrama.models.session import LearningSession
from fluentdrama.models.user import User
from fluentdrama.services.speech import decode_audio_blob

router = APIRouter(prefix="/api", tags=["scenes"])


@router.get("/scenarios", response_model=list[PresetScenario])
async def list_scenarios(
    audience: Optional[Audience] = Query(None),
    services: AppServices = Depends(get_services),
) -> list[PresetScenario]:
    return services.resolver.list_presets(audience)


@router.post("/scenes", response_model=SceneSnapshot, status_code=201)
async def create_scene(
    body: SceneCreateRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> SceneSnapshot:
    scene = await services.scenes.create(user.id, body)
    return services.scenes.snapshot(scene)


@router.get("/scenes/{scene_id}", response_model=SceneSnapshot)
async def get_scene(
    scene_id: str,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> SceneSnapshot:
    return services.scenes.snapshot(services.scenes.get(user.id, scene_id))


@router.post("/scenes/{scene_id}/listen", response_model=SceneSnapshot)
async def listen(
    scene_id: str,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> SceneSnapshot:
    return services.scenes.snapshot(services.scenes.listen(user.id, scene_id))


@router.post("/scenes/{scene_id}/turns", response_model=TurnResult)
async def submit_turn(
    scene_id: str,
    body: TurnRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> TurnResult:
    """Submit a recorded utterance for the scene."""
    audio = decode_audio_blob(body.audio_blob)
    return await services.scenes.submit(user.id, scene_id, audio)


@router.put("/scenes/{scene_id}/hands-free", response_model=SceneSnapshot)
async def set_hands_free(
    scene_id: str,
    body: HandsFreeRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> SceneSnapshot:
    scene = services.scenes.set_hands_free(user.id, scene_id, body.enabled)
    return services.scenes.snapshot(scene)


@router.post("/scenes/{scene_id}/reset", response_model=SceneSnapshot)
async def reset_scene(
    scene_id: str,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> SceneSnapshot:
    scene = await services.scenes.reset(user.id, scene_id)
    return services.scenes.snapshot(scene)


@router.get("/scenes/{scene_id}/transcript")
async def get_transcript(
    scene_id: str,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> dict:
    return {"transcript": services.scenes.transcript(user.id, scene_id)}


@router.delete("/scenes/{scene_id}")
async def close_scene(
    scene_id: str,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> dict:
    services.scenes.close(user.id, scene_id)
    return {"message": "Scene closed"}


@router.get("/sessions", response_model=list[LearningSession])
def list_sessions(
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> list[LearningSession]:
    return services.scenes.list_sessions(user.id)
