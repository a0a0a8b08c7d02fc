"""Saved character routes, scoped to the signed-in user."""
from fastapi import APIRouter, Depends

from fluentdrama.api.deps import AppServices, current_user, get_services
from fluentdrama.models.character import Character, CharacterCreate
from fluentdrama.models.user import User

router = APIRouter(prefix="/api/saved-characters", tags=["characters"])


@router.get("", response_model=list[Character])
def list_characters(
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> list[Character]:
    return services.registry.list(user.id)


@router.post("", response_model=Character)
def save_character(
    body: CharacterCreate,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> Character:
    return services.registry.create(user.id, body)


@router.get("/{character_id}", response_model=Character)
def get_character(
    character_id: str,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> Character:
    """Fetching a character selects it, which counts one use."""
    return services.registry.select(user.id, character_id)


@router.delete("/{character_id}")
def delete_character(
    character_id: str,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> dict:
    services.registry.delete(user.id, character_id)
    return {"message": "Character deleted successfully"}
