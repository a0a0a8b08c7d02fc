"""Scene API bodies and snapshots."""
from typing import Optional

from pydantic import Field, model_validator

from fluentdrama.models.base import CamelModel
from fluentdrama.models.character import Audience, CharacterProfile
from fluentdrama.models.dialogue import DialogueTurn, Notice
from fluentdrama.models.scenario import ScenarioDescriptor


class SceneCreateRequest(CamelModel):
    """Start a scene with a saved character or an inline one."""

    character_id: Optional[str] = None
    character: Optional[CharacterProfile] = None
    preset_key: Optional[str] = None
    free_text: Optional[str] = None
    audience: Audience = Audience.general
    hands_free: bool = False

    @model_validator(mode="after")
    def _needs_character(self) -> "SceneCreateRequest":
        if self.character_id is None and self.character is None:
            raise ValueError("characterId or character is required")
        return self


class TurnRequest(CamelModel):
    """Recorded utterance, base64 encoded (a data: URI prefix is allowed)."""

    audio_blob: str = Field(..., min_length=1)


class HandsFreeRequest(CamelModel):
    enabled: bool


class SceneEvent(CamelModel):
    """Hook call recorded for the client to poll."""

    kind: str
    turn_index: Optional[int] = None
    notice: Optional[Notice] = None


class SceneSnapshot(CamelModel):
    id: str
    state: str
    character: CharacterProfile
    scenario: ScenarioDescriptor
    voice: str
    turns: list[DialogueTurn]
    progress: int
    ended: bool
    awaiting_retry: bool
    hands_free: bool
    events: list[SceneEvent] = Field(default_factory=list)
