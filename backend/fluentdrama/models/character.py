"""Character (persona) models."""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import AliasChoices, Field

from fluentdrama.models.base import CamelModel
from fluentdrama.models.user import utcnow


class Gender(str, Enum):
    male = "male"
    female = "female"


class Style(str, Enum):
    """Speaking style of a character."""

    cheerful = "cheerful"
    calm = "calm"
    strict = "strict"


class Audience(str, Enum):
    """Learner group; selects vocabulary level and preset list."""

    student = "student"
    general = "general"
    business = "business"


class BackgroundPrompt(CamelModel):
    """Scene styling generated for a custom scenario before image generation."""

    background_setting: str = ""
    appropriate_outfit: str = ""
    character_pose: str = ""
    atmosphere: str = ""
    combined_prompt: str = ""


class CharacterProfile(CamelModel):
    """The part of a character the dialogue needs (name, voice inputs)."""

    name: str = Field(..., min_length=1, max_length=60)
    gender: Gender
    style: Style
    portrait_ref: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("portraitRef", "imageUrl", "portrait_ref"),
    )


class CharacterCreate(CharacterProfile):
    """Body of POST /api/saved-characters."""

    audience: Optional[Audience] = None
    scenario_hint: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("scenarioHint", "scenario", "scenario_hint"),
    )
    background_prompt: Optional[BackgroundPrompt] = None


class Character(CharacterCreate):
    """Stored character record, owned by exactly one user."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str
    usage_count: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    last_used_at: Optional[datetime] = None

    def profile(self) -> CharacterProfile:
        return CharacterProfile(
            name=self.name,
            gender=self.gender,
            style=self.style,
            portrait_ref=self.portrait_ref,
        )


class GenerateImageRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=60)
    gender: Gender
    style: Style
    audience: Audience = Audience.general
    scenario: Optional[str] = None
    custom_scenario_text: Optional[str] = None
    background_prompt: Optional[BackgroundPrompt] = None


class GenerateImageResponse(CamelModel):
    image_url: str
    character: dict
    message: str


class BackgroundPromptRequest(CamelModel):
    custom_scenario_text: Optional[str] = None
    character_style: Style = Style.cheerful
    character_gender: Gender = Gender.female
