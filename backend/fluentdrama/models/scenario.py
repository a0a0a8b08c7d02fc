"""Scenario models."""
from typing import Optional

from pydantic import ConfigDict, Field

from fluentdrama.models.base import CamelModel
from fluentdrama.models.character import Audience


class ScenarioSelection(CamelModel):
    """What the learner picked: a preset key, free text, or neither."""

    preset_key: Optional[str] = None
    free_text: Optional[str] = None


class ScenarioDescriptor(CamelModel):
    """Resolved scene: immutable for the lifetime of a scene."""

    model_config = ConfigDict(frozen=True)

    key: Optional[str] = None
    situation: str
    user_role: str
    character_role: str
    objective: str
    sample_expressions: tuple[str, ...] = Field(default_factory=tuple)


class PresetScenario(CamelModel):
    """Entry of the scenario picker."""

    key: str
    title: str
    description: str
    audience: Audience
