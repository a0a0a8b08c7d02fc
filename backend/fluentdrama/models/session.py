"""Finished practice session summary."""
from datetime import datetime
from uuid import uuid4

from pydantic import Field

from fluentdrama.models.base import CamelModel
from fluentdrama.models.user import utcnow


class LearningSession(CamelModel):
    """Persisted when a scene reaches its end."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    character_name: str
    scenario: str
    progress: int = Field(0, ge=0, le=100)
    turn_count: int = Field(0, ge=0)
    transcript: str = ""
    created_at: datetime = Field(default_factory=utcnow)
