"""Dialogue turn, feedback and AI exchange models."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from fluentdrama.models.base import CamelModel
from fluentdrama.models.character import Audience, CharacterProfile, Gender, Style
from fluentdrama.models.scenario import ScenarioSelection


class Speaker(str, Enum):
    character = "character"
    user = "user"
    system = "system"


class Emotion(str, Enum):
    """Delivery tone of a character line (also used as a TTS cue)."""

    neutral = "neutral"
    happy = "happy"
    excited = "excited"
    calm = "calm"
    concerned = "concerned"
    professional = "professional"


class Feedback(CamelModel):
    """Evaluation of one user utterance."""

    accuracy_score: int = Field(80, ge=0, le=100)
    suggestions: list[str] = Field(default_factory=list)
    needs_correction: bool = False
    better_expression: Optional[str] = None
    explanation: Optional[str] = None


class DialogueTurn(CamelModel):
    """One utterance in a scene. Turns are append-only and never mutated."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    audio_ref: Optional[str] = None
    translation: Optional[str] = None
    pronunciation: Optional[str] = None
    feedback: Optional[Feedback] = None
    emotion: Optional[Emotion] = None
    degraded: tuple[str, ...] = Field(default_factory=tuple)


class SessionState(CamelModel):
    """Transient per-scene state held by the orchestrator."""

    turns: list[DialogueTurn] = Field(default_factory=list)
    progress: int = Field(0, ge=0, le=100)
    ended: bool = False
    awaiting_retry: bool = False


class NoticeKind(str, Enum):
    scene_started = "scene_started"
    scene_degraded = "scene_degraded"
    not_understood = "not_understood"
    correction = "correction"
    better_expression = "better_expression"
    excellent = "excellent"
    quota_exceeded = "quota_exceeded"
    scene_complete = "scene_complete"
    capture_failed = "capture_failed"


class Notice(CamelModel):
    """User-facing, recoverable message produced during a scene."""

    kind: NoticeKind
    title: str
    message: str


class TurnStatus(str, Enum):
    """How a submitted utterance was handled."""

    rejected_too_short = "rejected_too_short"
    not_understood = "not_understood"
    quota_exceeded = "quota_exceeded"
    needs_correction = "needs_correction"
    accepted = "accepted"
    ended = "ended"


class TurnResult(CamelModel):
    status: TurnStatus
    user_turn: Optional[DialogueTurn] = None
    character_turn: Optional[DialogueTurn] = None
    notices: list[Notice] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# AI exchange models (LLM structured output and endpoint bodies)
# ---------------------------------------------------------------------------


class HistoryItem(CamelModel):
    speaker: Speaker
    text: str


class DialogueScript(BaseModel):
    """Opening lines for a scene; keys stay snake_case on the wire."""

    lines: list[str]
    focus_phrases: list[str]


class ConversationReply(CamelModel):
    """Structured reply of the conversation partner to one user utterance."""

    response: str
    feedback: Feedback = Field(default_factory=Feedback)
    should_end_conversation: bool = False
    ending_message: Optional[str] = None
    emotion: Emotion = Emotion.neutral


class Annotation(CamelModel):
    """Learner aids for a Japanese line."""

    korean_translation: str = ""
    pronunciation: str = ""


class CharacterVoice(CamelModel):
    """Character fields the TTS endpoint uses to choose a voice."""

    name: Optional[str] = None
    gender: Gender = Gender.female
    style: Style = Style.cheerful
    role: Optional[str] = None


class GenerateDialogueRequest(CamelModel):
    character: CharacterProfile
    scenario: ScenarioSelection
    audience: Audience = Audience.general


class TTSRequest(CamelModel):
    text: str = Field(..., min_length=1, max_length=2000)
    character: CharacterVoice = Field(default_factory=CharacterVoice)
    emotion: Emotion = Emotion.neutral


class ConversationCharacter(CamelModel):
    name: str
    style: Style = Style.cheerful


class ConversationRequest(CamelModel):
    user_input: str = Field(..., min_length=1, max_length=2000)
    conversation_history: list[HistoryItem] = Field(default_factory=list)
    character: ConversationCharacter
    topic: str = "Japanese conversation"


class TranslateRequest(CamelModel):
    text: Optional[str] = None


class SpeechRecognitionRequest(CamelModel):
    audio_blob: Optional[str] = None
    language: str = "ja"


class Transcription(CamelModel):
    text: str
    confidence: float = Field(0.0, ge=0.0, le=1.0)
