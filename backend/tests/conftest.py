"""Shared test fixtures and configuration."""
import os
import threading
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# main.py reads settings at import time.
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from fluentdrama.core.config import get_settings  # noqa: E402
from fluentdrama.models.character import CharacterProfile, Gender, Style  # noqa: E402
from fluentdrama.models.dialogue import (  # noqa: E402
    Annotation,
    ConversationReply,
    DialogueScript,
    Feedback,
    Transcription,
)
from fluentdrama.models.user import User  # noqa: E402
from fluentdrama.services.storage import MemoryStorage  # noqa: E402
from fluentdrama.services.usage import UsageLedger  # noqa: E402

AUDIO = b"\x00" * 2000


def record_storage_threads(
    storage: MemoryStorage, monkeypatch: pytest.MonkeyPatch, *methods: str
) -> list[int]:
    """Wrap storage methods so each call records the thread it ran on."""
    threads: list[int] = []
    for name in methods:
        original = getattr(storage, name)

        def wrapper(*args, _original=original, **kwargs):
            threads.append(threading.get_ident())
            return _original(*args, **kwargs)

        monkeypatch.setattr(storage, name, wrapper)
    return threads


@pytest.fixture(autouse=True)
def set_required_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set required environment variables for all tests."""
    monkeypatch.setenv("SESSION_SECRET", "test-session-secret")
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    get_settings.cache_clear()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def ledger(storage: MemoryStorage) -> UsageLedger:
    return UsageLedger(storage)


@pytest.fixture
def user(storage: MemoryStorage) -> User:
    return storage.create_user(User(email="learner@example.com", first_name="Aki"))


@pytest.fixture
def yuki() -> CharacterProfile:
    return CharacterProfile(name="Yuki", gender=Gender.female, style=Style.cheerful)


def make_reply(
    response: str = "いいですね！",
    score: int = 85,
    needs_correction: bool = False,
    better_expression: Optional[str] = None,
    should_end: bool = False,
) -> ConversationReply:
    return ConversationReply(
        response=response,
        feedback=Feedback(
            accuracy_score=score,
            needs_correction=needs_correction,
            better_expression=better_expression,
            explanation="説明" if needs_correction else None,
        ),
        should_end_conversation=should_end,
    )


@pytest.fixture
def dialogue() -> MagicMock:
    """DialogueService stand-in with successful defaults."""
    svc = MagicMock()
    svc.generate_dialogue = AsyncMock(
        return_value=DialogueScript(
            lines=["いらっしゃいませ！", "何にしますか？", "どうぞ。"],
            focus_phrases=["お願いします", "ください", "ありがとう"],
        )
    )
    svc.conversation_response = AsyncMock(return_value=make_reply())
    svc.translate_pronunciation = AsyncMock(
        return_value=Annotation(korean_translation="어서 오세요!", pronunciation="irasshaimase!")
    )
    return svc


@pytest.fixture
def speech() -> MagicMock:
    """SpeechService stand-in with successful defaults."""
    svc = MagicMock()
    svc.synthesize = AsyncMock(return_value="data:audio/wav;base64,AAAA")
    svc.transcribe = AsyncMock(
        return_value=Transcription(text="ラーメンをください", confidence=0.9)
    )
    return svc
