"""Persistence for users, saved characters and finished sessions.

Firestore is the production backend. MemoryStorage keeps the same contract in
process for local development and tests (STORAGE_BACKEND=memory).
"""
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from fluentdrama.core.logging import setup_logging
from fluentdrama.models.character import Character
from fluentdrama.models.session import LearningSession
from fluentdrama.models.user import UsageCounter, UsageMetric, User, utcnow

logger = setup_logging("storage")

USERS = "users"
CHARACTERS = "saved_characters"
SESSIONS = "learning_sessions"


def _dump(model: Any) -> dict:
    return model.model_dump(mode="json")


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _reset_fields(now: datetime) -> dict[str, Any]:
    return {
        "usage": {
            "conversation_count": 0,
            "image_generation_count": 0,
            "tts_usage_count": 0,
            "last_reset_at": now.isoformat(),
        },
        "updated_at": now.isoformat(),
    }


class Storage(ABC):
    """Storage contract shared by every backend."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_google_id(self, google_id: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, user: User) -> User: ...

    @abstractmethod
    def update_user(self, user_id: str, changes: dict[str, Any]) -> Optional[User]:
        """Apply top-level field changes; returns None for an unknown user."""

    @abstractmethod
    def list_users(self) -> list[User]: ...

    @abstractmethod
    def increment_usage(self, user_id: str, metric: UsageMetric) -> Optional[int]:
        """Add one to the metric counter and return the new value."""

    @abstractmethod
    def reset_usage(self, user_id: str, now: datetime) -> None:
        """Zero all counters and stamp last_reset_at in a single write."""

    @abstractmethod
    def save_character(self, character: Character) -> Character: ...

    @abstractmethod
    def list_characters(self, owner_id: str) -> list[Character]: ...

    @abstractmethod
    def get_character(self, character_id: str, owner_id: str) -> Optional[Character]: ...

    @abstractmethod
    def touch_character(
        self, character_id: str, owner_id: str, now: datetime
    ) -> Optional[Character]:
        """Increment usage_count and set last_used_at on an owned character."""

    @abstractmethod
    def delete_character(self, character_id: str, owner_id: str) -> bool: ...

    @abstractmethod
    def save_session(self, session: LearningSession) -> LearningSession: ...

    @abstractmethod
    def list_sessions(self, user_id: str) -> list[LearningSession]: ...


class FirestoreStorage(Storage):
    """Cloud Firestore backend. Documents are keyed by record id."""

    def __init__(self, client: Optional[firestore.Client] = None, project: Optional[str] = None) -> None:
        self._db = client or firestore.Client(project=project or None)

    def _users(self):
        return self._db.collection(USERS)

    def _first_user(self, field: str, value: str) -> Optional[User]:
        query = self._users().where(filter=FieldFilter(field, "==", value)).limit(1)
        for doc in query.stream():
            return User.model_validate(doc.to_dict())
        return None

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self._users().document(user_id).get()
        if not doc.exists:
            return None
        return User.model_validate(doc.to_dict())

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._first_user("email", email)

    def get_user_by_google_id(self, google_id: str) -> Optional[User]:
        return self._first_user("google_id", google_id)

    def create_user(self, user: User) -> User:
        self._users().document(user.id).set(_dump(user))
        return user

    def update_user(self, user_id: str, changes: dict[str, Any]) -> Optional[User]:
        ref = self._users().document(user_id)
        if not ref.get().exists:
            return None
        payload = {key: _encode(value) for key, value in changes.items()}
        payload["updated_at"] = utcnow().isoformat()
        ref.update(payload)
        return self.get_user(user_id)

    def list_users(self) -> list[User]:
        users = [User.model_validate(doc.to_dict()) for doc in self._users().stream()]
        return sorted(users, key=lambda u: u.created_at)

    def increment_usage(self, user_id: str, metric: UsageMetric) -> Optional[int]:
        ref = self._users().document(user_id)
        if not ref.get().exists:
            return None
        ref.update({f"usage.{metric.counter_field}": firestore.Increment(1)})
        user = self.get_user(user_id)
        return user.usage.count(metric) if user else None

    def reset_usage(self, user_id: str, now: datetime) -> None:
        self._users().document(user_id).update(_reset_fields(now))

    def save_character(self, character: Character) -> Character:
        self._db.collection(CHARACTERS).document(character.id).set(_dump(character))
        return character

    def list_characters(self, owner_id: str) -> list[Character]:
        query = self._db.collection(CHARACTERS).where(
            filter=FieldFilter("owner_id", "==", owner_id)
        )
        characters = [Character.model_validate(doc.to_dict()) for doc in query.stream()]
        return sorted(characters, key=lambda c: c.created_at)

    def get_character(self, character_id: str, owner_id: str) -> Optional[Character]:
        doc = self._db.collection(CHARACTERS).document(character_id).get()
        if not doc.exists:
            return None
        character = Character.model_validate(doc.to_dict())
        return character if character.owner_id == owner_id else None

    def touch_character(
        self, character_id: str, owner_id: str, now: datetime
    ) -> Optional[Character]:
        if self.get_character(character_id, owner_id) is None:
            return None
        self._db.collection(CHARACTERS).document(character_id).update(
            {"usage_count": firestore.Increment(1), "last_used_at": now.isoformat()}
        )
        return self.get_character(character_id, owner_id)

    def delete_character(self, character_id: str, owner_id: str) -> bool:
        if self.get_character(character_id, owner_id) is None:
            return False
        self._db.collection(CHARACTERS).document(character_id).delete()
        return True

    def save_session(self, session: LearningSession) -> LearningSession:
        self._db.collection(SESSIONS).document(session.id).set(_dump(session))
        return session

    def list_sessions(self, user_id: str) -> list[LearningSession]:
        query = self._db.collection(SESSIONS).where(
            filter=FieldFilter("user_id", "==", user_id)
        )
        sessions = [LearningSession.model_validate(doc.to_dict()) for doc in query.stream()]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)


class MemoryStorage(Storage):
    """In-process backend; records are copied on the way in and out."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._characters: dict[str, Character] = {}
        self._sessions: dict[str, LearningSession] = {}

    def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        for user in self._users.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    def get_user_by_google_id(self, google_id: str) -> Optional[User]:
        for user in self._users.values():
            if user.google_id == google_id:
                return user.model_copy(deep=True)
        return None

    def create_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = user.model_copy(deep=True)
        return user

    def update_user(self, user_id: str, changes: dict[str, Any]) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            updated = User.model_validate(
                {**user.model_dump(), **changes, "updated_at": utcnow()}
            )
            self._users[user_id] = updated
        return updated.model_copy(deep=True)

    def list_users(self) -> list[User]:
        return sorted(
            (u.model_copy(deep=True) for u in self._users.values()),
            key=lambda u: u.created_at,
        )

    def increment_usage(self, user_id: str, metric: UsageMetric) -> Optional[int]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            field = metric.counter_field
            setattr(user.usage, field, getattr(user.usage, field) + 1)
            return getattr(user.usage, field)

    def reset_usage(self, user_id: str, now: datetime) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return
            user.usage = UsageCounter.model_validate(_reset_fields(now)["usage"])
            user.updated_at = now

    def save_character(self, character: Character) -> Character:
        with self._lock:
            self._characters[character.id] = character.model_copy(deep=True)
        return character

    def list_characters(self, owner_id: str) -> list[Character]:
        owned = [c for c in self._characters.values() if c.owner_id == owner_id]
        return [c.model_copy(deep=True) for c in sorted(owned, key=lambda c: c.created_at)]

    def get_character(self, character_id: str, owner_id: str) -> Optional[Character]:
        character = self._characters.get(character_id)
        if character is None or character.owner_id != owner_id:
            return None
        return character.model_copy(deep=True)

    def touch_character(
        self, character_id: str, owner_id: str, now: datetime
    ) -> Optional[Character]:
        with self._lock:
            character = self._characters.get(character_id)
            if character is None or character.owner_id != owner_id:
                return None
            character.usage_count += 1
            character.last_used_at = now
            return character.model_copy(deep=True)

    def delete_character(self, character_id: str, owner_id: str) -> bool:
        with self._lock:
            character = self._characters.get(character_id)
            if character is None or character.owner_id != owner_id:
                return False
            del self._characters[character_id]
            return True

    def save_session(self, session: LearningSession) -> LearningSession:
        with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)
        return session

    def list_sessions(self, user_id: str) -> list[LearningSession]:
        owned = [s for s in self._sessions.values() if s.user_id == user_id]
        return [
            s.model_copy(deep=True)
            for s in sorted(owned, key=lambda s: s.created_at, reverse=True)
        ]


def build_storage(backend: str, project: Optional[str] = None) -> Storage:
    """Create the configured storage backend."""
    if backend == "memory":
        logger.info("Using in-memory storage")
        return MemoryStorage()
    if backend == "firestore":
        logger.info("Using Firestore storage", extra={"operation": "build_storage"})
        return FirestoreStorage(project=project)
    raise ValueError(f"Unknown storage backend: {backend}")
