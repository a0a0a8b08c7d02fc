"""Tests for the storage backends."""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from fluentdrama.models.character import Character
from fluentdrama.models.session import LearningSession
from fluentdrama.models.user import SubscriptionTier, UsageMetric, User, utcnow
from fluentdrama.services.storage import (
    CHARACTERS,
    USERS,
    FirestoreStorage,
    MemoryStorage,
    build_storage,
)


def _character(owner_id: str, name: str = "Yuki") -> Character:
    return Character(owner_id=owner_id, name=name, gender="female", style="cheerful")


class TestMemoryStorageUsers:
    def test_create_and_lookup(self, storage: MemoryStorage) -> None:
        user = storage.create_user(User(email="a@example.com", google_id="g-1"))
        assert storage.get_user(user.id).email == "a@example.com"
        assert storage.get_user_by_email("a@example.com").id == user.id
        assert storage.get_user_by_google_id("g-1").id == user.id
        assert storage.get_user("missing") is None

    def test_returned_records_are_copies(self, storage: MemoryStorage, user: User) -> None:
        fetched = storage.get_user(user.id)
        fetched.usage.conversation_count = 99
        assert storage.get_user(user.id).usage.conversation_count == 0

    def test_update_user(self, storage: MemoryStorage, user: User) -> None:
        updated = storage.update_user(user.id, {"subscription_tier": SubscriptionTier.pro})
        assert updated.subscription_tier == SubscriptionTier.pro
        assert storage.update_user("missing", {"first_name": "x"}) is None

    def test_increment_usage(self, storage: MemoryStorage, user: User) -> None:
        assert storage.increment_usage(user.id, UsageMetric.tts) == 1
        assert storage.increment_usage(user.id, UsageMetric.tts) == 2
        assert storage.get_user(user.id).usage.tts_usage_count == 2
        assert storage.increment_usage("missing", UsageMetric.tts) is None

    def test_reset_usage_zeroes_all_counters(self, storage: MemoryStorage, user: User) -> None:
        storage.increment_usage(user.id, UsageMetric.conversation)
        storage.increment_usage(user.id, UsageMetric.image)
        now = utcnow()
        storage.reset_usage(user.id, now)
        usage = storage.get_user(user.id).usage
        assert usage.conversation_count == 0
        assert usage.image_generation_count == 0
        assert usage.tts_usage_count == 0
        assert usage.last_reset_at == now


class TestMemoryStorageCharacters:
    def test_owner_scoping(self, storage: MemoryStorage) -> None:
        character = storage.save_character(_character("owner"))
        assert storage.get_character(character.id, "owner") is not None
        assert storage.get_character(character.id, "intruder") is None
        assert storage.delete_character(character.id, "intruder") is False
        assert storage.touch_character(character.id, "intruder", utcnow()) is None

    def test_touch_counts_use(self, storage: MemoryStorage) -> None:
        character = storage.save_character(_character("owner"))
        now = utcnow()
        touched = storage.touch_character(character.id, "owner", now)
        assert touched.usage_count == 1
        assert touched.last_used_at == now

    def test_list_orders_by_creation(self, storage: MemoryStorage) -> None:
        first = _character("owner", "A")
        second = _character("owner", "B")
        second.created_at = first.created_at + timedelta(seconds=1)
        storage.save_character(second)
        storage.save_character(first)
        storage.save_character(_character("other", "C"))
        assert [c.name for c in storage.list_characters("owner")] == ["A", "B"]

    def test_delete(self, storage: MemoryStorage) -> None:
        character = storage.save_character(_character("owner"))
        assert storage.delete_character(character.id, "owner") is True
        assert storage.list_characters("owner") == []


class TestMemoryStorageSessions:
    def test_list_newest_first(self, storage: MemoryStorage) -> None:
        old = LearningSession(user_id="u", character_name="Yuki", scenario="s")
        new = LearningSession(
            user_id="u", character_name="Ken", scenario="s",
            created_at=old.created_at + timedelta(minutes=5),
        )
        storage.save_session(old)
        storage.save_session(new)
        assert [s.character_name for s in storage.list_sessions("u")] == ["Ken", "Yuki"]
        assert storage.list_sessions("other") == []


class TestFirestoreStorage:
    @pytest.fixture
    def client(self) -> MagicMock:
        return MagicMock()

    def test_create_user_writes_json_document(self, client: MagicMock) -> None:
        store = FirestoreStorage(client=client)
        user = User(email="a@example.com")
        store.create_user(user)
        client.collection.assert_called_with(USERS)
        client.collection.return_value.document.assert_called_with(user.id)
        written = client.collection.return_value.document.return_value.set.call_args.args[0]
        assert written["email"] == "a@example.com"
        assert isinstance(written["created_at"], str)

    def test_get_user_missing(self, client: MagicMock) -> None:
        client.collection.return_value.document.return_value.get.return_value.exists = False
        assert FirestoreStorage(client=client).get_user("missing") is None

    def test_get_user_parses_document(self, client: MagicMock) -> None:
        user = User(email="a@example.com")
        snapshot = client.collection.return_value.document.return_value.get.return_value
        snapshot.exists = True
        snapshot.to_dict.return_value = user.model_dump(mode="json")
        assert FirestoreStorage(client=client).get_user(user.id).email == "a@example.com"

    def test_update_user_encodes_enums(self, client: MagicMock) -> None:
        user = User(email="a@example.com")
        ref = client.collection.return_value.document.return_value
        ref.get.return_value.exists = True
        ref.get.return_value.to_dict.return_value = user.model_dump(mode="json")
        FirestoreStorage(client=client).update_user(
            user.id, {"subscription_tier": SubscriptionTier.pro}
        )
        payload = ref.update.call_args.args[0]
        assert payload["subscription_tier"] == "pro"
        assert "updated_at" in payload

    def test_reset_usage_is_single_write(self, client: MagicMock) -> None:
        ref = client.collection.return_value.document.return_value
        FirestoreStorage(client=client).reset_usage("u1", utcnow())
        assert ref.update.call_count == 1
        usage = ref.update.call_args.args[0]["usage"]
        assert usage["conversation_count"] == 0
        assert usage["image_generation_count"] == 0
        assert usage["tts_usage_count"] == 0

    def test_get_character_of_other_owner_is_none(self, client: MagicMock) -> None:
        character = _character("owner")
        snapshot = client.collection.return_value.document.return_value.get.return_value
        snapshot.exists = True
        snapshot.to_dict.return_value = character.model_dump(mode="json")
        store = FirestoreStorage(client=client)
        assert store.get_character(character.id, "intruder") is None
        assert store.get_character(character.id, "owner").name == "Yuki"
        client.collection.assert_called_with(CHARACTERS)


class TestBuildStorage:
    def test_memory(self) -> None:
        assert isinstance(build_storage("memory"), MemoryStorage)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            build_storage("sqlite")
