"""Tests for wire models."""
import pytest
from pydantic import ValidationError

from fluentdrama.models.character import CharacterCreate, CharacterProfile
from fluentdrama.models.dialogue import DialogueScript, DialogueTurn, Feedback, Speaker
from fluentdrama.models.scenario import ScenarioDescriptor
from fluentdrama.models.scene import SceneCreateRequest
from fluentdrama.models.user import UsageMetric, User


class TestUser:
    def test_public_view_has_no_password_hash(self) -> None:
        user = User(email="a@example.com", password_hash="salt.hash")
        wire = user.public().to_wire()
        assert "passwordHash" not in wire
        assert "password_hash" not in wire
        assert wire["email"] == "a@example.com"

    def test_wire_keys_are_camel_case(self) -> None:
        wire = User(email="a@example.com").public().to_wire()
        assert wire["subscriptionTier"] == "free"
        assert wire["usage"]["conversationCount"] == 0

    def test_counter_field_per_metric(self) -> None:
        assert UsageMetric.conversation.counter_field == "conversation_count"
        assert UsageMetric.image.counter_field == "image_generation_count"
        assert UsageMetric.tts.counter_field == "tts_usage_count"


class TestCharacter:
    def test_accepts_image_url_alias(self) -> None:
        profile = CharacterProfile.model_validate(
            {"name": "Yuki", "gender": "female", "style": "cheerful", "imageUrl": "/images/a.png"}
        )
        assert profile.portrait_ref == "/images/a.png"

    def test_accepts_scenario_alias(self) -> None:
        data = CharacterCreate.model_validate(
            {"name": "Ken", "gender": "male", "style": "calm", "scenario": "airport"}
        )
        assert data.scenario_hint == "airport"

    def test_rejects_unknown_style(self) -> None:
        with pytest.raises(ValidationError):
            CharacterProfile(name="Ken", gender="male", style="grumpy")


class TestDialogue:
    def test_turn_is_frozen(self) -> None:
        turn = DialogueTurn(speaker=Speaker.user, text="はい")
        with pytest.raises(ValidationError):
            turn.text = "いいえ"

    def test_feedback_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Feedback(accuracy_score=101)

    def test_script_keeps_snake_case_focus_phrases(self) -> None:
        script = DialogueScript(lines=["a", "b", "c"], focus_phrases=["x", "y", "z"])
        assert "focus_phrases" in script.model_dump()

    def test_scenario_descriptor_is_frozen(self) -> None:
        descriptor = ScenarioDescriptor(
            situation="s", user_role="u", character_role="c", objective="o"
        )
        with pytest.raises(ValidationError):
            descriptor.situation = "other"


class TestSceneCreateRequest:
    def test_requires_a_character(self) -> None:
        with pytest.raises(ValidationError):
            SceneCreateRequest(preset_key="cafeteria")

    def test_accepts_character_id(self) -> None:
        request = SceneCreateRequest.model_validate({"characterId": "c1", "presetKey": "club"})
        assert request.character_id == "c1"
        assert request.hands_free is False
