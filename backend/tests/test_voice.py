"""Tests for voice selection."""
import pytest

from fluentdrama.models.character import Gender, Style
from fluentdrama.services.voice import (
    DEFAULT_VOICE,
    GENDER_VOICES,
    ROLE_VOICES,
    STYLE_VOICES,
    select_voice,
)


class TestSelectVoice:
    @pytest.mark.parametrize("gender", list(Gender))
    @pytest.mark.parametrize("style", list(Style))
    def test_gender_style_table_is_total(self, gender: Gender, style: Style) -> None:
        assert select_voice(gender, style) == STYLE_VOICES[(gender, style)]

    def test_role_wins(self) -> None:
        assert select_voice("male", "strict", "Flight Attendant") == ROLE_VOICES["Flight Attendant"]

    def test_unknown_role_ignored(self) -> None:
        assert select_voice("female", "calm", "Astronaut") == STYLE_VOICES[(Gender.female, Style.calm)]

    def test_gender_only(self) -> None:
        assert select_voice("male") == GENDER_VOICES[Gender.male]

    def test_unknown_style_uses_gender_default(self) -> None:
        assert select_voice("female", "sleepy") == GENDER_VOICES[Gender.female]

    def test_nothing_known_uses_default(self) -> None:
        assert select_voice() == DEFAULT_VOICE
        assert select_voice("robot", "loud") == DEFAULT_VOICE

    def test_distinct_voices_per_style(self) -> None:
        assert len(set(STYLE_VOICES.values())) == len(STYLE_VOICES)
