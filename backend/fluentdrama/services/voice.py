"""Voice selection for synthesized character speech (Gemini prebuilt voices)."""
from typing import Optional

from fluentdrama.models.character import Gender, Style

DEFAULT_VOICE = "Kore"

# A scenario role decides the voice regardless of gender and style.
ROLE_VOICES: dict[str, str] = {
    "Friendly Barista": "Achird",
    "Flight Attendant": "Despina",
    "Concierge": "Algieba",
    "Senior Executive": "Rasalgethi",
    "Professional Server": "Schedar",
    "Check-in Staff": "Iapetus",
    "Club Leader": "Sadachbia",
    "Cafeteria Staff": "Callirrhoe",
}

STYLE_VOICES: dict[tuple[Gender, Style], str] = {
    (Gender.female, Style.cheerful): "Zephyr",
    (Gender.female, Style.calm): "Vindemiatrix",
    (Gender.female, Style.strict): "Kore",
    (Gender.male, Style.cheerful): "Puck",
    (Gender.male, Style.calm): "Umbriel",
    (Gender.male, Style.strict): "Orus",
}

GENDER_VOICES: dict[Gender, str] = {
    Gender.female: "Kore",
    Gender.male: "Charon",
}


def select_voice(
    gender: Optional[str] = None,
    style: Optional[str] = None,
    role: Optional[str] = None,
) -> str:
    """Pick a voice: role table, then gender/style, then gender, then default.

    Accepts plain strings so unknown values fall through instead of raising.
    """
    if role and role in ROLE_VOICES:
        return ROLE_VOICES[role]
    try:
        gender_key = Gender(gender) if gender else None
    except ValueError:
        gender_key = None
    try:
        style_key = Style(style) if style else None
    except ValueError:
        style_key = None
    if gender_key and style_key:
        return STYLE_VOICES[(gender_key, style_key)]
    if gender_key:
        return GENDER_VOICES[gender_key]
    return DEFAULT_VOICE
