"""Gemini chat calls: opening lines, replies with feedback, learner aids."""
import json
from typing import Optional, TypeVar

from google.genai import types
from pydantic import BaseModel, ValidationError

from fluentdrama.core.errors import UpstreamError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.character import (
    Audience,
    BackgroundPrompt,
    CharacterProfile,
    Gender,
    Style,
)
from fluentdrama.models.dialogue import (
    Annotation,
    ConversationReply,
    DialogueScript,
    HistoryItem,
)
from fluentdrama.models.scenario import ScenarioSelection
from fluentdrama.services.genai_client import GeminiBackedService

logger = setup_logging("dialogue")

M = TypeVar("M", bound=BaseModel)

# Replies are generated from the most recent turns only.
HISTORY_WINDOW = 6
# From this many history turns on, the model may close the conversation.
ENDING_HINT_AFTER = 10

AUDIENCE_LEVELS: dict[Audience, dict[str, str]] = {
    Audience.student: {
        "level": "N5-N4",
        "vocabulary": "basic Japanese vocabulary, simple sentence patterns like です/ます",
        "topics": "school life, daily activities, hobbies",
    },
    Audience.general: {
        "level": "N4-N3",
        "vocabulary": "intermediate Japanese vocabulary, varied sentence structures",
        "topics": "travel, work, social situations, daily life",
    },
    Audience.business: {
        "level": "N3-N2",
        "vocabulary": "advanced Japanese vocabulary, keigo (polite language), complex structures",
        "topics": "professional communication, meetings, negotiations, presentations",
    },
}

STYLE_TRAITS: dict[Style, str] = {
    Style.cheerful: "enthusiastic, encouraging, uses positive language and exclamation marks",
    Style.calm: "patient, gentle, uses measured pace and reassuring language",
    Style.strict: "focused, direct, uses formal language and clear instructions",
}

FORBIDDEN_OPENERS = "今日は何を話しましょう, どんなことを話したい, 何について話しますか"

FALLBACK_REPLY_TEXT = "すみません、よくわかりませんでした。他の言い方で話してみてください。"


def _opening_prompts(
    character: CharacterProfile, scenario: ScenarioSelection, audience: Audience
) -> tuple[str, str]:
    config = AUDIENCE_LEVELS[audience]
    traits = STYLE_TRAITS[character.style]
    custom = (scenario.free_text or "").strip()
    scenario_text = custom or scenario.preset_key or "general conversation"

    if custom:
        system = (
            f"You are {character.name} in this situation: {scenario_text}\n"
            "絶対に日本語だけで話してください。\n"
            f"ROLE: You are {character.name}, a person in this scenario. Respond as "
            "someone who would naturally be in this context.\n"
            f"AUDIENCE LEVEL: {audience.value} ({config['level']})\n"
            f"VOCABULARY: {config['vocabulary']}\n"
            f"PERSONALITY: Be {traits}\n"
            f"Generate exactly 3 lines that {character.name} would say in this scenario, "
            "natural conversation rather than a lesson, and 3 useful Japanese phrases "
            "that naturally come up in this situation."
        )
        user = (
            f"The user is in this situation: {scenario_text}\n"
            "Start a natural Japanese conversation that fits this scenario. "
            f"Language level should be {config['level']}. All dialogue must be Japanese."
        )
    else:
        system = (
            f"You are {character.name}, a {character.style.value} Japanese tutor for "
            f"{audience.value} level students.\n"
            "You must speak ONLY in Japanese (hiragana, katakana and kanji).\n"
            f"LEVEL: {config['level']}\n"
            f"VOCABULARY: {config['vocabulary']}\n"
            f"TOPICS: {config['topics']}\n"
            f"STYLE: Be {traits}\n"
            f"SCENARIO: {scenario_text}\n"
            f"Generate exactly 3 lines that {character.name} would say in this scenario "
            "and 3 useful Japanese focus phrases for this level.\n"
            f"Never open with generic starters such as: {FORBIDDEN_OPENERS}."
        )
        user = (
            f"Scenario: {scenario_text}\n"
            "Identify the context from its keywords and write 3 opening lines that "
            "immediately match it (ordering for food places, agenda for meetings, "
            "directions or booking for travel, progress for deadlines)."
        )
    return system, user


def _reply_prompt(
    user_input: str,
    history: list[HistoryItem],
    character_name: str,
    topic: str,
    character_role: Optional[str],
    user_role: Optional[str],
) -> str:
    history_text = "\n".join(
        f"{item.speaker.value}: {item.text}" for item in history[-HISTORY_WINDOW:]
    )
    role = f"（役割: {character_role}）" if character_role else ""
    partner = f"（ユーザーの役割: {user_role}）" if user_role else ""
    lines = [
        f"あなたは{character_name}{role}です。{topic}シナリオで自然な人間のキャラクターを演じています。",
        "",
        "Previous conversation:",
        history_text,
        "",
        f'User{partner} just said: "{user_input}"',
        "",
        "重要な指示:",
        "1. 必ず日本語で返答してください",
        "2. この状況での実際の人間のように、短く会話的に返答してください (最大1-2文)",
        "3. シナリオを自然に進めてください",
    ]
    if len(history) >= ENDING_HINT_AFTER:
        lines.append("4. この会話を自然に終了すべきかを考慮してください (タスク完了等)")
    lines += [
        "",
        "ユーザーの日本語に文法や発音の誤りがある場合は feedback.needsCorrection を true にし、",
        "explanation に韓国語で説明、betterExpression に正しい表現を入れてください。",
        "理解できるが不自然な場合は needsCorrection を false のまま betterExpression を提案してください。",
        "accuracyScore は 0 から 100 の整数です。",
    ]
    return "\n".join(lines)


class DialogueService(GeminiBackedService):
    """Structured-output chat calls to Gemini."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.5-flash", client=None) -> None:
        super().__init__(api_key=api_key, client=client)
        self.model = model

    async def _generate_json(
        self,
        schema: type[M],
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.7,
    ) -> M:
        response = await self._generate(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system,
                response_mime_type="application/json",
                response_schema=schema,
                temperature=temperature,
            ),
        )
        if not response.text:
            raise UpstreamError(error="Empty response from Gemini")
        try:
            return schema.model_validate(json.loads(response.text))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.error(
                "Unparseable %s from Gemini: %s",
                schema.__name__,
                exc,
                extra={"operation": schema.__name__, "error_type": type(exc).__name__},
            )
            raise UpstreamError(error=f"Invalid {schema.__name__}: {exc}") from exc

    async def generate_dialogue(
        self,
        character: CharacterProfile,
        scenario: ScenarioSelection,
        audience: Audience = Audience.general,
    ) -> DialogueScript:
        """Three opening lines and three focus phrases for a scene."""
        system, prompt = _opening_prompts(character, scenario, audience)
        script = await self._generate_json(DialogueScript, prompt, system)
        if len(script.lines) != 3 or len(script.focus_phrases) != 3:
            raise UpstreamError(
                error=f"Expected 3 lines and 3 focus phrases, got "
                f"{len(script.lines)} and {len(script.focus_phrases)}"
            )
        return script

    async def conversation_response(
        self,
        user_input: str,
        history: list[HistoryItem],
        character_name: str,
        topic: str,
        character_role: Optional[str] = None,
        user_role: Optional[str] = None,
    ) -> ConversationReply:
        """The character's reply to one utterance, with feedback on it."""
        prompt = _reply_prompt(
            user_input, history, character_name, topic, character_role, user_role
        )
        reply = await self._generate_json(
            ConversationReply,
            prompt,
            system="あなたは日本語会話の先生です。必ず日本語で応答してください。",
        )
        if not reply.response.strip():
            reply = reply.model_copy(update={"response": FALLBACK_REPLY_TEXT})
        return reply

    async def translate_pronunciation(self, text: str) -> Annotation:
        """Korean translation and romanized pronunciation of a Japanese line."""
        return await self._generate_json(
            Annotation,
            f'Provide Korean translation and romanized pronunciation for this Japanese text: "{text}"',
            system=(
                "You are a Japanese language assistant. For Japanese text, provide "
                "a Korean translation and a romanized pronunciation."
            ),
            temperature=0.3,
        )

    async def background_prompt(
        self,
        scenario_text: str,
        style: Style = Style.cheerful,
        gender: Gender = Gender.female,
    ) -> BackgroundPrompt:
        """Scene styling (setting, outfit, pose, atmosphere) for a custom scenario."""
        return await self._generate_json(
            BackgroundPrompt,
            (
                f'Custom scenario: "{scenario_text}"\n'
                f"Character style: {style.value}\n"
                f"Character gender: {gender.value}\n"
                "Suggest a background, outfit, pose and atmosphere for this scenario."
            ),
            system=(
                "You write English prompt fragments for a character portrait in a "
                "Japanese learning app. Describe the background setting, an outfit "
                "that fits the situation, the character's pose, the atmosphere and "
                "lighting, and a combined prompt joining all of them."
            ),
        )
