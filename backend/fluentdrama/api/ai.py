"""AI proxy routes: portraits, dialogue, speech and translation.

Metered routes check the caller's quota before calling the provider and
record usage only after the call succeeded. Ledger and registry calls hit
storage, so they run in a worker thread.
"""
import asyncio

from fastapi import APIRouter, Depends

from fluentdrama.api.deps import AppServices, current_user, get_services
from fluentdrama.core.errors import UpstreamError, ValidationFailedError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.character import (
    BackgroundPrompt,
    BackgroundPromptRequest,
    CharacterCreate,
    GenerateImageRequest,
    GenerateImageResponse,
)
from fluentdrama.models.dialogue import (
    Annotation,
    ConversationReply,
    ConversationRequest,
    GenerateDialogueRequest,
    SpeechRecognitionRequest,
    Transcription,
    TranslateRequest,
    TTSRequest,
)
from fluentdrama.models.user import UsageMetric, User
from fluentdrama.services.speech import decode_audio_blob
from fluentdrama.services.voice import select_voice

logger = setup_logging("ai_router")

router = APIRouter(prefix="/api", tags=["ai"])


@router.post("/generate-image", response_model=GenerateImageResponse)
async def generate_image(
    body: GenerateImageRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> GenerateImageResponse:
    """Generate a portrait and save the character for the caller."""
    await asyncio.to_thread(services.ledger.require, user.id, UsageMetric.image)
    image_url = await services.images.generate_image(body)
    if image_url is None:
        raise UpstreamError("Failed to generate character image", error="Image generation failed")
    await asyncio.to_thread(services.ledger.increment, user.id, UsageMetric.image)

    character = await asyncio.to_thread(
        services.registry.create,
        user.id,
        CharacterCreate(
            name=body.name,
            gender=body.gender,
            style=body.style,
            portrait_ref=image_url,
            audience=body.audience,
            scenario_hint=body.custom_scenario_text or body.scenario,
            background_prompt=body.background_prompt,
        ),
    )
    return GenerateImageResponse(
        image_url=image_url,
        character=character.to_wire(),
        message="Character image generated successfully",
    )


@router.post("/generate-dialogue")
async def generate_dialogue(
    body: GenerateDialogueRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> dict:
    await asyncio.to_thread(services.ledger.require, user.id, UsageMetric.conversation)
    script = await services.dialogue.generate_dialogue(
        body.character, body.scenario, body.audience
    )
    await asyncio.to_thread(services.ledger.increment, user.id, UsageMetric.conversation)
    return {
        "lines": script.lines,
        "focus_phrases": script.focus_phrases,
        "character": body.character.to_wire(),
        "message": "Dialogue generated successfully",
    }


@router.post("/tts")
async def text_to_speech(
    body: TTSRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> dict:
    await asyncio.to_thread(services.ledger.require, user.id, UsageMetric.tts)
    voice = select_voice(body.character.gender, body.character.style, body.character.role)
    audio_url = await services.speech.synthesize(body.text, voice, body.emotion)
    await asyncio.to_thread(services.ledger.increment, user.id, UsageMetric.tts)
    return {"audioUrl": audio_url, "message": "Speech generated successfully"}


@router.post("/conversation-response", response_model=ConversationReply)
async def conversation_response(
    body: ConversationRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> ConversationReply:
    await asyncio.to_thread(services.ledger.require, user.id, UsageMetric.conversation)
    reply = await services.dialogue.conversation_response(
        body.user_input,
        body.conversation_history,
        body.character.name,
        body.topic,
    )
    await asyncio.to_thread(services.ledger.increment, user.id, UsageMetric.conversation)
    return reply


@router.post("/generate-background-prompt", response_model=BackgroundPrompt)
async def generate_background_prompt(
    body: BackgroundPromptRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> BackgroundPrompt:
    text = (body.custom_scenario_text or "").strip()
    if not text:
        raise ValidationFailedError("Custom scenario text is required")
    return await services.dialogue.background_prompt(
        text, body.character_style, body.character_gender
    )


@router.post("/translate-pronunciation", response_model=Annotation)
async def translate_pronunciation(
    body: TranslateRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> Annotation:
    text = (body.text or "").strip()
    if not text:
        raise ValidationFailedError("Text is required")
    return await services.dialogue.translate_pronunciation(text)


@router.post("/speech-recognition", response_model=Transcription)
async def speech_recognition(
    body: SpeechRecognitionRequest,
    user: User = Depends(current_user),
    services: AppServices = Depends(get_services),
) -> Transcription:
    """Transcribe a recording; silence comes back as empty text."""
    if not body.audio_blob:
        raise ValidationFailedError("Audio data is required")
    audio = decode_audio_blob(body.audio_blob)
    result = await services.speech.transcribe(audio, body.language)
    logger.info(
        "Transcribed %d bytes (confidence %.1f)",
        len(audio),
        result.confidence,
        extra={"user_id": user.id},
    )
    return result
