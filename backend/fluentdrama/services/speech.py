"""Speech synthesis and transcription through Gemini audio models."""
import base64
import binascii
import io
import re
import wave

from google.genai import types

from fluentdrama.core.errors import ValidationFailedError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.dialogue import Emotion, Transcription
from fluentdrama.services.genai_client import GeminiBackedService, first_inline_data

logger = setup_logging("speech")

# Gemini TTS returns raw 16-bit mono PCM at 24 kHz.
PCM_RATE = 24000
PCM_WIDTH = 2
PCM_CHANNELS = 1

JAPANESE_TEXT = re.compile(r"[぀-ゟ゠-ヿ一-龯]")
FILLER_ONLY = re.compile(r"^[あいうえおんふぅ]+$")

# Whole transcripts that are only a filler sound.
FILLERS = frozenset({"ふぅ", "ん", "あ", "え", "う", "お", "うん"})

# Phrases speech models produce for silence or noise.
HALLUCINATIONS = (
    "おしまい", "ご視聴ありがとう", "ありがとうございました",
    "Thank you for watching", "Thanks for watching",
    "시청해주셔서 감사합니다", "감사합니다",
)

TONE_CUES: dict[Emotion, str] = {
    Emotion.neutral: "",
    Emotion.happy: "in a happy, warm tone",
    Emotion.excited: "in an excited, energetic tone",
    Emotion.calm: "in a calm, gentle tone",
    Emotion.concerned: "in a concerned, caring tone",
    Emotion.professional: "in a polite, professional tone",
}

RECOGNIZED_CONFIDENCE = 0.9


def pcm_to_wav(pcm: bytes) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(PCM_CHANNELS)
        wav.setsampwidth(PCM_WIDTH)
        wav.setframerate(PCM_RATE)
        wav.writeframes(pcm)
    return buffer.getvalue()


def decode_audio_blob(blob: str) -> bytes:
    """Decode base64 audio, with or without a `data:...;base64,` prefix."""
    if blob.startswith("data:"):
        blob = blob.split(",", 1)[-1]
    try:
        return base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationFailedError("Audio data is not valid base64") from exc


def is_hallucination(text: str) -> bool:
    """True for empty, too short, filler-only or known silence transcripts."""
    return (
        len(text) < 2
        or text in FILLERS
        or any(phrase in text for phrase in HALLUCINATIONS)
        or bool(FILLER_ONLY.match(text))
    )


def speech_prompt(text: str, emotion: Emotion = Emotion.neutral) -> str:
    parts = []
    if JAPANESE_TEXT.search(text):
        parts.append("Read this Japanese slowly and clearly for a language learner")
    else:
        parts.append("Read this clearly")
    if TONE_CUES.get(emotion):
        parts.append(TONE_CUES[emotion])
    return f"{', '.join(parts)}: {text}"


class SpeechService(GeminiBackedService):
    """Text to speech and speech to text."""

    def __init__(
        self,
        api_key: str = "",
        tts_model: str = "gemini-2.5-flash-preview-tts",
        transcription_model: str = "gemini-2.5-flash",
        min_audio_bytes: int = 1000,
        client=None,
    ) -> None:
        super().__init__(api_key=api_key, client=client)
        self.tts_model = tts_model
        self.transcription_model = transcription_model
        self.min_audio_bytes = min_audio_bytes

    async def synthesize(
        self, text: str, voice: str, emotion: Emotion = Emotion.neutral
    ) -> str:
        """Speak `text` with a prebuilt voice.

        Returns:
            A `data:audio/wav;base64,...` URI playable by the browser.
        """
        response = await self._generate(
            model=self.tts_model,
            contents=speech_prompt(text, emotion),
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice)
                    )
                ),
            ),
        )
        wav = pcm_to_wav(first_inline_data(response))
        logger.debug("Synthesized %d bytes with voice %s", len(wav), voice)
        return "data:audio/wav;base64," + base64.b64encode(wav).decode("ascii")

    async def transcribe(
        self, audio: bytes, language: str = "ja", mime_type: str = "audio/webm"
    ) -> Transcription:
        """Transcribe a recording.

        Silence, noise and too-short recordings come back as empty text with
        zero confidence rather than as an error.
        """
        if len(audio) < self.min_audio_bytes:
            logger.info("Audio too short to transcribe (%d bytes)", len(audio))
            return Transcription(text="", confidence=0.0)

        instruction = (
            "Transcribe this recording verbatim in Japanese. Ignore silence and noise; "
            "return an empty string if nothing was said."
            if language == "ja"
            else f"Transcribe this recording verbatim (language: {language}). "
            "Return an empty string if nothing was said."
        )
        response = await self._generate(
            model=self.transcription_model,
            contents=[
                types.Part.from_bytes(data=audio, mime_type=mime_type),
                instruction,
            ],
            config=types.GenerateContentConfig(temperature=0.0),
        )
        text = (response.text or "").strip()
        if is_hallucination(text):
            logger.info("Discarded transcript as silence or noise: %r", text)
            return Transcription(text="", confidence=0.0)
        return Transcription(text=text, confidence=RECOGNIZED_CONFIDENCE)
