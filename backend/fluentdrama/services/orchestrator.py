"""Turn-based dialogue state machine for one practice scene.

One orchestrator drives one scene: it produces the opening line, takes the
learner's recorded utterances, evaluates them, and appends character replies.
Provider calls go through `attempt()`, so a failing provider degrades a turn
but never ends the scene.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from fluentdrama.core.errors import InvalidTransitionError
from fluentdrama.core.logging import setup_logging
from fluentdrama.core.outcome import Outcome, attempt
from fluentdrama.models.character import Audience, CharacterProfile
from fluentdrama.models.dialogue import (
    Annotation,
    ConversationReply,
    DialogueTurn,
    Emotion,
    Feedback,
    HistoryItem,
    Notice,
    NoticeKind,
    SessionState,
    Speaker,
    Transcription,
    TurnResult,
    TurnStatus,
)
from fluentdrama.models.scenario import ScenarioDescriptor, ScenarioSelection
from fluentdrama.models.user import QuotaStatus, UsageMetric
from fluentdrama.services.dialogue import FALLBACK_REPLY_TEXT
from fluentdrama.services.voice import select_voice

logger = setup_logging("orchestrator")

DEFAULT_GREETING = "こんにちは！今日はよろしくお願いします。"
TRANSLATION_PLACEHOLDER = "[translation unavailable]"
PRONUNCIATION_PLACEHOLDER = "[pronunciation unavailable]"
FALLBACK_REPLY = ConversationReply(
    response=FALLBACK_REPLY_TEXT,
    feedback=Feedback(accuracy_score=75, suggestions=["Keep practicing!"]),
    emotion=Emotion.neutral,
)

QUOTA_NOUNS: dict[UsageMetric, str] = {
    UsageMetric.conversation: "conversations",
    UsageMetric.tts: "voice messages",
    UsageMetric.image: "character images",
}

OPENING_PROGRESS = 10
PROGRESS_STEP = 15
HISTORY_WINDOW = 6
EXCELLENT_SCORE = 90


class SceneState(str, Enum):
    AWAITING_SCENE_START = "awaiting_scene_start"
    STARTING = "starting"
    READY = "ready"
    LISTENING = "listening"
    PROCESSING = "processing"
    ENDED = "ended"


TRANSITIONS: dict[SceneState, frozenset[SceneState]] = {
    SceneState.AWAITING_SCENE_START: frozenset({SceneState.STARTING}),
    SceneState.STARTING: frozenset({SceneState.READY}),
    SceneState.READY: frozenset(
        {SceneState.LISTENING, SceneState.PROCESSING, SceneState.AWAITING_SCENE_START}
    ),
    SceneState.LISTENING: frozenset(
        {SceneState.PROCESSING, SceneState.READY, SceneState.AWAITING_SCENE_START}
    ),
    SceneState.PROCESSING: frozenset({SceneState.READY, SceneState.ENDED}),
    SceneState.ENDED: frozenset({SceneState.AWAITING_SCENE_START}),
}


class BufferedCapture:
    """Audio capture that accumulates chunks pushed by the client."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self.closed = False

    def feed(self, chunk: bytes) -> None:
        if self.closed:
            raise RuntimeError("capture already closed")
        self._chunks.append(chunk)

    def stop(self) -> bytes:
        return b"".join(self._chunks)

    def close(self) -> None:
        self._chunks.clear()
        self.closed = True


class SceneHooks:
    """Receives playback, notice and listening events. Defaults do nothing."""

    def on_playback(self, turn: DialogueTurn) -> None:
        pass

    def on_notice(self, notice: Notice) -> None:
        pass

    def on_listening(self) -> None:
        pass


@dataclass(frozen=True)
class SceneContext:
    user_id: str
    character: CharacterProfile
    scenario: ScenarioDescriptor
    audience: Audience = Audience.general

    def selection(self) -> ScenarioSelection:
        if self.scenario.key:
            return ScenarioSelection(preset_key=self.scenario.key)
        return ScenarioSelection(free_text=self.scenario.situation)


@dataclass(frozen=True)
class SceneCollaborators:
    """dialogue: DialogueService, speech: SpeechService, meter: LedgerMeter."""

    dialogue: Any
    speech: Any
    meter: Any


@dataclass(frozen=True)
class SceneTimings:
    opening_playback_delay: float = 1.5
    reply_playback_delay: float = 0.5
    auto_listen_delay: float = 2.0
    call_timeout: Optional[float] = 30.0
    min_audio_bytes: int = 1000


class DialogueOrchestrator:
    """State machine for one scene.

    States move only along TRANSITIONS; anything else raises
    InvalidTransitionError. `awaiting_retry` is tracked separately on the
    session state.
    """

    def __init__(
        self,
        context: SceneContext,
        collaborators: SceneCollaborators,
        hooks: Optional[SceneHooks] = None,
        capture_factory: Callable[[], BufferedCapture] = BufferedCapture,
        timings: Optional[SceneTimings] = None,
    ) -> None:
        self.context = context
        self.collaborators = collaborators
        self.hooks = hooks or SceneHooks()
        self.capture_factory = capture_factory
        self.timings = timings or SceneTimings()
        self.voice = select_voice(context.character.gender, context.character.style)
        self.session = SessionState()
        self.hands_free = False
        self._state = SceneState.AWAITING_SCENE_START
        self._capture: Optional[BufferedCapture] = None
        self._in_flight = False
        self._playback_timer: Optional[asyncio.TimerHandle] = None
        self._listen_timer: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> SceneState:
        return self._state

    @property
    def turns(self) -> list[DialogueTurn]:
        return self.session.turns

    @property
    def capture_open(self) -> bool:
        return self._capture is not None

    @property
    def auto_listen_pending(self) -> bool:
        return self._listen_timer is not None

    def _transition(self, target: SceneState) -> None:
        if target not in TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"Cannot move from {self._state.value} to {target.value}",
                state=self._state.value,
            )
        logger.debug(
            "Scene %s -> %s",
            self._state.value,
            target.value,
            extra={"user_id": self.context.user_id},
        )
        self._state = target

    def _require(self, *states: SceneState) -> None:
        if self._state not in states:
            raise InvalidTransitionError(
                f"Not allowed while {self._state.value}", state=self._state.value
            )

    def _log_extra(self, operation: str) -> dict:
        return {"user_id": self.context.user_id, "operation": operation}

    # ------------------------------------------------------------------
    # Provider calls
    # ------------------------------------------------------------------

    async def _call(self, operation, *, fallback, label: str) -> Outcome:
        return await attempt(
            operation,
            fallback=fallback,
            label=label,
            timeout=self.timings.call_timeout,
            logger=logger,
        )

    async def _metered(self, metric: UsageMetric, call) -> Any:
        """Check quota, run the call, then charge it.

        The meter hits storage, so it runs in a worker thread.
        """
        meter = self.collaborators.meter
        await asyncio.to_thread(meter.require, metric)
        result = await call()
        await asyncio.to_thread(meter.increment, metric)
        return result

    async def _check_quota(self, metric: UsageMetric) -> QuotaStatus:
        return await asyncio.to_thread(self.collaborators.meter.check, metric)

    async def _opening_line(self) -> Outcome:
        async def generate() -> str:
            script = await self.collaborators.dialogue.generate_dialogue(
                self.context.character,
                self.context.selection(),
                self.context.audience,
            )
            return script.lines[0]

        return await self._call(
            lambda: self._metered(UsageMetric.conversation, generate),
            fallback=DEFAULT_GREETING,
            label="opening_line",
        )

    async def _speak(self, text: str, emotion: Emotion = Emotion.neutral) -> Outcome:
        speech = self.collaborators.speech
        return await self._call(
            lambda: self._metered(
                UsageMetric.tts, lambda: speech.synthesize(text, self.voice, emotion)
            ),
            fallback=None,
            label="tts",
        )

    async def _annotate(self, text: str) -> Outcome:
        return await self._call(
            lambda: self.collaborators.dialogue.translate_pronunciation(text),
            fallback=Annotation(
                korean_translation=TRANSLATION_PLACEHOLDER,
                pronunciation=PRONUNCIATION_PLACEHOLDER,
            ),
            label="annotation",
        )

    async def _reply(self, text: str) -> Outcome:
        scenario = self.context.scenario
        history = [
            HistoryItem(speaker=turn.speaker, text=turn.text)
            for turn in self.turns[-HISTORY_WINDOW:]
        ]

        async def respond() -> ConversationReply:
            return await self.collaborators.dialogue.conversation_response(
                text,
                history,
                self.context.character.name,
                scenario.situation,
                character_role=scenario.character_role,
                user_role=scenario.user_role,
            )

        return await self._call(
            lambda: self._metered(UsageMetric.conversation, respond),
            fallback=FALLBACK_REPLY,
            label="conversation_response",
        )

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _schedule_playback(self, turn: DialogueTurn, delay: float) -> None:
        if self._playback_timer is not None:
            self._playback_timer.cancel()
        loop = asyncio.get_running_loop()
        self._playback_timer = loop.call_later(delay, self._play, turn)

    def _play(self, turn: DialogueTurn) -> None:
        self._playback_timer = None
        self.hooks.on_playback(turn)
        self._schedule_auto_listen()

    def _auto_listen_due(self) -> bool:
        if not self.hands_free or self._in_flight or self._state != SceneState.READY:
            return False
        if not self.turns:
            return False
        return self.turns[-1].speaker == Speaker.character or self.session.awaiting_retry

    def _schedule_auto_listen(self) -> None:
        self._cancel_auto_listen()
        if not self._auto_listen_due():
            return
        loop = asyncio.get_running_loop()
        self._listen_timer = loop.call_later(self.timings.auto_listen_delay, self._auto_listen)

    def _cancel_auto_listen(self) -> None:
        if self._listen_timer is not None:
            self._listen_timer.cancel()
            self._listen_timer = None

    def _auto_listen(self) -> None:
        self._listen_timer = None
        if not self._auto_listen_due():
            return
        if not self.begin_listening():
            logger.warning(
                "Auto-listen failed, hands-free turned off",
                extra=self._log_extra("auto_listen"),
            )
            self.hands_free = False

    def _cancel_timers(self) -> None:
        self._cancel_auto_listen()
        if self._playback_timer is not None:
            self._playback_timer.cancel()
            self._playback_timer = None

    # ------------------------------------------------------------------
    # Scene operations
    # ------------------------------------------------------------------

    def _notify(self, notices: list[Notice], kind: NoticeKind, title: str, message: str) -> None:
        notice = Notice(kind=kind, title=title, message=message)
        notices.append(notice)
        self.hooks.on_notice(notice)

    def _notify_quota(self, notices: list[Notice], metric: UsageMetric, quota: QuotaStatus) -> None:
        self._notify(
            notices,
            NoticeKind.quota_exceeded,
            "Usage limit reached",
            f"You have used {quota.current} of {quota.limit} {QUOTA_NOUNS[metric]}. "
            "Please upgrade your subscription.",
        )

    async def initialize_scene(self) -> DialogueTurn:
        """Produce the opening exchange and enter READY.

        Returns:
            The character's opening turn.
        """
        self._transition(SceneState.STARTING)
        degraded: list[str] = []
        quota_denied: list[UsageMetric] = []

        opening = await self._opening_line()
        text, audio_ref = opening.value, None
        if opening.degraded:
            degraded.append(opening.reason)
            if opening.quota_exceeded:
                quota_denied.append(UsageMetric.conversation)
        else:
            audio = await self._speak(text)
            if audio.degraded:
                degraded.append(audio.reason)
                if audio.quota_exceeded:
                    quota_denied.append(UsageMetric.tts)
                text = DEFAULT_GREETING
            else:
                audio_ref = audio.value

        annotation = await self._annotate(text)
        if annotation.degraded:
            degraded.append(annotation.reason)

        scenario = self.context.scenario
        name = self.context.character.name
        self.session.turns.append(
            DialogueTurn(
                speaker=Speaker.system,
                text=(
                    f"Scene: {scenario.situation}\n"
                    f"Your role: {scenario.user_role}\n"
                    f"{name}'s role: {scenario.character_role}"
                ),
            )
        )
        turn = DialogueTurn(
            speaker=Speaker.character,
            text=text,
            audio_ref=audio_ref,
            translation=annotation.value.korean_translation,
            pronunciation=annotation.value.pronunciation,
            degraded=tuple(degraded),
        )
        self.session.turns.append(turn)
        self.session.progress = OPENING_PROGRESS
        self._transition(SceneState.READY)

        if degraded:
            logger.warning(
                "Scene started degraded: %s",
                ", ".join(degraded),
                extra=self._log_extra("initialize_scene"),
            )
        for metric in quota_denied:
            self._notify_quota([], metric, await self._check_quota(metric))
        if len(degraded) > len(quota_denied):
            self._notify(
                [],
                NoticeKind.scene_degraded,
                "Limited scene",
                "Some content could not be generated. You can still practice.",
            )
        self._schedule_playback(turn, self.timings.opening_playback_delay)
        return turn

    def begin_listening(self) -> bool:
        """Open an audio capture.

        Returns:
            False when the capture could not be opened (state stays READY).
        """
        self._transition(SceneState.LISTENING)
        self._cancel_auto_listen()
        try:
            self._capture = self.capture_factory()
        except Exception as exc:
            logger.error(
                "Could not open audio capture: %s",
                exc,
                extra={**self._log_extra("begin_listening"), "error_type": type(exc).__name__},
            )
            self._transition(SceneState.READY)
            self._notify(
                [],
                NoticeKind.capture_failed,
                "Microphone unavailable",
                "Recording could not be started. Please try again.",
            )
            return False
        self.session.awaiting_retry = False
        self.hooks.on_listening()
        return True

    def feed_audio(self, chunk: bytes) -> None:
        self._require(SceneState.LISTENING)
        self._capture.feed(chunk)

    def _release_capture(self) -> bytes:
        capture, self._capture = self._capture, None
        if capture is None:
            return b""
        try:
            return capture.stop()
        except Exception as exc:
            logger.error(
                "Audio capture failed on stop: %s",
                exc,
                extra={**self._log_extra("stop_listening"), "error_type": type(exc).__name__},
            )
            return b""
        finally:
            capture.close()

    async def stop_listening(self) -> TurnResult:
        """Stop the capture and submit what was recorded, partial or not."""
        self._require(SceneState.LISTENING)
        audio = self._release_capture()
        return await self.process_user_response(audio)

    async def process_user_response(self, audio: bytes) -> TurnResult:
        """Transcribe a recorded utterance and evaluate it."""
        self._require(SceneState.READY, SceneState.LISTENING)
        if self._state == SceneState.LISTENING:
            self._release_capture()

        if len(audio) < self.timings.min_audio_bytes:
            logger.info(
                "Ignored %d-byte recording", len(audio), extra=self._log_extra("intake")
            )
            if self._state == SceneState.LISTENING:
                self._transition(SceneState.READY)
            return TurnResult(status=TurnStatus.rejected_too_short)

        self._cancel_auto_listen()
        self._transition(SceneState.PROCESSING)
        self._in_flight = True
        notices: list[Notice] = []
        try:
            quota = await self._check_quota(UsageMetric.conversation)
            if not quota.allowed:
                self._notify_quota(notices, UsageMetric.conversation, quota)
                return TurnResult(status=TurnStatus.quota_exceeded, notices=notices)

            transcription = await self._call(
                lambda: self.collaborators.speech.transcribe(audio),
                fallback=Transcription(text=""),
                label="transcription",
            )
            text = transcription.value.text.strip()
            if not text:
                self._notify(
                    notices,
                    NoticeKind.not_understood,
                    "Didn't catch that",
                    "Please speak a little louder and try again.",
                )
                return TurnResult(status=TurnStatus.not_understood, notices=notices)

            return await self._evaluate(text, notices)
        finally:
            self._in_flight = False
            if self._state == SceneState.PROCESSING:
                self._transition(SceneState.READY)
            self._schedule_auto_listen()

    async def evaluate_turn(self, text: str) -> TurnResult:
        """Evaluate an already transcribed utterance."""
        self._require(SceneState.READY)
        self._cancel_auto_listen()
        self._transition(SceneState.PROCESSING)
        self._in_flight = True
        try:
            return await self._evaluate(text, [])
        finally:
            self._in_flight = False
            if self._state == SceneState.PROCESSING:
                self._transition(SceneState.READY)
            self._schedule_auto_listen()

    async def _evaluate(self, text: str, notices: list[Notice]) -> TurnResult:
        outcome = await self._reply(text)
        if outcome.quota_exceeded:
            # Nothing was evaluated: no turns, no progress.
            quota = await self._check_quota(UsageMetric.conversation)
            self._notify_quota(notices, UsageMetric.conversation, quota)
            return TurnResult(status=TurnStatus.quota_exceeded, notices=notices)
        reply: ConversationReply = outcome.value
        feedback = reply.feedback
        user_turn = DialogueTurn(
            speaker=Speaker.user,
            text=text,
            feedback=feedback,
            degraded=(outcome.reason,) if outcome.degraded else (),
        )
        self.session.turns.append(user_turn)

        if feedback.needs_correction:
            self.session.awaiting_retry = True
            hint = f" Try: {feedback.better_expression}" if feedback.better_expression else ""
            self._notify(
                notices,
                NoticeKind.correction,
                "Let's try that again",
                (feedback.explanation or "That expression isn't quite right.") + hint,
            )
            return TurnResult(
                status=TurnStatus.needs_correction, user_turn=user_turn, notices=notices
            )

        self.session.awaiting_retry = False
        degraded: list[str] = []
        audio = await self._speak(reply.response, reply.emotion)
        if audio.degraded:
            degraded.append(audio.reason)
            if audio.quota_exceeded:
                self._notify_quota(notices, UsageMetric.tts, await self._check_quota(UsageMetric.tts))
        annotation = await self._annotate(reply.response)
        if annotation.degraded:
            degraded.append(annotation.reason)

        character_turn = DialogueTurn(
            speaker=Speaker.character,
            text=reply.response,
            audio_ref=audio.value,
            translation=annotation.value.korean_translation,
            pronunciation=annotation.value.pronunciation,
            emotion=reply.emotion,
            degraded=tuple(degraded),
        )
        self.session.turns.append(character_turn)
        self.session.progress = min(100, self.session.progress + PROGRESS_STEP)

        if feedback.better_expression:
            self._notify(
                notices,
                NoticeKind.better_expression,
                "More natural expression",
                feedback.better_expression,
            )
        elif feedback.accuracy_score >= EXCELLENT_SCORE:
            self._notify(notices, NoticeKind.excellent, "Excellent!", "Perfect Japanese!")

        self._schedule_playback(character_turn, self.timings.reply_playback_delay)

        status = TurnStatus.accepted
        if reply.should_end_conversation:
            self._transition(SceneState.ENDED)
            self.session.ended = True
            self._notify(
                notices,
                NoticeKind.scene_complete,
                "Scene complete",
                reply.ending_message or "Great job! You completed this scene.",
            )
            status = TurnStatus.ended
        return TurnResult(
            status=status,
            user_turn=user_turn,
            character_turn=character_turn,
            notices=notices,
        )

    def set_hands_free(self, enabled: bool) -> None:
        self.hands_free = enabled
        if enabled:
            self._schedule_auto_listen()
        else:
            self._cancel_auto_listen()

    async def reset(self) -> DialogueTurn:
        """Clear the scene and start it again with the same scenario."""
        if self._state in (SceneState.PROCESSING, SceneState.STARTING):
            raise InvalidTransitionError(
                f"Cannot reset while {self._state.value}", state=self._state.value
            )
        self._release_capture()
        self._cancel_timers()
        self.hands_free = False
        self.session = SessionState()
        if self._state != SceneState.AWAITING_SCENE_START:
            self._transition(SceneState.AWAITING_SCENE_START)
        return await self.initialize_scene()

    def close(self) -> None:
        """Release the capture and cancel timers without evaluating anything."""
        self._release_capture()
        self._cancel_timers()
        self.hands_free = False
        if self._state == SceneState.LISTENING:
            self._transition(SceneState.READY)

    def transcript(self) -> str:
        name = self.context.character.name
        lines = []
        for turn in self.turns:
            if turn.speaker == Speaker.user:
                lines.append(f"You: {turn.text}")
            elif turn.speaker == Speaker.character:
                lines.append(f"{name}: {turn.text}")
        return "\n".join(lines)
