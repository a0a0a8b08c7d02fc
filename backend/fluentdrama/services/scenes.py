"""Active practice scenes, one per user."""
import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional
from uuid import uuid4

from fluentdrama.core.errors import NotFoundError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.dialogue import DialogueTurn, Notice, Speaker, TurnResult
from fluentdrama.models.scene import SceneCreateRequest, SceneEvent, SceneSnapshot
from fluentdrama.models.session import LearningSession
from fluentdrama.services.characters import CharacterRegistry
from fluentdrama.services.orchestrator import (
    BufferedCapture,
    DialogueOrchestrator,
    SceneCollaborators,
    SceneContext,
    SceneHooks,
    SceneState,
    SceneTimings,
)
from fluentdrama.services.scenario import ScenarioResolver
from fluentdrama.services.storage import Storage
from fluentdrama.services.usage import LedgerMeter, UsageLedger

logger = setup_logging("scenes")

EVENT_LOG_SIZE = 50


class SceneEventLog(SceneHooks):
    """Keeps the latest hook calls so the client can poll them."""

    def __init__(self, maxlen: int = EVENT_LOG_SIZE) -> None:
        self.events: deque[SceneEvent] = deque(maxlen=maxlen)
        self.turns: Callable[[], list[DialogueTurn]] = list

    def on_playback(self, turn: DialogueTurn) -> None:
        turns = self.turns()
        index = next((i for i, t in enumerate(turns) if t is turn), None)
        self.events.append(SceneEvent(kind="playback", turn_index=index))

    def on_notice(self, notice: Notice) -> None:
        self.events.append(SceneEvent(kind="notice", notice=notice))

    def on_listening(self) -> None:
        self.events.append(SceneEvent(kind="listening"))


@dataclass
class ActiveScene:
    id: str
    user_id: str
    orchestrator: DialogueOrchestrator
    log: SceneEventLog
    saved: bool = field(default=False)


class SceneService:
    """Creates scenes, routes learner actions to them, saves finished ones."""

    def __init__(
        self,
        storage: Storage,
        registry: CharacterRegistry,
        resolver: ScenarioResolver,
        ledger: UsageLedger,
        dialogue,
        speech,
        timings: Optional[SceneTimings] = None,
        capture_factory: Callable[[], BufferedCapture] = BufferedCapture,
    ) -> None:
        self.storage = storage
        self.registry = registry
        self.resolver = resolver
        self.ledger = ledger
        self.dialogue = dialogue
        self.speech = speech
        self.timings = timings or SceneTimings()
        self.capture_factory = capture_factory
        self._scenes: dict[str, ActiveScene] = {}

    async def create(self, user_id: str, request: SceneCreateRequest) -> ActiveScene:
        """Start a new scene, closing the user's previous one."""
        previous = self._scenes.pop(user_id, None)
        if previous is not None:
            previous.orchestrator.close()

        if request.character_id:
            selected = await asyncio.to_thread(self.registry.select, user_id, request.character_id)
            character = selected.profile()
        else:
            character = request.character
        scenario = self.resolver.resolve(request.preset_key, request.free_text)

        log = SceneEventLog()
        orchestrator = DialogueOrchestrator(
            SceneContext(
                user_id=user_id,
                character=character,
                scenario=scenario,
                audience=request.audience,
            ),
            SceneCollaborators(
                dialogue=self.dialogue,
                speech=self.speech,
                meter=LedgerMeter(self.ledger, user_id),
            ),
            hooks=log,
            capture_factory=self.capture_factory,
            timings=self.timings,
        )
        log.turns = lambda: orchestrator.turns
        scene = ActiveScene(id=str(uuid4()), user_id=user_id, orchestrator=orchestrator, log=log)
        self._scenes[user_id] = scene

        await orchestrator.initialize_scene()
        if request.hands_free:
            orchestrator.set_hands_free(True)
        logger.info(
            "Scene %s started (%s)",
            scene.id,
            scenario.key or "custom",
            extra={"user_id": user_id, "scene_id": scene.id},
        )
        return scene

    def get(self, user_id: str, scene_id: str) -> ActiveScene:
        scene = self._scenes.get(user_id)
        if scene is None or scene.id != scene_id:
            raise NotFoundError("Scene not found")
        return scene

    def snapshot(self, scene: ActiveScene) -> SceneSnapshot:
        orchestrator = scene.orchestrator
        session = orchestrator.session
        return SceneSnapshot(
            id=scene.id,
            state=orchestrator.state.value,
            character=orchestrator.context.character,
            scenario=orchestrator.context.scenario,
            voice=orchestrator.voice,
            turns=list(session.turns),
            progress=session.progress,
            ended=session.ended,
            awaiting_retry=session.awaiting_retry,
            hands_free=orchestrator.hands_free,
            events=list(scene.log.events),
        )

    def listen(self, user_id: str, scene_id: str) -> ActiveScene:
        scene = self.get(user_id, scene_id)
        scene.orchestrator.begin_listening()
        return scene

    async def submit(self, user_id: str, scene_id: str, audio: bytes) -> TurnResult:
        """Submit a recorded utterance, through the open capture if there is one."""
        scene = self.get(user_id, scene_id)
        orchestrator = scene.orchestrator
        if orchestrator.state == SceneState.LISTENING:
            orchestrator.feed_audio(audio)
            result = await orchestrator.stop_listening()
        else:
            result = await orchestrator.process_user_response(audio)
        if orchestrator.state == SceneState.ENDED:
            await asyncio.to_thread(self._save, scene)
        return result

    def set_hands_free(self, user_id: str, scene_id: str, enabled: bool) -> ActiveScene:
        scene = self.get(user_id, scene_id)
        scene.orchestrator.set_hands_free(enabled)
        return scene

    async def reset(self, user_id: str, scene_id: str) -> ActiveScene:
        scene = self.get(user_id, scene_id)
        scene.log.events.clear()
        await scene.orchestrator.reset()
        scene.saved = False
        return scene

    def transcript(self, user_id: str, scene_id: str) -> str:
        return self.get(user_id, scene_id).orchestrator.transcript()

    def close(self, user_id: str, scene_id: str) -> None:
        scene = self.get(user_id, scene_id)
        scene.orchestrator.close()
        del self._scenes[user_id]
        logger.info("Scene %s closed", scene_id, extra={"user_id": user_id, "scene_id": scene_id})

    def close_all(self) -> None:
        for scene in self._scenes.values():
            scene.orchestrator.close()
        self._scenes.clear()

    def list_sessions(self, user_id: str) -> list[LearningSession]:
        return self.storage.list_sessions(user_id)

    def _save(self, scene: ActiveScene) -> None:
        if scene.saved:
            return
        orchestrator = scene.orchestrator
        session = LearningSession(
            user_id=scene.user_id,
            character_name=orchestrator.context.character.name,
            scenario=orchestrator.context.scenario.situation,
            progress=orchestrator.session.progress,
            turn_count=sum(1 for t in orchestrator.turns if t.speaker != Speaker.system),
            transcript=orchestrator.transcript(),
        )
        self.storage.save_session(session)
        scene.saved = True
        logger.info(
            "Saved learning session %s",
            session.id,
            extra={"user_id": scene.user_id, "scene_id": scene.id},
        )
