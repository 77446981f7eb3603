"""SessionPipeline — per-connection orchestrator for the utterance pipeline.

Each inbound audio chunk becomes an ``Utterance`` processed by its own
task: transcode → STT → route → (generate) → TTS. An utterance starts
once its sequence number is within ``max_inflight`` of the head, so at
most that many run their stages concurrently and the reorder buffer never
holds more than ``max_inflight - 1`` utterances. Events reach the client
strictly in sequence order:

* the *head* (lowest sequence number not yet finished) sends its events
  as soon as they are produced;
* every later utterance buffers its events;
* when the head finishes, the next utterance's buffer is flushed and it
  becomes the head.

So the client never sees an event of utterance N+1 before the terminal
event of utterance N. ``max_inflight=1`` degenerates to strict sequencing.

Stage failures end only the affected utterance: a generic ``error`` event
is emitted in the failed utterance's slot and the session keeps going.
After ``close()`` nothing more is sent for the session.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from jarvis.audio.stt import DeepgramSTT, RecognitionSpec
from jarvis.audio.transcoder import FfmpegTranscoder, PcmSpec
from jarvis.audio.tts import CartesiaTTS, VoiceSpec
from jarvis.constants import (
    DEFAULT_ASSISTANT_NAME,
    GENERATION_TIMEOUT,
    MAX_INFLIGHT_UTTERANCES,
    SOURCE_FORMAT,
    STT_TIMEOUT,
    SYNTHESIS_TIMEOUT,
    TRANSCODE_TIMEOUT,
)
from jarvis.errors import (
    DecodeError,
    GenerationError,
    GreetingError,
    JarvisError,
    PipelineError,
    RecognitionError,
    RecognitionKind,
    SynthesisError,
    send_error,
)
from jarvis.graph.generator import ResponseGenerator
from jarvis.graph.intents import is_local, route
from jarvis.telemetry import stage_span

from .artifacts import ArtifactStore
from .graph_phase import run_generate
from .greeting import run_greeting
from .session_context import Session, Utterance, UtteranceState
from .stt_phase import run_stt
from .task_queue import UtteranceTaskQueue
from .transcode_phase import run_transcode
from .tts_phase import run_tts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageTimeouts:
    transcode: float = TRANSCODE_TIMEOUT
    stt: float = STT_TIMEOUT
    generate: float = GENERATION_TIMEOUT
    synthesize: float = SYNTHESIS_TIMEOUT


@dataclass
class Collaborators:
    """Process-wide handles shared by every session (stateless or keyed)."""

    transcoder: FfmpegTranscoder
    stt: DeepgramSTT
    generator: ResponseGenerator
    tts: CartesiaTTS
    artifacts: ArtifactStore = field(default_factory=ArtifactStore)
    pcm_spec: PcmSpec = field(default_factory=PcmSpec)
    recognition: RecognitionSpec = field(default_factory=RecognitionSpec)
    voice: VoiceSpec = field(default_factory=VoiceSpec)
    source_format: str = SOURCE_FORMAT
    timeouts: StageTimeouts = field(default_factory=StageTimeouts)
    max_inflight: int = MAX_INFLIGHT_UTTERANCES
    assistant_name: str = DEFAULT_ASSISTANT_NAME
    clock: Callable[[], datetime] = datetime.now


def _as_stage_error(state: UtteranceState, exc: Exception) -> PipelineError:
    """Wrap an unexpected exception in the error type of the stage it hit."""
    if state is UtteranceState.TRANSCODING:
        return DecodeError(repr(exc))
    if state is UtteranceState.TRANSCRIBING:
        return RecognitionError(RecognitionKind.UNAVAILABLE, repr(exc))
    if state is UtteranceState.SYNTHESIZING:
        return SynthesisError(repr(exc))
    return GenerationError(repr(exc))


class SessionPipeline:
    """Owns one Session and sequences its utterances.

    Parameters
    ----------
    websocket : Any
        Anything with an async ``send_json(dict)``.
    collaborators : Collaborators
        Injected stage dependencies.
    """

    def __init__(
        self,
        websocket: Any,
        collaborators: Collaborators,
        session: Session | None = None,
    ) -> None:
        self.websocket = websocket
        self.collab = collaborators
        self.session = session or Session()
        self.utterances: dict[int, Utterance] = {}  # in flight, by seq

        self._tasks = UtteranceTaskQueue(self.session.session_id)
        self._window = max(1, collaborators.max_inflight)
        self._emit_lock = asyncio.Lock()
        # Admission waits on the emit lock so head advances and admissions stay in step.
        self._admission = asyncio.Condition(self._emit_lock)
        self._head = 1
        self._buffered: dict[int, list[dict]] = {}
        self._finished: dict[int, Utterance] = {}

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self.session.connect()
        logger.info("[Session] Connected: %s", self.session_id)
        async with self._emit_lock:
            await self._send({"type": "session_init", "session_id": self.session_id})

    async def close(self) -> None:
        """Tear the session down: cancel in-flight work, drop buffers and artifacts."""
        if not self.session.is_open:
            return
        self.session.close()
        for utterance in list(self.utterances.values()):
            utterance.cancel()
        cancelled = len(self._tasks.cancel_all())
        await self._tasks.join()
        self._buffered.clear()
        self._finished.clear()
        released = self.collab.artifacts.release_session(self.session_id)
        logger.info(
            "[Session] Closed: %s (cancelled %d, crashed %d, released %d artifacts)",
            self.session_id, cancelled, self._tasks.failed_count, released,
        )

    async def drain(self) -> None:
        """Wait until every submitted utterance has reached a terminal state."""
        await self._tasks.join()

    # ------------------------------------------------------------------
    # Client events
    # ------------------------------------------------------------------

    async def greet(self, user_name: str) -> None:
        """Synthesize and send the greeting. Never raises for collaborator failures."""
        if not self.session.is_open:
            return
        c = self.collab
        try:
            audio = await run_greeting(
                user_name,
                c.tts,
                voice=c.voice,
                now=c.clock(),
                assistant_name=c.assistant_name,
                session_id=self.session_id,
                timeout=c.timeouts.synthesize,
            )
        except GreetingError as exc:
            logger.error("[Greeting] Failed for %s: %s", self.session_id, exc)
            async with self._emit_lock:
                if self.session.is_open:
                    await send_error(self.websocket, JarvisError.from_exception(exc, session_id=self.session_id))
            return

        async with self._emit_lock:
            await self._send({"type": "greeting", "audio": base64.b64encode(audio).decode("ascii")})

    def submit_audio(self, audio: bytes) -> Utterance | None:
        """Start a new utterance for *audio*; it never waits on earlier ones."""
        if not self.session.is_open:
            logger.warning("[Pipeline] Audio after close ignored (session=%s).", self.session_id)
            return None
        utterance = self.session.next_utterance(audio)
        self.utterances[utterance.seq] = utterance
        logger.info(
            "[Pipeline] #%d received %d bytes (session=%s)", utterance.seq, len(audio), self.session_id
        )
        self._tasks.submit(utterance.seq, self._run_utterance(utterance))
        return utterance

    # ------------------------------------------------------------------
    # Utterance pipeline
    # ------------------------------------------------------------------

    async def _run_utterance(self, utterance: Utterance) -> None:
        try:
            await self._admit(utterance)
            await self._process(utterance)
        except asyncio.CancelledError:
            utterance.cancel()
            raise
        finally:
            self.collab.artifacts.release(utterance.key)
            self.utterances.pop(utterance.seq, None)
            if not self.utterances:
                self.session.pipeline_state = None
            if self.session.is_open:
                await self._finish(utterance)

    async def _admit(self, utterance: Utterance) -> None:
        """Wait until *utterance* is within ``max_inflight`` of the head.

        A slot is only freed once the head moves past an utterance, so at
        most ``max_inflight - 1`` finished utterances ever sit in the
        reorder buffer.
        """
        async with self._admission:
            await self._admission.wait_for(lambda: utterance.seq < self._head + self._window)

    async def _process(self, utterance: Utterance) -> None:
        c = self.collab
        seq = utterance.seq
        with stage_span(
            "utterance", session_id=self.session_id, seq=seq, **{"audio.bytes": len(utterance.audio)}
        ):
            try:
                self._enter(utterance, UtteranceState.TRANSCODING)
                await run_transcode(
                    utterance,
                    c.transcoder,
                    c.artifacts,
                    source_format=c.source_format,
                    target=c.pcm_spec,
                    timeout=c.timeouts.transcode,
                )

                self._enter(utterance, UtteranceState.TRANSCRIBING)
                transcript = await run_stt(
                    utterance, c.stt, c.artifacts, spec=c.recognition, timeout=c.timeouts.stt
                )
                utterance.transcript = transcript
                if not transcript:
                    logger.info("[Pipeline] #%d silence — nothing to deliver.", seq)
                    return
                await self._emit(utterance, {"type": "transcription", "seq": seq, "text": transcript})

                self._enter(utterance, UtteranceState.ROUTING)
                intent = route(transcript)
                if not is_local(intent):
                    self._enter(utterance, UtteranceState.GENERATING)
                utterance.response_text = await run_generate(
                    utterance, intent, c.generator, timeout=c.timeouts.generate
                )
                await self._emit(
                    utterance, {"type": "gptResponse", "seq": seq, "text": utterance.response_text}
                )

                self._enter(utterance, UtteranceState.SYNTHESIZING)
                audio = await run_tts(
                    utterance,
                    utterance.response_text,
                    c.tts,
                    c.artifacts,
                    voice=c.voice,
                    timeout=c.timeouts.synthesize,
                )
                await self._emit(
                    utterance,
                    {
                        "type": "gpt",
                        "seq": seq,
                        "audio": base64.b64encode(audio).decode("ascii"),
                        "encoding": c.voice.encoding,
                        "sample_rate": c.voice.sample_rate,
                    },
                )
            except PipelineError as exc:
                await self._fail(utterance, exc)
            except Exception as exc:
                logger.error(
                    "[Pipeline] #%d unexpected error in %s: %s", seq, utterance.state.value, exc, exc_info=True
                )
                await self._fail(utterance, _as_stage_error(utterance.state, exc))

    def _enter(self, utterance: Utterance, state: UtteranceState) -> None:
        utterance.advance(state)
        self.session.pipeline_state = state

    async def _fail(self, utterance: Utterance, exc: PipelineError) -> None:
        stage = utterance.state
        utterance.fail()
        logger.warning(
            "[Pipeline] #%d failed in %s (%s): %s", utterance.seq, stage.value, exc.code.value, exc
        )
        error = JarvisError.from_exception(exc, session_id=self.session_id, seq=utterance.seq)
        error.details = {"stage": stage.value}
        await self._emit(utterance, error.to_dict())

    # ------------------------------------------------------------------
    # Ordered emission
    # ------------------------------------------------------------------

    async def _emit(self, utterance: Utterance, event: dict) -> None:
        async with self._emit_lock:
            if not self.session.is_open:
                return
            if utterance.seq == self._head:
                await self._send(event)
            else:
                self._buffered.setdefault(utterance.seq, []).append(event)

    async def _finish(self, utterance: Utterance) -> None:
        """Record a finished utterance and advance the head as far as possible."""
        async with self._emit_lock:
            self._finished[utterance.seq] = utterance
            while self._head in self._finished:
                done = self._finished.pop(self._head)
                if not done.state.is_terminal:
                    done.advance(UtteranceState.DELIVERED)
                logger.info("[Pipeline] #%d %s (session=%s)", done.seq, done.state.value, self.session_id)
                self._head += 1
                for event in self._buffered.pop(self._head, []):
                    await self._send(event)
            self._admission.notify_all()

    async def _send(self, event: dict) -> None:
        """Send one event; callers hold ``_emit_lock``."""
        if not self.session.is_open:
            return
        try:
            await self.websocket.send_json(event)
        except Exception as exc:
            logger.debug("[Pipeline] Send failed (session=%s): %s", self.session_id, exc)
