"""FastAPI app — health check + WebSocket voice bridge.

Data flow per utterance:
  1. Browser streams a compressed audio chunk (webm/opus) → ffmpeg → PCM-16.
  2. PCM → Deepgram STT → transcript string.
  3. Transcript → keyword router → local answer or Claude reply (LangGraph).
  4. Reply text → Cartesia TTS → PCM-16 audio sent back with the texts.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import contextlib
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from jarvis.audio.stt import DeepgramSTT, RecognitionSpec
from jarvis.audio.transcoder import FfmpegTranscoder, PcmSpec
from jarvis.audio.tts import CartesiaTTS, VoiceSpec
from jarvis.constants import (
    ARTIFACT_SWEEP_INTERVAL,
    DEFAULT_ASSISTANT_NAME,
    DEFAULT_LANGUAGE,
    MAX_INFLIGHT_UTTERANCES,
    WEBSOCKET_RECEIVE_TIMEOUT,
)
from jarvis.graph.generator import ResponseGenerator
from jarvis.pipeline.artifacts import ArtifactStore
from jarvis.pipeline.orchestrator import Collaborators, SessionPipeline
from jarvis.telemetry import init_telemetry

load_dotenv()
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_collaborators() -> Collaborators:
    """Build the process-wide stage clients from environment configuration."""
    language = os.environ.get("JARVIS_LANGUAGE", DEFAULT_LANGUAGE)
    voice_id = os.environ.get("TTS_VOICE", "")
    voice = VoiceSpec(language_code=language, voice_id=voice_id) if voice_id else VoiceSpec(language_code=language)
    pcm_spec = PcmSpec()

    return Collaborators(
        transcoder=FfmpegTranscoder(os.environ.get("FFMPEG_BINARY", "ffmpeg")),
        stt=DeepgramSTT(api_key=os.environ.get("DEEPGRAM_API_KEY", "")),
        generator=ResponseGenerator(),
        tts=CartesiaTTS(api_key=os.environ.get("CARTESIA_API_KEY", "")),
        artifacts=ArtifactStore(),
        pcm_spec=pcm_spec,
        recognition=RecognitionSpec(
            sample_rate=pcm_spec.sample_rate,
            encoding=pcm_spec.encoding,
            channels=pcm_spec.channels,
            language_code=language,
        ),
        voice=voice,
        max_inflight=int(os.environ.get("JARVIS_MAX_INFLIGHT", MAX_INFLIGHT_UTTERANCES)),
        assistant_name=os.environ.get("JARVIS_ASSISTANT_NAME", DEFAULT_ASSISTANT_NAME),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise telemetry and collaborators; run the artifact sweeper."""
    init_telemetry()

    if not hasattr(app.state, "collaborators"):
        app.state.collaborators = build_collaborators()
    collaborators: Collaborators = app.state.collaborators
    logger.info("Collaborators ready (max %d utterances in flight per session).", collaborators.max_inflight)

    sweeper = asyncio.create_task(collaborators.artifacts.run_sweeper(ARTIFACT_SWEEP_INTERVAL))

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper


app = FastAPI(title="Jarvis Voice Engine", version="0.1.0", lifespan=lifespan)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


def decode_audio_payload(payload: dict) -> bytes | None:
    """Extract audio bytes from a JSON ``audioStream`` message."""
    audio = payload.get("audio")
    if not isinstance(audio, str) or not audio:
        return None
    try:
        return base64.b64decode(audio, validate=True)
    except (binascii.Error, ValueError):
        return None


@app.websocket("/ws/jarvis")
async def jarvis_stream(websocket: WebSocket) -> None:
    await websocket.accept()
    pipeline = SessionPipeline(websocket, websocket.app.state.collaborators)
    await pipeline.start()

    try:
        while True:
            try:
                message = await asyncio.wait_for(websocket.receive(), timeout=WEBSOCKET_RECEIVE_TIMEOUT)
            except asyncio.TimeoutError:
                logger.debug("[WS] Receive timeout (idle client) — continuing")
                continue
            except RuntimeError:
                # "Cannot call receive once a disconnect message has been received"
                logger.info("[WS] Client disconnected (runtime)")
                break

            if message.get("type") == "websocket.disconnect":
                break

            if message.get("bytes") is not None:
                pipeline.submit_audio(message["bytes"])
            elif message.get("text") is not None:
                try:
                    payload = json.loads(message["text"])
                except json.JSONDecodeError:
                    logger.warning("[WS] Non-JSON text message ignored")
                    continue
                if not isinstance(payload, dict):
                    logger.warning("[WS] Non-object JSON message ignored")
                    continue

                msg_type = payload.get("type", "")
                if msg_type == "requestGreeting":
                    await pipeline.greet(str(payload.get("userName", "")))
                elif msg_type == "audioStream":
                    audio = decode_audio_payload(payload)
                    if audio is None:
                        logger.warning("[WS] audioStream without valid base64 audio ignored")
                        continue
                    pipeline.submit_audio(audio)
                else:
                    logger.debug("[WS] Unknown message type: %s", msg_type)
    except WebSocketDisconnect:
        logger.info("[WS] Client disconnected")
    finally:
        await pipeline.close()
