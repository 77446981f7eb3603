"""Cartesia Sonic TTS client returning single-channel PCM-16 audio."""

from __future__ import annotations

import base64
import json
import logging
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator

import websockets

from jarvis.constants import DEFAULT_LANGUAGE, TTS_ENCODING, TTS_SAMPLE_RATE
from jarvis.errors import SynthesisError

logger = logging.getLogger(__name__)

_DEFAULT_VOICE_ID = "ee7ea9f8-c0c1-498c-9279-764d6b56d189"  # Cartesia "Oliver - Customer Chap"


@dataclass(frozen=True)
class VoiceSpec:
    """Voice and output format for synthesis."""

    language_code: str = DEFAULT_LANGUAGE
    voice_id: str = _DEFAULT_VOICE_ID
    encoding: str = TTS_ENCODING
    sample_rate: int = TTS_SAMPLE_RATE

    @property
    def language(self) -> str:
        """Cartesia takes a bare language tag ("en"), not a locale ("en-US")."""
        return self.language_code.split("-", 1)[0].lower()


class CartesiaTTS:
    """Streams text to Cartesia Sonic and collects raw PCM-16 audio chunks.

    Parameters
    ----------
    api_key : str
        Cartesia API key (from CARTESIA_API_KEY env var).
    model_id : str
        Cartesia model to synthesize with.
    """

    WS_URL = "wss://api.cartesia.ai/tts/websocket"
    API_VERSION = "2025-04-16"

    def __init__(self, api_key: str, *, model_id: str = "sonic-3") -> None:
        self._api_key = api_key
        self._model_id = model_id

    def build_payload(self, text: str, voice: VoiceSpec, context_id: str) -> dict:
        return {
            "model_id": self._model_id,
            "transcript": text,
            "voice": {
                "mode": "id",
                "id": voice.voice_id,
            },
            "language": voice.language,
            "output_format": {
                "container": "raw",
                "encoding": voice.encoding,
                "sample_rate": voice.sample_rate,
            },
            "context_id": context_id,
            "continue": False,
        }

    async def synthesize(self, text: str, voice: VoiceSpec | None = None) -> bytes:
        """Synthesize *text* and return the complete audio as bytes.

        Raises ``SynthesisError`` if Cartesia fails or returns no audio.
        """
        chunks: list[bytes] = []
        async for chunk in self.synthesize_stream(text, voice):
            chunks.append(chunk)
        if not chunks:
            logger.warning("[TTS] Zero audio chunks — Cartesia may have rejected the request.")
            raise SynthesisError("no audio returned")
        audio = b"".join(chunks)
        logger.info("[TTS] Synthesized %d bytes in %d chunks.", len(audio), len(chunks))
        return audio

    async def synthesize_stream(
        self, text: str, voice: VoiceSpec | None = None
    ) -> AsyncGenerator[bytes, None]:
        """Synthesize *text* and yield audio chunks as they arrive.

        Uses Cartesia's WebSocket streaming endpoint for low TTFB.
        """
        voice = voice or VoiceSpec()
        if not self._api_key:
            logger.error("[TTS] CARTESIA_API_KEY is empty — cannot synthesize audio.")
            raise SynthesisError("missing API key")
        if not text.strip():
            raise SynthesisError("empty text")

        ws_url = (
            f"{self.WS_URL}"
            f"?api_key={self._api_key}"
            f"&cartesia_version={self.API_VERSION}"
        )

        context_id = str(uuid.uuid4())
        payload = json.dumps(self.build_payload(text, voice, context_id))

        try:
            async with websockets.connect(ws_url) as ws:
                await ws.send(payload)
                logger.info("[TTS] Synthesizing: %.80s...", text)

                async for raw in ws:
                    # Binary frame = raw PCM audio
                    if isinstance(raw, bytes):
                        yield raw
                        continue

                    # Text frame = JSON control message
                    try:
                        msg = json.loads(raw)
                    except json.JSONDecodeError:
                        continue

                    msg_type = msg.get("type", "")
                    if msg_type == "done":
                        logger.debug("[TTS] Stream complete for context %s", context_id)
                        break
                    elif msg_type == "error":
                        logger.error("[TTS] Cartesia error: %s", msg)
                        raise SynthesisError(f"Cartesia error: {msg.get('error', 'unknown')}")
                    elif msg.get("data"):
                        yield base64.b64decode(msg["data"])

        except (websockets.exceptions.WebSocketException, OSError) as exc:
            logger.error("[TTS] WebSocket error: %s", exc)
            raise SynthesisError(f"websocket failure: {exc}") from exc
