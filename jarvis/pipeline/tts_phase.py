"""TTS phase — synthesize the reply text into a per-utterance audio artifact."""

from __future__ import annotations

import asyncio
import logging

from jarvis.audio.tts import CartesiaTTS, VoiceSpec
from jarvis.constants import SYNTHESIS_TIMEOUT
from jarvis.errors import SynthesisError
from jarvis.telemetry import stage_span

from .artifacts import ArtifactStore
from .session_context import Utterance

logger = logging.getLogger(__name__)


async def synthesize_with_timeout(
    text: str,
    tts_client: CartesiaTTS,
    voice: VoiceSpec,
    timeout: float = SYNTHESIS_TIMEOUT,
) -> bytes:
    try:
        return await asyncio.wait_for(tts_client.synthesize(text, voice), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise SynthesisError(f"synthesis timed out after {timeout}s") from exc


async def run_tts(
    utterance: Utterance,
    text: str,
    tts_client: CartesiaTTS,
    artifacts: ArtifactStore,
    *,
    voice: VoiceSpec,
    timeout: float = SYNTHESIS_TIMEOUT,
) -> bytes:
    """Synthesize *text*, store the audio under the utterance key and return it."""
    with stage_span("tts", session_id=utterance.session_id, seq=utterance.seq, **{"text.len": len(text)}):
        audio = await synthesize_with_timeout(text, tts_client, voice, timeout)
        artifacts.put(utterance.key, "tts", audio)
        logger.info("[TTS] #%d → %d bytes audio", utterance.seq, len(audio))
        return audio
