"""STT phase — transcribe the utterance's PCM artifact via Deepgram."""

from __future__ import annotations

import asyncio
import logging

from jarvis.audio.stt import DeepgramSTT, RecognitionSpec
from jarvis.constants import STT_TIMEOUT
from jarvis.errors import RecognitionError, RecognitionKind
from jarvis.telemetry import stage_span

from .artifacts import ArtifactStore
from .session_context import Utterance

logger = logging.getLogger(__name__)


async def run_stt(
    utterance: Utterance,
    stt_client: DeepgramSTT,
    artifacts: ArtifactStore,
    *,
    spec: RecognitionSpec,
    timeout: float = STT_TIMEOUT,
) -> str:
    """Transcribe the stored PCM and return the transcript string.

    Returns an empty string for silence, including the ``NO_SPEECH``
    recognizer outcome. Other ``RecognitionError`` kinds propagate; a
    timeout is reported as ``UNAVAILABLE``.
    """
    pcm = artifacts.get(utterance.key, "pcm")
    with stage_span("stt", session_id=utterance.session_id, seq=utterance.seq, **{"audio.bytes": len(pcm)}):
        try:
            transcript = await asyncio.wait_for(stt_client.transcribe(pcm, spec), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise RecognitionError(
                RecognitionKind.UNAVAILABLE, f"transcription timed out after {timeout}s"
            ) from exc
        except RecognitionError as exc:
            if exc.kind is not RecognitionKind.NO_SPEECH:
                raise
            logger.info("[STT] #%d no speech detected.", utterance.seq)
            return ""

        transcript = transcript.strip()
        if not transcript:
            logger.info("[STT] #%d empty transcript — user may have been silent.", utterance.seq)
        return transcript
