"""Transcode phase — compressed browser audio → PCM artifact."""

from __future__ import annotations

import asyncio
import logging

from jarvis.audio.transcoder import FfmpegTranscoder, PcmSpec
from jarvis.constants import TRANSCODE_TIMEOUT
from jarvis.errors import DecodeError
from jarvis.telemetry import stage_span

from .artifacts import ArtifactStore
from .session_context import Utterance

logger = logging.getLogger(__name__)


async def run_transcode(
    utterance: Utterance,
    transcoder: FfmpegTranscoder,
    artifacts: ArtifactStore,
    *,
    source_format: str,
    target: PcmSpec,
    timeout: float = TRANSCODE_TIMEOUT,
) -> bytes:
    """Decode the utterance's audio and store the PCM under its key.

    Returns the PCM bytes. Raises ``DecodeError`` (also on timeout).
    """
    with stage_span(
        "transcode",
        session_id=utterance.session_id,
        seq=utterance.seq,
        **{"audio.bytes": len(utterance.audio), "audio.format": source_format},
    ):
        try:
            pcm = await asyncio.wait_for(
                transcoder.transcode(utterance.audio, source_format, target), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            raise DecodeError(f"transcoding timed out after {timeout}s") from exc

        artifacts.put(utterance.key, "pcm", pcm)
        logger.info("[Transcode] #%d → %d bytes PCM", utterance.seq, len(pcm))
        return pcm
