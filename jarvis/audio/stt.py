"""Deepgram pre-recorded STT client for complete PCM-16 utterances."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from jarvis.constants import DEFAULT_LANGUAGE, TARGET_ENCODING, TARGET_SAMPLE_RATE
from jarvis.errors import RecognitionError, RecognitionKind

logger = logging.getLogger(__name__)

# Client errors that mean "the audio itself is unusable" rather than an outage.
_INVALID_AUDIO_STATUSES = frozenset({400, 413, 415, 422})


@dataclass(frozen=True)
class RecognitionSpec:
    """Recognizer configuration sent alongside every request."""

    sample_rate: int = TARGET_SAMPLE_RATE
    encoding: str = TARGET_ENCODING
    language_code: str = DEFAULT_LANGUAGE
    punctuation: bool = True
    channels: int = 1


class DeepgramSTT:
    """Sends one complete PCM buffer to Deepgram and returns the transcript.

    Parameters
    ----------
    api_key : str
        Deepgram API key (from DEEPGRAM_API_KEY env var).
    model : str
        Deepgram model name.
    max_retries : int
        Extra attempts on transient failures (network errors, 5xx responses).
    """

    API_URL = "https://api.deepgram.com/v1/listen"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "nova-2",
        max_retries: int = 2,
        retry_backoff: float = 1.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff

    def build_url(self, spec: RecognitionSpec) -> str:
        return (
            f"{self.API_URL}"
            f"?encoding={spec.encoding}&sample_rate={spec.sample_rate}"
            f"&channels={spec.channels}&language={spec.language_code}"
            f"&model={self._model}&punctuate={'true' if spec.punctuation else 'false'}"
        )

    async def transcribe(self, pcm: bytes, spec: RecognitionSpec | None = None) -> str:
        """Transcribe *pcm* and return the transcript string.

        Returns ``""`` when Deepgram legitimately recognises nothing (silence).
        Raises ``RecognitionError`` with kind ``UNAVAILABLE`` (auth, outage,
        network), ``INVALID_AUDIO`` (rejected payload) or ``NO_SPEECH``
        (response without any result channel).
        """
        spec = spec or RecognitionSpec()
        if not self._api_key:
            logger.error("[STT] DEEPGRAM_API_KEY not set — cannot transcribe.")
            raise RecognitionError(RecognitionKind.UNAVAILABLE, "missing API key")
        if not pcm:
            raise RecognitionError(RecognitionKind.INVALID_AUDIO, "empty PCM buffer")

        url = self.build_url(spec)
        headers = {
            "Authorization": f"Token {self._api_key}",
            "Content-Type": "audio/raw",
        }

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(url, headers=headers, content=pcm)
                    response.raise_for_status()
                    data = response.json()
                return self._parse(data)

            except httpx.HTTPStatusError as exc:
                last_error = exc
                status = exc.response.status_code
                # Only server errors (5xx) are retried
                if status in _INVALID_AUDIO_STATUSES:
                    logger.error("[STT] Deepgram rejected audio (%d).", status)
                    raise RecognitionError(RecognitionKind.INVALID_AUDIO, f"HTTP {status}") from exc
                if status < 500:
                    logger.error("[STT] Deepgram client error %d: %s", status, exc)
                    raise RecognitionError(RecognitionKind.UNAVAILABLE, f"HTTP {status}") from exc
                logger.warning(
                    "[STT] Deepgram server error %d (attempt %d/%d)",
                    status, attempt + 1, self._max_retries + 1,
                )
            except (httpx.TransportError, ValueError) as exc:
                # TransportError covers connect/read/timeouts; ValueError a non-JSON body.
                last_error = exc
                logger.warning(
                    "[STT] Deepgram network error (attempt %d/%d): %s",
                    attempt + 1, self._max_retries + 1, exc,
                )

            if attempt < self._max_retries:
                await asyncio.sleep(self._retry_backoff * (attempt + 1))

        logger.error("[STT] All %d transcription attempts failed: %s", self._max_retries + 1, last_error)
        raise RecognitionError(RecognitionKind.UNAVAILABLE, str(last_error)) from last_error

    @staticmethod
    def _parse(data: dict) -> str:
        try:
            channels = data["results"]["channels"]
        except (KeyError, TypeError):
            logger.warning("[STT] Malformed Deepgram response: %.200s", data)
            raise RecognitionError(RecognitionKind.NO_SPEECH, "no results in response") from None
        if not channels:
            raise RecognitionError(RecognitionKind.NO_SPEECH, "no result channels")

        # One line per channel, first alternative each.
        lines = []
        for channel in channels:
            alternatives = channel.get("alternatives") or []
            if alternatives:
                lines.append((alternatives[0].get("transcript") or "").strip())
        transcript = "\n".join(line for line in lines if line)
        logger.info("[STT] Transcript: %s", transcript)
        return transcript
