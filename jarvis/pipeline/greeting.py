"""Greeting phase — personalised, time-of-day aware welcome audio.

Runs outside the utterance pipeline: it has no sequence number and never
touches utterance state or the artifact store.
"""

from __future__ import annotations

import logging
from datetime import datetime

from jarvis.audio.tts import CartesiaTTS, VoiceSpec
from jarvis.constants import DEFAULT_ASSISTANT_NAME, SYNTHESIS_TIMEOUT
from jarvis.errors import GreetingError, SynthesisError
from jarvis.telemetry import stage_span

from .tts_phase import synthesize_with_timeout

logger = logging.getLogger(__name__)


def salutation(hour: int) -> str:
    if 6 <= hour < 12:
        return "Good Morning Sir! "
    if 12 <= hour < 18:
        return "Good Afternoon Sir! "
    if 18 <= hour < 24:
        return "Good Evening Sir! "
    return "Good Night Sir! "


def build_greeting(
    user_name: str,
    now: datetime,
    assistant_name: str = DEFAULT_ASSISTANT_NAME,
) -> str:
    return (
        f"Welcome Back {user_name}! "
        f"{salutation(now.hour)}"
        f"{assistant_name} at your service. Please tell me how can I help you today?"
    )


async def run_greeting(
    user_name: str,
    tts_client: CartesiaTTS,
    *,
    voice: VoiceSpec,
    now: datetime | None = None,
    assistant_name: str = DEFAULT_ASSISTANT_NAME,
    session_id: str = "",
    timeout: float = SYNTHESIS_TIMEOUT,
) -> bytes:
    """Return synthesized greeting audio. Raises ``GreetingError``."""
    text = build_greeting(user_name.strip() or "there", now or datetime.now(), assistant_name)
    with stage_span("greeting", session_id=session_id):
        try:
            audio = await synthesize_with_timeout(text, tts_client, voice, timeout)
        except SynthesisError as exc:
            raise GreetingError(str(exc)) from exc
    logger.info("[Greeting] %s → %d bytes audio", text, len(audio))
    return audio
