"""Graph phase — turn the routed intent into reply text."""

from __future__ import annotations

import asyncio
import logging

from jarvis.constants import GENERATION_TIMEOUT
from jarvis.errors import GenerationError
from jarvis.graph.generator import ResponseGenerator
from jarvis.graph.intents import Intent
from jarvis.telemetry import stage_span

from .session_context import Utterance

logger = logging.getLogger(__name__)


async def run_generate(
    utterance: Utterance,
    intent: Intent,
    generator: ResponseGenerator,
    *,
    timeout: float = GENERATION_TIMEOUT,
) -> str:
    """Run the reply graph for *intent*. Raises ``GenerationError`` (also on timeout)."""
    with stage_span(
        "generate",
        session_id=utterance.session_id,
        seq=utterance.seq,
        **{"intent": type(intent).__name__},
    ):
        try:
            text = await asyncio.wait_for(generator.generate(intent), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationError(f"generation timed out after {timeout}s") from exc
        logger.info("[Graph] #%d reply: %.120s", utterance.seq, text)
        return text
