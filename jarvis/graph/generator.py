"""ResponseGenerator — turns a routed Intent into reply text."""

from __future__ import annotations

import logging

from langchain_core.language_models import BaseChatModel

from jarvis.errors import GenerationError

from .intents import Intent
from .local_answers import LocalAnswers
from .nodes import build_chat_model
from .router import compile_graph

logger = logging.getLogger(__name__)


class ResponseGenerator:
    """Runs the reply graph for one intent.

    Parameters
    ----------
    local : LocalAnswers
        Provider for the command intents.
    chat_model : BaseChatModel | None
        Model for open-domain replies. Built from the environment on first
        use when omitted, so a missing key only fails open-domain turns.
    """

    def __init__(
        self,
        local: LocalAnswers | None = None,
        chat_model: BaseChatModel | None = None,
    ) -> None:
        self._chat_model = chat_model
        self.graph = compile_graph(local or LocalAnswers(), self._get_chat_model)

    def _get_chat_model(self) -> BaseChatModel:
        if self._chat_model is None:
            self._chat_model = build_chat_model()
        return self._chat_model

    async def generate(self, intent: Intent) -> str:
        """Return the reply for *intent*. Raises ``GenerationError``."""
        result = await self.graph.ainvoke({"intent": intent})
        text = result.get("response_text", "")
        if not text:
            raise GenerationError(f"no reply produced for {type(intent).__name__}")
        if result.get("degraded"):
            logger.info("[Generator] Degraded reply for %s.", type(intent).__name__)
        return text
