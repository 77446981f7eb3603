"""LangGraph node functions for the Jarvis reply graph."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from jarvis.constants import DEFAULT_MODEL, MODEL_MAX_TOKENS, SYSTEM_PROMPT
from jarvis.errors import GenerationError, LocalStatError

from .intents import DateQuery, JokeRequest, OpenDomain, SystemStatsQuery, TimeQuery
from .local_answers import STATS_APOLOGY, LocalAnswers
from .state import ReplyState

logger = logging.getLogger(__name__)

ChatModelProvider = Callable[[], BaseChatModel]


def build_chat_model(model: str | None = None) -> ChatAnthropic:
    """Create the Claude chat model from environment configuration."""
    api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    if not api_key:
        raise GenerationError("ANTHROPIC_API_KEY is not set")
    return ChatAnthropic(
        model=model or os.environ.get("JARVIS_LLM_MODEL", DEFAULT_MODEL),
        temperature=0.7,
        max_tokens=MODEL_MAX_TOKENS,
        api_key=api_key,
        max_retries=1,
    )


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    # Content blocks: keep only the text parts.
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def make_command_node(local: LocalAnswers):
    """Node answering TimeQuery / DateQuery / SystemStatsQuery / JokeRequest locally."""

    async def command_node(state: ReplyState) -> dict:
        intent = state["intent"]
        if isinstance(intent, TimeQuery):
            return {"response_text": local.current_time()}
        if isinstance(intent, DateQuery):
            return {"response_text": local.current_date()}
        if isinstance(intent, JokeRequest):
            return {"response_text": local.joke()}
        if isinstance(intent, SystemStatsQuery):
            try:
                return {"response_text": await local.system_stats()}
            except LocalStatError as exc:
                logger.warning("[Command] System stats unavailable: %s", exc)
                return {"response_text": STATS_APOLOGY, "degraded": True}
        raise GenerationError(f"command_node cannot answer {type(intent).__name__}")

    return command_node


def make_chat_node(get_model: ChatModelProvider):
    """Node sending an open-domain transcript to the language model.

    Each call is a fresh two-message exchange; no conversation history is kept.
    """

    async def chat_node(state: ReplyState) -> dict:
        intent = state["intent"]
        if not isinstance(intent, OpenDomain):
            raise GenerationError(f"chat_node cannot answer {type(intent).__name__}")

        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=intent.text),
        ]
        try:
            reply = await get_model().ainvoke(messages)
        except GenerationError:
            raise
        except Exception as exc:
            logger.error("[Chat] Model call failed: %s", exc)
            raise GenerationError(f"model call failed: {exc}") from exc

        text = _message_text(reply).strip()
        if not text:
            raise GenerationError("model returned an empty reply")
        logger.info("[Chat] Reply: %.120s", text)
        return {"response_text": text}

    return chat_node
