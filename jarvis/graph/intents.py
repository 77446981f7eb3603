"""Intent variants and the keyword router that classifies transcripts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeQuery:
    pass


@dataclass(frozen=True)
class DateQuery:
    pass


@dataclass(frozen=True)
class SystemStatsQuery:
    pass


@dataclass(frozen=True)
class JokeRequest:
    pass


@dataclass(frozen=True)
class OpenDomain:
    text: str


Intent = Union[TimeQuery, DateQuery, SystemStatsQuery, JokeRequest, OpenDomain]

LOCAL_INTENTS: tuple[type, ...] = (TimeQuery, DateQuery, SystemStatsQuery, JokeRequest)

# Ordered: the first keyword found anywhere in the transcript wins.
KEYWORD_TABLE: tuple[tuple[str, Callable[[], Intent]], ...] = (
    ("time", TimeQuery),
    ("date", DateQuery),
    ("cpu", SystemStatsQuery),
    ("joke", JokeRequest),
)


def route(transcript: str) -> Intent:
    """Classify *transcript*; anything without a command keyword is ``OpenDomain``."""
    text_lower = transcript.lower()
    for keyword, intent_type in KEYWORD_TABLE:
        if keyword in text_lower:
            intent = intent_type()
            logger.info("[Router] %r matched %r → %s", transcript, keyword, type(intent).__name__)
            return intent
    logger.info("[Router] No command keyword — open-domain reply.")
    return OpenDomain(transcript)


def is_local(intent: Intent) -> bool:
    """True for intents answered in-process without a network call."""
    return isinstance(intent, LOCAL_INTENTS)
