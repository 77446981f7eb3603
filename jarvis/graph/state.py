"""ReplyState — the LangGraph state container for one reply."""

from typing import TypedDict
from typing_extensions import NotRequired

from .intents import Intent


class ReplyState(TypedDict):
    """State passed through the reply graph.

    Fields
    ------
    intent : routed intent of the transcript (input).
    response_text : the reply to speak (output).
    degraded : True when a local provider failed and an apology was substituted.
    """

    intent: Intent
    response_text: NotRequired[str]
    degraded: NotRequired[bool]
