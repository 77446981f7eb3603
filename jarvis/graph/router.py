"""LangGraph StateGraph definition for the Jarvis reply graph."""

from __future__ import annotations

from langgraph.graph import END, START, StateGraph

from .intents import is_local
from .local_answers import LocalAnswers
from .nodes import ChatModelProvider, make_chat_node, make_command_node
from .state import ReplyState


def _route_by_intent(state: ReplyState) -> str:
    """Local command intents never reach the model."""
    if is_local(state["intent"]):
        return "command_node"
    return "chat_node"


def compile_graph(local: LocalAnswers, get_model: ChatModelProvider):
    """Compile the reply graph.

    No checkpointer is attached: every invocation starts from an empty state,
    so replies carry no memory of earlier utterances.
    """
    builder = StateGraph(ReplyState)
    builder.add_node("command_node", make_command_node(local))
    builder.add_node("chat_node", make_chat_node(get_model))

    builder.add_conditional_edges(
        START,
        _route_by_intent,
        {
            "command_node": "command_node",
            "chat_node": "chat_node",
        },
    )
    builder.add_edge("command_node", END)
    builder.add_edge("chat_node", END)
    return builder.compile()
