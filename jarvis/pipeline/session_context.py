"""Session and Utterance — per-connection and per-submission state.

A ``Session`` lives exactly as long as its WebSocket. Each inbound audio
chunk becomes an ``Utterance`` with the next sequence number; the
orchestrator drives it through the stage states below.
"""

from __future__ import annotations

import enum
import itertools
import time
from dataclasses import dataclass, field

from jarvis.utils import generate_session_id


class SessionState(str, enum.Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    CLOSED = "closed"


class UtteranceState(str, enum.Enum):
    RECEIVED = "received"
    TRANSCODING = "transcoding"
    TRANSCRIBING = "transcribing"
    ROUTING = "routing"
    GENERATING = "generating"
    SYNTHESIZING = "synthesizing"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({UtteranceState.DELIVERED, UtteranceState.FAILED, UtteranceState.CANCELLED})


@dataclass(frozen=True)
class UtteranceKey:
    """Storage key for everything derived from one utterance."""

    session_id: str
    seq: int


@dataclass
class Utterance:
    """One audio submission and the artifacts each stage derives from it."""

    session_id: str
    seq: int
    audio: bytes
    state: UtteranceState = UtteranceState.RECEIVED
    transcript: str | None = None
    response_text: str | None = None
    failed_stage: UtteranceState | None = None
    created_at: float = field(default_factory=time.monotonic)

    @property
    def key(self) -> UtteranceKey:
        return UtteranceKey(self.session_id, self.seq)

    def advance(self, state: UtteranceState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"utterance {self.seq} already {self.state.value}")
        self.state = state

    def fail(self) -> None:
        """Mark failed in whatever stage is current."""
        if not self.state.is_terminal:
            self.failed_stage = self.state
            self.state = UtteranceState.FAILED

    def cancel(self) -> None:
        if not self.state.is_terminal:
            self.state = UtteranceState.CANCELLED


@dataclass
class Session:
    """All per-connection state for a single WebSocket."""

    session_id: str = field(default_factory=generate_session_id)
    created_at: float = field(default_factory=time.time)
    state: SessionState = SessionState.IDLE
    pipeline_state: UtteranceState | None = None  # latest stage entered; None when idle
    cancelled: bool = False
    _seq: itertools.count = field(default_factory=lambda: itertools.count(1), init=False, repr=False)

    def connect(self) -> None:
        self.state = SessionState.CONNECTED

    def next_utterance(self, audio: bytes) -> Utterance:
        """Create the next utterance; sequence numbers are strictly increasing."""
        return Utterance(session_id=self.session_id, seq=next(self._seq), audio=audio)

    def close(self) -> None:
        self.state = SessionState.CLOSED
        self.cancelled = True
        self.pipeline_state = None

    @property
    def is_open(self) -> bool:
        return self.state is not SessionState.CLOSED
