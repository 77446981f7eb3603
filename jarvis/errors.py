"""Pipeline error taxonomy and the JarvisError envelope sent over WebSocket.

Every stage of the utterance pipeline raises a ``PipelineError`` subclass.
The orchestrator catches it, logs the collaborator detail server-side and
forwards only the fixed, client-safe ``public_message`` in a consistent
JSON shape.

Error codes
-----------
E_DECODE_FAILED      Inbound audio container could not be transcoded.
E_STT_FAILED         Speech-to-text collaborator error.
E_GENERATION_FAILED  Language-model completion error or timeout.
E_TTS_FAILED         Text-to-speech collaborator error.
E_LOCAL_STAT         Local system-info provider failed.
E_GREETING_FAILED    Greeting synthesis failed.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    E_DECODE_FAILED = "E_DECODE_FAILED"
    E_STT_FAILED = "E_STT_FAILED"
    E_GENERATION_FAILED = "E_GENERATION_FAILED"
    E_TTS_FAILED = "E_TTS_FAILED"
    E_LOCAL_STAT = "E_LOCAL_STAT"
    E_GREETING_FAILED = "E_GREETING_FAILED"


class PipelineError(Exception):
    """Base class for stage failures. ``str(exc)`` is for logs only."""

    code: ErrorCode = ErrorCode.E_GENERATION_FAILED
    public_message: str = "Something went wrong while handling your request"
    recoverable: bool = True


class DecodeError(PipelineError):
    code = ErrorCode.E_DECODE_FAILED
    public_message = "Error converting audio"


class RecognitionKind(str, enum.Enum):
    UNAVAILABLE = "unavailable"
    INVALID_AUDIO = "invalid_audio"
    NO_SPEECH = "no_speech"


class RecognitionError(PipelineError):
    code = ErrorCode.E_STT_FAILED
    public_message = "Error during speech recognition"

    def __init__(self, kind: RecognitionKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class GenerationError(PipelineError):
    code = ErrorCode.E_GENERATION_FAILED
    public_message = "Error generating a response"


class SynthesisError(PipelineError):
    code = ErrorCode.E_TTS_FAILED
    public_message = "Error generating speech for the response"


class LocalStatError(PipelineError):
    code = ErrorCode.E_LOCAL_STAT
    public_message = "Error reading system stats"


class GreetingError(PipelineError):
    code = ErrorCode.E_GREETING_FAILED
    public_message = "Error generating greeting"


@dataclass
class JarvisError:
    code: str
    message: str
    recoverable: bool = True
    session_id: str = ""
    seq: int | None = None
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def from_exception(
        cls, exc: PipelineError, *, session_id: str = "", seq: int | None = None
    ) -> "JarvisError":
        """Build the client envelope for *exc* without leaking its internals."""
        return cls(
            code=exc.code.value,
            message=exc.public_message,
            recoverable=exc.recoverable,
            session_id=session_id,
            seq=seq,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": "error",
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "session_id": self.session_id,
            "seq": self.seq,
        }
        if self.details:
            d["details"] = self.details
        return d


async def send_error(websocket: Any, error: JarvisError) -> None:
    """Serialize *error* and send it as a JSON message on *websocket*.

    Silently catches send failures (the socket may already be closed).
    """
    try:
        await websocket.send_json(error.to_dict())
        logger.warning(
            "[JarvisError] Sent %s to client: %s (session=%s seq=%s)",
            error.code,
            error.message,
            error.session_id,
            error.seq,
        )
    except Exception as exc:
        logger.debug("[JarvisError] Failed to send error to client: %s", exc)
