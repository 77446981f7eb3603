"""Centralized ID and key helpers for Jarvis."""

import uuid


def generate_session_id() -> str:
    """Generate a unique session ID.

    Returns:
        ``session-`` followed by a 16-character hex string.
    """
    return f"session-{uuid.uuid4().hex[:16]}"


def artifact_name(session_id: str, seq: int, kind: str) -> str:
    """Return the storage name for one utterance artifact.

    Args:
        session_id: Owning session.
        seq: Utterance sequence number within the session.
        kind: Artifact kind, e.g. ``pcm`` or ``tts``.

    Returns:
        A name that is unique per ``(session_id, seq, kind)``.
    """
    return f"{session_id}/{seq:06d}.{kind}"
