"""ArtifactStore — transient per-utterance buffers keyed by (session, seq).

Replaces fixed shared file names: two utterances can never read or
overwrite each other's PCM or synthesized audio because every entry is
addressed by its ``UtteranceKey``. Entries are released after the
utterance's terminal event; ``sweep`` collects anything a crashed task
left behind.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from jarvis.constants import ARTIFACT_SWEEP_INTERVAL, ARTIFACT_TTL
from jarvis.utils import artifact_name

from .session_context import UtteranceKey

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    data: bytes
    stored_at: float = field(default_factory=time.monotonic)


class ArtifactStore:
    """In-process arena of utterance artifacts."""

    def __init__(
        self,
        *,
        ttl: float = ARTIFACT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[tuple[UtteranceKey, str], _Entry] = {}
        self._ttl = ttl
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, key: UtteranceKey, kind: str, data: bytes) -> None:
        self._entries[(key, kind)] = _Entry(data, self._clock())
        logger.debug(
            "[Artifacts] stored %s (%d bytes)", artifact_name(key.session_id, key.seq, kind), len(data)
        )

    def get(self, key: UtteranceKey, kind: str) -> bytes:
        """Return the artifact. Raises ``KeyError`` if absent or released."""
        return self._entries[(key, kind)].data

    def kinds(self, key: UtteranceKey) -> set[str]:
        return {kind for (k, kind) in self._entries if k == key}

    def release(self, key: UtteranceKey) -> int:
        """Drop every artifact of one utterance; returns how many were removed."""
        kinds = self.kinds(key)
        for kind in kinds:
            del self._entries[(key, kind)]
        return len(kinds)

    def release_session(self, session_id: str) -> int:
        doomed = [entry_key for entry_key in self._entries if entry_key[0].session_id == session_id]
        for entry_key in doomed:
            del self._entries[entry_key]
        if doomed:
            logger.info("[Artifacts] Released %d artifacts for %s", len(doomed), session_id)
        return len(doomed)

    def sweep(self, now: float | None = None) -> int:
        """Remove entries older than the TTL."""
        now = self._clock() if now is None else now
        doomed = [k for k, entry in self._entries.items() if now - entry.stored_at >= self._ttl]
        for entry_key in doomed:
            del self._entries[entry_key]
        if doomed:
            logger.warning("[Artifacts] Swept %d expired artifacts.", len(doomed))
        return len(doomed)

    async def run_sweeper(self, interval: float = ARTIFACT_SWEEP_INTERVAL) -> None:
        """Sweep forever; started as a task in the app lifespan."""
        while True:
            await asyncio.sleep(interval)
            self.sweep()
