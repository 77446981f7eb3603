"""UtteranceTaskQueue — one asyncio task per in-flight utterance.

Owns the tasks a session spawns so the session can cancel every one of
them on disconnect and wait for their cleanup to finish.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class UtteranceTaskQueue:
    """Tracks running utterance coroutines for a single session."""

    def __init__(self, session_id: str = "") -> None:
        self._session_id = session_id
        self._tasks: dict[int, asyncio.Task] = {}
        self._failed_count: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, seq: int, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Schedule *coro* for utterance *seq* as an asyncio.Task."""
        task = asyncio.create_task(self._run(seq, coro), name=f"{self._session_id}#{seq}")
        self._tasks[seq] = task
        task.add_done_callback(lambda t: self._tasks.pop(seq, None))
        logger.info(
            "[TaskQueue] Utterance %d submitted (session=%s). Active: %d",
            seq,
            self._session_id,
            self.active_count(),
        )
        return task

    def active_count(self) -> int:
        """Return the number of utterances still running."""
        return len(self._tasks)

    @property
    def failed_count(self) -> int:
        """Utterance tasks that escaped with an unexpected exception."""
        return self._failed_count

    def cancel_all(self) -> list[asyncio.Task]:
        """Cancel every running utterance (e.g. on disconnect)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("[TaskQueue] Cancelled %d utterance(s) for %s.", len(tasks), self._session_id)
        return tasks

    async def join(self) -> None:
        """Wait until every submitted utterance task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, seq: int, coro: Coroutine[Any, Any, Any]) -> None:
        """Internal runner — nothing escapes into the event loop's handler."""
        try:
            await coro
        except asyncio.CancelledError:
            logger.warning("[TaskQueue] Utterance %d was cancelled (session=%s).", seq, self._session_id)
            raise
        except Exception as exc:
            self._failed_count += 1
            logger.error(
                "[TaskQueue] Utterance %d crashed (session=%s): %s",
                seq,
                self._session_id,
                exc,
                exc_info=True,
            )
