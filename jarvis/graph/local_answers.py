"""In-process answers for command intents: clock, system stats, jokes.

Nothing here touches the network. The clock, CPU sampler and RNG are
injectable so replies are deterministic under test.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime
from typing import Callable, Sequence

import psutil

from jarvis.constants import LOCAL_STAT_TIMEOUT
from jarvis.errors import LocalStatError

logger = logging.getLogger(__name__)

JOKES: tuple[str, ...] = (
    "I told my computer I needed a break, and it said no problem, it would go to sleep.",
    "Why do programmers prefer dark mode? Because light attracts bugs.",
    "I would tell you a UDP joke, but you might not get it.",
    "Parallel lines have so much in common. It's a shame they'll never meet.",
    "I'm reading a book about anti-gravity. It's impossible to put down.",
    "Why did the scarecrow win an award? Because he was outstanding in his field.",
    "There are 10 kinds of people: those who understand binary and those who don't.",
    "I asked the librarian for books about paranoia. She whispered, they're right behind you.",
)

STATS_APOLOGY = "Sorry, I couldn't read the system stats right now."


def format_time(now: datetime) -> str:
    """12-hour clock without a leading zero on the hour, e.g. ``3:45:02 PM``."""
    hour = now.hour % 12 or 12
    return f"{hour}:{now:%M:%S} {'AM' if now.hour < 12 else 'PM'}"


def format_date(now: datetime) -> str:
    """Month/day/year without zero padding, e.g. ``10/7/2026``."""
    return f"{now.month}/{now.day}/{now.year}"


def _sample_cpu() -> float:
    return psutil.cpu_percent(interval=0.1)


class LocalAnswers:
    """Resolves the deterministic command intents."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = datetime.now,
        cpu_sampler: Callable[[], float] = _sample_cpu,
        jokes: Sequence[str] = JOKES,
        rng: random.Random | None = None,
        stat_timeout: float = LOCAL_STAT_TIMEOUT,
    ) -> None:
        self._clock = clock
        self._cpu_sampler = cpu_sampler
        self._jokes = tuple(jokes)
        self._rng = rng or random.Random()
        self._stat_timeout = stat_timeout

    def current_time(self) -> str:
        return f"The current time is {format_time(self._clock())}."

    def current_date(self) -> str:
        return f"The current date is {format_date(self._clock())}."

    async def system_stats(self) -> str:
        """Sample CPU usage off the event loop.

        Raises ``LocalStatError`` if psutil fails or the sample times out.
        """
        try:
            usage = await asyncio.wait_for(
                asyncio.to_thread(self._cpu_sampler), timeout=self._stat_timeout
            )
        except asyncio.TimeoutError as exc:
            raise LocalStatError("CPU sampling timed out") from exc
        except (psutil.Error, OSError) as exc:
            raise LocalStatError(f"CPU sampling failed: {exc}") from exc
        return f"CPU Usage is at {usage}%."

    def joke(self) -> str:
        return self._rng.choice(self._jokes)
