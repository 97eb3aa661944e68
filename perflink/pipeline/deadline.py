"""Wall-clock budget for one batch invocation.

Scheduled runs execute under a hard host time limit.  The orchestrator asks
:meth:`JobDeadline.should_stop` before starting each product, and the
resolver caps every live query at :meth:`JobDeadline.remaining`, so the job
exits cleanly with unresolved products left for the next run.
"""

from __future__ import annotations

import time
from typing import Callable


class JobDeadline:
    """Monotonic deadline with a safety margin.

    Parameters
    ----------
    budget_seconds:
        Total time the job may run, measured from construction.
    margin_seconds:
        Stop starting new work once fewer than this many seconds remain.
    clock:
        Monotonic clock; injectable for tests.
    """

    def __init__(
        self,
        budget_seconds: float,
        margin_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._started = clock()
        self._end = self._started + max(budget_seconds, 0.0)
        self._margin = max(margin_seconds, 0.0)

    @classmethod
    def unlimited(cls) -> JobDeadline:
        return cls(float("inf"))

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> float:
        return max(self._end - self._clock(), 0.0)

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def should_stop(self) -> bool:
        """True once the remaining time has fallen within the margin."""
        return self.remaining() <= self._margin
