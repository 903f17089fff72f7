"""Update throttling for streamed replies.

Partial text is pushed to the chat platform at most once per interval.
Final pushes bypass the throttle; callers simply push without asking.
"""

import time
from typing import Callable, Optional

DEFAULT_UPDATE_INTERVAL = 1.0


class UpdateThrottler:
    """
    Tracks when the last partial update went out.

    ``clock`` returns seconds and defaults to ``time.monotonic``; tests
    inject their own.
    """

    def __init__(self, interval: float = DEFAULT_UPDATE_INTERVAL, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last_push: Optional[float] = None

    @property
    def last_push(self) -> Optional[float]:
        return self._last_push

    def ready(self) -> bool:
        """True when more than ``interval`` seconds passed since the last push."""
        if self._last_push is None:
            return True
        return self._clock() - self._last_push > self.interval

    def record(self) -> None:
        self._last_push = self._clock()
