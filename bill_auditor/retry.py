"""
Retry with exponential backoff for the one external call in the core.

Kept separate from the detection pass so callers can swap the policy
(or disable retries with ``max_attempts=1``) without touching detection.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from .exceptions import ReviewerUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed attempt count, exponential backoff capped at ``max_delay``."""

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 8.0
    retry_on: tuple[type[BaseException], ...] = (ReviewerUnavailableError,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)

    def call(
        self,
        func: Callable[..., T],
        *args,
        cancelled: threading.Event | None = None,
        **kwargs,
    ) -> T:
        """Invoke ``func``, retrying on ``retry_on`` errors. The last error is re-raised.

        Once ``cancelled`` is set no further attempt is started; the error of
        the attempt in flight is re-raised instead.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                if attempt == self.max_attempts or _is_set(cancelled):
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "Attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt, self.max_attempts, e, delay,
                )
                self.sleep(delay)
                if _is_set(cancelled):
                    logger.info("Retry cancelled after attempt %d/%d", attempt, self.max_attempts)
                    raise
        raise AssertionError("unreachable")  # pragma: no cover


def _is_set(event: threading.Event | None) -> bool:
    return event is not None and event.is_set()


NO_RETRY = RetryPolicy(max_attempts=1)
