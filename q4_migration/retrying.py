"""Bounded retry helper used by the login, navigation and bulk loops.

Example::

    outcome = retry_until(lambda: count_rows(page), stop=lambda n: n == 0, attempts=5)
    if not outcome.ok:
        ...
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    ok: bool
    value: Optional[T]
    attempts: int
    error: Optional[BaseException] = None


def backoff(base: float, attempt: int) -> float:
    """Linear backoff: ``base`` seconds times the 1-based attempt number."""

    return base * attempt


def retry_until(
    action: Callable[[], T],
    stop: Optional[Callable[[T], bool]] = None,
    *,
    attempts: int = 3,
    delay: float = 0.0,
    delay_for: Optional[Callable[[int], float]] = None,
    sleep: Callable[[float], Any] = time.sleep,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    on_error: Optional[Callable[[int, BaseException], None]] = None,
    label: str = "action",
) -> RetryOutcome[T]:
    """Run ``action`` until ``stop`` accepts its result or attempts run out.

    Without a ``stop`` predicate any result that does not raise counts as a
    success. Exceptions listed in ``exceptions`` are logged, passed to
    ``on_error`` and retried; anything else propagates. ``delay_for`` takes
    the attempt number and overrides the fixed ``delay``.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_value: Optional[T] = None
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            last_value = action()
            last_error = None
        except exceptions as exc:
            last_error = exc
            logger.debug("%s failed on attempt %d/%d: %s", label, attempt, attempts, exc)
            if on_error is not None:
                on_error(attempt, exc)
        else:
            if stop is None or stop(last_value):
                return RetryOutcome(True, last_value, attempt)
            logger.debug("%s not done after attempt %d/%d", label, attempt, attempts)

        if attempt < attempts:
            wait = delay_for(attempt) if delay_for is not None else delay
            if wait > 0:
                sleep(wait)

    return RetryOutcome(False, last_value, attempts, last_error)
