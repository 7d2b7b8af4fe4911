"""Repeated execution of an operation with fixed pauses between attempts."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

T = TypeVar("T")

RETRY_ATTEMPTS = 3
RETRY_INTERVALS_SECONDS = (1, 3, 5)


def call_with_retry(
    fn: Callable[[], T], sleep: Callable[[float], object] = time.sleep
) -> T:
    """Call ``fn`` and retry it on failure.

    ``fn`` is attempted once plus ``RETRY_ATTEMPTS`` more times, pausing for
    the configured intervals in between. Returns the first successful result
    or re-raises the exception of the last attempt.
    """
    for interval in RETRY_INTERVALS_SECONDS[:RETRY_ATTEMPTS]:
        try:
            return fn()
        except Exception:
            sleep(interval)
    return fn()