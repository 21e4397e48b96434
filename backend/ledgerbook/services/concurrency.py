# Overview: Retry helper for compare-and-swap writes that lose to a concurrent writer.

from __future__ import annotations

import logging
import time

from ..store import StaleWriteError

logger = logging.getLogger(__name__)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.01, retry_on=(StaleWriteError,)):
    """
    Execute a read-modify-write with retry on compare-and-swap conflicts.

    func must re-read whatever it depends on each time it is called; only
    the conflict types in retry_on are retried, any other error propagates
    on the first attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.info("write conflict (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
