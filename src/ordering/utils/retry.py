"""Bounded exponential backoff for retryable store operations."""

import random
import time

import structlog

from ordering import config
from ordering.errors import TransientStoreError

logger = structlog.get_logger(__name__)


def with_retries(func, operation, attempts=None, base_delay=None, max_delay=2.0, deadline=None):
    """Call ``func`` until it succeeds, retrying only on TransientStoreError.

    Every attempt must be idempotent: a timeout does not mean the write
    failed. ``deadline`` is a ``time.monotonic()`` value past which no new
    attempt starts; the last transient error is re-raised once attempts or
    time run out.
    """
    attempts = max(1, attempts if attempts is not None else config.checkout_max_retries())
    delay = base_delay if base_delay is not None else config.checkout_retry_base_delay()

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except TransientStoreError as exc:
            out_of_time = deadline is not None and time.monotonic() + delay > deadline
            if attempt == attempts or out_of_time:
                logger.error("retries_exhausted", operation=operation, attempts=attempt, error=exc.message)
                raise
            logger.warning("retrying_after_transient_error", operation=operation, attempt=attempt, error=exc.message)
            time.sleep(delay + random.uniform(0, delay * 0.1))
            delay = min(delay * 2, max_delay)
