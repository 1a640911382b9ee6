"""Recovery sweep for checkouts abandoned mid-flight.

A process that dies between reserving stock and placing the order leaves
its attempt ``started`` or ``reserved``. Once such an attempt is past its
deadline nobody is going to finish it, so the sweep marks it compensated
and releases its reservations. A later retry with the same key then starts
a fresh attempt. Compensations whose releases failed earlier are finished
by the same sweep.
"""

from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from catalogue.ledger import get_catalogue
from ordering import errors
from ordering.checkout.attempt import CheckoutAttempt
from ordering.checkout.coordinator import release_attempt

logger = structlog.get_logger(__name__)


def stale_attempts(now=None) -> list[CheckoutAttempt]:
    now = now or datetime.now(UTC)
    return current_domain.repository_for(CheckoutAttempt).in_flight_before(now)


def recover_stale_checkouts(now=None, catalogue=None) -> int:
    """Compensate every in-flight attempt whose deadline has passed. Returns the count."""
    now = now or datetime.now(UTC)
    catalogue = catalogue or get_catalogue()
    repo = current_domain.repository_for(CheckoutAttempt)

    recovered = 0
    for stale in repo.in_flight_before(now):
        # Re-read: the attempt may have completed or been resumed since it was listed
        attempt = repo.get(stale.idempotency_key)
        if not attempt.in_flight or attempt.deadline_at >= now:
            continue
        attempt.compensate("CheckoutAbandoned", "Checkout exceeded its deadline without completing")
        repo.add(attempt)
        recovered += 1
        logger.warning("stale_checkout_compensated", checkout_key=attempt.idempotency_key, attempt_no=attempt.attempt_no)

    for attempt in repo.owing_stock():
        try:
            released = release_attempt(catalogue, attempt)
        except errors.TransientStoreError as exc:
            logger.error("checkout_release_deferred", checkout_key=attempt.idempotency_key, error=exc.message)
            continue
        attempt.mark_stock_released()
        repo.add(attempt)
        logger.info(
            "checkout_reservations_released",
            checkout_key=attempt.idempotency_key,
            attempt_no=attempt.attempt_no,
            reservations_released=released,
        )
    return recovered
