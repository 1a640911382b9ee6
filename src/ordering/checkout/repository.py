"""Repository for the CheckoutAttempt journal."""

from ordering.checkout.attempt import AttemptStatus, CheckoutAttempt
from ordering.domain import ordering


@ordering.repository(part_of=CheckoutAttempt)
class CheckoutAttemptRepository:
    def find(self, idempotency_key) -> CheckoutAttempt | None:
        return self._dao.query.filter(idempotency_key=idempotency_key).all().first

    def in_flight_before(self, now) -> list[CheckoutAttempt]:
        """Attempts still started or reserved whose deadline is earlier than ``now``."""
        stale = []
        for status in (AttemptStatus.STARTED.value, AttemptStatus.RESERVED.value):
            for attempt in self._dao.query.filter(status=status).all().items:
                if attempt.deadline_at is not None and attempt.deadline_at < now:
                    stale.append(attempt)
        return stale

    def owing_stock(self) -> list[CheckoutAttempt]:
        """Compensated attempts whose reservations are not all back on the ledger."""
        return self._dao.query.filter(status=AttemptStatus.COMPENSATED.value, stock_released=False).all().items
