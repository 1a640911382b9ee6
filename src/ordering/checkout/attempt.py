"""Checkout attempt journal, the saga log for one checkout request.

One record per idempotency key. The coordinator writes it before touching
the stock ledger and advances it after each step, so a retried request (or
the recovery sweep) can tell what already happened:

    started → reserved → completed
        ↘         ↘
         compensated  (a later retry with the same key starts attempt_no + 1)

Compensation is claimed before any reservation is released, so once an
attempt reads compensated nothing may place an order from it. Releases
that fail leave ``stock_released`` unset for the recovery sweep.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering


class AttemptStatus(Enum):
    STARTED = "started"
    RESERVED = "reserved"
    COMPLETED = "completed"
    COMPENSATED = "compensated"


def reservation_key(idempotency_key, attempt_no, product_id) -> str:
    return f"{idempotency_key}:{attempt_no}:{product_id}"


@ordering.aggregate
class CheckoutAttempt:
    idempotency_key = String(identifier=True, required=True, max_length=255)
    user_id = Identifier(required=True)
    status = String(choices=AttemptStatus, default=AttemptStatus.STARTED.value)
    attempt_no = Integer(default=1, min_value=1)
    lines = Text()  # JSON: price-snapshotted lines with reservation keys
    order_number = String(max_length=20)
    order_id = Identifier()
    failure_kind = String(max_length=50)
    failure_message = String(max_length=500)
    deadline_at = DateTime()
    stock_released = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def start(cls, idempotency_key, user_id, lines, deadline_at):
        now = datetime.now(UTC)
        attempt = cls(
            idempotency_key=idempotency_key,
            user_id=user_id,
            status=AttemptStatus.STARTED.value,
            attempt_no=1,
            deadline_at=deadline_at,
            created_at=now,
            updated_at=now,
        )
        attempt._set_lines(lines)
        return attempt

    def restart(self, lines, deadline_at):
        """Begin a fresh attempt after an earlier one was compensated."""
        self.attempt_no += 1
        self.status = AttemptStatus.STARTED.value
        self.order_number = None
        self.failure_kind = None
        self.failure_message = None
        self.stock_released = False
        self.deadline_at = deadline_at
        self._set_lines(lines)

    def _set_lines(self, lines):
        keyed = [
            {**line, "reservation_key": reservation_key(self.idempotency_key, self.attempt_no, line["product_id"])}
            for line in lines
        ]
        self.lines = json.dumps(keyed)
        self.updated_at = datetime.now(UTC)

    def line_list(self) -> list[dict]:
        return json.loads(self.lines) if self.lines else []

    @property
    def is_completed(self) -> bool:
        return self.status == AttemptStatus.COMPLETED.value

    @property
    def is_compensated(self) -> bool:
        return self.status == AttemptStatus.COMPENSATED.value

    @property
    def in_flight(self) -> bool:
        return self.status in (AttemptStatus.STARTED.value, AttemptStatus.RESERVED.value)

    def mark_reserved(self):
        self.status = AttemptStatus.RESERVED.value
        self.updated_at = datetime.now(UTC)

    def assign_order_number(self, order_number):
        self.order_number = order_number
        self.updated_at = datetime.now(UTC)

    def complete(self, order_id):
        self.status = AttemptStatus.COMPLETED.value
        self.order_id = str(order_id)
        self.updated_at = datetime.now(UTC)

    def extend_deadline(self, deadline_at):
        """A resumed attempt runs under the deadline of the request resuming it."""
        self.deadline_at = deadline_at
        self.updated_at = datetime.now(UTC)

    def compensate(self, failure_kind, failure_message):
        """Claim the attempt for rollback. Its reservations are released afterwards."""
        self.status = AttemptStatus.COMPENSATED.value
        self.failure_kind = failure_kind
        self.failure_message = (failure_message or "")[:500]
        self.updated_at = datetime.now(UTC)

    def mark_stock_released(self):
        self.stock_released = True
        self.updated_at = datetime.now(UTC)

    @property
    def owes_stock(self) -> bool:
        """Compensated, but the ledger has not yet taken every reservation back."""
        return self.is_compensated and not self.stock_released
