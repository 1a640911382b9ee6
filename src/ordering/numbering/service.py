"""Order number formatting: PREFIX + YYMMDD + 4-digit daily sequence."""

import re
from datetime import UTC, datetime

import structlog

from ordering import config
from ordering.errors import ConflictError
from ordering.numbering.port import OrderSequence

logger = structlog.get_logger(__name__)

MAX_DAILY_SEQUENCE = 9999


class OrderNumberService:
    """Issues human-readable, date-sequenced order numbers.

    The sequence comes from an atomic counter keyed by prefix and calendar
    day, so two checkouts racing on the same day can never read the same
    count. ``clock`` is injectable for tests that pin the day.
    """

    def __init__(self, sequence: OrderSequence, prefix: str | None = None, clock=None) -> None:
        self.sequence = sequence
        self.prefix = prefix if prefix is not None else config.order_number_prefix()
        self.clock = clock or (lambda: datetime.now(UTC))

    def next_number(self) -> str:
        day = self.clock().strftime("%y%m%d")
        seq = self.sequence.next_value(f"{self.prefix}:{day}")
        if seq > MAX_DAILY_SEQUENCE:
            logger.error("order_sequence_exhausted", prefix=self.prefix, day=day)
            raise ConflictError("SequenceExhausted", f"Daily order sequence exhausted for {day}")
        return f"{self.prefix}{day}{seq:04d}"

    def pattern(self) -> re.Pattern:
        return re.compile(rf"^{re.escape(self.prefix)}\d{{6}}\d{{4}}$")
