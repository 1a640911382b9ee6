"""Recording payment outcomes reported by the external payment gateway."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.queries import load_order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class RecordPaymentOutcome:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    transaction_id = String(max_length=255)


@ordering.command_handler(part_of=Order)
class PaymentOutcomeHandler:
    @handle(RecordPaymentOutcome)
    def record_payment_outcome(self, command):
        order = load_order(command.order_id)
        order.record_payment_outcome(command.status, command.transaction_id)
        current_domain.repository_for(Order).add(order)
        logger.info("payment_outcome_recorded", order_id=str(order.id), status=command.status)


def record_payment_outcome(order_id, status, transaction_id=None) -> Order:
    current_domain.process(
        RecordPaymentOutcome(order_id=order_id, status=status, transaction_id=transaction_id),
        asynchronous=False,
    )
    return load_order(order_id)
