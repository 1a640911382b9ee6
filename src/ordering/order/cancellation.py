"""Order cancellation and stock release.

Cancellation is two steps. First the cancelled status is persisted; the
order now records which items owe stock back to the ledger. Then each
item's reservation is released against the stock ledger, keyed by its
reservation key so a repeated release never increments twice, and the
items are marked released. Re-issuing a cancel for an order that is
cancelled but still owes stock resumes the second step, and
``release_pending_stock`` sweeps up any order still owing stock.
"""

import json
import time

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from catalogue.ledger import get_stock_ledger
from ordering import config, errors
from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.participants import sync_participation
from ordering.order.queries import load_order
from ordering.order.status import OrderStatus
from ordering.utils.retry import with_retries

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class MarkStockReleased:
    order_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON: list of item ids


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = load_order(command.order_id)
        if not order.is_buyer(command.requester_id):
            raise errors.unauthorized("Only the buyer can cancel this order")

        if order.status == OrderStatus.CANCELLED.value and order.stock_release_pending:
            logger.info("cancellation_resumed", order_id=str(order.id))
            return str(order.id)

        order.cancel(reason=command.reason, actor_id=command.requester_id)
        repo.add(order)
        sync_participation(order)
        return str(order.id)

    @handle(MarkStockReleased)
    def mark_stock_released(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.mark_stock_released(json.loads(command.item_ids))
        repo.add(order)


def release_order_stock(order_id, deadline=None) -> Order:
    """Return stock for every cancelled or returned item that still owes it.

    Items released before a failure are recorded even when a later item
    exhausts its retries, so the next attempt only handles the remainder.
    """
    order = load_order(order_id)
    pending = order.items_awaiting_release()
    if not pending:
        return order

    ledger = get_stock_ledger()
    released = []
    try:
        for item in pending:
            with_retries(
                lambda item=item: ledger.release(str(item.product_id), item.quantity, item.reservation_key),
                "release_stock",
                deadline=deadline,
            )
            released.append(str(item.id))
    finally:
        if released:
            current_domain.process(
                MarkStockReleased(order_id=str(order.id), item_ids=json.dumps(released)),
                asynchronous=False,
            )
            logger.info("order_stock_released", order_id=str(order.id), items=len(released))

    return load_order(order_id)


def cancel_order(order_id, requester_id, reason=None) -> Order:
    current_domain.process(
        CancelOrder(order_id=order_id, requester_id=requester_id, reason=reason),
        asynchronous=False,
    )
    logger.info("order_cancelled", order_id=str(order_id), requester_id=str(requester_id))
    return release_order_stock(order_id, deadline=time.monotonic() + config.checkout_deadline_seconds())


def release_pending_stock() -> int:
    """Finish every stock release that ran out of retries.

    Returns the number of orders that no longer owe stock afterwards.
    """
    finished = 0
    for order in current_domain.repository_for(Order).owing_stock():
        try:
            if not release_order_stock(order.id).stock_release_pending:
                finished += 1
        except errors.TransientStoreError as exc:
            logger.error("order_stock_release_deferred", order_id=str(order.id), error=exc.message)
    return finished
