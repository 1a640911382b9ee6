"""Seller-driven status updates.

A seller who is the only seller on an order drives the order-wide status
with its item cascade. On an order shared by several sellers, each seller
moves only their own items and the order status is derived from all items,
so one seller shipping never marks another seller's items as shipped.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering import errors
from ordering.domain import ordering
from ordering.order.cancellation import release_order_stock
from ordering.order.order import Order
from ordering.order.participants import sync_participation
from ordering.order.queries import load_order
from ordering.order.status import OrderStatus, parse_order_status

logger = structlog.get_logger(__name__)

# Order-level statuses that are always applied through the item path
_ITEM_DRIVEN_STATES = {OrderStatus.RETURNED}


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    new_status = String(required=True, max_length=20)
    note = String(max_length=500)
    tracking_number = String(max_length=100)
    estimated_delivery = DateTime()


@ordering.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        order = load_order(command.order_id)
        if not order.is_seller(command.requester_id):
            raise errors.unauthorized("Only a seller on this order can update its status")

        target = parse_order_status(command.new_status)
        sole_seller = order.seller_ids == [str(command.requester_id)]

        if sole_seller and target not in _ITEM_DRIVEN_STATES:
            order.update_status(target.value, command.note, command.requester_id)
            if command.tracking_number:
                order.set_tracking_number(command.requester_id, command.tracking_number)
        else:
            if target == OrderStatus.PROCESSING:
                raise errors.ConflictError(
                    "InvalidTransition",
                    "Processing applies to the whole order and cannot be set by one of several sellers",
                )
            order.update_seller_items(
                command.requester_id,
                target.value,
                note=command.note,
                actor_id=command.requester_id,
                tracking_number=command.tracking_number,
            )

        if command.estimated_delivery:
            order.estimated_delivery = command.estimated_delivery

        current_domain.repository_for(Order).add(order)
        sync_participation(order)
        return order.stock_release_pending


def _already_applied(order, seller_id, new_status) -> bool:
    target = parse_order_status(new_status)
    if target not in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
        return False
    items = order.items_for_seller(seller_id)
    return bool(items) and all(i.status == target.value for i in items)


def update_order_status(
    order_id,
    requester_id,
    new_status,
    note=None,
    tracking_number=None,
    estimated_delivery=None,
) -> Order:
    """Apply a seller's status update, then release stock for cancelled or returned items.

    An order that still owes stock from an earlier update has that release
    finished first. If the request repeats the cancellation or return that
    left the stock owing, finishing the release is all it does.
    """
    order = load_order(order_id)
    if order.stock_release_pending and order.is_seller(requester_id):
        order = release_order_stock(order_id)
        if _already_applied(order, requester_id, new_status):
            logger.info("order_stock_release_resumed", order_id=str(order_id), requester_id=str(requester_id))
            return order

    release_needed = current_domain.process(
        UpdateOrderStatus(
            order_id=order_id,
            requester_id=requester_id,
            new_status=new_status,
            note=note,
            tracking_number=tracking_number,
            estimated_delivery=estimated_delivery,
        ),
        asynchronous=False,
    )
    logger.info("order_status_updated", order_id=str(order_id), new_status=new_status, requester_id=str(requester_id))
    if release_needed:
        return release_order_stock(order_id)
    return load_order(order_id)
