"""Read side for orders: GetOrder, ListOrders and the order view shape."""

import math

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering import errors
from ordering.order.order import Order
from ordering.order.participants import ParticipantRole, participation_page
from ordering.order.status import parse_order_status

SORTABLE_FIELDS = {"created_at", "total", "order_number", "status"}
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise errors.order_not_found(order_id) from None


def get_order(order_id, requester_id) -> Order:
    """Return the order if the requester is its buyer or one of its sellers."""
    order = load_order(order_id)
    if not order.is_participant(requester_id):
        raise errors.unauthorized()
    return order


def list_orders(
    user_id,
    role=ParticipantRole.BUYER,
    status_filter=None,
    page=1,
    page_size=DEFAULT_PAGE_SIZE,
    sort_by="created_at",
    sort_order="desc",
):
    """Orders the user bought (role=buyer) or sells items in (role=seller).

    Returns ``(orders, pagination)``; the pagination dict carries page,
    page_size, total and pages.
    """
    if role not in (ParticipantRole.BUYER, ParticipantRole.SELLER):
        raise errors.ValidationError("InvalidInput", f"Unknown role: {role!r}")
    if sort_by not in SORTABLE_FIELDS:
        raise errors.ValidationError("InvalidInput", f"Cannot sort by {sort_by!r}")
    if sort_order not in ("asc", "desc"):
        raise errors.ValidationError("InvalidInput", f"Unknown sort order: {sort_order!r}")
    if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
        raise errors.ValidationError("InvalidInput", "page must be >= 1 and page_size between 1 and 100")

    criteria = {"participant_id": str(user_id), "role": role}
    if status_filter:
        criteria["status"] = parse_order_status(status_filter).value

    ordering_key = sort_by if sort_order == "asc" else f"-{sort_by}"
    results = participation_page(criteria, ordering_key, (page - 1) * page_size, page_size)

    repo = current_domain.repository_for(Order)
    orders = [repo.get(row.order_id) for row in results.items]
    pagination = {
        "page": page,
        "page_size": page_size,
        "total": results.total,
        "pages": math.ceil(results.total / page_size) if results.total else 0,
    }
    return orders, pagination


def order_view(order: Order, viewer_id=None) -> dict:
    """Serializable view of an order.

    A seller who is not the buyer sees only their own items, as in the
    marketplace's seller dashboard. Totals stay the order's totals.
    """
    items = order.items
    if viewer_id is not None and not order.is_buyer(viewer_id) and order.is_seller(viewer_id):
        items = order.items_for_seller(viewer_id)

    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "buyer_id": str(order.buyer_id),
        "status": order.status,
        "items": [
            {
                "item_id": str(i.id),
                "product_id": str(i.product_id),
                "seller_id": str(i.seller_id),
                "name": i.name,
                "quantity": i.quantity,
                "unit_price": i.unit_price,
                "shipping_cost": i.shipping_cost,
                "status": i.status,
                "tracking_number": i.tracking_number,
            }
            for i in items
        ],
        "shipping_address": order.shipping_address.to_dict(),
        "billing_address": order.billing_address.to_dict(),
        "payment": order.payment.to_dict() if order.payment else None,
        "totals": order.totals.to_dict(),
        "timeline": [
            {
                "status": e.status,
                "note": e.note,
                "actor_id": str(e.actor_id) if e.actor_id else None,
                "occurred_at": e.occurred_at.isoformat(),
            }
            for e in order.history()
        ],
        "communication": [
            {
                "sender_id": str(m.sender_id),
                "recipient_id": str(m.recipient_id),
                "text": m.text,
                "message_type": m.message_type,
                "sent_at": m.sent_at.isoformat(),
            }
            for m in order.messages()
        ],
        "notes": order.notes,
        "cancellation_reason": order.cancellation_reason,
        "estimated_delivery": order.estimated_delivery.isoformat() if order.estimated_delivery else None,
        "stock_release_pending": order.stock_release_pending,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }
