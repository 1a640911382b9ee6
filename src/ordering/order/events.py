"""Domain events for the Order aggregate.

Events are immutable facts recorded alongside every state change. The order
itself carries the authoritative state (timeline, items, totals); events
feed downstream consumers such as notifications and analytics.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A checkout completed and the order was persisted."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Float(required=True)
    shipping_cost = Float()
    tax = Float()
    total = Float(required=True)
    checkout_key = String()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order-level status changed, possibly cascading to items."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    note = String()
    actor_id = Identifier()
    items_changed = Integer()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class SellerItemsStatusChanged:
    """One seller moved their own items on a shared order."""

    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    new_item_status = String(required=True)
    order_status = String(required=True)
    item_ids = Text()  # JSON: list of item ids
    tracking_number = String()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_by = Identifier()
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStockReleased:
    """Reserved stock for cancelled or returned items went back to the ledger."""

    __version__ = 1

    order_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    released_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderMessageAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    sender_id = Identifier(required=True)
    recipient_id = Identifier(required=True)
    message_type = String()
    sent_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentOutcomeRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    status = String(required=True)
    transaction_id = String()
    amount = Float()
    recorded_at = DateTime(required=True)
