"""Order and item status lattice.

Fulfillment moves forward only:

    order:  pending < confirmed < processing < shipped < delivered
    item:   pending < confirmed < shipped < delivered

Skipping ahead is allowed (a seller may ship straight from pending).
``cancelled`` is reachable before anything ships, ``returned`` only after.
Both are absorbing.
"""

from enum import Enum

from ordering import errors


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class ItemStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


_ORDER_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.CONFIRMED: 1,
    OrderStatus.PROCESSING: 2,
    OrderStatus.SHIPPED: 3,
    OrderStatus.DELIVERED: 4,
}

_ITEM_RANK = {
    ItemStatus.PENDING: 0,
    ItemStatus.CONFIRMED: 1,
    ItemStatus.SHIPPED: 2,
    ItemStatus.DELIVERED: 3,
}

TERMINAL_ORDER_STATES = {OrderStatus.CANCELLED, OrderStatus.RETURNED}
TERMINAL_ITEM_STATES = {ItemStatus.CANCELLED, ItemStatus.RETURNED}

# Order-wide updates to these statuses cascade to the items
CASCADING_STATES = {
    OrderStatus.CONFIRMED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
}

# States from which the buyer may cancel
BUYER_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

_SHIPPED_ITEM_STATES = {ItemStatus.SHIPPED, ItemStatus.DELIVERED}
_PRE_SHIPMENT_ORDER_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
_PRE_SHIPMENT_ITEM_STATES = {ItemStatus.PENDING, ItemStatus.CONFIRMED}


def parse_order_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise errors.invalid_status(value) from None


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    if current in TERMINAL_ORDER_STATES or current == target:
        return False
    if target == OrderStatus.CANCELLED:
        return current in _PRE_SHIPMENT_ORDER_STATES
    if target == OrderStatus.RETURNED:
        return current in (OrderStatus.SHIPPED, OrderStatus.DELIVERED)
    return _ORDER_RANK[target] > _ORDER_RANK[current]


def can_transition_item(current: ItemStatus, target: ItemStatus) -> bool:
    if current in TERMINAL_ITEM_STATES or current == target:
        return False
    if target == ItemStatus.CANCELLED:
        return current in _PRE_SHIPMENT_ITEM_STATES
    if target == ItemStatus.RETURNED:
        return current in _SHIPPED_ITEM_STATES
    return _ITEM_RANK[target] > _ITEM_RANK[current]


def assert_order_transition(current, target, item_statuses=()):
    current, target = OrderStatus(current), OrderStatus(target)
    if not can_transition_order(current, target):
        raise errors.invalid_transition(current.value, target.value)
    if target == OrderStatus.CANCELLED and any(ItemStatus(s) in _SHIPPED_ITEM_STATES for s in item_statuses):
        raise errors.ConflictError(
            "InvalidTransition", "Cannot cancel an order with shipped or delivered items"
        )


def item_status_for(order_status: OrderStatus) -> ItemStatus:
    """Item-level counterpart of an order status. ``processing`` has none."""
    if order_status == OrderStatus.PROCESSING:
        raise errors.invalid_transition("item", order_status.value)
    return ItemStatus(order_status.value)


def cascade_item_status(item_status, order_target):
    """Return the new status for an item under an order-wide update, or None to leave it.

    Only cascading targets move items. An item moves when it is behind the
    target in the item lattice; for ``cancelled`` that means any item not
    yet shipped. Terminal items never move.
    """
    current = ItemStatus(item_status)
    target = OrderStatus(order_target)
    if target not in CASCADING_STATES or current in TERMINAL_ITEM_STATES:
        return None

    item_target = item_status_for(target)
    if item_target == ItemStatus.CANCELLED:
        return item_target if current in _PRE_SHIPMENT_ITEM_STATES else None
    if _ITEM_RANK[current] < _ITEM_RANK[item_target]:
        return item_target
    return None


def derive_order_status(item_statuses) -> OrderStatus:
    """Order-level status as a projection over its items.

    The order sits at the least-advanced live item. When every item is
    terminal it is ``cancelled``, unless at least one item was returned.
    """
    statuses = [ItemStatus(s) for s in item_statuses]
    live = [s for s in statuses if s not in TERMINAL_ITEM_STATES]
    if not live:
        if ItemStatus.RETURNED in statuses:
            return OrderStatus.RETURNED
        return OrderStatus.CANCELLED
    slowest = min(live, key=_ITEM_RANK.__getitem__)
    return OrderStatus(slowest.value)
