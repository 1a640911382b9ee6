"""Order aggregate: the immutable record of a checkout and its fulfillment state.

An order is created once by the checkout coordinator via ``Order.place`` and
never physically deleted. Its identity, line items and price snapshot never
change. What changes is status: the order-level status, each item's status,
the append-only timeline that audits every status change, and the
communication log between buyer and sellers.

State machine (see ``ordering.order.status``):
    pending → confirmed → processing → shipped → delivered
    cancelled (before shipment), returned (after shipment)

Stock is released for any item that ends up cancelled or returned. The
release itself happens outside the aggregate against the stock ledger; the
aggregate only tracks which items still owe a release.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from ordering import errors
from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderMessageAdded,
    OrderPlaced,
    OrderStatusChanged,
    OrderStockReleased,
    PaymentOutcomeRecorded,
    SellerItemsStatusChanged,
)
from ordering.order.pricing import compute_order_totals
from ordering.order.status import (
    BUYER_CANCELLABLE_STATES,
    TERMINAL_ITEM_STATES,
    ItemStatus,
    OrderStatus,
    assert_order_transition,
    can_transition_item,
    cascade_item_status,
    derive_order_status,
    item_status_for,
    parse_order_status,
)


class PaymentMethod(Enum):
    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class MessageType(Enum):
    MESSAGE = "message"
    SYSTEM = "system"
    NOTIFICATION = "notification"


SYSTEM_ACTOR = "system"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A shipping or billing address captured at checkout time."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@ordering.value_object(part_of="Order")
class OrderTotals:
    subtotal = Float(required=True, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)


@ordering.value_object(part_of="Order")
class PaymentDetails:
    """Payment as reported by the external gateway. Nothing is settled here."""

    method = String(required=True, choices=PaymentMethod)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    transaction_id = String(max_length=255)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    status = String(choices=ItemStatus, default=ItemStatus.PENDING.value)
    tracking_number = String(max_length=100)
    reservation_key = String(max_length=255)
    stock_released = Boolean(default=False)


@ordering.entity(part_of="Order")
class TimelineEntry:
    sequence = Integer(required=True)
    status = String(required=True, max_length=20)
    note = String(max_length=500)
    actor_id = Identifier()
    occurred_at = DateTime(required=True)


@ordering.entity(part_of="Order")
class OrderMessage:
    sender_id = Identifier(required=True)
    recipient_id = Identifier(required=True)
    text = Text(required=True)
    message_type = String(choices=MessageType, default=MessageType.MESSAGE.value)
    sent_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    buyer_id = Identifier(required=True)
    checkout_key = String(max_length=255)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address, required=True)
    billing_address = ValueObject(Address, required=True)
    payment = ValueObject(PaymentDetails)
    totals = ValueObject(OrderTotals)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    timeline = HasMany(TimelineEntry)
    communication = HasMany(OrderMessage)
    notes = Text()
    cancellation_reason = String(max_length=500)
    estimated_delivery = DateTime()
    stock_release_owed = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        buyer_id,
        lines,
        shipping_address,
        billing_address,
        payment_method,
        notes=None,
        checkout_key=None,
        tax=0.0,
    ):
        """Create a pending order from price-snapshotted lines.

        ``lines`` are dicts with product_id, seller_id, name, quantity,
        unit_price, shipping_cost and reservation_key. Totals are computed
        here, once.
        """
        if not lines:
            raise errors.ValidationError("EmptyCart", "An order needs at least one line")

        totals = compute_order_totals(lines, tax=tax)
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            buyer_id=buyer_id,
            checkout_key=checkout_key,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment=PaymentDetails(method=payment_method, amount=totals["total"]),
            totals=OrderTotals(**totals),
            status=OrderStatus.PENDING.value,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(
                OrderItem(
                    product_id=line["product_id"],
                    seller_id=line["seller_id"],
                    name=line.get("name"),
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    shipping_cost=line.get("shipping_cost", 0.0),
                    reservation_key=line.get("reservation_key"),
                )
            )
        order._append_timeline(OrderStatus.PENDING.value, "Order created", buyer_id, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                buyer_id=str(buyer_id),
                items=json.dumps(
                    [
                        {
                            "product_id": str(line["product_id"]),
                            "seller_id": str(line["seller_id"]),
                            "quantity": line["quantity"],
                            "unit_price": line["unit_price"],
                        }
                        for line in lines
                    ]
                ),
                subtotal=totals["subtotal"],
                shipping_cost=totals["shipping_cost"],
                tax=totals["tax"],
                total=totals["total"],
                checkout_key=checkout_key,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Participants
    # -------------------------------------------------------------------
    @property
    def seller_ids(self) -> list[str]:
        seen = []
        for item in self.items:
            if str(item.seller_id) not in seen:
                seen.append(str(item.seller_id))
        return seen

    def is_buyer(self, user_id) -> bool:
        return str(self.buyer_id) == str(user_id)

    def is_seller(self, user_id) -> bool:
        return str(user_id) in self.seller_ids

    def is_participant(self, user_id) -> bool:
        return self.is_buyer(user_id) or self.is_seller(user_id)

    def items_for_seller(self, seller_id):
        return [i for i in self.items if str(i.seller_id) == str(seller_id)]

    # -------------------------------------------------------------------
    # Timeline
    # -------------------------------------------------------------------
    def history(self):
        return sorted(self.timeline, key=lambda e: e.sequence)

    def _append_timeline(self, status, note, actor_id, at=None):
        self.add_timeline(
            TimelineEntry(
                sequence=len(self.timeline) + 1,
                status=status,
                note=note,
                actor_id=actor_id,
                occurred_at=at or datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def update_status(self, new_status, note=None, actor_id=None):
        """Order-wide status change with item cascade.

        Appends exactly one timeline entry. Use ``update_seller_items`` when
        only one seller's items should move.
        """
        target = parse_order_status(new_status)
        previous = self.status
        assert_order_transition(previous, target, [i.status for i in self.items])

        now = datetime.now(UTC)
        changed = 0
        for item in self.items:
            moved_to = cascade_item_status(item.status, target)
            if moved_to is not None:
                item.status = moved_to.value
                changed += 1

        self.status = target.value
        self.updated_at = now
        self.stock_release_owed = self.stock_release_pending
        self._append_timeline(target.value, note or f"Order status updated to {target.value}", actor_id, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                note=note,
                actor_id=actor_id,
                items_changed=changed,
                changed_at=now,
            )
        )

    def update_seller_items(self, seller_id, new_status, note=None, actor_id=None, tracking_number=None):
        """Move only ``seller_id``'s items, then re-derive the order status.

        Other sellers' items are never touched. Items that cannot make the
        move (already past it, or terminal) are left as they are; if none of
        the seller's items can move, nothing changes.
        """
        target = item_status_for(parse_order_status(new_status))
        candidates = [i for i in self.items_for_seller(seller_id) if ItemStatus(i.status) not in TERMINAL_ITEM_STATES]
        movable = [i for i in candidates if can_transition_item(ItemStatus(i.status), target)]
        if not movable:
            raise errors.invalid_transition(
                ", ".join(sorted({i.status for i in self.items_for_seller(seller_id)})) or "no items",
                target.value,
            )

        now = datetime.now(UTC)
        for item in movable:
            item.status = target.value
            if tracking_number:
                item.tracking_number = tracking_number

        self.status = derive_order_status([i.status for i in self.items]).value
        self.updated_at = now
        self.stock_release_owed = self.stock_release_pending
        self._append_timeline(target.value, note or f"Order status updated to {target.value}", actor_id, now)

        self.raise_(
            SellerItemsStatusChanged(
                order_id=str(self.id),
                seller_id=str(seller_id),
                new_item_status=target.value,
                order_status=self.status,
                item_ids=json.dumps([str(i.id) for i in movable]),
                tracking_number=tracking_number,
                changed_at=now,
            )
        )

    def set_tracking_number(self, seller_id, tracking_number):
        for item in self.items_for_seller(seller_id):
            item.tracking_number = tracking_number

    def cancel(self, reason=None, actor_id=None):
        """Buyer cancellation, allowed only before the order is processed."""
        current = OrderStatus(self.status)
        if current not in BUYER_CANCELLABLE_STATES:
            raise errors.invalid_transition(current.value, OrderStatus.CANCELLED.value)

        reason = reason or "Cancelled by buyer"
        self.update_status(OrderStatus.CANCELLED.value, reason, actor_id)
        self.cancellation_reason = reason

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=actor_id,
                cancelled_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Stock release bookkeeping
    # -------------------------------------------------------------------
    def items_awaiting_release(self):
        return [i for i in self.items if ItemStatus(i.status) in TERMINAL_ITEM_STATES and not i.stock_released]

    @property
    def stock_release_pending(self) -> bool:
        return bool(self.items_awaiting_release())

    def mark_stock_released(self, item_ids):
        released = []
        for item in self.items:
            if str(item.id) in item_ids and not item.stock_released:
                item.stock_released = True
                released.append({"product_id": str(item.product_id), "quantity": item.quantity})
        if not released:
            return

        now = datetime.now(UTC)
        self.updated_at = now
        self.stock_release_owed = self.stock_release_pending
        self.raise_(OrderStockReleased(order_id=str(self.id), items=json.dumps(released), released_at=now))

    # -------------------------------------------------------------------
    # Communication
    # -------------------------------------------------------------------
    def add_message(self, sender_id, recipient_id, text, message_type=MessageType.MESSAGE.value):
        """Append to the communication log. No status or stock effect."""
        if message_type == MessageType.MESSAGE.value and not self.is_participant(sender_id):
            raise errors.unauthorized("Only the buyer or a seller can message on this order")
        if not self.is_participant(recipient_id):
            raise errors.ValidationError("InvalidInput", f"{recipient_id} is not a participant of this order")
        if not text or not text.strip():
            raise errors.ValidationError("InvalidInput", "Message text is required")

        now = datetime.now(UTC)
        self.add_communication(
            OrderMessage(
                sender_id=sender_id,
                recipient_id=recipient_id,
                text=text.strip(),
                message_type=message_type,
                sent_at=now,
            )
        )
        self.raise_(
            OrderMessageAdded(
                order_id=str(self.id),
                sender_id=str(sender_id),
                recipient_id=str(recipient_id),
                message_type=message_type,
                sent_at=now,
            )
        )

    def messages(self):
        return sorted(self.communication, key=lambda m: m.sent_at)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment_outcome(self, status, transaction_id=None):
        try:
            outcome = PaymentStatus(status)
        except ValueError:
            raise errors.ValidationError("InvalidInput", f"Unknown payment status: {status!r}") from None

        self.payment = PaymentDetails(
            method=self.payment.method,
            status=outcome.value,
            amount=self.payment.amount,
            currency=self.payment.currency,
            transaction_id=transaction_id or self.payment.transaction_id,
        )
        now = datetime.now(UTC)
        self.updated_at = now

        if outcome == PaymentStatus.COMPLETED:
            self.add_message(
                SYSTEM_ACTOR,
                self.buyer_id,
                f"Payment received for order {self.order_number}",
                message_type=MessageType.SYSTEM.value,
            )

        self.raise_(
            PaymentOutcomeRecorded(
                order_id=str(self.id),
                status=outcome.value,
                transaction_id=transaction_id,
                amount=self.payment.amount,
                recorded_at=now,
            )
        )
