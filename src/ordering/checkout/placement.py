"""PlaceOrder: the single unit of work that makes a checkout durable.

Persists the order, writes its participation index rows, empties the cart
and completes the attempt journal, all or nothing. Replaying it for an
attempt that already completed returns the existing order id; an attempt
that was compensated or restarted since the caller reserved is refused.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Dict, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering import errors
from ordering.cart.cart import ShoppingCart
from ordering.checkout.attempt import AttemptStatus, CheckoutAttempt
from ordering.domain import ordering
from ordering.order.order import Address, Order
from ordering.order.participants import sync_participation


@ordering.command(part_of="Order")
class PlaceOrder:
    idempotency_key = String(required=True, max_length=255)
    attempt_no = Integer(required=True, min_value=1)
    user_id = Identifier(required=True)
    shipping_address = Dict(required=True)
    billing_address = Dict(required=True)
    payment_method = String(required=True, max_length=20)
    notes = Text()
    tax = Float(default=0.0)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        attempt_repo = current_domain.repository_for(CheckoutAttempt)
        attempt = attempt_repo.get(command.idempotency_key)
        if attempt.is_completed:
            return attempt.order_id
        if attempt.status != AttemptStatus.RESERVED.value or attempt.attempt_no != command.attempt_no:
            raise errors.ConflictError(
                "CheckoutSuperseded",
                f"Checkout attempt {command.attempt_no} is no longer holding its reservations",
            )

        order_repo = current_domain.repository_for(Order)
        if order_repo.by_number(attempt.order_number) is not None:
            raise errors.ConflictError("DuplicateOrderNumber", f"Order number {attempt.order_number} is already taken")

        order = Order.place(
            order_number=attempt.order_number,
            buyer_id=command.user_id,
            lines=attempt.line_list(),
            shipping_address=Address(**command.shipping_address),
            billing_address=Address(**command.billing_address),
            payment_method=command.payment_method,
            notes=command.notes,
            checkout_key=command.idempotency_key,
            tax=command.tax,
        )
        order_repo.add(order)
        sync_participation(order)

        cart_repo = current_domain.repository_for(ShoppingCart)
        try:
            cart = cart_repo.get(command.user_id)
        except ObjectNotFoundError:
            cart = ShoppingCart.create(user_id=command.user_id)
        cart.clear(reason="checked_out")
        cart_repo.add(cart)

        attempt.complete(order.id)
        attempt_repo.add(attempt)
        return str(order.id)
