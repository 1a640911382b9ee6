"""Checkout Coordinator: turns a user's cart into exactly one order.

The stock ledger and the order repository are separate stores, so the
checkout is a saga rather than one transaction:

1. Journal the attempt under the caller's idempotency key.
2. Reserve every line on the stock ledger (atomic check-and-decrement per
   product, keyed ``{idempotency_key}:{attempt_no}:{product_id}``).
3. Allocate the order number once and journal it.
4. Process ``PlaceOrder``: order, index, cart and journal commit together.

Any failure after step 1 releases every reservation of the attempt before
the error is returned, leaving cart, orders and stock as they were. A crash
leaves the journal in flight; retrying with the same key re-runs the same
reservations (the ledger ignores repeats) and the same order number, so
retries never double-reserve or double-create. Stale in-flight attempts
are compensated by ``ordering.checkout.recovery``.
"""

import time
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.exceptions import ValidationError as FieldValidationError
from protean.utils.globals import current_domain

from catalogue.ledger import get_catalogue
from catalogue.ledger.port import ReservationStatus
from ordering import config, errors
from ordering.cart.cart import ShoppingCart
from ordering.checkout.attempt import CheckoutAttempt
from ordering.checkout.placement import PlaceOrder
from ordering.numbering import get_order_numbers
from ordering.order.order import Address, PaymentMethod
from ordering.order.queries import load_order
from ordering.utils.retry import with_retries

logger = structlog.get_logger(__name__)


class CheckoutCoordinator:
    def __init__(self, catalogue=None, order_numbers=None, deadline_seconds=None, max_retries=None, clock=None):
        self.catalogue = catalogue or get_catalogue()
        self.order_numbers = order_numbers or get_order_numbers()
        self.deadline_seconds = deadline_seconds if deadline_seconds is not None else config.checkout_deadline_seconds()
        self.max_retries = max_retries if max_retries is not None else config.checkout_max_retries()
        self.clock = clock or time.monotonic

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def checkout(
        self,
        user_id,
        shipping_address,
        billing_address,
        payment_method,
        notes=None,
        idempotency_key=None,
        tax=0.0,
    ):
        """Create the order for ``user_id``'s cart, or raise with nothing changed."""
        key = idempotency_key or uuid4().hex
        with structlog.contextvars.bound_contextvars(checkout_key=key, user_id=str(user_id)):
            return self._checkout(user_id, shipping_address, billing_address, payment_method, notes, key, tax)

    def _checkout(self, user_id, shipping_address, billing_address, payment_method, notes, key, tax):
        attempt = self._find_attempt(key)
        if attempt is not None:
            if str(attempt.user_id) != str(user_id):
                raise errors.ConflictError("IdempotencyKeyReused", "Idempotency key belongs to another checkout")
            if attempt.is_completed:
                logger.info("checkout_replayed", order_id=attempt.order_id)
                return load_order(attempt.order_id)

        shipping = self._address(shipping_address, "shipping_address")
        billing = self._address(billing_address, "billing_address")
        self._validate_payment_method(payment_method)

        deadline = self.clock() + self.deadline_seconds
        deadline_at = datetime.now(UTC) + timedelta(seconds=self.deadline_seconds)
        attempt = self._journal(attempt, key, user_id, deadline_at)

        try:
            self._reserve_all(attempt, deadline)
            self._ensure_current(attempt)
            attempt.mark_reserved()
            self._save(attempt)

            if not attempt.order_number:
                self._check_deadline(deadline)
                attempt.assign_order_number(self._retry(self.order_numbers.next_number, "allocate_order_number", deadline))
                self._save(attempt)

            self._check_deadline(deadline)
            order_id = self._retry(
                lambda: self._place_order(attempt, user_id, shipping, billing, payment_method, notes, tax),
                "place_order",
                deadline,
            )
        except Exception as exc:
            self._compensate(attempt, exc)
            raise

        logger.info("checkout_completed", order_id=order_id, order_number=attempt.order_number)
        return load_order(order_id)

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _find_attempt(self, key):
        return current_domain.repository_for(CheckoutAttempt).find(key)

    def _save(self, attempt):
        current_domain.repository_for(CheckoutAttempt).add(attempt)

    def _address(self, value, field):
        try:
            return Address(**value).to_dict()
        except FieldValidationError as exc:
            raise errors.ValidationError("InvalidInput", f"Invalid {field}: {exc.messages}") from exc
        except TypeError as exc:
            raise errors.ValidationError("InvalidInput", f"Invalid {field}: {exc}") from exc

    def _validate_payment_method(self, method):
        try:
            PaymentMethod(method)
        except ValueError:
            raise errors.ValidationError("InvalidInput", f"Unknown payment method: {method!r}") from None

    def _journal(self, attempt, key, user_id, deadline_at):
        """Write the attempt before any reservation.

        In-flight attempts are resumed as journaled, under this request's
        deadline so the recovery sweep leaves them alone while they run.
        """
        if attempt is not None and attempt.in_flight:
            attempt.extend_deadline(deadline_at)
            self._save(attempt)
            logger.info("checkout_resumed", status=attempt.status, attempt_no=attempt.attempt_no)
            return attempt

        lines = self._snapshot_lines(user_id)
        if attempt is None:
            attempt = CheckoutAttempt.start(key, user_id, lines, deadline_at)
        else:
            attempt.restart(lines, deadline_at)
        self._save(attempt)
        logger.info("checkout_started", attempt_no=attempt.attempt_no, lines=len(lines))
        return attempt

    def _ensure_current(self, attempt):
        """Refuse to go on if the journal moved past this attempt while it reserved."""
        latest = self._find_attempt(attempt.idempotency_key)
        if latest is None or not latest.in_flight or latest.attempt_no != attempt.attempt_no:
            raise errors.ConflictError(
                "CheckoutSuperseded",
                f"Checkout attempt {attempt.attempt_no} was compensated while it was running",
            )

    def _snapshot_lines(self, user_id) -> list[dict]:
        """Read the cart and lock in each line's seller, price and shipping."""
        try:
            cart = current_domain.repository_for(ShoppingCart).get(user_id)
        except ObjectNotFoundError:
            cart = None
        if cart is None or cart.is_empty:
            raise errors.empty_cart(user_id)

        lines = []
        for item in cart.items:
            product = self.catalogue.get(str(item.product_id))
            if product is None:
                raise errors.product_not_found(item.product_id)
            lines.append(
                {
                    "product_id": str(item.product_id),
                    "seller_id": product.seller_id,
                    "name": product.name,
                    "quantity": item.quantity,
                    "unit_price": product.price,
                    "shipping_cost": product.shipping_cost if item.shipping_selected else 0.0,
                }
            )
        return lines

    def _reserve_all(self, attempt, deadline):
        for line in attempt.line_list():
            self._check_deadline(deadline)
            result = self._retry(
                lambda line=line: self.catalogue.reserve(line["product_id"], line["quantity"], line["reservation_key"]),
                "reserve_stock",
                deadline,
            )
            if result.status == ReservationStatus.INSUFFICIENT:
                raise errors.insufficient_stock(line["product_id"], line["quantity"])
            if result.status == ReservationStatus.UNAVAILABLE:
                raise errors.product_unavailable(line["product_id"])
            if result.status == ReservationStatus.NOT_FOUND:
                raise errors.product_not_found(line["product_id"])

    def _place_order(self, attempt, user_id, shipping, billing, payment_method, notes, tax):
        return current_domain.process(
            PlaceOrder(
                idempotency_key=attempt.idempotency_key,
                attempt_no=attempt.attempt_no,
                user_id=user_id,
                shipping_address=shipping,
                billing_address=billing,
                payment_method=payment_method,
                notes=notes,
                tax=tax,
            ),
            asynchronous=False,
        )

    def _compensate(self, attempt, failure):
        """Claim the attempt as compensated, then release every reservation it journaled.

        The claim is saved first so ``PlaceOrder`` refuses the attempt from
        then on. Releasing a key that was never reserved is a no-op on the
        ledger, so all journaled keys are released regardless of how far
        reservation got. If releases still fail after retries the attempt
        stays owing stock for the recovery sweep.
        """
        latest = self._find_attempt(attempt.idempotency_key)
        if latest is not None and latest.is_completed:
            return

        kind = getattr(failure, "kind", type(failure).__name__)
        message = getattr(failure, "message", str(failure))
        owner = latest is not None and latest.attempt_no == attempt.attempt_no
        if owner and latest.in_flight:
            latest.compensate(kind, message)
            self._save(latest)

        try:
            release_attempt(self.catalogue, attempt, self.max_retries)
        except errors.TransientStoreError as exc:
            logger.error("checkout_compensation_incomplete", error=exc.message, failure_kind=kind)
            return

        if owner:
            latest.mark_stock_released()
            self._save(latest)
        logger.warning("checkout_compensated", failure_kind=kind, failure=message)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _check_deadline(self, deadline):
        if self.clock() > deadline:
            raise errors.TransientStoreError("CheckoutTimeout", "Checkout did not finish before its deadline")

    def _retry(self, func, operation, deadline):
        return with_retries(func, operation, attempts=self.max_retries, deadline=deadline)


def release_attempt(catalogue, attempt, max_retries=None) -> int:
    """Release all reservation keys journaled for ``attempt``; returns how many gave stock back."""
    released = 0
    for line in attempt.line_list():
        if with_retries(
            lambda line=line: catalogue.release(line["product_id"], line["quantity"], line["reservation_key"]),
            "release_stock",
            attempts=max_retries,
        ):
            released += 1
    return released


def create_order(
    user_id,
    shipping_address,
    billing_address,
    payment_method,
    notes=None,
    idempotency_key=None,
    tax=0.0,
):
    """CreateOrder entry point using the configured collaborators."""
    return CheckoutCoordinator().checkout(
        user_id,
        shipping_address,
        billing_address,
        payment_method,
        notes=notes,
        idempotency_key=idempotency_key,
        tax=tax,
    )
