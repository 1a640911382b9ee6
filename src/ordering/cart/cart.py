"""Shopping Cart aggregate: one mutable line list per user.

The cart is a standard CQRS aggregate (not event sourced), identified by the
owning user. Totals are a value object re-derived by ``compute_cart_totals``
after every mutation, so the stored totals always agree with the lines.
Availability is not enforced here; stock is only reserved at checkout.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, ValueObject

from ordering.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemMovedToCart,
    CartItemRemoved,
    CartItemSavedForLater,
    CartQuantityUpdated,
)
from ordering.domain import ordering
from ordering.errors import NotFoundError


@ordering.value_object(part_of="ShoppingCart")
class CartTotals:
    subtotal = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total = Float(default=0.0)
    item_count = Integer(default=0)


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    shipping_selected = Boolean(default=False)
    shipping_cost = Float(default=0.0, min_value=0.0)
    added_at = DateTime()


@ordering.entity(part_of="ShoppingCart")
class SavedCartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    saved_at = DateTime()


def compute_cart_totals(items) -> CartTotals:
    """Subtotal over price x quantity; shipping is charged once per line that selects it."""
    subtotal = sum(item.unit_price * item.quantity for item in items)
    shipping = sum(item.shipping_cost for item in items if item.shipping_selected)
    return CartTotals(
        subtotal=round(subtotal, 2),
        shipping_cost=round(shipping, 2),
        total=round(subtotal + shipping, 2),
        item_count=sum(item.quantity for item in items),
    )


@ordering.aggregate
class ShoppingCart:
    user_id = Identifier(identifier=True, required=True)
    items = HasMany(CartItem)
    saved_items = HasMany(SavedCartItem)
    totals = ValueObject(CartTotals)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, totals=CartTotals(), created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line_for(self, product_id):
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    def saved_for(self, product_id):
        return next((i for i in self.saved_items if str(i.product_id) == str(product_id)), None)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def _touch(self):
        self.totals = compute_cart_totals(self.items)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, unit_price, shipping_selected=False, shipping_cost=0.0):
        """Add a product, or grow the existing line for it."""
        existing = self.line_for(product_id)
        if existing:
            existing.quantity += quantity
            existing.shipping_selected = shipping_selected
            line_quantity = existing.quantity
        else:
            self.add_items(
                CartItem(
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    shipping_selected=shipping_selected,
                    shipping_cost=shipping_cost,
                    added_at=datetime.now(UTC),
                )
            )
            line_quantity = quantity

        self._touch()
        self.raise_(
            CartItemAdded(
                user_id=str(self.user_id),
                product_id=str(product_id),
                quantity=quantity,
                line_quantity=line_quantity,
                unit_price=unit_price,
                shipping_selected=shipping_selected,
            )
        )

    def update_quantity(self, product_id, quantity):
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            self.remove_item(product_id)
            return

        item = self.line_for(product_id)
        if item is None:
            raise NotFoundError("ItemNotInCart", f"Product {product_id} is not in the cart")

        previous_quantity = item.quantity
        item.quantity = quantity
        self._touch()
        self.raise_(
            CartQuantityUpdated(
                user_id=str(self.user_id),
                product_id=str(product_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_item(self, product_id):
        item = self.line_for(product_id)
        if item is None:
            raise NotFoundError("ItemNotInCart", f"Product {product_id} is not in the cart")

        self.remove_items(item)
        self._touch()
        self.raise_(CartItemRemoved(user_id=str(self.user_id), product_id=str(product_id)))

    def clear(self, reason="cleared"):
        """Empty the cart. Saved-for-later items are kept."""
        removed = len(self.items)
        for item in list(self.items):
            self.remove_items(item)
        self._touch()
        self.raise_(CartCleared(user_id=str(self.user_id), reason=reason, items_removed=removed))

    # -------------------------------------------------------------------
    # Save for later
    # -------------------------------------------------------------------
    def save_for_later(self, product_id):
        item = self.line_for(product_id)
        if item is None:
            raise NotFoundError("ItemNotInCart", f"Product {product_id} is not in the cart")

        saved = self.saved_for(product_id)
        if saved:
            saved.quantity += item.quantity
        else:
            self.add_saved_items(
                SavedCartItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    shipping_cost=item.shipping_cost,
                    saved_at=datetime.now(UTC),
                )
            )
        quantity = item.quantity
        self.remove_items(item)
        self._touch()
        self.raise_(CartItemSavedForLater(user_id=str(self.user_id), product_id=str(product_id), quantity=quantity))

    def move_to_cart(self, product_id, unit_price):
        """Bring a saved item back into the cart at the current catalogue price."""
        saved = self.saved_for(product_id)
        if saved is None:
            raise NotFoundError("ItemNotInCart", f"Product {product_id} is not saved for later")

        quantity = saved.quantity
        existing = self.line_for(product_id)
        if existing:
            existing.quantity += quantity
        else:
            self.add_items(
                CartItem(
                    product_id=saved.product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    shipping_cost=saved.shipping_cost,
                    added_at=datetime.now(UTC),
                )
            )
        self.remove_saved_items(saved)
        self._touch()
        self.raise_(CartItemMovedToCart(user_id=str(self.user_id), product_id=str(product_id), quantity=quantity))

    def remove_saved(self, product_id):
        saved = self.saved_for(product_id)
        if saved is None:
            raise NotFoundError("ItemNotInCart", f"Product {product_id} is not saved for later")
        self.remove_saved_items(saved)
        self.updated_at = datetime.now(UTC)

    def summary(self) -> dict:
        totals = self.totals or compute_cart_totals(self.items)
        return {
            "item_count": totals.item_count,
            "subtotal": totals.subtotal,
            "shipping_cost": totals.shipping_cost,
            "total": totals.total,
        }
