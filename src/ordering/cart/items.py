"""Cart item management: commands and handler.

Carts are created lazily: every command loads the user's cart or starts a
new one. Product existence and status are checked against the product
directory before the cart is touched, so a failed add leaves it unchanged.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Identifier, Integer
from protean.utils.globals import current_domain

from catalogue.ledger import get_product_directory
from ordering import errors
from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class OpenCart:
    user_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    shipping_selected = Boolean(default=False)


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class ClearCart:
    user_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class SaveForLater:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class MoveToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class RemoveSavedItem:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)


def load_or_create_cart(user_id) -> ShoppingCart:
    try:
        return current_domain.repository_for(ShoppingCart).get(user_id)
    except ObjectNotFoundError:
        return ShoppingCart.create(user_id=user_id)


def _active_product(product_id):
    product = get_product_directory().get(product_id)
    if product is None:
        raise errors.product_not_found(product_id)
    if not product.is_active:
        raise errors.product_unavailable(product_id)
    return product


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(OpenCart)
    def open_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        try:
            cart = repo.get(command.user_id)
        except ObjectNotFoundError:
            cart = ShoppingCart.create(user_id=command.user_id)
            repo.add(cart)
        return cart.summary()

    @handle(AddToCart)
    def add_to_cart(self, command):
        product = _active_product(command.product_id)
        cart = load_or_create_cart(command.user_id)
        cart.add_item(
            product_id=command.product_id,
            quantity=command.quantity,
            unit_price=product.price,
            shipping_selected=command.shipping_selected,
            shipping_cost=product.shipping_cost,
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart.summary()

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        cart = load_or_create_cart(command.user_id)
        cart.update_quantity(product_id=command.product_id, quantity=command.quantity)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart.summary()

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = load_or_create_cart(command.user_id)
        cart.remove_item(product_id=command.product_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart.summary()

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = load_or_create_cart(command.user_id)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart.summary()

    @handle(SaveForLater)
    def save_for_later(self, command):
        cart = load_or_create_cart(command.user_id)
        cart.save_for_later(product_id=command.product_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart.summary()

    @handle(MoveToCart)
    def move_to_cart(self, command):
        product = _active_product(command.product_id)
        cart = load_or_create_cart(command.user_id)
        cart.move_to_cart(product_id=command.product_id, unit_price=product.price)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart.summary()

    @handle(RemoveSavedItem)
    def remove_saved_item(self, command):
        cart = load_or_create_cart(command.user_id)
        cart.remove_saved(product_id=command.product_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return cart.summary()
