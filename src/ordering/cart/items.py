"""Cart item management: commands and handler."""

import json

from catalogue.service import get_catalogue
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.domain import ordering
from ordering.errors import NotFound


def load_cart(customer_id, create=False) -> Cart | None:
    """Return the customer's cart; with ``create`` a missing cart starts empty."""
    try:
        return current_domain.repository_for(Cart).get(customer_id)
    except ObjectNotFoundError:
        if create:
            return Cart.create(customer_id=customer_id)
        return None


@ordering.command(part_of="Cart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(default=1)
    selected_variant = Text()  # JSON: {"name": "value"} or [{"name", "value"}]


@ordering.command(part_of="Cart")
class UpdateCartItem:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.command(part_of="Cart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = get_catalogue().get_product(command.product_id)
        if product is None:
            raise NotFound("Product not found", product_id=str(command.product_id))

        variant = json.loads(command.selected_variant) if command.selected_variant else None
        cart = load_cart(command.customer_id, create=True)
        item_id = cart.add_item(product=product, quantity=command.quantity, variant=variant)
        current_domain.repository_for(Cart).add(cart)
        return item_id

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        cart = load_cart(command.customer_id)
        if cart is None:
            raise NotFound("Cart not found", customer_id=str(command.customer_id))

        item = cart.find_item(command.item_id)
        product = get_catalogue().get_product(str(item.product_id))
        if product is None:
            raise NotFound("Product not found", product_id=str(item.product_id))

        cart.update_item_quantity(command.item_id, command.quantity, available_stock=product.stock_count)
        current_domain.repository_for(Cart).add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = load_cart(command.customer_id)
        if cart is None:
            raise NotFound("Cart not found", customer_id=str(command.customer_id))
        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = load_cart(command.customer_id)
        if cart is None:
            raise NotFound("Cart not found", customer_id=str(command.customer_id))
        cart.clear()
        current_domain.repository_for(Cart).add(cart)
