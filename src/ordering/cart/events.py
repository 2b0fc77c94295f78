"""Domain events for the Cart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Cart")
class CartItemAdded:
    __version__ = 1

    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    unit_price = Float(required=True)


@ordering.event(part_of="Cart")
class CartQuantityUpdated:
    __version__ = 1

    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.event(part_of="Cart")
class CartCleared:
    """The cart was emptied, by its owner or by a completed checkout."""

    __version__ = 1

    customer_id = Identifier(required=True)


@ordering.event(part_of="Cart")
class CartCouponApplied:
    __version__ = 1

    customer_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount_amount = Float(required=True)


@ordering.event(part_of="Cart")
class CartCouponRemoved:
    __version__ = 1

    customer_id = Identifier(required=True)
    coupon_code = String(required=True)
