"""Shopping Cart aggregate (CQRS): one mutable cart per customer.

The cart is keyed by the customer's id, so a customer can only ever reach
their own cart. Each line captures the product's discounted price at the
moment it was added; checkout re-prices every line from the live catalogue,
so the snapshot here is informational.

Totals are a pure function of the lines and the applied discount and are
recomputed after every mutation:

    line_total  = unit_price * quantity
    total_price = max(0, sum(line_total) - discount_amount)
"""

import json
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from ordering.cart.events import (
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from ordering.domain import ordering
from ordering.errors import InsufficientStock, NotFound


def _money(value) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def normalize_variant(variant) -> str:
    """Canonical JSON for a set of variant choices; order of pairs is irrelevant.

    Accepts a mapping (``{"size": "M"}``) or a list of ``{"name", "value"}``
    pairs as sent by storefront clients.
    """
    if not variant:
        return json.dumps({})
    if isinstance(variant, str):
        variant = json.loads(variant)
    if isinstance(variant, dict):
        pairs = {str(k): str(v) for k, v in variant.items()}
    else:
        pairs = {str(p["name"]): str(p["value"]) for p in variant}
    return json.dumps(pairs, sort_keys=True)


@ordering.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    name = String(max_length=255)
    image = String(max_length=1000)
    quantity = Integer(required=True, min_value=1)
    selected_variant = Text(default="{}")  # canonical JSON object
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(default=0.0)
    added_at = DateTime()

    @property
    def variant(self) -> dict:
        return json.loads(self.selected_variant) if self.selected_variant else {}


@ordering.aggregate
class Cart:
    customer_id = Identifier(identifier=True)
    items = HasMany(CartItem)
    total_items = Integer(default=0, min_value=0)
    total_price = Float(default=0.0, min_value=0.0)
    coupon_code = String(max_length=50)
    discount_amount = Float(default=0.0, min_value=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def discount_requires_coupon(self):
        if self.discount_amount and not self.coupon_code:
            raise ValidationError({"discount_amount": ["A discount can only come from an applied coupon"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(customer_id=customer_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Derived totals
    # -------------------------------------------------------------------
    @property
    def subtotal(self) -> float:
        return _money(sum(Decimal(str(item.line_total or 0)) for item in self.items))

    def _recalculate(self):
        """Recompute line and cart totals. Callers wrap this in ``atomic_change``."""
        for item in self.items:
            item.line_total = _money(Decimal(str(item.unit_price)) * item.quantity)
        subtotal = self.subtotal
        if self.discount_amount and self.discount_amount > subtotal:
            self.discount_amount = subtotal
        self.total_items = sum(item.quantity for item in self.items)
        self.total_price = max(0.0, _money(Decimal(str(subtotal)) - Decimal(str(self.discount_amount or 0))))
        self.updated_at = datetime.now(UTC)

    def find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise NotFound("Item not found in cart", item_id=str(item_id))
        return item

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product, quantity, variant=None):
        """Add ``quantity`` of a catalogue product, merging with an identical line.

        ``product`` is a ``ProductInfo``; a line merges only when both the
        product and the full set of variant choices match.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if product.stock_count < quantity:
            raise InsufficientStock(product.product_id, product.name, quantity, product.stock_count)

        selected_variant = normalize_variant(variant)
        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product.product_id) and i.selected_variant == selected_variant
            ),
            None,
        )

        with atomic_change(self):
            if existing:
                existing.quantity += quantity
                item_id = str(existing.id)
            else:
                item = CartItem(
                    product_id=product.product_id,
                    name=product.name,
                    image=product.image,
                    quantity=quantity,
                    selected_variant=selected_variant,
                    unit_price=product.unit_price,
                    added_at=datetime.now(UTC),
                )
                self.add_items(item)
                item_id = str(item.id)
            self._recalculate()

        self.raise_(
            CartItemAdded(
                customer_id=str(self.customer_id),
                item_id=item_id,
                product_id=str(product.product_id),
                quantity=quantity,
                unit_price=product.unit_price,
            )
        )
        return item_id

    def update_item_quantity(self, item_id, quantity, available_stock):
        """Set a line's quantity, re-checking the product's live stock."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self.find_item(item_id)
        if available_stock < quantity:
            raise InsufficientStock(str(item.product_id), item.name, quantity, available_stock)

        previous_quantity = item.quantity
        with atomic_change(self):
            item.quantity = quantity
            self._recalculate()

        self.raise_(
            CartQuantityUpdated(
                customer_id=str(self.customer_id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_item(self, item_id):
        item = self.find_item(item_id)
        with atomic_change(self):
            self.remove_items(item)
            self._recalculate()

        self.raise_(CartItemRemoved(customer_id=str(self.customer_id), item_id=str(item_id)))

    def clear(self):
        """Empty the cart and drop any coupon."""
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self.coupon_code = None
            self.discount_amount = 0.0
            self._recalculate()

        self.raise_(CartCleared(customer_id=str(self.customer_id)))

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code, discount):
        """Record an already-evaluated coupon and its discount."""
        if not self.items:
            raise ValidationError({"cart": ["Cannot apply a coupon to an empty cart"]})

        with atomic_change(self):
            self.coupon_code = coupon_code
            self.discount_amount = min(_money(discount), self.subtotal)
            self._recalculate()

        self.raise_(
            CartCouponApplied(
                customer_id=str(self.customer_id),
                coupon_code=coupon_code,
                discount_amount=self.discount_amount,
            )
        )

    def remove_coupon(self):
        if not self.coupon_code:
            return
        code = self.coupon_code
        with atomic_change(self):
            self.coupon_code = None
            self.discount_amount = 0.0
            self._recalculate()

        self.raise_(CartCouponRemoved(customer_id=str(self.customer_id), coupon_code=code))
