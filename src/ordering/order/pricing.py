"""Order pricing.

All arithmetic is done in ``Decimal`` and rounded half-up to cents:

    tax_price      = taxable * tax_rate
    shipping_price = 0 when items_price reaches the free-shipping threshold, else the flat fee
    total_price    = max(0, items_price + tax_price + shipping_price - discount_amount)

``taxable`` is the items price after the coupon discount when
``tax_on_discounted_subtotal`` is set, the undiscounted items price otherwise.
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from ordering.config import Settings, get_settings

_CENT = Decimal("0.01")


def to_cents(value) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceQuote:
    items_price: float
    tax_price: float
    shipping_price: float
    discount_amount: float
    total_price: float

    def to_dict(self) -> dict:
        return asdict(self)


def line_total(unit_price: float, quantity: int) -> float:
    return float(to_cents(to_cents(unit_price) * quantity))


def quote(items_price: float, discount_amount: float = 0.0, settings: Settings | None = None) -> PriceQuote:
    settings = settings or get_settings()

    items = to_cents(items_price)
    discount = min(max(to_cents(discount_amount), Decimal("0")), items)

    taxable = items - discount if settings.tax_on_discounted_subtotal else items
    tax = to_cents(taxable * settings.tax_rate)
    shipping = Decimal("0") if items >= settings.free_shipping_threshold else to_cents(settings.shipping_fee)
    total = max(Decimal("0"), to_cents(items + tax + shipping - discount))

    return PriceQuote(
        items_price=float(items),
        tax_price=float(tax),
        shipping_price=float(shipping),
        discount_amount=float(discount),
        total_price=float(total),
    )


def pricing_identity_holds(
    items_price: float, tax_price: float, shipping_price: float, discount_amount: float, total_price: float
) -> bool:
    expected = to_cents(items_price) + to_cents(tax_price) + to_cents(shipping_price) - to_cents(discount_amount)
    expected = max(Decimal("0"), expected)
    return to_cents(total_price) == expected and total_price >= 0
