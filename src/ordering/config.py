"""Business settings for the ordering context.

Protean infrastructure (databases, brokers, event store) is configured in
``domain.toml``. The values here are storefront rules and secrets, read from
the environment with sensible defaults:

    STOREFRONT_TAX_RATE                  flat tax rate (default 0.18)
    STOREFRONT_FREE_SHIPPING_THRESHOLD   items price that ships free (default 100)
    STOREFRONT_SHIPPING_FEE              flat fee below the threshold (default 10)
    STOREFRONT_TAX_ON_DISCOUNTED         tax the subtotal after discount (default true)
    STOREFRONT_CURRENCY                  ISO currency code (default USD)
    STOREFRONT_TRACKING_PREFIX           tracking number prefix (default WC)
    PAYMENT_GATEWAY_SECRET               HMAC secret shared with the gateway
    LEDGER_DATABASE_URI                  SQL ledger; unset selects the in-memory ledger
"""

import os
from dataclasses import dataclass, replace
from decimal import Decimal


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    tax_rate: Decimal = Decimal("0.18")
    free_shipping_threshold: Decimal = Decimal("100")
    shipping_fee: Decimal = Decimal("10")
    tax_on_discounted_subtotal: bool = True
    currency: str = "USD"
    tracking_prefix: str = "WC"
    payment_gateway_secret: str = "storefront-dev-gateway-secret"
    ledger_database_uri: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            tax_rate=Decimal(os.getenv("STOREFRONT_TAX_RATE", str(defaults.tax_rate))),
            free_shipping_threshold=Decimal(
                os.getenv("STOREFRONT_FREE_SHIPPING_THRESHOLD", str(defaults.free_shipping_threshold))
            ),
            shipping_fee=Decimal(os.getenv("STOREFRONT_SHIPPING_FEE", str(defaults.shipping_fee))),
            tax_on_discounted_subtotal=_env_bool("STOREFRONT_TAX_ON_DISCOUNTED", defaults.tax_on_discounted_subtotal),
            currency=os.getenv("STOREFRONT_CURRENCY", defaults.currency),
            tracking_prefix=os.getenv("STOREFRONT_TRACKING_PREFIX", defaults.tracking_prefix),
            payment_gateway_secret=os.getenv("PAYMENT_GATEWAY_SECRET", defaults.payment_gateway_secret),
            ledger_database_uri=os.getenv("LEDGER_DATABASE_URI") or None,
        )

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = Settings.from_env()
    return _current_settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop overrides; the next call reloads from the environment."""
    global _current_settings
    _current_settings = None
