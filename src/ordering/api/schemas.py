"""Pydantic request schemas for the storefront API.

These are the external contract; handlers translate them into Protean
commands or service calls.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str
    city: str
    state: str
    postal_code: str
    country: str


class VariantChoice(BaseModel):
    name: str
    value: str


class TrackingInfoSchema(BaseModel):
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1)
    selected_variant: list[VariantChoice] | dict[str, str] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                    "selected_variant": [{"name": "size", "value": "M"}],
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    item_id: str
    quantity: int


class ApplyCouponRequest(BaseModel):
    coupon_code: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str
    coupon_code: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": {
                        "street": "12 Market St",
                        "city": "Springfield",
                        "state": "IL",
                        "postal_code": "62701",
                        "country": "US",
                    },
                    "payment_method": "card",
                    "coupon_code": "SAVE10",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: str | None = None
    tracking_info: TrackingInfoSchema | None = None


class FulfillItemsRequest(BaseModel):
    item_ids: list[str] = Field(min_length=1)
    status: str
    tracking_info: TrackingInfoSchema | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class VerifyPaymentRequest(BaseModel):
    order_id: str
    gateway_order_id: str
    gateway_payment_id: str
    signature: str


class CreateGatewayOrderRequest(BaseModel):
    order_id: str


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CreateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    description: str | None = None
    discount_type: str
    value: float = Field(ge=0)
    min_purchase: float = Field(default=0.0, ge=0)
    max_discount: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime
    usage_limit: int = Field(default=0, ge=0)
    per_user_limit: int = Field(default=0, ge=0)
    is_active: bool = True


class UpdateCouponRequest(BaseModel):
    description: str | None = None
    discount_type: str | None = None
    value: float | None = Field(default=None, ge=0)
    min_purchase: float | None = Field(default=None, ge=0)
    max_discount: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=0)
    per_user_limit: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
