"""FastAPI routes for the storefront: carts, orders and coupons."""

import json

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from ordering.api.deps import Principal, current_principal, require_roles
from ordering.api.schemas import (
    AddToCartRequest,
    ApplyCouponRequest,
    CancelOrderRequest,
    CreateCouponRequest,
    CreateGatewayOrderRequest,
    FulfillItemsRequest,
    PlaceOrderRequest,
    UpdateCartItemRequest,
    UpdateCouponRequest,
    UpdateOrderStatusRequest,
    VerifyPaymentRequest,
)
from ordering.cart.coupons import ApplyCouponToCart, RemoveCouponFromCart
from ordering.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartItem, load_cart
from ordering.cart.views import cart_to_dict
from ordering.coupon.evaluation import APPLIED
from ordering.coupon.management import CreateCoupon, DeactivateCoupon, UpdateCoupon, load_coupon
from ordering.coupon.views import coupon_to_dict, list_coupons
from ordering.errors import Unauthorized
from ordering.order.access import Role, ensure_can_view, load_order
from ordering.order.cancellation import CancelOrder, UpdateOrderStatus
from ordering.order.fulfillment import FulfillOrderItems
from ordering.order.payment import CreateGatewayOrder, VerifyPayment, payment_status
from ordering.order.placement import place_order
from ordering.order.views import (
    all_orders,
    customer_orders,
    order_to_dict,
    tracking_view,
    vendor_orders,
    view_for,
)

admin_only = require_roles(Role.ADMIN)
staff_only = require_roles(Role.ADMIN, Role.VENDOR)


def _tracking_json(tracking_info) -> str | None:
    return json.dumps(tracking_info.model_dump()) if tracking_info else None


def _cart_response(principal: Principal, status_code: int = 200, **extra) -> JSONResponse:
    content = {"cart": cart_to_dict(load_cart(principal.user_id), principal.user_id), **extra}
    return JSONResponse(status_code=status_code, content=content)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("")
async def get_cart(principal: Principal = Depends(current_principal)) -> JSONResponse:
    return _cart_response(principal)


@cart_router.post("", status_code=201)
async def add_to_cart(body: AddToCartRequest, principal: Principal = Depends(current_principal)) -> JSONResponse:
    variant = body.selected_variant
    if isinstance(variant, list):
        variant = {choice.name: choice.value for choice in variant}

    command = AddToCart(
        customer_id=principal.user_id,
        product_id=body.product_id,
        quantity=body.quantity,
        selected_variant=json.dumps(variant) if variant else None,
    )
    item_id = current_domain.process(command, asynchronous=False)
    return _cart_response(principal, status_code=201, item_id=item_id)


@cart_router.put("/items")
async def update_cart_item(
    body: UpdateCartItemRequest, principal: Principal = Depends(current_principal)
) -> JSONResponse:
    command = UpdateCartItem(customer_id=principal.user_id, item_id=body.item_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return _cart_response(principal)


@cart_router.delete("/items/{item_id}")
async def remove_cart_item(item_id: str, principal: Principal = Depends(current_principal)) -> JSONResponse:
    current_domain.process(RemoveFromCart(customer_id=principal.user_id, item_id=item_id), asynchronous=False)
    return _cart_response(principal)


@cart_router.delete("")
async def clear_cart(principal: Principal = Depends(current_principal)) -> JSONResponse:
    current_domain.process(ClearCart(customer_id=principal.user_id), asynchronous=False)
    return _cart_response(principal)


@cart_router.post("/coupon")
async def apply_cart_coupon(body: ApplyCouponRequest, principal: Principal = Depends(current_principal)) -> JSONResponse:
    command = ApplyCouponToCart(customer_id=principal.user_id, coupon_code=body.coupon_code)
    discount = current_domain.process(command, asynchronous=False)
    return _cart_response(principal, message=APPLIED, discount=discount)


@cart_router.delete("/coupon")
async def remove_cart_coupon(principal: Principal = Depends(current_principal)) -> JSONResponse:
    current_domain.process(RemoveCouponFromCart(customer_id=principal.user_id), asynchronous=False)
    return _cart_response(principal)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
# Fixed paths are declared before /{order_id} so they are not captured by it.
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
async def create_order(body: PlaceOrderRequest, principal: Principal = Depends(current_principal)) -> JSONResponse:
    order = place_order(
        customer_id=principal.user_id,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
        customer_email=principal.email,
    )
    return JSONResponse(status_code=201, content=order_to_dict(order))


@order_router.get("")
async def list_orders(
    page: int = 1,
    limit: int = 20,
    status: str | None = None,
    principal: Principal = Depends(staff_only),
) -> JSONResponse:
    if principal.is_admin:
        return JSONResponse(content=all_orders(page=page, limit=limit, status=status))
    return JSONResponse(content=vendor_orders(principal.user_id, page=page, limit=limit))


@order_router.get("/my-orders")
async def my_orders(page: int = 1, limit: int = 10, principal: Principal = Depends(current_principal)) -> JSONResponse:
    return JSONResponse(content=customer_orders(principal.user_id, page=page, limit=limit))


@order_router.get("/track/{tracking_number}")
async def track_order(tracking_number: str) -> JSONResponse:
    return JSONResponse(content=tracking_view(tracking_number))


@order_router.post("/payment")
async def verify_payment(body: VerifyPaymentRequest, principal: Principal = Depends(current_principal)) -> JSONResponse:
    command = VerifyPayment(
        order_id=body.order_id,
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
        email_address=principal.email,
        customer_id=principal.user_id,
        role=principal.role,
    )
    order = current_domain.process(command, asynchronous=False)
    return JSONResponse(content=order_to_dict(order))


@order_router.post("/create-gateway-order", status_code=201)
async def create_gateway_order(
    body: CreateGatewayOrderRequest, principal: Principal = Depends(current_principal)
) -> JSONResponse:
    command = CreateGatewayOrder(order_id=body.order_id, customer_id=principal.user_id, role=principal.role)
    result = current_domain.process(command, asynchronous=False)
    return JSONResponse(status_code=201, content=result)


@order_router.get("/{order_id}")
async def get_order(order_id: str, principal: Principal = Depends(current_principal)) -> JSONResponse:
    order = load_order(order_id)
    ensure_can_view(order, principal.user_id, principal.role)
    return JSONResponse(content=view_for(order, principal.user_id, principal.role))


@order_router.get("/{order_id}/payment-status")
async def get_payment_status(order_id: str, principal: Principal = Depends(current_principal)) -> JSONResponse:
    order = load_order(order_id)
    if not principal.is_admin and str(order.customer_id) != principal.user_id:
        raise Unauthorized("Not authorized to view this order", order_id=order_id)
    return JSONResponse(content=payment_status(order))


@order_router.put("/{order_id}/status")
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, principal: Principal = Depends(staff_only)
) -> JSONResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        note=body.note,
        changed_by=principal.user_id,
        role=principal.role,
        tracking_info=_tracking_json(body.tracking_info),
    )
    order = current_domain.process(command, asynchronous=False)
    return JSONResponse(content=view_for(order, principal.user_id, principal.role))


@order_router.patch("/{order_id}/fulfill")
async def fulfill_items(
    order_id: str, body: FulfillItemsRequest, principal: Principal = Depends(staff_only)
) -> JSONResponse:
    command = FulfillOrderItems(
        order_id=order_id,
        item_ids=json.dumps(body.item_ids),
        status=body.status,
        tracking_info=_tracking_json(body.tracking_info),
        fulfilled_by=principal.user_id,
        role=principal.role,
    )
    order = current_domain.process(command, asynchronous=False)
    return JSONResponse(content=view_for(order, principal.user_id, principal.role))


@order_router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str, body: CancelOrderRequest | None = None, principal: Principal = Depends(current_principal)
) -> JSONResponse:
    command = CancelOrder(
        order_id=order_id,
        reason=body.reason if body else None,
        cancelled_by=principal.user_id,
        role=principal.role,
    )
    order = current_domain.process(command, asynchronous=False)
    return JSONResponse(content=order_to_dict(order))


# ---------------------------------------------------------------------------
# Coupon Router (admin)
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"], dependencies=[Depends(admin_only)])


@coupon_router.post("", status_code=201)
async def create_coupon(body: CreateCouponRequest) -> JSONResponse:
    coupon_id = current_domain.process(CreateCoupon(**body.model_dump()), asynchronous=False)
    return JSONResponse(status_code=201, content=coupon_to_dict(load_coupon(coupon_id)))


@coupon_router.get("")
async def get_coupons(active_only: bool = False) -> JSONResponse:
    return JSONResponse(content={"coupons": list_coupons(active_only=active_only)})


@coupon_router.get("/{coupon_id}")
async def get_coupon(coupon_id: str) -> JSONResponse:
    return JSONResponse(content=coupon_to_dict(load_coupon(coupon_id)))


@coupon_router.put("/{coupon_id}")
async def update_coupon(coupon_id: str, body: UpdateCouponRequest) -> JSONResponse:
    command = UpdateCoupon(coupon_id=coupon_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return JSONResponse(content=coupon_to_dict(load_coupon(coupon_id)))


@coupon_router.delete("/{coupon_id}")
async def deactivate_coupon(coupon_id: str) -> JSONResponse:
    current_domain.process(DeactivateCoupon(coupon_id=coupon_id), asynchronous=False)
    return JSONResponse(content=coupon_to_dict(load_coupon(coupon_id)))
