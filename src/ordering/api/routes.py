"""FastAPI routes for the Ordering domain: cart and orders.

The caller's identity comes from the X-User-ID header. Every route acts
on behalf of that user; authorization against the order (buyer or seller)
happens in the domain. The payment callback is the exception: it comes
from the payment gateway and is checked against the shared webhook secret.
"""

from fastapi import APIRouter, Depends, Header, Query
from protean.utils.globals import current_domain

from ordering.api.dependencies import current_user, verified_gateway
from ordering.api.schemas import (
    AddOrderMessageRequest,
    AddToCartRequest,
    CancelOrderRequest,
    CartResponse,
    CartSummaryResponse,
    CreateOrderRequest,
    OrderListResponse,
    OrderResponse,
    RecordPaymentOutcomeRequest,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
)
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import (
    AddToCart,
    ClearCart,
    MoveToCart,
    OpenCart,
    RemoveFromCart,
    RemoveSavedItem,
    SaveForLater,
    UpdateCartQuantity,
)
from ordering.checkout.coordinator import create_order
from ordering.order.cancellation import cancel_order
from ordering.order.fulfillment import update_order_status
from ordering.order.messaging import add_order_message
from ordering.order.payment import record_payment_outcome
from ordering.order.queries import get_order, list_orders, order_view


def _cart_response(user_id) -> CartResponse:
    current_domain.process(OpenCart(user_id=user_id), asynchronous=False)
    cart = current_domain.repository_for(ShoppingCart).get(user_id)
    return CartResponse(
        user_id=str(cart.user_id),
        items=[
            {
                "product_id": str(i.product_id),
                "quantity": i.quantity,
                "unit_price": i.unit_price,
                "shipping_selected": i.shipping_selected,
                "shipping_cost": i.shipping_cost,
            }
            for i in cart.items
        ],
        saved_items=[
            {
                "product_id": str(i.product_id),
                "quantity": i.quantity,
                "unit_price": i.unit_price,
                "shipping_cost": i.shipping_cost,
            }
            for i in cart.saved_items
        ],
        summary=cart.summary(),
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(user_id: str = Depends(current_user)) -> CartResponse:
    return _cart_response(user_id)


@cart_router.get("/summary", response_model=CartSummaryResponse)
async def get_cart_summary(user_id: str = Depends(current_user)) -> CartSummaryResponse:
    summary = current_domain.process(OpenCart(user_id=user_id), asynchronous=False)
    return CartSummaryResponse(**summary)


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(body: AddToCartRequest, user_id: str = Depends(current_user)) -> CartResponse:
    command = AddToCart(
        user_id=user_id,
        product_id=body.product_id,
        quantity=body.quantity,
        shipping_selected=body.shipping_selected,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(user_id)


@cart_router.put("/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str, body: UpdateCartQuantityRequest, user_id: str = Depends(current_user)
) -> CartResponse:
    command = UpdateCartQuantity(user_id=user_id, product_id=product_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return _cart_response(user_id)


@cart_router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(product_id: str, user_id: str = Depends(current_user)) -> CartResponse:
    current_domain.process(RemoveFromCart(user_id=user_id, product_id=product_id), asynchronous=False)
    return _cart_response(user_id)


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(user_id: str = Depends(current_user)) -> CartResponse:
    current_domain.process(ClearCart(user_id=user_id), asynchronous=False)
    return _cart_response(user_id)


@cart_router.post("/saved/{product_id}", response_model=CartResponse)
async def save_for_later(product_id: str, user_id: str = Depends(current_user)) -> CartResponse:
    current_domain.process(SaveForLater(user_id=user_id, product_id=product_id), asynchronous=False)
    return _cart_response(user_id)


@cart_router.post("/saved/{product_id}/move", response_model=CartResponse)
async def move_to_cart(product_id: str, user_id: str = Depends(current_user)) -> CartResponse:
    current_domain.process(MoveToCart(user_id=user_id, product_id=product_id), asynchronous=False)
    return _cart_response(user_id)


@cart_router.delete("/saved/{product_id}", response_model=CartResponse)
async def remove_saved_item(product_id: str, user_id: str = Depends(current_user)) -> CartResponse:
    current_domain.process(RemoveSavedItem(user_id=user_id, product_id=product_id), asynchronous=False)
    return _cart_response(user_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(
    body: CreateOrderRequest,
    user_id: str = Depends(current_user),
    idempotency_key: str | None = Header(default=None),
) -> OrderResponse:
    """Check out the caller's cart.

    Retrying with the same Idempotency-Key returns the order created by the
    first successful call instead of creating another.
    """
    shipping = body.shipping_address.model_dump()
    billing = body.billing_address.model_dump() if body.billing_address else shipping
    order = create_order(
        user_id=user_id,
        shipping_address=shipping,
        billing_address=billing,
        payment_method=body.payment_method,
        notes=body.notes,
        idempotency_key=idempotency_key,
        tax=body.tax,
    )
    return order_view(order, user_id)


@order_router.get("", response_model=OrderListResponse)
async def get_orders(
    user_id: str = Depends(current_user),
    role: str = Query(default="buyer"),
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc"),
) -> OrderListResponse:
    orders, pagination = list_orders(
        user_id,
        role=role,
        status_filter=status,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return OrderListResponse(orders=[order_view(o, user_id) for o in orders], pagination=pagination)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_detail(order_id: str, user_id: str = Depends(current_user)) -> OrderResponse:
    return order_view(get_order(order_id, user_id), user_id)


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def change_order_status(
    order_id: str, body: UpdateOrderStatusRequest, user_id: str = Depends(current_user)
) -> OrderResponse:
    order = update_order_status(
        order_id,
        user_id,
        body.status,
        note=body.note,
        tracking_number=body.tracking_number,
        estimated_delivery=body.estimated_delivery,
    )
    return order_view(order, user_id)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel(order_id: str, body: CancelOrderRequest, user_id: str = Depends(current_user)) -> OrderResponse:
    return order_view(cancel_order(order_id, user_id, reason=body.reason), user_id)


@order_router.post("/{order_id}/messages", response_model=OrderResponse)
async def post_message(
    order_id: str, body: AddOrderMessageRequest, user_id: str = Depends(current_user)
) -> OrderResponse:
    return order_view(add_order_message(order_id, user_id, body.recipient_id, body.text), user_id)


@order_router.post("/{order_id}/payment", response_model=OrderResponse, dependencies=[Depends(verified_gateway)])
async def record_payment(order_id: str, body: RecordPaymentOutcomeRequest) -> OrderResponse:
    """Callback for the external payment gateway; records the outcome only."""
    order = record_payment_outcome(order_id, body.status, body.transaction_id)
    return order_view(order)
