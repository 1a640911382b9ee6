"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str


class ErrorDetail(BaseModel):
    kind: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)
    shipping_selected: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                    "shipping_selected": True,
                }
            ]
        }
    }


class UpdateCartQuantityRequest(BaseModel):
    quantity: int


class CartSummaryResponse(BaseModel):
    item_count: int = 0
    subtotal: float = 0.0
    shipping_cost: float = 0.0
    total: float = 0.0


class CartLineResponse(BaseModel):
    product_id: str
    quantity: int
    unit_price: float
    shipping_selected: bool = False
    shipping_cost: float = 0.0


class CartResponse(BaseModel):
    user_id: str
    items: list[CartLineResponse]
    saved_items: list[CartLineResponse]
    summary: CartSummaryResponse


# ---------------------------------------------------------------------------
# Orders: requests
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None  # Defaults to the shipping address
    payment_method: str = "card"
    notes: str | None = None
    tax: float = Field(default=0.0, ge=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": {
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "postal_code": "62701",
                        "country": "US",
                    },
                    "payment_method": "card",
                    "notes": "Leave at the door",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: str | None = None
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class AddOrderMessageRequest(BaseModel):
    recipient_id: str
    text: str = Field(min_length=1, max_length=2000)


class RecordPaymentOutcomeRequest(BaseModel):
    status: str
    transaction_id: str | None = None


# ---------------------------------------------------------------------------
# Orders: responses
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    item_id: str
    product_id: str
    seller_id: str
    name: str | None = None
    quantity: int
    unit_price: float
    shipping_cost: float
    status: str
    tracking_number: str | None = None


class TimelineEntryResponse(BaseModel):
    status: str
    note: str | None = None
    actor_id: str | None = None
    occurred_at: str


class OrderMessageResponse(BaseModel):
    sender_id: str
    recipient_id: str
    text: str
    message_type: str
    sent_at: str


class PaymentResponse(BaseModel):
    method: str
    status: str
    amount: float
    currency: str | None = None
    transaction_id: str | None = None


class TotalsResponse(BaseModel):
    subtotal: float
    shipping_cost: float
    tax: float
    total: float


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    buyer_id: str
    status: str
    items: list[OrderItemResponse]
    shipping_address: AddressSchema
    billing_address: AddressSchema
    payment: PaymentResponse | None = None
    totals: TotalsResponse
    timeline: list[TimelineEntryResponse]
    communication: list[OrderMessageResponse]
    notes: str | None = None
    cancellation_reason: str | None = None
    estimated_delivery: str | None = None
    stock_release_pending: bool = False
    created_at: str | None = None


class PaginationResponse(BaseModel):
    page: int
    page_size: int
    total: int
    pages: int


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    pagination: PaginationResponse
