"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the Protean commands they
are translated into.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str = "India"
    phone: str | None = None


class ShippingSchema(BaseModel):
    name: str | None = None
    price: float = Field(ge=0, default=0.0)
    delivery_days: int | None = Field(ge=0, default=None)


class CheckoutItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    offer_price: float | None = Field(ge=0, default=None)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    items: list[CheckoutItemSchema] = Field(min_length=1)
    payment_method: str
    payment_id: str | None = None
    total: float = Field(ge=0)
    shipping: ShippingSchema | None = None
    shipping_address: AddressSchema | None = None
    coupon_code: str | None = None
    order_number: str | None = None
    idempotency_key: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "payment_method": "Razorpay",
                    "payment_id": "pay_29QQoUBi66xm2f",
                    "total": 2050.0,
                    "shipping": {"name": "Standard", "price": 50.0, "delivery_days": 5},
                    "shipping_address": {
                        "name": "Asha Rao",
                        "street": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "postal_code": "560001",
                        "country": "India",
                        "phone": "9800000000",
                    },
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    reason: str | None = Field(max_length=500, default=None)


class ReasonRequest(BaseModel):
    reason: str | None = Field(max_length=500, default=None)


class RecordFailedOrderRequest(BaseModel):
    order_number: str
    product_id: str | None = None
    name: str | None = None
    model: str | None = None
    price: float | None = Field(ge=0, default=None)
    quantity: int | None = Field(ge=1, default=None)
    image_url: str | None = None
    return_policy: bool = False
    payment_method: str | None = None
    payment_id: str | None = None
    shipping_address: AddressSchema | None = None
    reason: str | None = Field(max_length=500, default=None)


class PromoteFailedOrderRequest(BaseModel):
    product_id: str
    name: str
    model: str | None = None
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    offer_price: float | None = Field(ge=0, default=None)
    payment_method: str
    payment_id: str | None = None
    image_url: str | None = None
    return_policy: bool = False
    coupon_code: str | None = None
    coupon_discount: float | None = Field(ge=0, default=None)
    shipping: ShippingSchema | None = None
    shipping_address: AddressSchema | None = None


# ---------------------------------------------------------------------------
# Account Request Schemas
# ---------------------------------------------------------------------------
class VerifyPaymentRequest(BaseModel):
    payment_id: str


class RewardReferralRequest(BaseModel):
    referrer_id: str
    reward: float | None = Field(gt=0, default=None)


class IssueOtpRequest(BaseModel):
    email: str


class VerifyOtpRequest(BaseModel):
    email: str
    code: str = Field(min_length=6, max_length=6)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class IdResponse(BaseModel):
    id: str


class CheckoutResponse(BaseModel):
    order_ids: list[str]
    total: float


class TransitionResponse(BaseModel):
    order_id: str
    status: str
    payment_status: str
    already_settled: bool = False
    refunded_amount: float = 0.0


class UserOrdersResponse(BaseModel):
    orders: list[dict]
    has_more: bool
    total_count: int


class AdminOrdersResponse(BaseModel):
    orders: list[dict]
    total_count: int


class OrderMetricsResponse(BaseModel):
    total_orders: int
    orders_today: int
    average_order_value: float


class AverageOrderValueResponse(BaseModel):
    average_order_value: float


class TopSellingProduct(BaseModel):
    name: str
    sales: int
    total_revenue: float


class RetryRestorationsResponse(BaseModel):
    applied: int


class PaymentResponse(BaseModel):
    payment_id: str
    status: str
    amount: float | None = None
    method: str | None = None


class WalletTransactionSchema(BaseModel):
    id: str
    type: str
    amount: float
    description: str | None = None
    status: str
    created_at: datetime | None = None


class WalletResponse(BaseModel):
    user_id: str
    balance: float
    currency: str
    transactions: list[WalletTransactionSchema]


class ReferralResponse(BaseModel):
    referral_id: str
    reward: float


class OtpIssuedResponse(BaseModel):
    email: str
    expires_at: datetime


class OtpTimeRemainingResponse(BaseModel):
    time_remaining: int
    expires_at: datetime
