"""FastAPI routes for the Storefront: checkout, orders, admin views and accounts.

Commands that touch several aggregates are processed through
``process_serialized`` so concurrent requests on the same order, product or
wallet take turns. The caller's identity arrives in the ``X-User-Id`` header;
issuing and checking that identity is the job of the auth layer in front.
"""

import json

from fastapi import APIRouter, Header, Query
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AdminOrdersResponse,
    AverageOrderValueResponse,
    CheckoutRequest,
    CheckoutResponse,
    IdResponse,
    IssueOtpRequest,
    OrderMetricsResponse,
    OtpIssuedResponse,
    OtpTimeRemainingResponse,
    PaymentResponse,
    PromoteFailedOrderRequest,
    ReasonRequest,
    RecordFailedOrderRequest,
    ReferralResponse,
    RetryRestorationsResponse,
    RewardReferralRequest,
    StatusResponse,
    TopSellingProduct,
    TransitionResponse,
    UpdateOrderStatusRequest,
    UserOrdersResponse,
    VerifyOtpRequest,
    VerifyPaymentRequest,
    WalletResponse,
)
from storefront.order import listing, metrics
from storefront.order.checkout import PlaceOrder, checkout_lock_keys
from storefront.order.failed_order import RecordFailedOrder
from storefront.order.promotion import PromoteFailedOrder
from storefront.order.settlement import (
    CancelOrder,
    MarkOrderDelivered,
    ReturnOrder,
    UpdateOrderStatus,
    process_transition,
)
from storefront.otp.otp import IssueOtp, VerifyOtp, otp_time_remaining
from storefront.payment.verification import VerifyPayment
from storefront.referral.referral import reward_referral
from storefront.stock.restoration import RetryStockRestorations, pending_restorations
from storefront.utils.locking import process_serialized, product_key
from storefront.wallet.wallet import wallet_summary


def _json(model) -> str | None:
    return json.dumps(model.model_dump()) if model is not None else None


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=CheckoutResponse)
async def place_order(body: CheckoutRequest, x_user_id: str = Header()) -> CheckoutResponse:
    """Check out: create one order per item."""
    items = json.dumps([item.model_dump() for item in body.items])
    command = PlaceOrder(
        user_id=x_user_id,
        items=items,
        payment_method=body.payment_method,
        payment_id=body.payment_id,
        total=body.total,
        shipping=_json(body.shipping),
        shipping_address=_json(body.shipping_address),
        coupon_code=body.coupon_code,
        order_number=body.order_number,
        idempotency_key=body.idempotency_key,
    )
    result = process_serialized(command, *checkout_lock_keys(x_user_id, items, body.coupon_code))
    return CheckoutResponse(**result)


@order_router.get("", response_model=UserOrdersResponse)
async def list_my_orders(
    x_user_id: str = Header(),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> UserOrdersResponse:
    """The caller's orders and failed checkouts, newest first."""
    return UserOrdersResponse(**listing.user_orders(x_user_id, page=page, limit=limit))


@order_router.get("/{order_id}")
async def get_my_order(order_id: str, x_user_id: str = Header()) -> dict:
    return listing.user_order(x_user_id, order_id)


@order_router.put("/{order_id}/status", response_model=TransitionResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> TransitionResponse:
    """Move an order to Delivered, Cancelled or Returned."""
    command = UpdateOrderStatus(order_id=order_id, status=body.status, reason=body.reason)
    return TransitionResponse(**process_transition(command))


@order_router.put("/{order_id}/deliver", response_model=TransitionResponse)
async def mark_delivered(order_id: str) -> TransitionResponse:
    return TransitionResponse(**process_transition(MarkOrderDelivered(order_id=order_id)))


@order_router.put("/{order_id}/cancel", response_model=TransitionResponse)
async def cancel_order(order_id: str, body: ReasonRequest, x_user_id: str = Header()) -> TransitionResponse:
    """Cancel one of the caller's orders, refunding it if it was paid."""
    listing.user_order(x_user_id, order_id)
    return TransitionResponse(**process_transition(CancelOrder(order_id=order_id, reason=body.reason)))


@order_router.put("/{order_id}/return", response_model=TransitionResponse)
async def return_order(order_id: str, body: ReasonRequest, x_user_id: str = Header()) -> TransitionResponse:
    """Return one of the caller's orders, refunding it if it was paid."""
    listing.user_order(x_user_id, order_id)
    return TransitionResponse(**process_transition(ReturnOrder(order_id=order_id, reason=body.reason)))


@order_router.post("/failed", status_code=201, response_model=IdResponse)
async def record_failed_order(body: RecordFailedOrderRequest, x_user_id: str = Header()) -> IdResponse:
    command = RecordFailedOrder(
        order_number=body.order_number,
        user_id=x_user_id,
        product_id=body.product_id,
        name=body.name,
        model=body.model,
        price=body.price,
        quantity=body.quantity,
        image_url=body.image_url,
        return_policy=body.return_policy,
        payment_method=body.payment_method,
        payment_id=body.payment_id,
        shipping_address=_json(body.shipping_address),
        reason=body.reason,
    )
    return IdResponse(id=current_domain.process(command, asynchronous=False))


@order_router.post("/failed/{order_number}/promote", status_code=201, response_model=IdResponse)
async def promote_failed_order(
    order_number: str, body: PromoteFailedOrderRequest, x_user_id: str = Header()
) -> IdResponse:
    """Create a paid order for a failed checkout and drop the failed record."""
    command = PromoteFailedOrder(
        order_number=order_number,
        user_id=x_user_id,
        product_id=body.product_id,
        name=body.name,
        model=body.model,
        price=body.price,
        quantity=body.quantity,
        offer_price=body.offer_price,
        payment_method=body.payment_method,
        payment_id=body.payment_id,
        image_url=body.image_url,
        return_policy=body.return_policy,
        coupon_code=body.coupon_code,
        coupon_discount=body.coupon_discount,
        shipping=_json(body.shipping),
        shipping_address=_json(body.shipping_address),
    )
    order_id = process_serialized(command, f"failed-order:{order_number}")
    return IdResponse(id=order_id)


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders", response_model=AdminOrdersResponse)
async def list_all_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=3, ge=1, le=100),
) -> AdminOrdersResponse:
    return AdminOrdersResponse(**listing.admin_orders(page=page, limit=limit))


@admin_router.get("/orders/metrics", response_model=OrderMetricsResponse)
async def order_metrics() -> OrderMetricsResponse:
    return OrderMetricsResponse(**metrics.order_metrics())


@admin_router.get("/orders/average-value", response_model=AverageOrderValueResponse)
async def average_order_value() -> AverageOrderValueResponse:
    return AverageOrderValueResponse(average_order_value=metrics.average_order_value())


@admin_router.get("/orders/{order_id}")
async def get_order(order_id: str) -> dict:
    return listing.admin_order(order_id)


@admin_router.get("/products/top-selling", response_model=list[TopSellingProduct])
async def top_selling_products() -> list[TopSellingProduct]:
    return [TopSellingProduct(**entry) for entry in metrics.top_selling_products()]


@admin_router.post("/stock/restorations/retry", response_model=RetryRestorationsResponse)
async def retry_stock_restorations() -> RetryRestorationsResponse:
    """Apply deferred stock restorations whose products exist again."""
    pending = pending_restorations()
    if not pending:
        return RetryRestorationsResponse(applied=0)

    # Only the records read here are retried, and their products are the locks taken
    command = RetryStockRestorations(restoration_ids=json.dumps([str(restoration.id) for restoration in pending]))
    keys = [product_key(str(restoration.product_id)) for restoration in pending]
    applied = process_serialized(command, *keys)
    return RetryRestorationsResponse(applied=applied)


# ---------------------------------------------------------------------------
# Account Router
# ---------------------------------------------------------------------------
account_router = APIRouter(tags=["accounts"])


@account_router.post("/payments/verify", response_model=PaymentResponse)
async def verify_payment(body: VerifyPaymentRequest, x_user_id: str | None = Header(default=None)) -> PaymentResponse:
    """Confirm a gateway payment, capturing it if it is only authorized."""
    command = VerifyPayment(payment_id=body.payment_id, user_id=x_user_id)
    result = process_serialized(command, f"payment:{body.payment_id}")
    return PaymentResponse(**result)


@account_router.get("/wallet", response_model=WalletResponse)
async def get_wallet(x_user_id: str = Header()) -> WalletResponse:
    return WalletResponse(**wallet_summary(x_user_id))


@account_router.post("/referrals", status_code=201, response_model=ReferralResponse)
async def reward_referral_route(body: RewardReferralRequest, x_user_id: str = Header()) -> ReferralResponse:
    """Reward the caller (the referee) and the customer who referred them."""
    return ReferralResponse(**reward_referral(body.referrer_id, x_user_id, body.reward))


@account_router.post("/otp", status_code=201, response_model=OtpIssuedResponse)
async def issue_otp(body: IssueOtpRequest) -> OtpIssuedResponse:
    result = process_serialized(IssueOtp(email=body.email), f"otp:{body.email.strip().lower()}")
    return OtpIssuedResponse(**result)


@account_router.post("/otp/verify", response_model=StatusResponse)
async def verify_otp(body: VerifyOtpRequest) -> StatusResponse:
    process_serialized(VerifyOtp(email=body.email, code=body.code), f"otp:{body.email.strip().lower()}")
    return StatusResponse(status="verified")


@account_router.get("/otp/{email}/time-remaining", response_model=OtpTimeRemainingResponse)
async def get_otp_time_remaining(email: str) -> OtpTimeRemainingResponse:
    return OtpTimeRemainingResponse(**otp_time_remaining(email))
