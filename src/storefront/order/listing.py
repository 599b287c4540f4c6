"""Order read models for customers and admins.

A customer's order list merges their orders with their failed checkouts,
newest first. Each entry carries an ``image_url``: the snapshot taken at
checkout, or else the product's current first image.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.order.failed_order import FailedOrder
from storefront.order.order import Order
from storefront.stock.product import Product


def _find(aggregate_cls, identifier):
    try:
        return current_domain.repository_for(aggregate_cls).get(identifier)
    except ObjectNotFoundError:
        return None


def _value_object(vo) -> dict | None:
    return vo.to_dict() if vo is not None else None


def _product_image(product_id, cache: dict) -> str | None:
    if not product_id:
        return None
    key = str(product_id)
    if key not in cache:
        product = _find(Product, key)
        cache[key] = product.first_image_url() if product else None
    return cache[key]


def order_view(order: Order, image_cache: dict | None = None) -> dict:
    image_cache = {} if image_cache is None else image_cache
    return {
        "id": str(order.id),
        "kind": "order",
        "order_number": order.order_number,
        "user_id": str(order.user_id),
        "product_id": str(order.product_id),
        "payment_id": order.payment_id,
        "name": order.name,
        "model": order.model,
        "price": order.price,
        "quantity": order.quantity,
        "offer_price": order.offer_price,
        "coupon_applied": _value_object(order.coupon_applied),
        "shipping_cost": order.shipping_cost,
        "shipping": _value_object(order.shipping),
        "shipping_address": _value_object(order.shipping_address),
        "image_url": order.image_url or _product_image(order.product_id, image_cache),
        "return_policy": order.return_policy,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "order_date": order.order_date,
        "expected_delivery_date": order.expected_delivery_date,
        "delivery_date": order.delivery_date,
        "return_within_date": order.return_within_date,
        "cancellation_reason": order.cancellation_reason,
        "return_reason": order.return_reason,
        "created_at": order.created_at,
    }


def failed_order_view(failed: FailedOrder, image_cache: dict | None = None) -> dict:
    image_cache = {} if image_cache is None else image_cache
    return {
        "id": str(failed.id),
        "kind": "failed_order",
        "order_number": failed.order_number,
        "user_id": str(failed.user_id),
        "product_id": str(failed.product_id) if failed.product_id else None,
        "payment_id": failed.payment_id,
        "name": failed.name,
        "model": failed.model,
        "price": failed.price,
        "quantity": failed.quantity,
        "image_url": failed.image_url or _product_image(failed.product_id, image_cache),
        "return_policy": failed.return_policy,
        "status": failed.status,
        "payment_status": failed.payment_status,
        "payment_method": failed.payment_method,
        "failure_reason": failed.failure_reason,
        "created_at": failed.created_at,
    }


def _newest_first(records):
    return sorted(records, key=lambda record: record.created_at, reverse=True)


def _page_bounds(page: int, limit: int) -> tuple[int, int]:
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    return (page - 1) * limit, page * limit


def user_orders(user_id, page: int = 1, limit: int = 10) -> dict:
    orders = current_domain.repository_for(Order).for_user(user_id)
    failed = current_domain.repository_for(FailedOrder).for_user(user_id)

    start, end = _page_bounds(page, limit)
    cache: dict = {}
    views = []
    for record in _newest_first([*orders, *failed])[start:end]:
        views.append(order_view(record, cache) if isinstance(record, Order) else failed_order_view(record, cache))

    # Only real orders count towards the total, failed checkouts ride along
    total_count = len(orders)
    return {"orders": views, "has_more": end < total_count, "total_count": total_count}


def user_order(user_id, order_id) -> dict:
    """One of the customer's orders or failed checkouts."""
    order = _find(Order, order_id)
    if order is not None and str(order.user_id) == str(user_id):
        return order_view(order)

    failed = _find(FailedOrder, order_id)
    if failed is not None and str(failed.user_id) == str(user_id):
        return failed_order_view(failed)

    raise ObjectNotFoundError({"order_id": [f"Order {order_id} not found"]})


def admin_order(order_id) -> dict:
    return order_view(current_domain.repository_for(Order).get(order_id))


def admin_orders(page: int = 1, limit: int = 3) -> dict:
    orders = current_domain.repository_for(Order).all_orders()

    start, end = _page_bounds(page, limit)
    cache: dict = {}
    views = [order_view(order, cache) for order in _newest_first(orders)[start:end]]
    if not views:
        raise ObjectNotFoundError({"orders": ["No orders found"]})

    return {"orders": views, "total_count": len(orders)}
