"""Sales aggregates for the admin dashboard.

Averages are taken over order lines, not checkouts: a checkout of three
products counts as three orders with three prices.
"""

from collections import defaultdict
from datetime import UTC, datetime, timedelta

from protean.utils.globals import current_domain

from storefront.order.order import Order

TOP_SELLING_LIMIT = 5


def _as_utc(moment: datetime | None) -> datetime | None:
    if moment is None:
        return None
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment.astimezone(UTC)


def _orders() -> list[Order]:
    return current_domain.repository_for(Order).all_orders()


def total_quantity(orders: list[Order]) -> int:
    return sum(order.quantity or 0 for order in orders)


def orders_placed_on(orders: list[Order], day: datetime) -> int:
    start = datetime(day.year, day.month, day.day, tzinfo=UTC)
    end = start + timedelta(days=1)
    return sum(1 for order in orders if order.order_date and start <= _as_utc(order.order_date) < end)


def average_price(orders: list[Order]) -> float:
    if not orders:
        return 0.0
    return sum(order.price for order in orders) / len(orders)


def order_metrics(now: datetime | None = None) -> dict:
    orders = _orders()
    today = _as_utc(now) if now else datetime.now(UTC)
    return {
        "total_orders": total_quantity(orders),
        "orders_today": orders_placed_on(orders, today),
        "average_order_value": average_price(orders),
    }


def average_order_value() -> float:
    return average_price(_orders())


def top_selling_products(limit: int = TOP_SELLING_LIMIT) -> list[dict]:
    """Products with the most order lines, with the summed line price as revenue."""
    sales: dict[str, int] = defaultdict(int)
    revenue: dict[str, float] = defaultdict(float)
    for order in _orders():
        sales[order.name] += 1
        revenue[order.name] += order.price

    ranked = sorted(sales, key=lambda name: (-sales[name], name))
    return [{"name": name, "sales": sales[name], "total_revenue": revenue[name]} for name in ranked[:limit]]
