"""Stock ledger: the only place that moves product stock.

Checkout reserves by decrementing, settlement gives back by restoring. Both
run inside the caller's Unit of Work, so the stock change commits or rolls
back together with the order it belongs to.
"""

from collections import OrderedDict

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.errors import InsufficientStock
from storefront.stock.product import Product
from storefront.stock.restoration import StockRestoration

logger = structlog.get_logger(__name__)


def requested_quantities(items) -> "OrderedDict[str, int]":
    """Sum the requested quantity per product, keeping first-seen order."""
    totals: OrderedDict[str, int] = OrderedDict()
    for item in items:
        product_id = str(item["product_id"])
        totals[product_id] = totals.get(product_id, 0) + int(item["quantity"])
    return totals


def load_products(product_ids) -> dict[str, Product]:
    """Load every product, raising ``ObjectNotFoundError`` for the first unknown id."""
    repo = current_domain.repository_for(Product)
    return {product_id: repo.get(product_id) for product_id in product_ids}


def assert_available(items, products: dict[str, Product]) -> None:
    """Check every requested quantity against stock before anything is written."""
    for product_id, quantity in requested_quantities(items).items():
        product = products[product_id]
        if not product.has_stock_for(quantity):
            raise InsufficientStock(product.name, product.stock or 0, quantity)


def decrement(product: Product, quantity: int) -> None:
    product.decrement_stock(quantity)
    current_domain.repository_for(Product).add(product)


def restore(order) -> bool:
    """Put an order's quantity back on its product.

    Returns False when the product no longer exists; the restore is then kept
    as a pending ``StockRestoration`` so it can be applied later.
    """
    try:
        product = current_domain.repository_for(Product).get(order.product_id)
    except ObjectNotFoundError:
        restoration = StockRestoration.defer(
            order_id=order.id,
            product_id=order.product_id,
            quantity=order.quantity,
            reason=f"Product {order.product_id} not found",
        )
        current_domain.repository_for(StockRestoration).add(restoration)
        logger.warning(
            "Stock restore deferred, product not found",
            order_id=str(order.id),
            product_id=str(order.product_id),
            quantity=order.quantity,
            restoration_id=str(restoration.id),
        )
        return False

    product.restore_stock(order.quantity, order_id=order.id)
    current_domain.repository_for(Product).add(product)
    logger.info(
        "Stock restored",
        order_id=str(order.id),
        product_id=str(order.product_id),
        quantity=order.quantity,
        stock=product.stock,
    )
    return True
