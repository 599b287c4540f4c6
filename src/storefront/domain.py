"""Storefront bounded context: orders, stock, wallets and settlement.

Every aggregate of the storefront lives in this single domain so that one
Unit of Work can span an Order, its Product, the customer's Wallet and the
Coupon that was redeemed for it.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")
