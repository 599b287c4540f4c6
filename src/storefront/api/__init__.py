"""Storefront API package."""

from storefront.api.routes import account_router, admin_router, order_router

__all__ = ["order_router", "admin_router", "account_router"]
