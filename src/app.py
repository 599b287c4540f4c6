"""Storefront FastAPI application.

Processes commands synchronously over HTTP. Every request under one of the
storefront prefixes runs inside the storefront domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the overlay from storefront/domain.toml.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from protean.integrations.fastapi import register_exception_handlers

from storefront.domain import storefront
from storefront.utils.logging import add_context, clear_context

storefront.init()

_DOMAIN_PREFIXES = ("/orders", "/admin", "/payments", "/wallet", "/referrals", "/otp")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Checkout, order settlement, wallets and sales reporting",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for each storefront request."""
    if not request.url.path.startswith(_DOMAIN_PREFIXES):
        # Health check, docs
        return await call_next(request)

    add_context(path=request.url.path, method=request.method, user_id=request.headers.get("x-user-id"))
    try:
        with storefront.domain_context():
            return await call_next(request)
    finally:
        clear_context()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import account_router, admin_router, order_router  # noqa: E402

app.include_router(order_router)
app.include_router(admin_router)
app.include_router(account_router)


@app.get("/health")
async def health():
    return {"status": "ok", "domain": storefront.name}
