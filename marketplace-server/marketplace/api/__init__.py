from fastapi import APIRouter


def create_api_router(prefix: str = "") -> APIRouter:
    # routers depend on core.security, which depends on api.deps
    from marketplace.api.routers import auth, disputes, orders, paypal, services, stripe, wallet

    router = APIRouter(prefix=prefix)
    router.include_router(auth.router, prefix="/auth", tags=["auth"])
    router.include_router(services.router, prefix="/services", tags=["services"])
    router.include_router(paypal.router, prefix="/paypal", tags=["paypal"])
    router.include_router(stripe.router, prefix="/stripe", tags=["stripe"])
    router.include_router(orders.router, prefix="/orders", tags=["orders"])
    router.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
    router.include_router(disputes.router, prefix="/disputes", tags=["disputes"])
    return router


__all__ = [
    "create_api_router",
]
