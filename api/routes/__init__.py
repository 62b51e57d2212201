"""FastAPI routers mounted by the host application."""

from api.routes.admin_subscriptions import router as admin_subscriptions_router
from api.routes.webhooks_purchases import router as webhooks_purchases_router

__all__ = [
    "admin_subscriptions_router",
    "webhooks_purchases_router",
]
