"""Routers module."""

from .notifications import router as notifications_router
from .orders import router as orders_router
from .payments import router as payments_router
from .subscriptions import router as subscriptions_router

__all__ = ["notifications_router", "orders_router", "payments_router", "subscriptions_router"]
