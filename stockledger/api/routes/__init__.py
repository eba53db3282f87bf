"""API route modules."""

from stockledger.api.routes.customers import router as customers_router
from stockledger.api.routes.health import router as health_router
from stockledger.api.routes.inventory import router as inventory_router
from stockledger.api.routes.jobs import router as jobs_router
from stockledger.api.routes.purchase_orders import router as purchase_orders_router

__all__ = [
    "health_router",
    "inventory_router",
    "jobs_router",
    "purchase_orders_router",
    "customers_router",
]
