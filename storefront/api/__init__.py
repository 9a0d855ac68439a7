# storefront/api/__init__.py
from storefront.api.routers import carts, catalog, health, history, orders

ROUTERS = (
    health.router,
    catalog.router,
    carts.router,
    orders.router,
    history.router,
)
