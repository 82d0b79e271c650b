from fastapi import APIRouter

from app.api.v1.endpoints import categories, dashboard, orders, products, wilayas

router = APIRouter()

router.include_router(orders.router)
router.include_router(products.router)
router.include_router(categories.router)
router.include_router(wilayas.router)
router.include_router(dashboard.router)
