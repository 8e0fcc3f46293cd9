from fastapi import APIRouter

from backend.app.api.v1.endpoints.procurements import router as procurements_router
from backend.app.api.v1.endpoints.sales import router as sales_router
from backend.app.api.v1.endpoints.users import router as users_router
from backend.app.api.v1.endpoints.notifications import router as notifications_router
from backend.app.api.v1.endpoints.stock import router as stock_router

router = APIRouter()
router.include_router(procurements_router, tags=["procurements"])
router.include_router(sales_router, tags=["sales"])
router.include_router(users_router, tags=["users"])
router.include_router(notifications_router, tags=["notifications"])
router.include_router(stock_router, tags=["stock"])
