"""Top-level API router."""

from fastapi import APIRouter

from app.api.routes.billable import router as billable_router
from app.api.routes.dashboard import router as dashboard_router
from app.api.routes.exports import router as exports_router
from app.api.routes.health import router as health_router
from app.api.routes.productivity import router as productivity_router
from app.api.routes.recoverability import router as recoverability_router
from app.api.routes.revenue import router as revenue_router
from app.api.routes.wip import router as wip_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(revenue_router)
api_router.include_router(billable_router)
api_router.include_router(productivity_router)
api_router.include_router(recoverability_router)
api_router.include_router(wip_router)
api_router.include_router(dashboard_router)
api_router.include_router(exports_router)
