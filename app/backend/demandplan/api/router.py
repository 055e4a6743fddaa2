"""Top-level API router."""

from fastapi import APIRouter

from demandplan.api.routes.demand_matrix import router as demand_matrix_router
from demandplan.api.routes.exports import router as exports_router
from demandplan.api.routes.health import router as health_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(demand_matrix_router)
api_router.include_router(exports_router)
