# app/routers/v1/api.py

from fastapi import APIRouter

from app.routers.v1.endpoints import distribution
from app.routers.v1.endpoints import admin as admin_v1_router

# Everything included here ends up under /api/v1
api_router = APIRouter(prefix="/v1")

# Distributor-facing endpoints
api_router.include_router(distribution.router, tags=["Distribution"])

# Admin endpoints
api_router.include_router(admin_v1_router.router, prefix="/admin")
