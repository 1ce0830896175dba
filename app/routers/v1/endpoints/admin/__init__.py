# app/routers/v1/endpoints/admin/__init__.py

from fastapi import APIRouter, Depends

from app.dependencies import get_admin_user

from . import (
    configs,
    distributors,
    orders,
    security_alerts,
    tasks,
    withdrawals,
)

# get_admin_user applies to EVERY endpoint included below
router = APIRouter(
    tags=["Admin"],
    dependencies=[Depends(get_admin_user)]
)

# /admin/distributors, /admin/distributors/{id}/approve, ...
router.include_router(distributors.router, prefix="/distributors")

# /admin/withdrawals, /admin/withdrawals/{id}/decision
router.include_router(withdrawals.router, prefix="/withdrawals")

# /admin/orders/{id}/refund
router.include_router(orders.router, prefix="/orders")

# /admin/security-alerts
router.include_router(security_alerts.router, prefix="/security-alerts")

# /admin/configs
router.include_router(configs.router, prefix="/configs")

# /admin/tasks, /admin/tasks/run
router.include_router(tasks.router, prefix="/tasks")
