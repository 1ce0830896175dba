# app/routers/v1/endpoints/admin/distributors.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_db
from app.schemas.distribution import (
    AdminDistributor,
    ApproveDistributorRequest,
    DistributorSummary,
    PaginatedAdminDistributors,
    PaginatedDistributionOrders,
    ReasonRequest,
    RiskLevelRequest,
    TestingOverridesRequest,
    VerifyRequest,
)
from app.services import distribution as distribution_service

# The /distributors prefix is added in admin/__init__.py
router = APIRouter()


@router.get("", response_model=PaginatedAdminDistributors)
async def list_distributors_endpoint(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    distributor_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db)
):
    """[ADMIN] Distributors, newest first, optionally filtered by status."""
    return distribution_service.list_distributors(db, status=distributor_status, page=page, size=size)


@router.get("/{distributor_id}", response_model=AdminDistributor)
async def get_distributor_endpoint(distributor_id: int, db: Session = Depends(get_db)):
    return distribution_service.get_distributor_or_404(db, distributor_id)


@router.get("/{distributor_id}/summary", response_model=DistributorSummary)
async def get_distributor_summary_endpoint(distributor_id: int, db: Session = Depends(get_db)):
    return distribution_service.get_distributor_summary(db, distributor_id)


@router.get("/{distributor_id}/orders", response_model=PaginatedDistributionOrders)
async def get_distributor_orders_endpoint(
    distributor_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db)
):
    return distribution_service.list_distribution_orders(db, distributor_id, page=page, size=size, status=order_status)


# --- Lifecycle ---

@router.post("/{distributor_id}/approve", response_model=AdminDistributor)
async def approve_distributor_endpoint(
    distributor_id: int,
    data: ApproveDistributorRequest,
    db: Session = Depends(get_db)
):
    """[ADMIN] Approves a pending application. Without a rate the default one is kept."""
    return distribution_service.approve_distributor(db, distributor_id, data.commission_rate)


@router.post("/{distributor_id}/reject", response_model=AdminDistributor)
async def reject_distributor_endpoint(distributor_id: int, data: ReasonRequest, db: Session = Depends(get_db)):
    return distribution_service.reject_distributor(db, distributor_id, data.reason)


@router.post("/{distributor_id}/suspend", response_model=AdminDistributor)
async def suspend_distributor_endpoint(distributor_id: int, data: ReasonRequest, db: Session = Depends(get_db)):
    return distribution_service.suspend_distributor(db, distributor_id, data.reason)


@router.post("/{distributor_id}/reactivate", response_model=AdminDistributor)
async def reactivate_distributor_endpoint(distributor_id: int, db: Session = Depends(get_db)):
    return distribution_service.reactivate_distributor(db, distributor_id)


# --- Risk controls ---

@router.post("/{distributor_id}/freeze", response_model=AdminDistributor)
async def freeze_distributor_endpoint(distributor_id: int, data: ReasonRequest, db: Session = Depends(get_db)):
    """[ADMIN] A frozen account keeps earning, its withdrawals always go to manual review."""
    return distribution_service.freeze_distributor(db, distributor_id, data.reason)


@router.post("/{distributor_id}/unfreeze", response_model=AdminDistributor)
async def unfreeze_distributor_endpoint(distributor_id: int, db: Session = Depends(get_db)):
    return distribution_service.unfreeze_distributor(db, distributor_id)


@router.put("/{distributor_id}/verification", response_model=AdminDistributor)
async def set_verified_endpoint(distributor_id: int, data: VerifyRequest, db: Session = Depends(get_db)):
    return distribution_service.set_verified(db, distributor_id, data.is_verified)


@router.put("/{distributor_id}/risk-level", response_model=AdminDistributor)
async def set_risk_level_endpoint(distributor_id: int, data: RiskLevelRequest, db: Session = Depends(get_db)):
    return distribution_service.set_risk_level(db, distributor_id, data.risk_level)


@router.put("/{distributor_id}/testing-overrides", response_model=AdminDistributor)
async def set_testing_overrides_endpoint(
    distributor_id: int,
    data: TestingOverridesRequest,
    db: Session = Depends(get_db)
):
    """
    [ADMIN] Test account flag and per-distributor settlement cooldown.
    Send `"cooldown_override_days": null` to go back to the global cooldown.
    """
    return distribution_service.set_testing_overrides(db, distributor_id, data)
