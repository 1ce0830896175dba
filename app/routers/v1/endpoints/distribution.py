# app/routers/v1/endpoints/distribution.py

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.dependencies import get_config, get_current_distributor, get_current_user, get_db
from app.models.distribution import Distributor
from app.models.user import User
from app.schemas.distribution import (
    DistributorApply,
    DistributorProfile,
    DistributorProfileUpdate,
    DistributorSummary,
    PaginatedDistributionOrders,
)
from app.schemas.system_config import DistributionConfig
from app.schemas.withdrawal import PaginatedWithdrawals, WithdrawalCreate, WithdrawalRequestResult
from app.services import distribution as distribution_service
from app.services import withdrawal as withdrawal_service

router = APIRouter(prefix="/distribution")


@router.post("/apply", response_model=DistributorProfile, status_code=status.HTTP_201_CREATED)
async def apply_endpoint(
    data: DistributorApply,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Submits a distributor application for the current user."""
    return distribution_service.apply_for_distribution(db, current_user, data)


@router.get("/me", response_model=DistributorProfile)
async def get_my_profile(distributor: Distributor = Depends(get_current_distributor)):
    return distributor


@router.put("/me", response_model=DistributorProfile)
async def update_my_profile(
    data: DistributorProfileUpdate,
    db: Session = Depends(get_db),
    distributor: Distributor = Depends(get_current_distributor)
):
    """Only the fields that are sent get changed."""
    return distribution_service.update_profile(db, distributor.id, data)


@router.get("/me/summary", response_model=DistributorSummary)
async def get_my_summary(
    db: Session = Depends(get_db),
    distributor: Distributor = Depends(get_current_distributor)
):
    return distribution_service.get_distributor_summary(db, distributor.id)


@router.get("/me/orders", response_model=PaginatedDistributionOrders)
async def get_my_orders(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    distributor: Distributor = Depends(get_current_distributor)
):
    return distribution_service.list_distribution_orders(db, distributor.id, page=page, size=size, status=order_status)


@router.get("/me/withdrawals", response_model=PaginatedWithdrawals)
async def get_my_withdrawals(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    distributor: Distributor = Depends(get_current_distributor)
):
    return withdrawal_service.list_distributor_withdrawals(db, distributor.id, page=page, size=size)


@router.post("/me/withdrawals", response_model=WithdrawalRequestResult, status_code=status.HTTP_201_CREATED)
async def request_withdrawal_endpoint(
    data: WithdrawalCreate,
    db: Session = Depends(get_db),
    distributor: Distributor = Depends(get_current_distributor),
    config: DistributionConfig = Depends(get_config)
):
    """
    Requests a payout of `amount` from the available balance.
    Refusals come back as 400/409 with a machine-readable `code`.
    """
    return withdrawal_service.request_withdrawal(db, distributor.id, data, config)
