# app/routers/v1/endpoints/admin/withdrawals.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_admin_user, get_db
from app.models.user import User
from app.schemas.withdrawal import AdminWithdrawal, PaginatedAdminWithdrawals, WithdrawalDecision
from app.services import withdrawal as withdrawal_service

router = APIRouter()


@router.get("", response_model=PaginatedAdminWithdrawals)
async def list_withdrawals_endpoint(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    withdrawal_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db)
):
    """[ADMIN] Withdrawals with their risk breakdown and the full bank account."""
    return withdrawal_service.list_withdrawals(db, status=withdrawal_status, page=page, size=size)


@router.post("/{withdrawal_id}/decision", response_model=AdminWithdrawal)
async def decide_withdrawal_endpoint(
    withdrawal_id: int,
    decision: WithdrawalDecision,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """
    [ADMIN] approve: pending -> processing.
    complete: processing -> completed, needs `transaction_id`.
    reject: pending/processing -> rejected, needs `reason`, the amount goes back to the balance.
    """
    return withdrawal_service.decide_withdrawal(db, withdrawal_id, decision, admin_user_id=admin_user.id)
