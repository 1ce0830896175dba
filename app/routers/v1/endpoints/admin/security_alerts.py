# app/routers/v1/endpoints/admin/security_alerts.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_admin_user, get_db
from app.models.user import User
from app.schemas.security_alert import PaginatedSecurityAlerts, SecurityAlert, SecurityAlertStatusUpdate
from app.services import security_alert as alert_service

router = APIRouter()


@router.get("", response_model=PaginatedSecurityAlerts)
async def list_alerts_endpoint(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    alert_status: Optional[str] = Query(None, alias="status"),
    alert_type: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db)
):
    return alert_service.list_alerts(db, status=alert_status, type=alert_type, page=page, size=size)


@router.patch("/{alert_id}", response_model=SecurityAlert)
async def update_alert_endpoint(
    alert_id: int,
    data: SecurityAlertStatusUpdate,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    alert = alert_service.update_alert_status(db, alert_id, data.status, admin_user_id=admin_user.id)
    return SecurityAlert.model_validate(alert)
