# app/services/security_alert.py

import logging
import math
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.errors import DistributionNotFoundError
from app.crud import security_alert as crud_alert
from app.models.security_alert import SecurityAlert, SecurityAlertStatus
from app.schemas.security_alert import PaginatedSecurityAlerts, SecurityAlert as SecurityAlertSchema
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def list_alerts(
    db: Session,
    status: str | None = None,
    type: str | None = None,
    page: int = 1,
    size: int = 20,
) -> PaginatedSecurityAlerts:
    skip = (page - 1) * size
    items = crud_alert.get_alerts(db, status=status, type=type, skip=skip, limit=size)
    total = crud_alert.count_alerts(db, status=status, type=type)
    return PaginatedSecurityAlerts(
        total_items=total,
        total_pages=math.ceil(total / size) if total else 0,
        current_page=page,
        size=size,
        items=[SecurityAlertSchema.model_validate(item) for item in items],
    )


def update_alert_status(
    db: Session,
    alert_id: int,
    status: str,
    admin_user_id: int | None = None,
    now: datetime | None = None,
) -> SecurityAlert:
    """Closing an alert stamps who closed it and when, reopening clears both."""
    alert = crud_alert.get_alert(db, alert_id)
    if alert is None:
        raise DistributionNotFoundError("security_alert", alert_id)

    alert.status = status
    if status in SecurityAlertStatus.CLOSED:
        alert.resolved_at = now or utcnow()
        alert.resolved_by = admin_user_id
    else:
        alert.resolved_at = None
        alert.resolved_by = None
    db.commit()
    db.refresh(alert)
    logger.info(f"Security alert {alert.id} ({alert.type}) set to {status} by admin {admin_user_id}")
    return alert
