# app/crud/security_alert.py

import json
from typing import Any, Dict, List
from sqlalchemy.orm import Session

from app.models.security_alert import SecurityAlert, SecurityAlertStatus


def create_alert(
    db: Session,
    type: str,
    severity: str,
    description: str,
    user_id: int | None = None,
    metadata: Dict[str, Any] | None = None,
) -> SecurityAlert:
    """
    Adds an alert to the session. Decimals and datetimes in `metadata` are stored as strings.
    Requires an external db.commit().
    """
    alert = SecurityAlert(
        type=type,
        severity=severity,
        user_id=user_id,
        description=description,
        alert_metadata=json.dumps(metadata, default=str, ensure_ascii=False) if metadata else None,
        status=SecurityAlertStatus.UNRESOLVED,
    )
    db.add(alert)
    return alert


def get_alert(db: Session, alert_id: int) -> SecurityAlert | None:
    return db.query(SecurityAlert).filter(SecurityAlert.id == alert_id).first()


def _filtered(db: Session, status: str | None, type: str | None):
    query = db.query(SecurityAlert)
    if status:
        query = query.filter(SecurityAlert.status == status)
    if type:
        query = query.filter(SecurityAlert.type == type)
    return query


def get_alerts(db: Session, status: str | None = None, type: str | None = None, skip: int = 0, limit: int = 20) -> List[SecurityAlert]:
    return _filtered(db, status, type).order_by(SecurityAlert.created_at.desc(), SecurityAlert.id.desc()).offset(skip).limit(limit).all()


def count_alerts(db: Session, status: str | None = None, type: str | None = None) -> int:
    return _filtered(db, status, type).count()


def find_open_alert(db: Session, type: str, **metadata_match: Any) -> SecurityAlert | None:
    """
    First alert of `type` that is still unresolved or under investigation and whose
    metadata holds every `metadata_match` pair.
    """
    open_alerts = (
        db.query(SecurityAlert)
        .filter(SecurityAlert.type == type, SecurityAlert.status.notin_(SecurityAlertStatus.CLOSED))
        .order_by(SecurityAlert.id)
        .all()
    )
    for alert in open_alerts:
        metadata = json.loads(alert.alert_metadata) if alert.alert_metadata else {}
        if all(metadata.get(key) == value for key, value in metadata_match.items()):
            return alert
    return None
