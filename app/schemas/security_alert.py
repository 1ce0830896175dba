# app/schemas/security_alert.py
import json
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import PaginatedResponse


class SecurityAlert(BaseModel):
    id: int
    type: str
    severity: str
    user_id: Optional[int] = None
    description: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="alert_metadata")
    status: str
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v):
        if isinstance(v, str):
            return json.loads(v)
        return v


class PaginatedSecurityAlerts(PaginatedResponse[SecurityAlert]):
    pass


class SecurityAlertStatusUpdate(BaseModel):
    status: Literal["unresolved", "investigating", "resolved", "false_positive"]
