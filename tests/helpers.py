# tests/helpers.py
from datetime import datetime, timezone

from app.core.security import create_access_token
from app.models.user import User

# Fixed clock for every time-dependent test
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
