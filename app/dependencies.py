# app/dependencies.py

import hmac
import logging
from typing import Iterator
from contextlib import contextmanager

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.redis import get_redis_client
from app.core.security import decode_access_token
from app.crud import distributor as crud_distributor
from app.db.session import SessionLocal
from app.models.distribution import Distributor
from app.models.user import User
from app.schemas.system_config import DistributionConfig
from app.services.system_config import get_distribution_config

# --- Logger ---
logger = logging.getLogger(__name__)

# --- Auth schemes ---
strict_bearer_scheme = HTTPBearer(auto_error=True)

# --- DB session ---
def get_db_session_instance() -> Session:
    return SessionLocal()

def get_db() -> Iterator[Session]:
    """
    Main FastAPI dependency for a DB session.
    A generator, so it works with `Depends`.
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def get_db_context() -> Iterator[Session]:
    """
    Context manager for a DB session outside FastAPI (scheduled jobs, scripts).
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()


async def get_config(db: Session = Depends(get_db), redis: Redis = Depends(get_redis_client)) -> DistributionConfig:
    """One config snapshot per request."""
    return await get_distribution_config(db, redis)


# --- Auth ---

def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(strict_bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    REQUIRED dependency.
    Needs a valid token issued by the shop auth service, otherwise 401.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = payload.get("sub")
        if user_id is None:
            logger.warning("Token payload is missing 'sub' (user_id).")
            raise credentials_exception
    except JWTError as e:
        logger.warning(f"JWT Error during token decoding: {e}")
        raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        logger.warning(f"User with ID {user_id} from token not found in DB.")
        raise credentials_exception
    request.state.user = user
    return user


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """Protects the admin endpoints."""
    if current_user.role != "admin":
        logger.warning(f"Permission denied for user {current_user.id} (role '{current_user.role}').")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to access this resource."
        )
    return current_user


def get_current_distributor(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Distributor:
    distributor = crud_distributor.get_distributor_by_user_id(db, current_user.id)
    if distributor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not a distributor.")
    return distributor


def verify_webhook_secret(x_webhook_secret: str | None = Header(None)) -> None:
    """Checkout callbacks carry the shared secret in X-Webhook-Secret."""
    expected = settings.CHECKOUT_WEBHOOK_SECRET
    if not expected:
        logger.error("CHECKOUT_WEBHOOK_SECRET is not configured, refusing webhook.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Webhook secret is not configured.")
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        logger.warning("Webhook called with an invalid secret.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook secret.")
