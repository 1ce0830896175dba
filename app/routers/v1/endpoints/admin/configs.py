# app/routers/v1/endpoints/admin/configs.py

import logging

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from app.core.redis import get_redis_client
from app.crud import system_config as crud_config
from app.dependencies import get_admin_user, get_db
from app.models.user import User
from app.schemas.system_config import ConfigEntry, ConfigListResponse, ConfigUpdateRequest
from app.services import system_config as config_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _config_list(db: Session, effective) -> ConfigListResponse:
    return ConfigListResponse(
        entries=[ConfigEntry.model_validate(row) for row in crud_config.get_all_configs(db)],
        effective=effective,
    )


@router.get("", response_model=ConfigListResponse)
async def get_configs_endpoint(db: Session = Depends(get_db)):
    """
    [ADMIN] Stored rows plus the effective snapshot, defaults filled in.
    Read straight from the database, not from the cache.
    """
    return _config_list(db, config_service.load_distribution_config(db))


@router.put("", response_model=ConfigListResponse)
async def update_configs_endpoint(
    data: ConfigUpdateRequest,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis_client),
    admin_user: User = Depends(get_admin_user)
):
    """[ADMIN] Changes some keys. The cached snapshot is dropped, the next request reads the new values."""
    logger.info(f"Admin {admin_user.id} updates config keys {sorted(data.values)}")
    effective = await config_service.update_config_values(db, data.values, redis)
    return _config_list(db, effective)


@router.post("/seed")
async def seed_configs_endpoint(db: Session = Depends(get_db)):
    """[ADMIN] Inserts default rows for missing keys."""
    created = config_service.seed_default_configs(db)
    return {"status": "ok", "created": created}
