# app/services/system_config.py

import json
import logging
from decimal import Decimal
from typing import Any, Dict

from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import DistributionValidationError
from app.crud import system_config as crud_config
from app.schemas.system_config import DistributionConfig

logger = logging.getLogger(__name__)

CACHE_KEY = "distribution_config"
CATEGORIES = ("commission", "withdrawal", "withdrawal_risk")


def config_category(key: str) -> str:
    if key.startswith("withdrawal_risk_"):
        return "withdrawal_risk"
    if key.startswith("withdrawal_"):
        return "withdrawal"
    return "commission"


def config_value_type(key: str) -> str:
    annotation = DistributionConfig.model_fields[key].annotation
    if annotation is bool:
        return "boolean"
    if annotation in (int, float, Decimal):
        return "number"
    return "string"


def _to_storage(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_value(key: str, raw: str) -> Any:
    """Raises ValidationError when the stored text does not fit the field type."""
    field = DistributionConfig.model_fields[key]
    if config_value_type(key) == "boolean":
        raw = raw.strip().lower()
    elif config_value_type(key) == "number" and field.annotation is int:
        # Numbers written by the admin UI may come back as '15.0'
        try:
            as_decimal = Decimal(raw.strip())
            if as_decimal == as_decimal.to_integral_value():
                raw = str(int(as_decimal))
        except ArithmeticError:
            pass
    return TypeAdapter(field.annotation).validate_python(raw)


def load_distribution_config(db: Session) -> DistributionConfig:
    """
    Reads every known key from the database. Unknown keys are ignored, unreadable
    values fall back to the default declared on DistributionConfig.
    """
    values: Dict[str, Any] = {}
    for row in crud_config.get_configs_by_categories(db, CATEGORIES):
        if row.key not in DistributionConfig.model_fields:
            continue
        try:
            values[row.key] = _parse_value(row.key, row.value)
        except (ValidationError, ValueError):
            logger.warning(f"Config '{row.key}' has unreadable value '{row.value}'. Using default.")

    try:
        return DistributionConfig.model_validate(values)
    except ValidationError as e:
        # Out-of-range values (negative days etc.): drop them and use defaults for those keys
        bad_keys = {err["loc"][0] for err in e.errors() if err.get("loc")}
        logger.warning(f"Config keys {sorted(bad_keys)} are out of range. Using defaults.")
        return DistributionConfig.model_validate({k: v for k, v in values.items() if k not in bad_keys})


async def get_distribution_config(db: Session, redis: Redis | None = None) -> DistributionConfig:
    """
    Returns the config snapshot, served from Redis when cached.
    Without a Redis client the database is read every time.
    """
    if redis is not None:
        try:
            cached = await redis.get(CACHE_KEY)
        except RedisError as e:
            logger.warning(f"Redis unavailable while reading config cache: {e}")
            cached = None
        if cached:
            try:
                return DistributionConfig.model_validate(json.loads(cached))
            except (ValidationError, ValueError) as e:
                logger.warning(f"Failed to validate cached config: {e}. Reading fresh config.")

    config = load_distribution_config(db)

    if redis is not None:
        try:
            await redis.set(CACHE_KEY, config.model_dump_json(), ex=settings.CONFIG_CACHE_TTL_SECONDS)
        except RedisError as e:
            logger.warning(f"Redis unavailable while writing config cache: {e}")
    return config


async def invalidate_config_cache(redis: Redis | None) -> None:
    if redis is None:
        return
    try:
        await redis.delete(CACHE_KEY)
    except RedisError as e:
        logger.warning(f"Failed to invalidate config cache: {e}")


def _check_consistency(config: DistributionConfig) -> None:
    if config.withdrawal_min_amount > config.withdrawal_max_amount:
        raise DistributionValidationError(
            "invalid_config_value", "withdrawal_min_amount must not exceed withdrawal_max_amount"
        )
    if config.withdrawal_risk_threshold_auto > config.withdrawal_risk_threshold_manual:
        raise DistributionValidationError(
            "invalid_config_value", "withdrawal_risk_threshold_auto must not exceed withdrawal_risk_threshold_manual"
        )


async def update_config_values(db: Session, values: Dict[str, Any], redis: Redis | None = None) -> DistributionConfig:
    """Validates and stores new values, then drops the cached snapshot."""
    current = load_distribution_config(db).model_dump()
    parsed: Dict[str, Any] = {}

    for key, value in values.items():
        if key not in DistributionConfig.model_fields:
            raise DistributionValidationError("unknown_config_key", f"Unknown config key '{key}'")
        try:
            parsed[key] = _parse_value(key, _to_storage(value))
        except (ValidationError, ValueError):
            raise DistributionValidationError("invalid_config_value", f"Invalid value '{value}' for '{key}'")

    try:
        new_config = DistributionConfig.model_validate({**current, **parsed})
    except ValidationError as e:
        raise DistributionValidationError("invalid_config_value", str(e.errors()[0]["msg"]))
    _check_consistency(new_config)

    for key, value in parsed.items():
        field = DistributionConfig.model_fields[key]
        crud_config.upsert_config(
            db,
            key=key,
            value=_to_storage(value),
            type=config_value_type(key),
            category=config_category(key),
            description=field.description,
        )
    db.commit()
    logger.info(f"Updated config keys: {sorted(parsed)}")

    await invalidate_config_cache(redis)
    return new_config


def seed_default_configs(db: Session) -> int:
    """Inserts a row with the default value for every missing key. Existing rows are left alone."""
    created = 0
    defaults = DistributionConfig()
    for key, field in DistributionConfig.model_fields.items():
        if crud_config.get_config_by_key(db, key):
            continue
        crud_config.upsert_config(
            db,
            key=key,
            value=_to_storage(getattr(defaults, key)),
            type=config_value_type(key),
            category=config_category(key),
            description=field.description,
        )
        created += 1
    db.commit()
    logger.info(f"Seeded {created} default config entries.")
    return created
