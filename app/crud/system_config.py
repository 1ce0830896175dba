# app/crud/system_config.py

from typing import Iterable, List
from sqlalchemy.orm import Session

from app.models.system_config import SystemConfig


def get_configs_by_categories(db: Session, categories: Iterable[str]) -> List[SystemConfig]:
    return db.query(SystemConfig).filter(SystemConfig.category.in_(list(categories))).all()


def get_all_configs(db: Session) -> List[SystemConfig]:
    return db.query(SystemConfig).order_by(SystemConfig.category, SystemConfig.key).all()


def get_config_by_key(db: Session, key: str) -> SystemConfig | None:
    return db.query(SystemConfig).filter(SystemConfig.key == key).first()


def upsert_config(
    db: Session,
    key: str,
    value: str,
    type: str,
    category: str,
    description: str | None = None,
) -> SystemConfig:
    """
    Creates or updates a config row in the session.
    Requires an external db.commit().
    """
    config = get_config_by_key(db, key)
    if config is None:
        config = SystemConfig(key=key, value=value, type=type, category=category, description=description)
        db.add(config)
    else:
        config.value = value
        config.type = type
        config.category = category
        if description is not None:
            config.description = description
    return config
