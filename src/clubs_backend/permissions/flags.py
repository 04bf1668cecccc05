import logging
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clubs_backend.permissions.core import db_get_config_flag

logger = logging.getLogger(__name__)

MAINTENANCE_ENABLED = "maintenance.enabled"
SHOP_HIDDEN = "shop.hidden"


def flag_value_as_bool(value: Any) -> bool:
    """Settings are stored as JSON; accept booleans, numbers and the usual strings"""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ["true", "1", "yes", "on"]
    if isinstance(value, dict) and "enabled" in value:
        return flag_value_as_bool(value["enabled"])
    return False


class ConfigFlags:
    """Read-through accessor for runtime flags, memoized for one request only"""

    def __init__(self, db: Session):
        self.db = db
        self._values: Dict[str, bool] = {}

    def get(self, key: str) -> bool:
        if key not in self._values:
            try:
                value = db_get_config_flag(key, self.db)
            except SQLAlchemyError as e:
                logger.error(f"Error reading site setting {key}: {e}")
                self.db.rollback()
                value = None
            self._values[key] = flag_value_as_bool(value)
        return self._values[key]

    @property
    def maintenance_enabled(self) -> bool:
        return self.get(MAINTENANCE_ENABLED)

    @property
    def shop_hidden(self) -> bool:
        return self.get(SHOP_HIDDEN)
