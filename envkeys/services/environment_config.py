"""
Environment Config Service — read/write string-valued environment settings.

Each setting is a single row in the environment_settings table. The
authorized key list lives here as one newline-joined value.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from envkeys.config import settings
from envkeys.models.environment_setting import EnvironmentSetting

logger = logging.getLogger(__name__)

ENVIRONMENT_DEFAULTS: dict[str, str] = {
    settings.authorized_keys_config_key: "",
}


class EnvironmentConfigService:
    """Read/write environment settings from the environment_settings table."""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, key: str) -> EnvironmentSetting | None:
        stmt = select(EnvironmentSetting).where(EnvironmentSetting.key == key)
        return self.db.scalar(stmt)

    def get(self, key: str) -> str:
        """Get a setting value, falling back to defaults."""
        row = self._get_row(key)
        if row and row.is_active:
            return row.value_text
        return ENVIRONMENT_DEFAULTS.get(key, "")

    def set(self, key: str, value: str) -> None:
        """Set a setting value (upsert)."""
        if key not in ENVIRONMENT_DEFAULTS:
            raise ValueError(f"Unknown environment setting key: {key}")
        row = self._get_row(key)
        if row:
            row.value_text = value
            row.is_active = True
        else:
            row = EnvironmentSetting(key=key, value_text=value, is_active=True)
            self.db.add(row)
        self.db.flush()
        logger.info("Environment setting updated: %s", key)
