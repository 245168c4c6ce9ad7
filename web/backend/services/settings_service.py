#!/usr/bin/env python3
"""
Admin matching settings: read the effective values, persist overrides.
"""

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from core.config_loader import AppConfig
from core.settings import resolve_matching_settings
from database.repository import MarketplaceRepository

logger = logging.getLogger(__name__)


class MatchingSettingsService:
    """Effective matching settings = config.yaml defaults overlaid with admin_settings rows."""

    def __init__(self, db: Session, config: AppConfig):
        self.db = db
        self.config = config
        self.repo = MarketplaceRepository(db)

    def get_effective(self) -> Dict[str, Any]:
        effective = resolve_matching_settings(
            self.repo.settings.get_all(),
            self.config.matching,
            self.config.invitations
        )
        return effective.as_settings_dict()

    def update(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Persist the given keys and return the new effective settings."""
        self.repo.settings.set_many(values)
        self.db.commit()
        logger.info(f"Matching settings updated: {sorted(values)}")
        return self.get_effective()
