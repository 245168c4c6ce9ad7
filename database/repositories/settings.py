import json
import logging
from typing import Any, Dict

from sqlalchemy import select

from database.models import AdminSetting
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SettingsRepository(BaseRepository):
    def get_all(self) -> Dict[str, Any]:
        """All admin settings, JSON-decoded. Values that fail to decode are returned as text."""
        settings = {}
        for row in self.db.execute(select(AdminSetting)).scalars().all():
            try:
                settings[row.key] = json.loads(row.value) if row.value is not None else None
            except json.JSONDecodeError:
                logger.warning(f"Admin setting {row.key} is not valid JSON; using raw text")
                settings[row.key] = row.value
        return settings

    def set_many(self, values: Dict[str, Any]) -> None:
        existing = {
            row.key: row
            for row in self.db.execute(
                select(AdminSetting).where(AdminSetting.key.in_(list(values.keys())))
            ).scalars().all()
        }
        for key, value in values.items():
            encoded = json.dumps(value)
            if key in existing:
                existing[key].value = encoded
            else:
                self.db.add(AdminSetting(key=key, value=encoded))
        self.db.flush()
