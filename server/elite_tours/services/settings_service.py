"""Business settings service (singleton row)."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..models.settings import SETTINGS_ROW_ID, BusinessSettings
from ..schemas.settings import UpdateSettingsRequest
from .dialect import insert_for

logger = logging.getLogger(__name__)


class SettingsService:
    """Reads and writes the single business settings row."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_settings(self) -> Optional[BusinessSettings]:
        """Return the settings row, or None if an admin has never saved settings."""
        stmt = select(BusinessSettings).where(BusinessSettings.id == SETTINGS_ROW_ID)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_settings_or_default(self) -> BusinessSettings:
        """
        Settings for pricing and booking rules.

        When nothing is stored yet, an unsaved instance carrying the column
        defaults is returned so callers never branch on ``None``.
        """
        stored = await self.get_settings()
        if stored is not None:
            return stored

        defaults = {
            column.name: column.default.arg
            for column in BusinessSettings.__table__.columns
            if column.default is not None and not callable(column.default.arg)
        }
        return BusinessSettings(**defaults)

    async def upsert_settings(self, request: UpdateSettingsRequest) -> BusinessSettings:
        """
        Create or update the settings row in one statement.

        Concurrent first writes conflict on the fixed row id instead of
        inserting two rows. Only fields present in the request are written.
        """
        values = request.model_dump(exclude_unset=True)
        now = utcnow()

        insert = insert_for(self.db)
        stmt = insert(BusinessSettings).values(id=SETTINGS_ROW_ID, updated_at=now, **values)
        update_set = {key: stmt.excluded[key] for key in values}
        update_set["updated_at"] = now
        stmt = stmt.on_conflict_do_update(index_elements=[BusinessSettings.id], set_=update_set)

        await self.db.execute(stmt)
        await self.db.commit()

        stored = await self.get_settings()
        await self.db.refresh(stored)

        # Field names only; values may include the API token
        logger.info("Business settings saved", extra={"fields": sorted(values)})
        return stored
