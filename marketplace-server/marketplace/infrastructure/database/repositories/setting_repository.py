"""Key/value system settings stored in the database."""

from __future__ import annotations

from sqlalchemy import select

from marketplace.db.models import SystemSetting, utcnow
from marketplace.domain.common.repository import AsyncRepository


class SqlSettingRepository(AsyncRepository[SystemSetting]):
    async def get_value(self, key: str) -> str | None:
        stmt = select(SystemSetting.value).where(SystemSetting.key == key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_value(self, key: str, value: str) -> None:
        model = await self.session.get(SystemSetting, key)
        if model is None:
            await self.add(SystemSetting(key=key, value=value))
            return
        model.value = value
        model.updated_at = utcnow()
        await self.session.flush()
