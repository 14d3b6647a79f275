import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.models.plugin_state import PluginSetting

logger = logging.getLogger(__name__)


class PluginSettingsService:
    """Per-component key/value settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, component: str) -> dict[str, str]:
        result = await self.db.execute(
            select(PluginSetting).where(PluginSetting.component == component).order_by(PluginSetting.name)
        )
        return {setting.name: setting.value for setting in result.scalars().all()}

    async def update(self, component: str, values: dict[str, str]) -> dict[str, str]:
        """Upsert the given settings and commit. Settings not in values are kept."""
        result = await self.db.execute(select(PluginSetting).where(PluginSetting.component == component))
        existing = {setting.name: setting for setting in result.scalars().all()}

        try:
            for name, value in values.items():
                setting = existing.get(name)
                if setting is None:
                    self.db.add(PluginSetting(component=component, name=name, value=value))
                else:
                    setting.value = value
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Failed to update settings for %s: %s", component, e)
            raise

        logger.info("Settings updated for %s: %s", component, sorted(values))
        return await self.get(component)

    async def delete_all(self, component: str) -> None:
        """Delete every setting of a component. Does not commit."""
        await self.db.execute(delete(PluginSetting).where(PluginSetting.component == component))
