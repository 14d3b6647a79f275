"""
Plugin Registry

Enumerates installable plugins across the module, block and theme
directories and merges each descriptor with its persisted enable state and
its presence in the loader cache.

Discovery is resilient: a plugin directory without a usable manifest, or whose
implementation does not satisfy its type contract, is logged and reported in
DiscoveryReport.skipped. One bad plugin never hides the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import PluginType
from plugin_host.exceptions import InterfaceMismatchError, InvalidDescriptorError, PluginNotFoundError
from plugin_host.models.plugin_state import PluginEnabled

if TYPE_CHECKING:
    from plugin_host.plugins.descriptor import DescriptorReader, PluginDescriptor
    from plugin_host.plugins.factory import PluginFactory
    from plugin_host.services.plugin_cache import PluginCache

logger = logging.getLogger(__name__)


@dataclass
class AvailablePlugin:
    descriptor: PluginDescriptor
    enabled: bool
    loaded: bool

    def summary(self) -> dict[str, Any]:
        return {
            "type": self.descriptor.type.value,
            "name": self.descriptor.name,
            "version": self.descriptor.version,
            "enabled": self.enabled,
            "loaded": self.loaded,
        }


@dataclass
class DiscoveryReport:
    plugins: list[AvailablePlugin] = field(default_factory=list)
    skipped: list[dict[str, str]] = field(default_factory=list)


class PluginRegistry:
    """Discovery queries plus the durable enable/disable switch."""

    def __init__(self, db: AsyncSession, reader: DescriptorReader, factory: PluginFactory, cache: PluginCache):
        self.db = db
        self.reader = reader
        self.factory = factory
        self.cache = cache

    # ── Discovery ─────────────────────────────────────────────────────────────

    async def discover(self, plugin_types: list[PluginType] | None = None) -> DiscoveryReport:
        report = DiscoveryReport()
        descriptors: list[PluginDescriptor] = []

        for plugin_type in plugin_types or list(PluginType):
            for name in self.reader.list_names(plugin_type):
                try:
                    descriptor = self.reader.read(plugin_type, name)
                    self.factory.resolve(descriptor)
                except (PluginNotFoundError, InvalidDescriptorError, InterfaceMismatchError) as exc:
                    logger.warning(
                        "Skipping plugin %s/%s: %s",
                        plugin_type.value,
                        name,
                        exc.message,
                        extra={"plugin": f"{plugin_type.value}/{name}"},
                    )
                    report.skipped.append({"type": plugin_type.value, "name": name, "error": exc.message})
                    continue
                descriptors.append(descriptor)

        enabled = await self._enabled_keys()
        for descriptor in descriptors:
            report.plugins.append(
                AvailablePlugin(
                    descriptor=descriptor,
                    enabled=(descriptor.type.value, descriptor.name) in enabled,
                    loaded=self.cache.contains(descriptor.key),
                )
            )
        return report

    async def list_available(self) -> list[AvailablePlugin]:
        return (await self.discover()).plugins

    async def list_by_type(self, plugin_type: PluginType) -> list[AvailablePlugin]:
        return (await self.discover([plugin_type])).plugins

    async def list_enabled(self, plugin_type: PluginType | None = None) -> list[AvailablePlugin]:
        report = await self.discover([plugin_type] if plugin_type else None)
        return [plugin for plugin in report.plugins if plugin.enabled]

    # ── Enable state ──────────────────────────────────────────────────────────

    async def _enabled_keys(self) -> set[tuple[str, str]]:
        result = await self.db.execute(select(PluginEnabled.plugin_type, PluginEnabled.name))
        return {(row.plugin_type, row.name) for row in result.all()}

    async def _get_record(self, plugin_type: PluginType, name: str) -> PluginEnabled | None:
        result = await self.db.execute(
            select(PluginEnabled).where(PluginEnabled.plugin_type == plugin_type.value, PluginEnabled.name == name)
        )
        return result.scalar_one_or_none()

    async def is_enabled(self, plugin_type: PluginType | str, name: str) -> bool:
        return await self._get_record(PluginType(plugin_type), name) is not None

    async def enabled_names(self, plugin_type: PluginType) -> set[str]:
        result = await self.db.execute(
            select(PluginEnabled.name).where(PluginEnabled.plugin_type == PluginType(plugin_type).value)
        )
        return set(result.scalars().all())

    async def enable(self, plugin_type: PluginType | str, name: str) -> PluginDescriptor:
        """
        Enable a plugin. Idempotent; the record is committed before returning.

        Raises:
            PluginNotFoundError / InvalidDescriptorError: no usable manifest.
        """
        plugin_type = PluginType(plugin_type)
        descriptor = self.reader.read(plugin_type, name)

        if await self._get_record(plugin_type, name) is not None:
            return descriptor

        self.db.add(PluginEnabled(plugin_type=plugin_type.value, name=name))
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Failed to enable %s: %s", descriptor.component, e)
            raise

        logger.info("Plugin enabled: %s", descriptor.component, extra={"component": descriptor.component})
        return descriptor

    async def disable(self, plugin_type: PluginType | str, name: str) -> None:
        """Disable a plugin and evict its cached instance. Idempotent."""
        plugin_type = PluginType(plugin_type)
        try:
            result = await self.db.execute(
                delete(PluginEnabled).where(PluginEnabled.plugin_type == plugin_type.value, PluginEnabled.name == name)
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Failed to disable %s/%s: %s", plugin_type.value, name, e)
            raise

        self.cache.invalidate((plugin_type, name))
        if result.rowcount:
            component = f"{plugin_type.value}_{name}"
            logger.info("Plugin disabled: %s", component, extra={"component": component})
