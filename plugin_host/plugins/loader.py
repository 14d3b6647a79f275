"""
Plugin Loader

Turns a (type, name) pair into a live, initialized plugin instance:

    1. return the cached instance if one is live
    2. read the descriptor from disk
    3. refuse plugins that require a newer host
    4. build the implementation and verify its contract
    5. register declared capabilities, then run on_load()
    6. cache and return the instance

Steps 2-6 run inside PluginCache.get_or_create, so at most one task
initializes a given plugin at a time and a failed initialization caches
nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import PluginType
from plugin_host.exceptions import IncompatibleVersionError, InitializationFailedError
from plugin_host.plugins.base import BlockBase, ModuleBase, PluginBase, ThemeHandle
from plugin_host.services.capabilities import CapabilityService

if TYPE_CHECKING:
    from plugin_host.plugins.descriptor import DescriptorReader, PluginDescriptor
    from plugin_host.plugins.factory import PluginFactory
    from plugin_host.services.plugin_cache import PluginCache

logger = logging.getLogger(__name__)


class PluginLoader:
    def __init__(
        self,
        reader: DescriptorReader,
        factory: PluginFactory,
        cache: PluginCache,
        session_factory: Callable[[], AsyncSession],
        host_version: int,
    ) -> None:
        self.reader = reader
        self.factory = factory
        self.cache = cache
        self.session_factory = session_factory
        self.host_version = host_version

    # ── Loading ───────────────────────────────────────────────────────────────

    async def load(self, plugin_type: PluginType | str, name: str) -> PluginBase:
        """
        Return the live instance for (type, name), loading it if needed.

        Raises:
            PluginNotFoundError, InvalidDescriptorError, IncompatibleVersionError,
            InterfaceMismatchError, InitializationFailedError
        """
        plugin_type = PluginType(plugin_type)
        return await self.cache.get_or_create((plugin_type, name), lambda: self._load_uncached(plugin_type, name))

    async def _load_uncached(self, plugin_type: PluginType, name: str) -> PluginBase:
        descriptor = self.reader.read(plugin_type, name)
        self.check_compatibility(descriptor)

        plugin = self.factory.create(descriptor)
        await self._initialize(plugin)

        logger.info(
            "Plugin loaded: %s v%s", descriptor.component, descriptor.version, extra={"component": descriptor.component}
        )
        return plugin

    def check_compatibility(self, descriptor: PluginDescriptor) -> None:
        if descriptor.requires is not None and self.host_version < descriptor.requires:
            raise IncompatibleVersionError(descriptor.component, descriptor.requires, self.host_version)

    async def _initialize(self, plugin: PluginBase) -> None:
        descriptor = plugin.descriptor
        try:
            capabilities = plugin.get_capabilities()
            if capabilities:
                async with self.session_factory() as db:
                    try:
                        await CapabilityService(db).register(descriptor.component, capabilities)
                        await db.commit()
                    except Exception:
                        await db.rollback()
                        raise
            await plugin.on_load()
        except Exception as exc:
            logger.error(
                "Initialization of %s failed: %s", descriptor.component, exc, extra={"component": descriptor.component}
            )
            raise InitializationFailedError(descriptor.type.value, descriptor.name, str(exc)) from exc

    # ── Typed helpers ─────────────────────────────────────────────────────────

    async def load_module(self, name: str) -> ModuleBase:
        return await self.load(PluginType.MODULE, name)

    async def load_block(self, name: str) -> BlockBase:
        return await self.load(PluginType.BLOCK, name)

    async def load_theme(self, name: str) -> ThemeHandle:
        return await self.load(PluginType.THEME, name)

    # ── Cache inspection ──────────────────────────────────────────────────────

    def is_loaded(self, plugin_type: PluginType | str, name: str) -> bool:
        return self.cache.contains((PluginType(plugin_type), name))

    def get_loaded(self, plugin_type: PluginType | str, name: str) -> PluginBase | None:
        return self.cache.peek((PluginType(plugin_type), name))

    def evict(self, plugin_type: PluginType | str, name: str) -> bool:
        evicted = self.cache.invalidate((PluginType(plugin_type), name))
        if evicted:
            logger.debug("Plugin evicted from cache: %s/%s", PluginType(plugin_type).value, name)
        return evicted

    def clear(self) -> None:
        self.cache.clear()
        logger.info("Plugin cache cleared (generation %d)", self.cache.generation)
