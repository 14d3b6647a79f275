"""
Plugin runtime wiring.

PluginRuntime holds the process-scoped pieces shared by every request: the
descriptor reader, the implementation factory, the instance cache, the loader
and the block coordinate locks. Request-scoped services (registry, lifecycle,
block and module services) are built per request around a session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.config import Settings, settings
from plugin_host.database import AsyncSessionLocal
from plugin_host.plugins.builtin import register_builtin_plugins
from plugin_host.plugins.descriptor import DescriptorReader
from plugin_host.plugins.factory import PluginFactory
from plugin_host.plugins.lifecycle import LifecycleManager
from plugin_host.plugins.loader import PluginLoader
from plugin_host.plugins.registry import PluginRegistry
from plugin_host.services.block_service import BlockService
from plugin_host.services.enrollment import DatabaseEnrollmentChecker
from plugin_host.services.grading import DatabaseGradingLedger
from plugin_host.services.module_service import ModuleService
from plugin_host.services.plugin_cache import PluginCache
from plugin_host.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


@dataclass
class PluginRuntime:
    reader: DescriptorReader
    factory: PluginFactory
    cache: PluginCache
    loader: PluginLoader
    coordinate_locks: KeyedLock
    section_locks: KeyedLock
    host_version: int

    def registry(self, db: AsyncSession) -> PluginRegistry:
        return PluginRegistry(db, self.reader, self.factory, self.cache)

    def lifecycle(self, db: AsyncSession) -> LifecycleManager:
        return LifecycleManager(db, self.reader, self.loader, self.host_version)

    def block_service(self, db: AsyncSession) -> BlockService:
        return BlockService(db, self.loader, self.registry(db), self.coordinate_locks)

    def module_service(self, db: AsyncSession) -> ModuleService:
        return ModuleService(
            db,
            self.loader,
            self.registry(db),
            grading_ledger=DatabaseGradingLedger(),
            enrollment_checker=DatabaseEnrollmentChecker(db),
            section_locks=self.section_locks,
        )


def build_runtime(
    config: Settings = settings,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    plugins_path: Path | None = None,
    factory: PluginFactory | None = None,
    cache: PluginCache | None = None,
) -> PluginRuntime:
    """Assemble a runtime; built-in plugins are registered unless a factory is supplied."""
    reader = DescriptorReader(plugins_path or config.plugins_path, config.manifest_filename)
    if factory is None:
        factory = PluginFactory()
        register_builtin_plugins(factory)
    cache = cache or PluginCache(ttl=config.plugin_cache_ttl)
    loader = PluginLoader(reader, factory, cache, session_factory, config.host_version)

    logger.info("Plugin runtime ready: root=%s host_version=%s", reader.root, config.host_version)
    return PluginRuntime(
        reader=reader,
        factory=factory,
        cache=cache,
        loader=loader,
        coordinate_locks=KeyedLock(),
        section_locks=KeyedLock(),
        host_version=config.host_version,
    )
