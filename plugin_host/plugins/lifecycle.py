"""
Plugin Lifecycle Manager

Install / upgrade / uninstall transitions and installed-version bookkeeping.

    not_installed --install--> installed --upgrade--> installed ...
                                   |
                               uninstall --> not_installed

Every transition runs the plugin's hook and the bookkeeping writes in one
transaction on the manager's session. If the hook raises, the transaction is
rolled back, so a failed install leaves no version record and a failed
upgrade leaves the previous version recorded.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import CORE_COMPONENT, PluginType
from plugin_host.exceptions import (
    InterfaceMismatchError,
    InvalidDescriptorError,
    InvalidPluginStateError,
    LifecycleHookError,
    PluginNotFoundError,
    UnsatisfiedDependencyError,
)
from plugin_host.models.plugin_state import PluginEnabled, PluginVersion
from plugin_host.services.plugin_settings import PluginSettingsService

if TYPE_CHECKING:
    from plugin_host.plugins.descriptor import DescriptorReader, PluginDescriptor
    from plugin_host.plugins.loader import PluginLoader

logger = logging.getLogger(__name__)


class PluginState(str, enum.Enum):
    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    UPGRADE_PENDING = "upgrade_pending"


class LifecycleManager:
    def __init__(self, db: AsyncSession, reader: DescriptorReader, loader: PluginLoader, host_version: int):
        self.db = db
        self.reader = reader
        self.loader = loader
        self.host_version = host_version

    # ── Version bookkeeping ───────────────────────────────────────────────────

    async def _get_version_record(self, plugin_type: PluginType, name: str) -> PluginVersion | None:
        result = await self.db.execute(
            select(PluginVersion).where(PluginVersion.plugin_type == plugin_type.value, PluginVersion.name == name)
        )
        return result.scalar_one_or_none()

    async def get_installed_version(self, plugin_type: PluginType | str, name: str) -> int | None:
        record = await self._get_version_record(PluginType(plugin_type), name)
        return record.version if record else None

    async def get_state(self, plugin_type: PluginType | str, name: str) -> PluginState:
        descriptor = self.reader.read(plugin_type, name)
        installed = await self.get_installed_version(descriptor.type, name)
        if installed is None:
            return PluginState.NOT_INSTALLED
        if installed < descriptor.version:
            return PluginState.UPGRADE_PENDING
        return PluginState.INSTALLED

    async def pending_upgrades(self) -> list[dict[str, Any]]:
        """Installed plugins whose on-disk version is newer than the recorded one."""
        result = await self.db.execute(select(PluginVersion))
        installed = {(record.plugin_type, record.name): record.version for record in result.scalars().all()}

        pending = []
        for plugin_type in PluginType:
            for name in self.reader.list_names(plugin_type):
                current = installed.get((plugin_type.value, name))
                if current is None:
                    continue
                try:
                    descriptor = self.reader.read(plugin_type, name)
                except (PluginNotFoundError, InvalidDescriptorError) as exc:
                    logger.warning("Skipping upgrade check for %s/%s: %s", plugin_type.value, name, exc.message)
                    continue
                if current < descriptor.version:
                    pending.append(
                        {
                            "type": plugin_type.value,
                            "name": name,
                            "installed": current,
                            "available": descriptor.version,
                        }
                    )
        return pending

    # ── Dependency checks ─────────────────────────────────────────────────────

    async def _dependency_state(self, dependency: str) -> tuple[int | None, bool]:
        """Return (installed version, enabled) for a dependency key."""
        if dependency == CORE_COMPONENT:
            return self.host_version, True

        type_value, _, name = dependency.partition("_")
        try:
            plugin_type = PluginType(type_value)
        except ValueError:
            return None, False

        record = await self._get_version_record(plugin_type, name)
        result = await self.db.execute(
            select(PluginEnabled.id).where(PluginEnabled.plugin_type == plugin_type.value, PluginEnabled.name == name)
        )
        enabled = result.scalar_one_or_none() is not None
        return (record.version if record else None), enabled

    async def check_dependencies(self, descriptor: PluginDescriptor) -> None:
        """
        Check declared dependencies in declaration order.

        Raises:
            UnsatisfiedDependencyError: naming the first dependency that is not
                installed, not enabled, or installed below its minimum version.
        """
        for dependency, min_version in descriptor.dependencies.items():
            installed, enabled = await self._dependency_state(dependency)
            if installed is None or not enabled or installed < min_version:
                raise UnsatisfiedDependencyError(descriptor.component, dependency, min_version, installed, enabled)

    # ── Transitions ───────────────────────────────────────────────────────────

    async def _run_hook(self, component: str, stage: str, hook: Awaitable[None]) -> None:
        try:
            await hook
        except Exception as exc:
            await self.db.rollback()
            logger.error("%s hook for %s failed: %s", stage, component, exc, extra={"component": component})
            raise LifecycleHookError(component, stage, str(exc)) from exc

    async def _commit(self, component: str, action: str) -> None:
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Failed to %s %s: %s", action, component, e, extra={"component": component})
            raise

    async def install(self, plugin_type: PluginType | str, name: str, enable: bool = True) -> PluginDescriptor:
        """
        Install a plugin and record its version.

        Raises:
            PluginNotFoundError, InvalidDescriptorError, IncompatibleVersionError,
            InvalidPluginStateError, UnsatisfiedDependencyError,
            InterfaceMismatchError, InitializationFailedError, LifecycleHookError
        """
        descriptor = self.reader.read(plugin_type, name)
        self.loader.check_compatibility(descriptor)

        if await self._get_version_record(descriptor.type, name) is not None:
            raise InvalidPluginStateError(descriptor.component, "installed", "install")

        await self.check_dependencies(descriptor)
        plugin = await self.loader.load(descriptor.type, name)

        await self._run_hook(descriptor.component, "install", plugin.install(self.db))

        self.db.add(PluginVersion(plugin_type=descriptor.type.value, name=name, version=descriptor.version))
        if enable:
            result = await self.db.execute(
                select(PluginEnabled.id).where(
                    PluginEnabled.plugin_type == descriptor.type.value, PluginEnabled.name == name
                )
            )
            if result.scalar_one_or_none() is None:
                self.db.add(PluginEnabled(plugin_type=descriptor.type.value, name=name))
        await self._commit(descriptor.component, "install")

        logger.info(
            "Plugin installed: %s v%s",
            descriptor.component,
            descriptor.version,
            extra={"component": descriptor.component},
        )
        return descriptor

    async def upgrade(self, plugin_type: PluginType | str, name: str) -> bool:
        """
        Upgrade a plugin to its on-disk version.

        Returns:
            False when the installed version is already current (no-op),
            True when the upgrade hook ran and the record advanced.
        """
        descriptor = self.reader.read(plugin_type, name)
        record = await self._get_version_record(descriptor.type, name)
        if record is None:
            raise InvalidPluginStateError(descriptor.component, "not installed", "upgrade")

        old_version = record.version
        if old_version >= descriptor.version:
            logger.debug("Upgrade of %s skipped: installed %s is current", descriptor.component, old_version)
            return False

        self.loader.check_compatibility(descriptor)
        self.loader.evict(descriptor.type, name)
        plugin = await self.loader.load(descriptor.type, name)

        await self._run_hook(descriptor.component, "upgrade", plugin.upgrade(self.db, old_version, descriptor.version))

        record.version = descriptor.version
        await self._commit(descriptor.component, "upgrade")
        self.loader.evict(descriptor.type, name)

        logger.info(
            "Plugin upgraded: %s %s -> %s",
            descriptor.component,
            old_version,
            descriptor.version,
            extra={"component": descriptor.component},
        )
        return True

    async def uninstall(self, plugin_type: PluginType | str, name: str) -> None:
        """Run the uninstall hook, then drop version, settings and enable records."""
        plugin_type = PluginType(plugin_type)
        component = f"{plugin_type.value}_{name}"
        record = await self._get_version_record(plugin_type, name)
        if record is None:
            raise InvalidPluginStateError(component, "not installed", "uninstall")

        plugin = None
        try:
            descriptor = self.reader.read(plugin_type, name)
            plugin = self.loader.get_loaded(plugin_type, name) or self.loader.factory.create(descriptor)
        except (PluginNotFoundError, InvalidDescriptorError, InterfaceMismatchError) as exc:
            # Files or implementation are gone; the bookkeeping can still be removed
            logger.warning(
                "Uninstalling %s without its hook: %s", component, exc.message, extra={"component": component}
            )

        if plugin is not None:
            await self._run_hook(component, "uninstall", plugin.uninstall(self.db))

        await self.db.execute(
            delete(PluginVersion).where(PluginVersion.plugin_type == plugin_type.value, PluginVersion.name == name)
        )
        await PluginSettingsService(self.db).delete_all(component)
        await self.db.execute(
            delete(PluginEnabled).where(PluginEnabled.plugin_type == plugin_type.value, PluginEnabled.name == name)
        )
        await self._commit(component, "uninstall")
        self.loader.evict(plugin_type, name)

        logger.info("Plugin uninstalled: %s", component, extra={"component": component})
