"""FastAPI dependency providers for the plugin runtime and its request-scoped services."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.database import get_db
from plugin_host.plugins.lifecycle import LifecycleManager
from plugin_host.plugins.registry import PluginRegistry
from plugin_host.runtime import PluginRuntime
from plugin_host.services.block_service import BlockService
from plugin_host.services.capabilities import CapabilityService
from plugin_host.services.module_service import ModuleService
from plugin_host.services.plugin_settings import PluginSettingsService


def get_runtime(request: Request) -> PluginRuntime:
    return request.app.state.runtime


def get_registry(
    db: AsyncSession = Depends(get_db), runtime: PluginRuntime = Depends(get_runtime)
) -> PluginRegistry:
    return runtime.registry(db)


def get_lifecycle(
    db: AsyncSession = Depends(get_db), runtime: PluginRuntime = Depends(get_runtime)
) -> LifecycleManager:
    return runtime.lifecycle(db)


def get_block_service(
    db: AsyncSession = Depends(get_db), runtime: PluginRuntime = Depends(get_runtime)
) -> BlockService:
    return runtime.block_service(db)


def get_module_service(
    db: AsyncSession = Depends(get_db), runtime: PluginRuntime = Depends(get_runtime)
) -> ModuleService:
    return runtime.module_service(db)


def get_settings_service(db: AsyncSession = Depends(get_db)) -> PluginSettingsService:
    return PluginSettingsService(db)


def get_capability_service(db: AsyncSession = Depends(get_db)) -> CapabilityService:
    return CapabilityService(db)
