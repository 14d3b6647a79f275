"""
Plugin Administration Routes

GET    /api/v1/plugins                          → discovery listing (+ skipped plugins)
GET    /api/v1/plugins/upgrades                 → installed plugins with a newer version on disk
GET    /api/v1/plugins/capabilities             → registered capabilities
GET    /api/v1/plugins/cache                    → loader cache statistics
DELETE /api/v1/plugins/cache                    → clear the loader cache
GET    /api/v1/plugins/{type}/{name}            → plugin detail
POST   /api/v1/plugins/{type}/{name}/enable     → enable plugin
POST   /api/v1/plugins/{type}/{name}/disable    → disable plugin
POST   /api/v1/plugins/{type}/{name}/install    → install (and enable) plugin
POST   /api/v1/plugins/{type}/{name}/upgrade    → upgrade to on-disk version
DELETE /api/v1/plugins/{type}/{name}            → uninstall plugin
GET    /api/v1/plugins/{type}/{name}/settings   → plugin settings
PUT    /api/v1/plugins/{type}/{name}/settings   → upsert plugin settings
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status

from plugin_host.constants import PluginType
from plugin_host.dependencies import (
    get_capability_service,
    get_lifecycle,
    get_registry,
    get_runtime,
    get_settings_service,
)
from plugin_host.plugins.lifecycle import LifecycleManager
from plugin_host.plugins.registry import PluginRegistry
from plugin_host.runtime import PluginRuntime
from plugin_host.schemas.plugin import (
    CacheStatsResponse,
    CapabilityResponse,
    PendingUpgrade,
    PluginDetail,
    PluginListResponse,
    PluginSettingsResponse,
    PluginSettingsUpdate,
    PluginSummary,
    SkippedPlugin,
    UpgradeResponse,
)
from plugin_host.services.capabilities import CapabilityService
from plugin_host.services.plugin_settings import PluginSettingsService

router = APIRouter(tags=["Plugins"])
logger = logging.getLogger(__name__)


# ── Helpers ────────────────────────────────────────────────────────────────────


async def _build_detail(
    plugin_type: PluginType, name: str, registry: PluginRegistry, lifecycle: LifecycleManager
) -> PluginDetail:
    descriptor = registry.reader.read(plugin_type, name)
    state = await lifecycle.get_state(plugin_type, name)
    return PluginDetail(
        type=descriptor.type,
        name=descriptor.name,
        component=descriptor.component,
        version=descriptor.version,
        release=descriptor.release,
        maturity=descriptor.maturity,
        requires=descriptor.requires,
        dependencies=descriptor.dependencies,
        enabled=await registry.is_enabled(plugin_type, name),
        loaded=registry.cache.contains(descriptor.key),
        installed_version=await lifecycle.get_installed_version(plugin_type, name),
        state=state.value,
    )


# ── Discovery ──────────────────────────────────────────────────────────────────


@router.get("/", response_model=PluginListResponse)
async def list_plugins(
    plugin_type: PluginType | None = Query(None, alias="type"),
    state: Literal["enabled", "disabled"] | None = Query(None, alias="status"),
    registry: PluginRegistry = Depends(get_registry),
) -> PluginListResponse:
    """List discoverable plugins with enable/load status; malformed plugins are reported, not raised."""
    report = await registry.discover([plugin_type] if plugin_type else None)
    plugins = report.plugins
    if state == "enabled":
        plugins = [p for p in plugins if p.enabled]
    elif state == "disabled":
        plugins = [p for p in plugins if not p.enabled]

    return PluginListResponse(
        plugins=[PluginSummary(**p.summary()) for p in plugins],
        skipped=[SkippedPlugin(**entry) for entry in report.skipped],
        total=len(plugins),
        enabled=sum(1 for p in plugins if p.enabled),
        loaded=sum(1 for p in plugins if p.loaded),
    )


@router.get("/upgrades", response_model=list[PendingUpgrade])
async def list_pending_upgrades(lifecycle: LifecycleManager = Depends(get_lifecycle)) -> list[PendingUpgrade]:
    return [PendingUpgrade(**entry) for entry in await lifecycle.pending_upgrades()]


@router.get("/capabilities", response_model=list[CapabilityResponse])
async def list_capabilities(
    component: str | None = None,
    service: CapabilityService = Depends(get_capability_service),
) -> list[CapabilityResponse]:
    return [CapabilityResponse.model_validate(cap) for cap in await service.list(component)]


@router.get("/cache", response_model=CacheStatsResponse)
async def get_cache_stats(runtime: PluginRuntime = Depends(get_runtime)) -> CacheStatsResponse:
    return CacheStatsResponse(
        stats=runtime.cache.get_stats(),
        keys=[f"{plugin_type.value}/{name}" for plugin_type, name in runtime.cache.keys()],
    )


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(runtime: PluginRuntime = Depends(get_runtime)) -> Response:
    runtime.loader.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{plugin_type}/{name}", response_model=PluginDetail)
async def get_plugin(
    plugin_type: PluginType,
    name: str,
    registry: PluginRegistry = Depends(get_registry),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
) -> PluginDetail:
    return await _build_detail(plugin_type, name, registry, lifecycle)


# ── Enable state ───────────────────────────────────────────────────────────────


@router.post("/{plugin_type}/{name}/enable", response_model=PluginDetail)
async def enable_plugin(
    plugin_type: PluginType,
    name: str,
    registry: PluginRegistry = Depends(get_registry),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
) -> PluginDetail:
    await registry.enable(plugin_type, name)
    return await _build_detail(plugin_type, name, registry, lifecycle)


@router.post("/{plugin_type}/{name}/disable", response_model=PluginDetail)
async def disable_plugin(
    plugin_type: PluginType,
    name: str,
    registry: PluginRegistry = Depends(get_registry),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
) -> PluginDetail:
    await registry.disable(plugin_type, name)
    return await _build_detail(plugin_type, name, registry, lifecycle)


# ── Lifecycle ──────────────────────────────────────────────────────────────────


@router.post("/{plugin_type}/{name}/install", response_model=PluginDetail, status_code=status.HTTP_201_CREATED)
async def install_plugin(
    plugin_type: PluginType,
    name: str,
    enable: bool = True,
    registry: PluginRegistry = Depends(get_registry),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
) -> PluginDetail:
    await lifecycle.install(plugin_type, name, enable=enable)
    return await _build_detail(plugin_type, name, registry, lifecycle)


@router.post("/{plugin_type}/{name}/upgrade", response_model=UpgradeResponse)
async def upgrade_plugin(
    plugin_type: PluginType,
    name: str,
    lifecycle: LifecycleManager = Depends(get_lifecycle),
) -> UpgradeResponse:
    upgraded = await lifecycle.upgrade(plugin_type, name)
    return UpgradeResponse(
        component=f"{plugin_type.value}_{name}",
        upgraded=upgraded,
        installed_version=await lifecycle.get_installed_version(plugin_type, name),
    )


@router.delete("/{plugin_type}/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def uninstall_plugin(
    plugin_type: PluginType,
    name: str,
    lifecycle: LifecycleManager = Depends(get_lifecycle),
) -> Response:
    await lifecycle.uninstall(plugin_type, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Settings ───────────────────────────────────────────────────────────────────


@router.get("/{plugin_type}/{name}/settings", response_model=PluginSettingsResponse)
async def get_plugin_settings(
    plugin_type: PluginType,
    name: str,
    registry: PluginRegistry = Depends(get_registry),
    service: PluginSettingsService = Depends(get_settings_service),
) -> PluginSettingsResponse:
    descriptor = registry.reader.read(plugin_type, name)
    return PluginSettingsResponse(component=descriptor.component, settings=await service.get(descriptor.component))


@router.put("/{plugin_type}/{name}/settings", response_model=PluginSettingsResponse)
async def update_plugin_settings(
    plugin_type: PluginType,
    name: str,
    payload: PluginSettingsUpdate,
    registry: PluginRegistry = Depends(get_registry),
    service: PluginSettingsService = Depends(get_settings_service),
) -> PluginSettingsResponse:
    """Merge the given settings into the plugin's stored settings."""
    descriptor = registry.reader.read(plugin_type, name)
    updated = await service.update(descriptor.component, payload.settings)
    return PluginSettingsResponse(component=descriptor.component, settings=updated)
