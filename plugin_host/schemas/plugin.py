from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from plugin_host.constants import Maturity, PluginType


class PluginSummary(BaseModel):
    type: PluginType = Field(..., description="Plugin kind.")
    name: str = Field(..., description="Plugin directory name.")
    version: int = Field(..., description="Version declared in the manifest.")
    enabled: bool
    loaded: bool

    model_config = ConfigDict(use_enum_values=True)


class SkippedPlugin(BaseModel):
    type: str
    name: str
    error: str


class PluginListResponse(BaseModel):
    plugins: list[PluginSummary]
    skipped: list[SkippedPlugin] = Field(default_factory=list, description="Plugins excluded from discovery.")
    total: int
    enabled: int
    loaded: int


class PluginDetail(BaseModel):
    type: PluginType
    name: str
    component: str = Field(..., description="Fully qualified identity, e.g. module_quiz.")
    version: int
    release: str
    maturity: Maturity
    requires: int | None = None
    dependencies: dict[str, int] = Field(default_factory=dict)
    enabled: bool
    loaded: bool
    installed_version: int | None = None
    state: str = Field(..., description="not_installed, installed or upgrade_pending.")

    model_config = ConfigDict(use_enum_values=True)


class UpgradeResponse(BaseModel):
    component: str
    upgraded: bool = Field(..., description="False when the installed version was already current.")
    installed_version: int | None


class PluginSettingsUpdate(BaseModel):
    settings: dict[str, str] = Field(..., description="Settings to upsert; other keys are kept.")

    model_config = ConfigDict(
        json_schema_extra={"example": {"settings": {"attempts_allowed": "3", "time_limit": "3600"}}}
    )


class PluginSettingsResponse(BaseModel):
    component: str
    settings: dict[str, str]


class CapabilityResponse(BaseModel):
    name: str
    captype: str
    context_level: int
    component: str
    risk_bitmask: int

    model_config = ConfigDict(from_attributes=True)


class PendingUpgrade(BaseModel):
    type: str
    name: str
    installed: int
    available: int


class CacheStatsResponse(BaseModel):
    stats: dict[str, Any]
    keys: list[str]
