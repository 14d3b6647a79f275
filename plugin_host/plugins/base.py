"""
Plugin Base Classes

CapabilityDefinition: a permission a plugin declares at initialization.
ModuleFeatures:       feature flags an activity module supports.
PageContext:          the concrete page a block is being resolved for.
PluginBase:           abstract base class for every plugin implementation.
ModuleBase / BlockBase / ThemeHandle: the per-type capability contracts.

Every contract is checked by verify_contract() before an implementation is
used, both during discovery (on the class) and when loading (on the instance).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import CONTEXT_COURSE, PluginType
from plugin_host.exceptions import InterfaceMismatchError

if TYPE_CHECKING:
    from plugin_host.plugins.descriptor import PluginDescriptor


@dataclass
class CapabilityDefinition:
    """
    A named permission declared by a plugin.

    Attributes:
        name:          e.g. "mod/quiz:attempt".
        captype:       "read" or "write".
        context_level: Context level the capability is checked at.
        risk_bitmask:  OR of the RISK_* constants.
    """

    name: str
    captype: str = "write"
    context_level: int = CONTEXT_COURSE
    risk_bitmask: int = 0


@dataclass
class ModuleFeatures:
    grade: bool = False
    completion: bool = True
    groups: bool = False
    backup: bool = True
    intro: bool = True
    idnumber: bool = True


@dataclass
class PageContext:
    page_type: str
    context_id: int
    subpage: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


class PluginBase(ABC):
    """
    Abstract base class for all plugins.

    Implementations are constructed with their descriptor. Lifecycle and
    initialization hooks default to no-ops so subclasses only override what
    they need.
    """

    def __init__(self, descriptor: PluginDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def component(self) -> str:
        return self.descriptor.component

    def get_capabilities(self) -> list[CapabilityDefinition]:
        """Capabilities registered for this plugin when it is first loaded."""
        return []

    async def on_load(self) -> None:  # noqa: B027
        """
        Called once per cache generation, after capabilities are registered.

        Override to perform one-time initialisation. Raising here fails the
        load and nothing is cached.
        """

    async def install(self, db: AsyncSession) -> None:  # noqa: B027
        """Install hook; runs inside the lifecycle manager's transaction."""

    async def upgrade(self, db: AsyncSession, old_version: int, new_version: int) -> None:  # noqa: B027
        """Upgrade hook; runs inside the lifecycle manager's transaction."""

    async def uninstall(self, db: AsyncSession) -> None:  # noqa: B027
        """Uninstall hook; runs inside the lifecycle manager's transaction."""


class ModuleBase(PluginBase):
    """
    Contract for activity modules.

    Instance methods receive the caller's session so plugin-owned rows are
    written in the same transaction as the course module bookkeeping. They
    must flush, never commit.
    """

    icon: str = "activity"
    description: str = ""

    @abstractmethod
    async def add_instance(self, db: AsyncSession, data: dict[str, Any]) -> int:
        """Create the plugin-owned instance row and return its id."""

    @abstractmethod
    async def update_instance(self, db: AsyncSession, instance_id: int, data: dict[str, Any]) -> None: ...

    @abstractmethod
    async def delete_instance(self, db: AsyncSession, instance_id: int) -> None: ...

    @abstractmethod
    async def get_instance(self, db: AsyncSession, instance_id: int) -> dict[str, Any] | None: ...

    @abstractmethod
    async def get_view(self, db: AsyncSession, instance_id: int, user_id: int) -> str: ...

    @abstractmethod
    async def handle_ajax(self, db: AsyncSession, action: str, params: dict[str, Any]) -> dict[str, Any]: ...

    def get_supported_features(self) -> ModuleFeatures:
        return ModuleFeatures()

    async def get_grading_info(self, db: AsyncSession, instance_id: int) -> dict[str, Any]:
        """Fields for the grade item created when the module supports grading."""
        instance = await self.get_instance(db, instance_id) or {}
        return {
            "item_name": instance.get("name", self.name),
            "grade_max": instance.get("grade", 100.0),
            "grade_min": 0.0,
        }


class BlockBase(PluginBase):
    """
    Contract for page blocks.

    config_data is opaque to the runtime and handed over as stored. The JSON
    helpers are a convenience for blocks that want a dict-shaped config.
    """

    title: str = ""
    description: str = ""

    @abstractmethod
    def get_content(self, config: bytes | None, page: PageContext) -> dict[str, Any]: ...

    @abstractmethod
    def get_html(self, config: bytes | None, page: PageContext) -> str: ...

    def should_show(self, page_type: str, context_id: int) -> bool:
        """Plugin-level veto applied on top of the stored visibility flags."""
        return True

    def get_supported_regions(self) -> list[str]:
        return ["side-pre", "side-post"]

    def get_supported_page_types(self) -> list[str]:
        return ["*"]

    def supports_multiple_instances(self) -> bool:
        return False

    def has_config(self) -> bool:
        return False

    @staticmethod
    def decode_config(config: bytes | None) -> dict[str, Any]:
        if not config:
            return {}
        return json.loads(config.decode("utf-8"))

    @staticmethod
    def encode_config(values: dict[str, Any]) -> bytes:
        return json.dumps(values, sort_keys=True).encode("utf-8")


class ThemeHandle(PluginBase):
    """Themes are descriptor-only; the handle just carries the descriptor."""


# ── Contract verification ────────────────────────────────────────────────────

_REQUIRED_MEMBERS: dict[PluginType, tuple[str, ...]] = {
    PluginType.MODULE: (
        "add_instance",
        "update_instance",
        "delete_instance",
        "get_instance",
        "get_view",
        "handle_ajax",
    ),
    PluginType.BLOCK: (
        "get_content",
        "get_html",
        "should_show",
        "get_supported_regions",
    ),
    PluginType.THEME: (),
}


def verify_contract(plugin_type: PluginType, name: str, obj: Any) -> None:
    """
    Check that a class or instance satisfies the contract for plugin_type.

    Raises:
        InterfaceMismatchError: listing every missing or abstract member.
    """
    missing = [
        member
        for member in _REQUIRED_MEMBERS[plugin_type]
        if not callable(getattr(obj, member, None))
        or getattr(getattr(obj, member), "__isabstractmethod__", False)
    ]
    if missing:
        raise InterfaceMismatchError(plugin_type.value, name, missing=missing)
