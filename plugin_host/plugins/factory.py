"""
Plugin Factory

Maps (type, name) to the callable that builds a plugin implementation.
Built-in plugins are registered at startup; anything else is resolved from
the descriptor's "package.module:Attribute" entrypoint.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import Any

from plugin_host.constants import PluginType
from plugin_host.exceptions import InterfaceMismatchError
from plugin_host.plugins.base import PluginBase, ThemeHandle, verify_contract
from plugin_host.plugins.descriptor import PluginDescriptor

logger = logging.getLogger(__name__)

PluginConstructor = Callable[[PluginDescriptor], PluginBase]


class PluginFactory:
    """Table of plugin constructors keyed by (type, name)."""

    def __init__(self) -> None:
        self._constructors: dict[tuple[PluginType, str], PluginConstructor] = {}

    # ── Registration ──────────────────────────────────────────────────────────

    def register(self, plugin_type: PluginType, name: str, constructor: PluginConstructor) -> None:
        self._constructors[(PluginType(plugin_type), name)] = constructor
        logger.debug("Plugin implementation registered: %s/%s", plugin_type.value, name)

    def unregister(self, plugin_type: PluginType, name: str) -> None:
        self._constructors.pop((PluginType(plugin_type), name), None)

    def is_registered(self, plugin_type: PluginType, name: str) -> bool:
        return (PluginType(plugin_type), name) in self._constructors

    # ── Resolution ────────────────────────────────────────────────────────────

    def resolve(self, descriptor: PluginDescriptor) -> PluginConstructor:
        """
        Return the implementation for a descriptor without instantiating it.

        Raises:
            InterfaceMismatchError: no implementation is available, the
                entrypoint cannot be imported, or the class does not satisfy
                the contract for the descriptor's type.
        """
        constructor = self._constructors.get(descriptor.key)
        if constructor is None and descriptor.entrypoint:
            constructor = self._import_entrypoint(descriptor)
        if constructor is None:
            if descriptor.type is PluginType.THEME:
                return ThemeHandle
            raise InterfaceMismatchError(descriptor.type.value, descriptor.name, reason="no implementation registered")

        if isinstance(constructor, type):
            verify_contract(descriptor.type, descriptor.name, constructor)
        return constructor

    def create(self, descriptor: PluginDescriptor) -> PluginBase:
        """Instantiate the implementation and verify the resulting object."""
        constructor = self.resolve(descriptor)
        instance = constructor(descriptor)
        verify_contract(descriptor.type, descriptor.name, instance)
        return instance

    @staticmethod
    def _import_entrypoint(descriptor: PluginDescriptor) -> Any:
        module_path, _, attribute = descriptor.entrypoint.partition(":")
        try:
            module = importlib.import_module(module_path)
            return getattr(module, attribute)
        except (ImportError, AttributeError) as exc:
            raise InterfaceMismatchError(
                descriptor.type.value,
                descriptor.name,
                reason=f"cannot import entrypoint {descriptor.entrypoint!r}: {exc}",
            ) from exc
