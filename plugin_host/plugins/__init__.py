"""
Plugin runtime.

Public API:
    PluginDescriptor / DescriptorReader: manifest parsing
    PluginBase, ModuleBase, BlockBase, ThemeHandle: per-type contracts
    PluginFactory   : (type, name) -> implementation table
    PluginRegistry  : discovery + enable state
    PluginLoader    : cached, single-flight instantiation
    LifecycleManager: install / upgrade / uninstall
"""

from .base import BlockBase, CapabilityDefinition, ModuleBase, ModuleFeatures, PageContext, PluginBase, ThemeHandle
from .descriptor import DescriptorReader, PluginDescriptor
from .factory import PluginFactory
from .lifecycle import LifecycleManager, PluginState
from .loader import PluginLoader
from .registry import AvailablePlugin, DiscoveryReport, PluginRegistry

__all__ = [
    "AvailablePlugin",
    "BlockBase",
    "CapabilityDefinition",
    "DescriptorReader",
    "DiscoveryReport",
    "LifecycleManager",
    "ModuleBase",
    "ModuleFeatures",
    "PageContext",
    "PluginBase",
    "PluginDescriptor",
    "PluginFactory",
    "PluginLoader",
    "PluginRegistry",
    "PluginState",
    "ThemeHandle",
]
