"""
Tests for the plugin factory and loader.
"""

import asyncio
import logging

import pytest
from sqlalchemy import func, select

from conftest import write_manifest
from plugin_host.constants import PluginType
from plugin_host.exceptions import (
    IncompatibleVersionError,
    InitializationFailedError,
    InterfaceMismatchError,
    PluginNotFoundError,
)
from plugin_host.models.plugin_state import Capability
from plugin_host.plugins.base import BlockBase, CapabilityDefinition, PageContext, ThemeHandle
from plugin_host.plugins.builtin.quiz import QuizModule
from plugin_host.plugins.descriptor import PluginDescriptor
from plugin_host.plugins.factory import PluginFactory


class CountingBlock(BlockBase):
    """Block that records how often it was initialized."""

    loads = 0

    def get_capabilities(self):
        return [CapabilityDefinition("block/counter:addinstance")]

    async def on_load(self):
        type(self).loads += 1
        await asyncio.sleep(0.01)

    def get_content(self, config, page: PageContext):
        return {"count": type(self).loads}

    def get_html(self, config, page: PageContext):
        return "<p>counter</p>"


class FailingBlock(CountingBlock):
    async def on_load(self):
        raise RuntimeError("cannot reach backend")


class HalfBlock(BlockBase):
    """Forgets to implement get_html."""

    def get_content(self, config, page):
        return {}


async def count_capabilities(session_factory, component: str) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(Capability.id)).where(Capability.component == component))
        return result.scalar_one()


class TestPluginFactory:
    def _descriptor(self, plugin_type=PluginType.BLOCK, name="counter", entrypoint=None):
        return PluginDescriptor(type=plugin_type, name=name, version=1, entrypoint=entrypoint)

    def test_registered_constructor_wins(self):
        factory = PluginFactory()
        factory.register(PluginType.BLOCK, "counter", CountingBlock)

        plugin = factory.create(self._descriptor())

        assert isinstance(plugin, CountingBlock)
        assert plugin.component == "block_counter"

    def test_entrypoint_import(self):
        factory = PluginFactory()
        descriptor = self._descriptor(
            PluginType.MODULE, "quiz", entrypoint="plugin_host.plugins.builtin.quiz:QuizModule"
        )

        assert isinstance(factory.create(descriptor), QuizModule)

    def test_bad_entrypoint(self):
        factory = PluginFactory()
        descriptor = self._descriptor(entrypoint="plugin_host.nowhere:Block")

        with pytest.raises(InterfaceMismatchError) as exc_info:
            factory.resolve(descriptor)
        assert "cannot import entrypoint" in exc_info.value.message

    def test_theme_without_implementation_gets_handle(self):
        factory = PluginFactory()

        plugin = factory.create(self._descriptor(PluginType.THEME, "boost"))

        assert isinstance(plugin, ThemeHandle)

    def test_module_without_implementation(self):
        with pytest.raises(InterfaceMismatchError):
            PluginFactory().resolve(self._descriptor(PluginType.MODULE, "forum"))

    def test_abstract_member_is_reported(self):
        factory = PluginFactory()
        factory.register(PluginType.BLOCK, "half", HalfBlock)

        with pytest.raises(InterfaceMismatchError) as exc_info:
            factory.resolve(self._descriptor(name="half"))
        assert exc_info.value.details["missing"] == ["get_html"]

    def test_wrong_type_contract(self):
        factory = PluginFactory()
        factory.register(PluginType.MODULE, "counter", CountingBlock)

        with pytest.raises(InterfaceMismatchError) as exc_info:
            factory.resolve(self._descriptor(PluginType.MODULE))
        assert "add_instance" in exc_info.value.details["missing"]

    def test_unregister(self):
        factory = PluginFactory()
        factory.register(PluginType.BLOCK, "counter", CountingBlock)
        factory.unregister(PluginType.BLOCK, "counter")

        assert not factory.is_registered(PluginType.BLOCK, "counter")


class TestPluginLoader:
    @pytest.fixture(autouse=True)
    def reset_counter(self):
        CountingBlock.loads = 0

    @pytest.fixture
    def counter_runtime(self, runtime, plugin_root):
        write_manifest(plugin_root, "block", "counter", {"version": 2024010100})
        runtime.factory.register(PluginType.BLOCK, "counter", CountingBlock)
        return runtime

    async def test_load_caches_instance(self, counter_runtime):
        loader = counter_runtime.loader

        first = await loader.load(PluginType.BLOCK, "counter")
        second = await loader.load_block("counter")

        assert first is second
        assert CountingBlock.loads == 1
        assert loader.is_loaded("block", "counter")
        assert loader.get_loaded(PluginType.BLOCK, "counter") is first

    async def test_concurrent_loads_initialize_once(self, counter_runtime, session_factory):
        loader = counter_runtime.loader

        plugins = await asyncio.gather(*(loader.load_block("counter") for _ in range(10)))

        assert CountingBlock.loads == 1
        assert len({id(plugin) for plugin in plugins}) == 1
        assert await count_capabilities(session_factory, "block_counter") == 1

    async def test_capabilities_are_upserted_across_reloads(self, runtime, session_factory):
        await runtime.loader.load_module("quiz")
        runtime.loader.clear()
        await runtime.loader.load_module("quiz")

        assert await count_capabilities(session_factory, "module_quiz") == 4

    async def test_load_log_names_the_component(self, runtime, caplog):
        with caplog.at_level(logging.INFO, logger="plugin_host.plugins.loader"):
            await runtime.loader.load_module("quiz")

        records = [r for r in caplog.records if r.getMessage().startswith("Plugin loaded")]
        assert [r.component for r in records] == ["module_quiz"]

    async def test_evict_forces_reinitialization(self, counter_runtime):
        loader = counter_runtime.loader
        first = await loader.load_block("counter")

        assert loader.evict(PluginType.BLOCK, "counter") is True
        second = await loader.load_block("counter")

        assert first is not second
        assert CountingBlock.loads == 2

    async def test_incompatible_host_version(self, runtime, plugin_root):
        write_manifest(plugin_root, "block", "future", {"version": 1, "requires": 2099010100})
        runtime.factory.register(PluginType.BLOCK, "future", CountingBlock)

        with pytest.raises(IncompatibleVersionError) as exc_info:
            await runtime.loader.load_block("future")
        assert exc_info.value.details["required"] == 2099010100
        assert not runtime.loader.is_loaded(PluginType.BLOCK, "future")

    async def test_missing_plugin(self, runtime):
        with pytest.raises(PluginNotFoundError):
            await runtime.loader.load_block("calendar")

    async def test_failed_initialization_caches_nothing(self, runtime, plugin_root):
        write_manifest(plugin_root, "block", "failing", {"version": 1})
        runtime.factory.register(PluginType.BLOCK, "failing", FailingBlock)

        with pytest.raises(InitializationFailedError) as exc_info:
            await runtime.loader.load_block("failing")
        assert "cannot reach backend" in exc_info.value.message
        assert not runtime.loader.is_loaded(PluginType.BLOCK, "failing")

        with pytest.raises(InitializationFailedError):
            await runtime.loader.load_block("failing")
        assert runtime.cache.stats.load_failures == 2

    async def test_theme_loads_as_handle(self, runtime):
        theme = await runtime.loader.load_theme("boost")

        assert isinstance(theme, ThemeHandle)
        assert theme.descriptor.dependencies == {"core": 2024011500}
