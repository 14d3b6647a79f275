"""
Tests for plugin discovery and enable state.
"""

import pytest

from conftest import write_manifest
from plugin_host.constants import PluginType
from plugin_host.exceptions import PluginNotFoundError


class TestDiscovery:
    async def test_discovers_all_builtin_plugins(self, runtime, db):
        report = await runtime.registry(db).discover()

        found = {(plugin.descriptor.type.value, plugin.descriptor.name) for plugin in report.plugins}
        assert found == {
            ("module", "quiz"),
            ("module", "page"),
            ("block", "navigation"),
            ("block", "html"),
            ("theme", "boost"),
        }
        assert report.skipped == []
        assert not any(plugin.enabled or plugin.loaded for plugin in report.plugins)

    async def test_malformed_plugins_are_skipped_not_raised(self, runtime, plugin_root, db):
        write_manifest(plugin_root, "module", "broken", None, raw="{oops")
        write_manifest(plugin_root, "module", "orphan", {"version": 1})

        report = await runtime.registry(db).discover([PluginType.MODULE])

        assert sorted(plugin.descriptor.name for plugin in report.plugins) == ["page", "quiz"]
        skipped = {entry["name"]: entry for entry in report.skipped}
        assert set(skipped) == {"broken", "orphan"}
        assert skipped["broken"]["type"] == "module"
        assert "no implementation registered" in skipped["orphan"]["error"]

    async def test_directories_without_a_usable_manifest_are_skipped(self, runtime, plugin_root, db):
        (plugin_root / "block" / "halfcopied").mkdir()
        write_manifest(plugin_root, "block", "My-Block", {"version": 1})

        report = await runtime.registry(db).discover([PluginType.BLOCK])

        assert sorted(plugin.descriptor.name for plugin in report.plugins) == ["html", "navigation"]
        assert {entry["name"] for entry in report.skipped} == {"halfcopied", "My-Block"}
        assert all(entry["type"] == "block" for entry in report.skipped)

    async def test_list_by_type(self, runtime, db):
        blocks = await runtime.registry(db).list_by_type(PluginType.BLOCK)

        assert [plugin.descriptor.name for plugin in blocks] == ["html", "navigation"]

    async def test_loaded_flag_follows_cache(self, runtime, db):
        await runtime.loader.load_block("html")

        plugins = {plugin.descriptor.name: plugin for plugin in await runtime.registry(db).list_available()}

        assert plugins["html"].loaded is True
        assert plugins["navigation"].loaded is False

    async def test_summary(self, runtime, db):
        await runtime.registry(db).enable(PluginType.MODULE, "quiz")

        plugins = await runtime.registry(db).list_by_type(PluginType.MODULE)
        quiz = next(plugin for plugin in plugins if plugin.descriptor.name == "quiz")

        assert quiz.summary() == {
            "type": "module",
            "name": "quiz",
            "version": 2024012400,
            "enabled": True,
            "loaded": False,
        }


class TestEnableState:
    async def test_enable_is_idempotent(self, runtime, db):
        registry = runtime.registry(db)

        descriptor = await registry.enable(PluginType.BLOCK, "html")
        await registry.enable(PluginType.BLOCK, "html")

        assert descriptor.component == "block_html"
        assert await registry.is_enabled(PluginType.BLOCK, "html")
        assert await registry.enabled_names(PluginType.BLOCK) == {"html"}

    async def test_enable_missing_plugin(self, runtime, db):
        with pytest.raises(PluginNotFoundError):
            await runtime.registry(db).enable(PluginType.BLOCK, "calendar")

    async def test_enable_persists_across_sessions(self, runtime, session_factory):
        async with session_factory() as session:
            await runtime.registry(session).enable("module", "page")

        async with session_factory() as session:
            assert await runtime.registry(session).is_enabled("module", "page")

    async def test_disable_evicts_cached_instance(self, runtime, db):
        registry = runtime.registry(db)
        await registry.enable(PluginType.BLOCK, "html")
        await runtime.loader.load_block("html")

        await registry.disable(PluginType.BLOCK, "html")
        await registry.disable(PluginType.BLOCK, "html")

        assert not await registry.is_enabled(PluginType.BLOCK, "html")
        assert not runtime.loader.is_loaded(PluginType.BLOCK, "html")

    async def test_list_enabled(self, runtime, db):
        registry = runtime.registry(db)
        await registry.enable(PluginType.MODULE, "quiz")
        await registry.enable(PluginType.BLOCK, "navigation")

        all_enabled = await registry.list_enabled()
        modules = await registry.list_enabled(PluginType.MODULE)

        assert {plugin.descriptor.component for plugin in all_enabled} == {"module_quiz", "block_navigation"}
        assert [plugin.descriptor.name for plugin in modules] == ["quiz"]
