"""
Tests for plugin manifest parsing.
"""

import pytest

from conftest import write_manifest
from plugin_host.constants import Maturity, PluginType
from plugin_host.exceptions import InvalidDescriptorError, PluginNotFoundError
from plugin_host.plugins.descriptor import DescriptorReader


class TestDescriptorReader:
    def test_reads_builtin_manifest(self, plugin_root):
        reader = DescriptorReader(plugin_root)

        descriptor = reader.read(PluginType.MODULE, "quiz")

        assert descriptor.type is PluginType.MODULE
        assert descriptor.name == "quiz"
        assert descriptor.version == 2024012400
        assert descriptor.requires == 2024011500
        assert descriptor.dependencies == {"core": 2024011500}
        assert descriptor.maturity is Maturity.STABLE
        assert descriptor.component == "module_quiz"
        assert descriptor.key == (PluginType.MODULE, "quiz")
        assert descriptor.path == plugin_root / "module" / "quiz"

    def test_accepts_string_type(self, plugin_root):
        reader = DescriptorReader(plugin_root)

        assert reader.read("block", "html").type is PluginType.BLOCK

    def test_missing_manifest_is_not_found(self, plugin_root):
        reader = DescriptorReader(plugin_root)

        with pytest.raises(PluginNotFoundError) as exc_info:
            reader.read(PluginType.MODULE, "forum")
        assert exc_info.value.status_code == 404

    def test_directory_traversal_name_is_not_found(self, plugin_root):
        reader = DescriptorReader(plugin_root)

        with pytest.raises(PluginNotFoundError):
            reader.read(PluginType.MODULE, "../block/html")

    def test_unknown_type_is_rejected(self, plugin_root):
        reader = DescriptorReader(plugin_root)

        with pytest.raises(ValueError):
            reader.read("widget", "quiz")

    def test_list_names_skips_hidden_and_files(self, plugin_root):
        (plugin_root / "module" / ".cache").mkdir()
        (plugin_root / "module" / "_template").mkdir()
        (plugin_root / "module" / "README").write_text("not a plugin")
        reader = DescriptorReader(plugin_root)

        assert reader.list_names(PluginType.MODULE) == ["page", "quiz"]

    def test_list_names_missing_type_dir(self, tmp_path):
        reader = DescriptorReader(tmp_path / "empty")

        assert reader.list_names(PluginType.THEME) == []

    def test_optional_fields_default(self, plugin_root):
        write_manifest(plugin_root, "module", "minimal", {"version": 1})
        descriptor = DescriptorReader(plugin_root).read(PluginType.MODULE, "minimal")

        assert descriptor.requires is None
        assert descriptor.dependencies == {}
        assert descriptor.entrypoint is None
        assert descriptor.release == ""

    def test_numeric_string_version_is_accepted(self, plugin_root):
        write_manifest(plugin_root, "module", "legacy", {"version": "2023100900"})

        assert DescriptorReader(plugin_root).read(PluginType.MODULE, "legacy").version == 2023100900

    def test_dependencies_keep_declaration_order(self, plugin_root):
        write_manifest(
            plugin_root,
            "module",
            "ordered",
            {"version": 1, "dependencies": {"module_quiz": 5, "core": 1, "block_html": 2}},
        )

        descriptor = DescriptorReader(plugin_root).read(PluginType.MODULE, "ordered")
        assert list(descriptor.dependencies) == ["module_quiz", "core", "block_html"]


class TestMalformedDescriptors:
    @pytest.mark.parametrize(
        ("manifest", "field"),
        [
            ({}, "version"),
            ({"version": "soon"}, "version"),
            ({"version": True}, "version"),
            ({"version": 1.5}, "version"),
            ({"version": 1, "requires": "latest"}, "requires"),
            ({"version": 1, "maturity": "gold"}, "maturity"),
            ({"version": 1, "dependencies": ["core"]}, "dependencies"),
            ({"version": 1, "dependencies": {"core": "x"}}, "dependencies.core"),
            ({"version": 1, "entrypoint": "no_colon_here"}, "entrypoint"),
            ({"version": 1, "component": "module_other"}, "component"),
        ],
    )
    def test_invalid_fields(self, plugin_root, manifest, field):
        write_manifest(plugin_root, "module", "broken", manifest)

        with pytest.raises(InvalidDescriptorError) as exc_info:
            DescriptorReader(plugin_root).read(PluginType.MODULE, "broken")
        assert exc_info.value.details["field"] == field
        assert exc_info.value.status_code == 422

    def test_invalid_json(self, plugin_root):
        write_manifest(plugin_root, "block", "broken", None, raw="{not json")

        with pytest.raises(InvalidDescriptorError):
            DescriptorReader(plugin_root).read(PluginType.BLOCK, "broken")

    def test_non_object_manifest(self, plugin_root):
        write_manifest(plugin_root, "block", "listy", [1, 2, 3])

        with pytest.raises(InvalidDescriptorError) as exc_info:
            DescriptorReader(plugin_root).read(PluginType.BLOCK, "listy")
        assert "JSON object" in exc_info.value.message
