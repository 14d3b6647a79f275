"""
Tests for block placement and page resolution.
"""

import asyncio

import pytest
from sqlalchemy import select

from plugin_host.constants import PluginType
from plugin_host.exceptions import (
    BlockInstanceNotFoundError,
    BlockPositionNotFoundError,
    InvalidOperationError,
    PluginDisabledError,
)
from plugin_host.models.block import BlockPosition
from plugin_host.plugins.base import BlockBase
from plugin_host.services.block_service import (
    ResolvedBlock,
    group_by_region,
    matching_page_type_patterns,
    page_type_matches,
)

SYSTEM_CONTEXT = 1


def html_config(title: str, text: str = "") -> bytes:
    return BlockBase.encode_config({"title": title, "text": text})


class TestPageTypePatterns:
    def test_most_specific_first(self):
        assert matching_page_type_patterns("course-view-topics") == [
            "course-view-topics",
            "course-view-*",
            "course-*",
            "*",
        ]

    def test_single_segment(self):
        assert matching_page_type_patterns("login") == ["login", "*"]

    def test_wildcard_itself(self):
        assert matching_page_type_patterns("*") == ["*"]

    def test_page_type_matches(self):
        assert page_type_matches("course-*", "course-view-weeks")
        assert page_type_matches("*", "admin")
        assert not page_type_matches("course-edit", "course-view")
        assert not page_type_matches("mod-*", "course-view")

    def test_group_by_region_keeps_order(self):
        blocks = [
            ResolvedBlock(1, "html", "side-pre", 0),
            ResolvedBlock(2, "html", "content", 0),
            ResolvedBlock(3, "html", "side-pre", 1),
        ]

        grouped = group_by_region(blocks)

        assert list(grouped) == ["side-pre", "content"]
        assert [block.instance_id for block in grouped["side-pre"]] == [1, 3]


class TestPlacement:
    async def test_weights_start_at_zero_and_increase(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)

        first = await service.create_instance("navigation", "course-view", "side-pre", None, SYSTEM_CONTEXT)
        second = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)
        other_region = await service.create_instance("html", "course-view", "side-post", None, SYSTEM_CONTEXT)

        weights = {
            instance_id: (await service.get_positions(instance_id))[0].weight
            for instance_id in (first, second, other_region)
        }
        assert weights == {first: 0, second: 1, other_region: 0}

    async def test_instance_records_defaults(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)

        instance_id = await service.create_instance(
            "html", "course-view-*", "content", html_config("Welcome"), 40, show_in_subcontexts=True
        )
        instance = await service.get_instance(instance_id)

        assert instance.block_name == "html"
        assert instance.parent_context_id == 40
        assert instance.page_type_pattern == "course-view-*"
        assert instance.default_region == "content"
        assert instance.show_in_subcontexts is True
        assert BlockBase.decode_config(instance.config_data) == {"title": "Welcome", "text": ""}

    async def test_concurrent_creates_get_distinct_weights(self, enabled_runtime, session_factory):
        async def add():
            async with session_factory() as session:
                return await enabled_runtime.block_service(session).create_instance(
                    "html", "course-view", "content", None, SYSTEM_CONTEXT
                )

        await asyncio.gather(*(add() for _ in range(5)))

        async with session_factory() as session:
            result = await session.execute(select(BlockPosition.weight).where(BlockPosition.region == "content"))
            assert sorted(result.scalars().all()) == [0, 1, 2, 3, 4]
        assert len(enabled_runtime.coordinate_locks) == 0

    async def test_unsupported_region(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)

        with pytest.raises(InvalidOperationError) as exc_info:
            await service.create_instance("navigation", "course-view", "footer", None, SYSTEM_CONTEXT)
        assert "side-pre" in exc_info.value.details["supported_regions"]

    async def test_disabled_block_cannot_be_added(self, enabled_runtime, db):
        await enabled_runtime.registry(db).disable(PluginType.BLOCK, "html")

        with pytest.raises(PluginDisabledError):
            await enabled_runtime.block_service(db).create_instance(
                "html", "course-view", "side-pre", None, SYSTEM_CONTEXT
            )

    async def test_update_config(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        instance_id = await service.create_instance("html", "*", "side-pre", html_config("Old"), SYSTEM_CONTEXT)

        await service.update_instance(instance_id, html_config("New"))

        resolved = await service.resolve_for_page("admin", SYSTEM_CONTEXT)
        assert resolved[0].content["title"] == "New"

    async def test_delete_removes_positions(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        instance_id = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)

        await service.delete_instance(instance_id)

        assert await service.get_positions(instance_id) == []
        with pytest.raises(BlockInstanceNotFoundError):
            await service.get_instance(instance_id)
        with pytest.raises(BlockInstanceNotFoundError):
            await service.delete_instance(instance_id)

    async def test_move_keeps_sibling_weights(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        first = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)
        second = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)

        await service.move(first, "side-post", 7, SYSTEM_CONTEXT)

        moved = (await service.get_positions(first))[0]
        sibling = (await service.get_positions(second))[0]
        assert (moved.region, moved.weight) == ("side-post", 7)
        assert (sibling.region, sibling.weight) == ("side-pre", 1)

    async def test_move_in_unknown_context(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        instance_id = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)

        with pytest.raises(BlockPositionNotFoundError):
            await service.move(instance_id, "side-post", 0, 999)


class TestResolution:
    async def test_patterns_and_ordering(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        everywhere = await service.create_instance("html", "*", "side-pre", html_config("All"), SYSTEM_CONTEXT)
        course = await service.create_instance("html", "course-*", "side-pre", html_config("Course"), SYSTEM_CONTEXT)
        await service.create_instance("html", "course-edit", "side-pre", html_config("Edit"), SYSTEM_CONTEXT)
        await service.create_instance("html", "course-view-topics", "side-pre", None, 99)

        resolved = await service.resolve_for_page("course-view-topics", SYSTEM_CONTEXT)

        # Each pattern is its own coordinate, so both blocks sit at weight 0
        assert [block.instance_id for block in resolved] == [everywhere, course]
        assert [block.content["title"] for block in resolved] == ["All", "Course"]

    async def test_sorted_by_weight_then_id(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        a = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)
        b = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)
        c = await service.create_instance("html", "course-view", "side-post", None, SYSTEM_CONTEXT)
        await service.move(a, "side-pre", 5, SYSTEM_CONTEXT)

        resolved = await service.resolve_for_page("course-view", SYSTEM_CONTEXT)

        assert [(block.instance_id, block.weight) for block in resolved] == [(c, 0), (b, 1), (a, 5)]

    async def test_hidden_positions_are_excluded(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        instance_id = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)

        assert await service.toggle_visibility(instance_id, SYSTEM_CONTEXT) is False
        assert await service.resolve_for_page("course-view", SYSTEM_CONTEXT) == []

        assert await service.toggle_visibility(instance_id, SYSTEM_CONTEXT) is True
        assert len(await service.resolve_for_page("course-view", SYSTEM_CONTEXT)) == 1

    async def test_toggle_unknown_position(self, enabled_runtime, db):
        with pytest.raises(BlockPositionNotFoundError):
            await enabled_runtime.block_service(db).toggle_visibility(12345, SYSTEM_CONTEXT)

    async def test_plugin_can_veto_page(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        await service.create_instance("navigation", "*", "side-pre", None, SYSTEM_CONTEXT)

        assert await service.resolve_for_page("login", SYSTEM_CONTEXT) == []
        assert len(await service.resolve_for_page("course-view", SYSTEM_CONTEXT)) == 1

    async def test_disabled_plugins_are_excluded(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        await service.create_instance("html", "*", "side-pre", None, SYSTEM_CONTEXT)
        await service.create_instance("navigation", "*", "side-pre", None, SYSTEM_CONTEXT)

        await enabled_runtime.registry(db).disable(PluginType.BLOCK, "html")

        resolved = await service.resolve_for_page("course-view", SYSTEM_CONTEXT)
        assert [block.block_name for block in resolved] == ["navigation"]

    async def test_grouped_order_matches_flat_order(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        for region in ("side-pre", "content", "side-pre", "side-post", "content"):
            await service.create_instance("html", "course-view", region, None, SYSTEM_CONTEXT)

        flat = await service.resolve_for_page("course-view", SYSTEM_CONTEXT)
        grouped = await service.blocks_for_api("course-view", SYSTEM_CONTEXT)

        for group in grouped:
            expected = [block.instance_id for block in flat if block.region == group["region"]]
            assert [block["id"] for block in group["blocks"]] == expected
        assert sum(len(group["blocks"]) for group in grouped) == len(flat)

    async def test_render_region(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        instance_id = await service.create_instance(
            "html", "course-view", "content", html_config("Hello", "<p>Body</p>"), SYSTEM_CONTEXT
        )
        await service.create_instance("navigation", "course-view", "side-pre", None, SYSTEM_CONTEXT)

        rendered = await service.render_region("content", "course-view", SYSTEM_CONTEXT)

        assert f'data-block-id="{instance_id}"' in rendered
        assert "<h4>Hello</h4><p>Body</p>" in rendered
        assert "navigation-block" not in rendered


class TestAddableBlocks:
    async def test_single_instance_block_disappears_once_added(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)

        before = await service.available_blocks("course-view", SYSTEM_CONTEXT)
        await service.create_instance("navigation", "course-view", "side-pre", None, SYSTEM_CONTEXT)
        after = await service.available_blocks("course-view", SYSTEM_CONTEXT)

        assert [block["title"] for block in before] == ["Navigation", "Text"]
        assert [block["name"] for block in after] == ["html"]

    async def test_without_context_lists_everything_enabled(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        await service.create_instance("navigation", "course-view", "side-pre", None, SYSTEM_CONTEXT)

        names = [block["name"] for block in await service.available_blocks("course-view")]

        assert names == ["navigation", "html"]


class TestExportImport:
    async def test_round_trip_into_other_context(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        await service.create_instance("html", "course-view", "side-pre", html_config("One"), SYSTEM_CONTEXT)
        await service.create_instance("navigation", "course-view", "side-post", None, SYSTEM_CONTEXT)

        exported = await service.export_configuration("course-view", SYSTEM_CONTEXT)
        created = await service.import_configuration(exported, context_id=50)

        assert len(created) == 2
        resolved = await service.resolve_for_page("course-view", 50)
        assert sorted((block.block_name, block.region, block.weight) for block in resolved) == [
            ("html", "side-pre", 0),
            ("navigation", "side-post", 0),
        ]
        assert next(block for block in resolved if block.block_name == "html").content["title"] == "One"

    async def test_import_replaces_existing_blocks(self, enabled_runtime, db):
        service = enabled_runtime.block_service(db)
        old = await service.create_instance("html", "course-view", "side-pre", None, SYSTEM_CONTEXT)
        payload = {
            "page_type": "course-view",
            "context_id": SYSTEM_CONTEXT,
            "blocks": [{"name": "html", "region": "content", "weight": 3, "visible": False}],
        }

        created = await service.import_configuration(payload)

        with pytest.raises(BlockInstanceNotFoundError):
            await service.get_instance(old)
        position = (await service.get_positions(created[0]))[0]
        assert (position.region, position.weight, position.visible) == ("content", 3, False)

    async def test_import_rejects_disabled_blocks(self, enabled_runtime, db):
        await enabled_runtime.registry(db).disable(PluginType.BLOCK, "navigation")
        payload = {
            "page_type": "course-view",
            "context_id": SYSTEM_CONTEXT,
            "blocks": [{"name": "navigation", "region": "side-pre", "weight": 0}],
        }

        with pytest.raises(PluginDisabledError):
            await enabled_runtime.block_service(db).import_configuration(payload)

    @pytest.mark.parametrize(
        "payload",
        [
            {"context_id": 1, "blocks": []},
            {"page_type": "course-view", "blocks": []},
            {"page_type": "course-view", "context_id": 1, "blocks": [{"region": "side-pre"}]},
            {"page_type": "course-view", "context_id": 1, "blocks": [{"name": "html", "region": "x", "config": "@@"}]},
        ],
    )
    async def test_import_rejects_malformed_payload(self, enabled_runtime, db, payload):
        with pytest.raises(InvalidOperationError):
            await enabled_runtime.block_service(db).import_configuration(payload)
