"""
Block Positioning Engine

Places block instances at (region, page type, context) coordinates and
answers "what renders on page X".

- Weights: a new block gets max(existing weight at its coordinate) + 1, or 0
  on an empty coordinate. The computation is serialized per coordinate by an
  in-process keyed lock and, on PostgreSQL, a transaction-scoped advisory lock.
- Ordering: resolve_for_page() sorts by (weight, instance id). Region grouping
  is post-processing on that list, so flat and grouped orders always agree.
- Freshness: positions are read from the database on every call. Only plugin
  instances come from the loader cache.
"""

import base64
import binascii
import html
import logging
import zlib
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import PluginType
from plugin_host.exceptions import (
    BlockInstanceNotFoundError,
    BlockPositionNotFoundError,
    InvalidOperationError,
    PluginDisabledError,
    PluginHostError,
)
from plugin_host.models.block import BlockInstance, BlockPosition
from plugin_host.plugins.base import PageContext
from plugin_host.plugins.loader import PluginLoader
from plugin_host.plugins.registry import PluginRegistry
from plugin_host.utils.clock import utcnow
from plugin_host.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


# ── Page-type patterns ────────────────────────────────────────────────────────


def matching_page_type_patterns(page_type: str) -> list[str]:
    """
    All stored patterns that match a concrete page type, most specific first.

    >>> matching_page_type_patterns("course-view-topics")
    ['course-view-topics', 'course-view-*', 'course-*', '*']
    """
    patterns = [page_type]
    bits = page_type.split("-")
    for i in range(len(bits) - 1, 0, -1):
        patterns.append("-".join(bits[:i]) + "-*")
    if page_type != "*":
        patterns.append("*")
    return patterns


def page_type_matches(pattern: str, page_type: str) -> bool:
    return pattern in matching_page_type_patterns(page_type)


# ── Result types ──────────────────────────────────────────────────────────────


@dataclass
class ResolvedBlock:
    instance_id: int
    block_name: str
    region: str
    weight: int
    content: dict[str, Any] = field(default_factory=dict)
    html: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.instance_id,
            "name": self.block_name,
            "region": self.region,
            "weight": self.weight,
            "content": self.content,
            "html": self.html,
        }


def group_by_region(resolved: list[ResolvedBlock]) -> dict[str, list[ResolvedBlock]]:
    """Group an already ordered list by region, keeping the order inside each region."""
    grouped: dict[str, list[ResolvedBlock]] = {}
    for block in resolved:
        grouped.setdefault(block.region, []).append(block)
    return grouped


class BlockService:
    """Service for block placement and page resolution."""

    def __init__(self, db: AsyncSession, loader: PluginLoader, registry: PluginRegistry, coordinate_locks: KeyedLock):
        self.db = db
        self.loader = loader
        self.registry = registry
        self.coordinate_locks = coordinate_locks

    # ============== Lookups ==============

    async def get_instance(self, instance_id: int) -> BlockInstance:
        instance = await self.db.get(BlockInstance, instance_id)
        if instance is None:
            raise BlockInstanceNotFoundError(instance_id)
        return instance

    async def get_positions(self, instance_id: int) -> list[BlockPosition]:
        result = await self.db.execute(
            select(BlockPosition).where(BlockPosition.block_instance_id == instance_id).order_by(BlockPosition.id)
        )
        return list(result.scalars().all())

    async def _require_enabled(self, block_name: str) -> None:
        if not await self.registry.is_enabled(PluginType.BLOCK, block_name):
            raise PluginDisabledError(PluginType.BLOCK.value, block_name)

    # ============== Placement ==============

    async def _lock_coordinate(self, region: str, page_type: str, context_id: int) -> None:
        """Take a transaction-scoped advisory lock where the database supports it."""
        if self.db.get_bind().dialect.name != "postgresql":
            return
        key = zlib.crc32(f"block:{context_id}:{page_type}:{region}".encode())
        await self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})

    async def _next_weight(self, region: str, page_type: str, context_id: int) -> int:
        result = await self.db.execute(
            select(func.max(BlockPosition.weight)).where(
                BlockPosition.region == region,
                BlockPosition.page_type == page_type,
                BlockPosition.context_id == context_id,
            )
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def create_instance(
        self,
        block_name: str,
        page_type: str,
        region: str,
        config: bytes | None,
        context_id: int,
        subpage: str = "",
        show_in_subcontexts: bool = False,
    ) -> int:
        """
        Add a block to a page.

        The instance and its first position are written in one transaction.

        Returns:
            The new block instance id.
        """
        await self._require_enabled(block_name)
        block = await self.loader.load_block(block_name)

        if region not in block.get_supported_regions():
            raise InvalidOperationError(
                f"Block '{block_name}' cannot be placed in region '{region}'",
                details={"supported_regions": block.get_supported_regions()},
            )

        async with self.coordinate_locks.hold((region, page_type, context_id)):
            try:
                await self._lock_coordinate(region, page_type, context_id)
                weight = await self._next_weight(region, page_type, context_id)

                instance = BlockInstance(
                    block_name=block_name,
                    parent_context_id=context_id,
                    show_in_subcontexts=show_in_subcontexts,
                    page_type_pattern=page_type,
                    subpage_pattern=subpage or None,
                    default_region=region,
                    default_weight=weight,
                    config_data=config,
                    visible=True,
                )
                self.db.add(instance)
                await self.db.flush()

                self.db.add(
                    BlockPosition(
                        block_instance_id=instance.id,
                        context_id=context_id,
                        page_type=page_type,
                        subpage=subpage,
                        visible=True,
                        region=region,
                        weight=weight,
                    )
                )
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.error("Error creating block instance %s: %s", block_name, e)
                raise

        logger.info("Block instance created: %s id=%s region=%s weight=%s", block_name, instance.id, region, weight)
        return instance.id

    async def update_instance(self, instance_id: int, config: bytes | None) -> BlockInstance:
        """Replace an instance's config payload. Positions are left untouched."""
        instance = await self.get_instance(instance_id)
        try:
            instance.config_data = config
            instance.time_modified = utcnow()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Error updating block instance %s: %s", instance_id, e)
            raise
        logger.info("Block instance updated: %s", instance_id)
        return instance

    async def delete_instance(self, instance_id: int) -> None:
        """Delete an instance together with all of its positions."""
        await self.get_instance(instance_id)
        try:
            await self.db.execute(delete(BlockPosition).where(BlockPosition.block_instance_id == instance_id))
            await self.db.execute(delete(BlockInstance).where(BlockInstance.id == instance_id))
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Error deleting block instance %s: %s", instance_id, e)
            raise
        logger.info("Block instance deleted: %s", instance_id)

    async def move(self, instance_id: int, region: str, weight: int, context_id: int) -> None:
        """Set region and weight of the instance's positions in a context. Siblings keep their weights."""
        try:
            result = await self.db.execute(
                update(BlockPosition)
                .where(BlockPosition.block_instance_id == instance_id, BlockPosition.context_id == context_id)
                .values(region=region, weight=weight)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                raise BlockPositionNotFoundError(instance_id, context_id)
            await self.db.commit()
        except BlockPositionNotFoundError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error("Error moving block instance %s: %s", instance_id, e)
            raise
        logger.info("Block instance moved: %s -> %s/%s", instance_id, region, weight)

    async def toggle_visibility(self, instance_id: int, context_id: int) -> bool:
        """Flip the visibility of the instance's positions in a context and return the new value."""
        result = await self.db.execute(
            select(BlockPosition).where(
                BlockPosition.block_instance_id == instance_id, BlockPosition.context_id == context_id
            )
        )
        positions = list(result.scalars().all())
        if not positions:
            raise BlockPositionNotFoundError(instance_id, context_id)

        visible = not positions[0].visible
        try:
            for position in positions:
                position.visible = visible
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Error toggling block instance %s: %s", instance_id, e)
            raise
        logger.info("Block instance %s visibility -> %s", instance_id, visible)
        return visible

    # ============== Page Resolution ==============

    async def resolve_for_page(self, page_type: str, context_id: int, subpage: str = "") -> list[ResolvedBlock]:
        """
        Blocks rendered on a concrete page, sorted by (weight, instance id).

        Hidden positions, hidden instances, disabled plugins and plugins whose
        should_show() vetoes the page are excluded. A block whose plugin fails
        to load is logged and left out.
        """
        result = await self.db.execute(
            select(BlockPosition, BlockInstance)
            .join(BlockInstance, BlockInstance.id == BlockPosition.block_instance_id)
            .where(
                BlockPosition.context_id == context_id,
                BlockPosition.page_type.in_(matching_page_type_patterns(page_type)),
                BlockPosition.subpage == subpage,
                BlockPosition.visible.is_(True),
                BlockInstance.visible.is_(True),
            )
            .order_by(BlockPosition.weight, BlockInstance.id)
        )
        rows = result.all()
        enabled = await self.registry.enabled_names(PluginType.BLOCK)
        page = PageContext(page_type=page_type, context_id=context_id, subpage=subpage)

        resolved: list[ResolvedBlock] = []
        for position, instance in rows:
            if instance.block_name not in enabled:
                continue
            try:
                block = await self.loader.load_block(instance.block_name)
            except PluginHostError as exc:
                logger.warning("Skipping block %s (%s): %s", instance.id, instance.block_name, exc.message)
                continue
            if not block.should_show(page_type, context_id):
                continue
            resolved.append(
                ResolvedBlock(
                    instance_id=instance.id,
                    block_name=instance.block_name,
                    region=position.region,
                    weight=position.weight,
                    content=block.get_content(instance.config_data, page),
                    html=block.get_html(instance.config_data, page),
                )
            )
        return resolved

    async def blocks_for_api(self, page_type: str, context_id: int) -> list[dict[str, Any]]:
        resolved = await self.resolve_for_page(page_type, context_id)
        return [
            {"region": region, "blocks": [block.as_dict() for block in blocks]}
            for region, blocks in group_by_region(resolved).items()
        ]

    async def render_region(self, region: str, page_type: str, context_id: int) -> str:
        resolved = await self.resolve_for_page(page_type, context_id)
        return "".join(
            f'<div class="block block-{html.escape(block.block_name)}" data-block-id="{block.instance_id}">'
            f"{block.html}</div>"
            for block in resolved
            if block.region == region
        )

    async def available_blocks(self, page_type: str, context_id: int | None = None) -> list[dict[str, Any]]:
        """Enabled blocks that can be added to a page, sorted by title."""
        present: set[str] = set()
        if context_id is not None:
            result = await self.db.execute(
                select(BlockInstance.block_name)
                .join(BlockPosition, BlockPosition.block_instance_id == BlockInstance.id)
                .where(
                    BlockPosition.context_id == context_id,
                    BlockPosition.page_type.in_(matching_page_type_patterns(page_type)),
                )
            )
            present = set(result.scalars().all())

        available = []
        for name in sorted(await self.registry.enabled_names(PluginType.BLOCK)):
            try:
                block = await self.loader.load_block(name)
            except PluginHostError as exc:
                logger.warning("Block %s unavailable: %s", name, exc.message)
                continue
            if not any(page_type_matches(pattern, page_type) for pattern in block.get_supported_page_types()):
                continue
            if name in present and not block.supports_multiple_instances():
                continue
            available.append(
                {
                    "name": name,
                    "title": block.title or name,
                    "description": block.description,
                    "regions": block.get_supported_regions(),
                    "multiple": block.supports_multiple_instances(),
                    "has_config": block.has_config(),
                }
            )
        return sorted(available, key=lambda item: item["title"])

    # ============== Export / Import ==============

    async def export_configuration(self, page_type: str, context_id: int) -> dict[str, Any]:
        """Serialize every block placed on exactly this page type, hidden ones included."""
        result = await self.db.execute(
            select(BlockPosition, BlockInstance)
            .join(BlockInstance, BlockInstance.id == BlockPosition.block_instance_id)
            .where(BlockPosition.context_id == context_id, BlockPosition.page_type == page_type)
            .order_by(BlockPosition.region, BlockPosition.weight, BlockInstance.id)
        )
        blocks = [
            {
                "name": instance.block_name,
                "region": position.region,
                "weight": position.weight,
                "visible": position.visible and instance.visible,
                "subpage": position.subpage,
                "show_in_subcontexts": instance.show_in_subcontexts,
                "config": base64.b64encode(instance.config_data).decode("ascii") if instance.config_data else None,
            }
            for position, instance in result.all()
        ]
        return {
            "page_type": page_type,
            "context_id": context_id,
            "exported_at": utcnow().isoformat(),
            "blocks": blocks,
        }

    async def import_configuration(self, payload: dict[str, Any], context_id: int | None = None) -> list[int]:
        """
        Replace the blocks of a page with an exported configuration.

        Existing blocks on the page are removed and the payload recreated with
        its stored weights, all in one transaction.
        """
        page_type = payload.get("page_type")
        entries = payload.get("blocks")
        if not isinstance(page_type, str) or not isinstance(entries, list):
            raise InvalidOperationError("Import payload needs 'page_type' and a 'blocks' list")
        context_id = context_id if context_id is not None else payload.get("context_id")
        if not isinstance(context_id, int):
            raise InvalidOperationError("Import payload needs an integer 'context_id'")

        decoded = []
        for entry in entries:
            try:
                config = base64.b64decode(entry["config"], validate=True) if entry.get("config") else None
                decoded.append((entry["name"], entry["region"], int(entry.get("weight", 0)), config, entry))
            except (KeyError, TypeError, ValueError, binascii.Error) as exc:
                raise InvalidOperationError(f"Invalid block entry in import payload: {exc}") from exc

        enabled = await self.registry.enabled_names(PluginType.BLOCK)
        for name, *_ in decoded:
            if name not in enabled:
                raise PluginDisabledError(PluginType.BLOCK.value, name)

        created: list[int] = []
        try:
            existing = select(BlockPosition.block_instance_id).where(
                BlockPosition.context_id == context_id, BlockPosition.page_type == page_type
            )
            instance_ids = list((await self.db.execute(existing)).scalars().all())
            if instance_ids:
                await self.db.execute(delete(BlockPosition).where(BlockPosition.block_instance_id.in_(instance_ids)))
                await self.db.execute(delete(BlockInstance).where(BlockInstance.id.in_(instance_ids)))

            for name, region, weight, config, entry in decoded:
                visible = bool(entry.get("visible", True))
                subpage = entry.get("subpage") or ""
                instance = BlockInstance(
                    block_name=name,
                    parent_context_id=context_id,
                    show_in_subcontexts=bool(entry.get("show_in_subcontexts", False)),
                    page_type_pattern=page_type,
                    subpage_pattern=subpage or None,
                    default_region=region,
                    default_weight=weight,
                    config_data=config,
                    visible=True,
                )
                self.db.add(instance)
                await self.db.flush()
                self.db.add(
                    BlockPosition(
                        block_instance_id=instance.id,
                        context_id=context_id,
                        page_type=page_type,
                        subpage=subpage,
                        visible=visible,
                        region=region,
                        weight=weight,
                    )
                )
                created.append(instance.id)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Error importing block configuration for %s@%s: %s", page_type, context_id, e)
            raise

        logger.info("Imported %d blocks into %s@%s", len(created), page_type, context_id)
        return created
