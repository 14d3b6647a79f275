"""
Block Routes

GET    /api/v1/blocks/page                  → blocks on a page, sorted by weight
GET    /api/v1/blocks/page/regions          → same list grouped by region
GET    /api/v1/blocks/page/regions/{region} → rendered HTML of one region
GET    /api/v1/blocks/addable               → blocks that can be added to a page
GET    /api/v1/blocks/export                → export a page's block configuration
POST   /api/v1/blocks/import                → replace a page's blocks from an export
POST   /api/v1/blocks                       → add a block to a page
PUT    /api/v1/blocks/{id}/config           → replace block config
POST   /api/v1/blocks/{id}/move             → change region / weight
POST   /api/v1/blocks/{id}/toggle           → flip visibility
DELETE /api/v1/blocks/{id}                  → delete block and its positions
"""

import json
import logging

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import HTMLResponse

from plugin_host.config import settings
from plugin_host.dependencies import get_block_service
from plugin_host.schemas.block import (
    AddableBlock,
    BlockConfigUpdate,
    BlockConfiguration,
    BlockCreate,
    BlockCreatedResponse,
    BlockImportResponse,
    BlockMove,
    BlockVisibilityResponse,
    RegionBlocks,
    ResolvedBlockResponse,
)
from plugin_host.services.block_service import BlockService

router = APIRouter(tags=["Blocks"])
logger = logging.getLogger(__name__)


def _encode_config(config: dict | None) -> bytes | None:
    if config is None:
        return None
    return json.dumps(config, sort_keys=True).encode("utf-8")


# ── Page resolution ────────────────────────────────────────────────────────────


@router.get("/page", response_model=list[ResolvedBlockResponse])
async def get_page_blocks(
    page_type: str,
    context_id: int = Query(settings.default_context_id),
    service: BlockService = Depends(get_block_service),
):
    resolved = await service.resolve_for_page(page_type, context_id)
    return [block.as_dict() for block in resolved]


@router.get("/page/regions", response_model=list[RegionBlocks])
async def get_page_regions(
    page_type: str,
    context_id: int = Query(settings.default_context_id),
    service: BlockService = Depends(get_block_service),
):
    return await service.blocks_for_api(page_type, context_id)


@router.get("/page/regions/{region}", response_class=HTMLResponse)
async def render_region(
    region: str,
    page_type: str,
    context_id: int = Query(settings.default_context_id),
    service: BlockService = Depends(get_block_service),
) -> HTMLResponse:
    return HTMLResponse(await service.render_region(region, page_type, context_id))


@router.get("/addable", response_model=list[AddableBlock])
async def get_addable_blocks(
    page_type: str,
    context_id: int | None = None,
    service: BlockService = Depends(get_block_service),
):
    return await service.available_blocks(page_type, context_id)


# ── Export / import ────────────────────────────────────────────────────────────


@router.get("/export", response_model=BlockConfiguration)
async def export_blocks(
    page_type: str,
    context_id: int = Query(settings.default_context_id),
    service: BlockService = Depends(get_block_service),
):
    return await service.export_configuration(page_type, context_id)


@router.post("/import", response_model=BlockImportResponse)
async def import_blocks(
    payload: BlockConfiguration,
    service: BlockService = Depends(get_block_service),
) -> BlockImportResponse:
    created = await service.import_configuration(payload.model_dump())
    return BlockImportResponse(created=created)


# ── Placement ──────────────────────────────────────────────────────────────────


@router.post("/", response_model=BlockCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_block(
    payload: BlockCreate,
    service: BlockService = Depends(get_block_service),
) -> BlockCreatedResponse:
    instance_id = await service.create_instance(
        payload.block_name,
        payload.page_type,
        payload.region,
        _encode_config(payload.config),
        payload.context_id,
        subpage=payload.subpage,
        show_in_subcontexts=payload.show_in_subcontexts,
    )
    return BlockCreatedResponse(id=instance_id)


@router.put("/{instance_id}/config", response_model=BlockCreatedResponse)
async def update_block_config(
    instance_id: int,
    payload: BlockConfigUpdate,
    service: BlockService = Depends(get_block_service),
) -> BlockCreatedResponse:
    await service.update_instance(instance_id, _encode_config(payload.config))
    return BlockCreatedResponse(id=instance_id)


@router.post("/{instance_id}/move", status_code=status.HTTP_204_NO_CONTENT)
async def move_block(
    instance_id: int,
    payload: BlockMove,
    service: BlockService = Depends(get_block_service),
) -> Response:
    await service.move(instance_id, payload.region, payload.weight, payload.context_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{instance_id}/toggle", response_model=BlockVisibilityResponse)
async def toggle_block(
    instance_id: int,
    context_id: int = Query(settings.default_context_id),
    service: BlockService = Depends(get_block_service),
) -> BlockVisibilityResponse:
    visible = await service.toggle_visibility(instance_id, context_id)
    return BlockVisibilityResponse(id=instance_id, visible=visible)


@router.delete("/{instance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    instance_id: int,
    service: BlockService = Depends(get_block_service),
) -> Response:
    await service.delete_instance(instance_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
