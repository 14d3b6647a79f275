from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BlockCreate(BaseModel):
    block_name: str = Field(..., description="Name of an enabled block plugin, e.g. navigation.")
    page_type: str = Field(..., description="Concrete page type or pattern, e.g. course-view-*.")
    region: str = Field(..., description="Region supported by the block.")
    context_id: int = Field(..., description="Context the block is attached to.")
    subpage: str = ""
    show_in_subcontexts: bool = False
    config: dict[str, Any] | None = Field(None, description="Block configuration, stored JSON encoded.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"block_name": "navigation", "page_type": "course-view", "region": "side-pre", "context_id": 1}
        }
    )


class BlockConfigUpdate(BaseModel):
    config: dict[str, Any] | None = None


class BlockMove(BaseModel):
    region: str
    weight: int
    context_id: int


class BlockCreatedResponse(BaseModel):
    id: int


class BlockVisibilityResponse(BaseModel):
    id: int
    visible: bool


class ResolvedBlockResponse(BaseModel):
    id: int
    name: str
    region: str
    weight: int
    content: dict[str, Any]
    html: str


class RegionBlocks(BaseModel):
    region: str
    blocks: list[ResolvedBlockResponse]


class AddableBlock(BaseModel):
    name: str
    title: str
    description: str
    regions: list[str]
    multiple: bool
    has_config: bool


class BlockExportEntry(BaseModel):
    name: str
    region: str
    weight: int
    visible: bool = True
    subpage: str = ""
    show_in_subcontexts: bool = False
    config: str | None = Field(None, description="Base64 encoded config payload.")


class BlockConfiguration(BaseModel):
    page_type: str
    context_id: int
    exported_at: str | None = None
    blocks: list[BlockExportEntry]


class BlockImportResponse(BaseModel):
    created: list[int]
