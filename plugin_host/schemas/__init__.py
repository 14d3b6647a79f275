from .block import BlockConfiguration, BlockCreate, BlockMove, RegionBlocks, ResolvedBlockResponse
from .course_module import CompletionStatus, CompletionUpdate, ModuleInstanceCreate, ModuleInstanceUpdate
from .plugin import PluginDetail, PluginListResponse, PluginSummary

__all__ = [
    "BlockConfiguration",
    "BlockCreate",
    "BlockMove",
    "CompletionStatus",
    "CompletionUpdate",
    "ModuleInstanceCreate",
    "ModuleInstanceUpdate",
    "PluginDetail",
    "PluginListResponse",
    "PluginSummary",
    "RegionBlocks",
    "ResolvedBlockResponse",
]
