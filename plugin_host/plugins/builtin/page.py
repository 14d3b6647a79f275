import html
from typing import Any

from sqlalchemy import Column, DateTime, Integer, String, Text, delete
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import CONTEXT_MODULE
from plugin_host.database import Base
from plugin_host.plugins.base import CapabilityDefinition, ModuleBase, ModuleFeatures
from plugin_host.utils.clock import utcnow


class Page(Base):
    __tablename__ = "page"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    intro = Column(Text, default="", nullable=False)
    content = Column(Text, default="", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class PageModule(ModuleBase):
    """Ungraded content page."""

    icon = "page"
    description = "A single page of formatted content"

    def get_supported_features(self) -> ModuleFeatures:
        return ModuleFeatures(grade=False, groups=False)

    def get_capabilities(self) -> list[CapabilityDefinition]:
        return [
            CapabilityDefinition("mod/page:view", captype="read", context_level=CONTEXT_MODULE),
            CapabilityDefinition("mod/page:addinstance", context_level=CONTEXT_MODULE),
        ]

    async def add_instance(self, db: AsyncSession, data: dict[str, Any]) -> int:
        page = Page(
            course_id=data["course_id"],
            name=data["name"],
            intro=data.get("intro", ""),
            content=data.get("content", ""),
        )
        db.add(page)
        await db.flush()
        return page.id

    async def update_instance(self, db: AsyncSession, instance_id: int, data: dict[str, Any]) -> None:
        page = await db.get(Page, instance_id)
        if page is None:
            return
        for field_name in ("name", "intro", "content"):
            if field_name in data:
                setattr(page, field_name, data[field_name])
        await db.flush()

    async def delete_instance(self, db: AsyncSession, instance_id: int) -> None:
        await db.execute(delete(Page).where(Page.id == instance_id))

    async def get_instance(self, db: AsyncSession, instance_id: int) -> dict[str, Any] | None:
        page = await db.get(Page, instance_id)
        if page is None:
            return None
        return {"id": page.id, "course_id": page.course_id, "name": page.name, "intro": page.intro}

    async def get_view(self, db: AsyncSession, instance_id: int, user_id: int) -> str:
        page = await db.get(Page, instance_id)
        if page is None:
            return '<div class="alert alert-danger">Page not found</div>'
        return f'<div class="page-view"><h2>{html.escape(page.name)}</h2>{page.content}</div>'

    async def handle_ajax(self, db: AsyncSession, action: str, params: dict[str, Any]) -> dict[str, Any]:
        if action == "get_content":
            page = await db.get(Page, int(params.get("page_id", 0)))
            if page is None:
                return {"success": False, "error": "Page not found"}
            return {"success": True, "content": page.content}
        return {"success": False, "error": "Unknown action"}
