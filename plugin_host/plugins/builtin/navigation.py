import html
from typing import Any

from plugin_host.constants import CONTEXT_BLOCK
from plugin_host.plugins.base import BlockBase, CapabilityDefinition, PageContext

_HIDDEN_PAGES = ("login", "register")

_SITE_LINKS = {
    "Dashboard": "/my",
    "Courses": "/course",
    "Users": "/user",
}


class NavigationBlock(BlockBase):
    """Site and course navigation shown on every page except login and registration."""

    title = "Navigation"
    description = "Provides navigation links for the site and courses"

    def get_capabilities(self) -> list[CapabilityDefinition]:
        return [CapabilityDefinition("block/navigation:addinstance", context_level=CONTEXT_BLOCK)]

    def get_supported_regions(self) -> list[str]:
        return ["side-pre", "side-post", "content"]

    def get_supported_page_types(self) -> list[str]:
        return ["*"]

    def has_config(self) -> bool:
        return True

    def should_show(self, page_type: str, context_id: int) -> bool:
        return page_type not in _HIDDEN_PAGES

    def get_content(self, config: bytes | None, page: PageContext) -> dict[str, Any]:
        options = self.decode_config(config)
        navigation: dict[str, Any] = {"site": dict(_SITE_LINKS)}
        course_id = options.get("course_id") or page.extra.get("course_id")
        if course_id:
            navigation["course"] = {
                "Course Home": f"/course/{course_id}",
                "Participants": f"/course/{course_id}/participants",
                "Grades": f"/course/{course_id}/grades",
            }
        return navigation

    def get_html(self, config: bytes | None, page: PageContext) -> str:
        content = self.get_content(config, page)
        parts = ['<div class="navigation-block">']
        for heading, links in (("Site", content.get("site")), ("Course", content.get("course"))):
            if not links:
                continue
            items = "".join(
                f'<li><a href="{html.escape(url)}">{html.escape(label)}</a></li>' for label, url in links.items()
            )
            parts.append(f'<div class="nav-section"><h4 class="nav-heading">{heading}</h4><ul class="nav-list">{items}</ul></div>')
        parts.append("</div>")
        return "".join(parts)
