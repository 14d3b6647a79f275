import html
from typing import Any

from plugin_host.plugins.base import BlockBase, PageContext


class HtmlBlock(BlockBase):
    """Free-form HTML with an optional title, taken from the instance config."""

    title = "Text"
    description = "Arbitrary HTML content"

    def get_supported_regions(self) -> list[str]:
        return ["side-pre", "side-post", "content"]

    def supports_multiple_instances(self) -> bool:
        return True

    def has_config(self) -> bool:
        return True

    def get_content(self, config: bytes | None, page: PageContext) -> dict[str, Any]:
        options = self.decode_config(config)
        return {"title": options.get("title", ""), "text": options.get("text", "")}

    def get_html(self, config: bytes | None, page: PageContext) -> str:
        content = self.get_content(config, page)
        heading = f"<h4>{html.escape(content['title'])}</h4>" if content["title"] else ""
        return f'<div class="html-block">{heading}{content["text"]}</div>'
