"""
Built-in plugin implementations.

Importing this package also defines the tables owned by the built-in
modules, so it must be imported before metadata.create_all().
"""

from plugin_host.constants import PluginType
from plugin_host.plugins.factory import PluginFactory

from .html_block import HtmlBlock
from .navigation import NavigationBlock
from .page import PageModule
from .quiz import QuizModule

BUILTIN_PLUGINS = {
    (PluginType.MODULE, "quiz"): QuizModule,
    (PluginType.MODULE, "page"): PageModule,
    (PluginType.BLOCK, "navigation"): NavigationBlock,
    (PluginType.BLOCK, "html"): HtmlBlock,
}


def register_builtin_plugins(factory: PluginFactory) -> None:
    """Populate the factory table with the plugins shipped with the host."""
    for (plugin_type, name), implementation in BUILTIN_PLUGINS.items():
        factory.register(plugin_type, name, implementation)


__all__ = ["HtmlBlock", "NavigationBlock", "PageModule", "QuizModule", "register_builtin_plugins"]
