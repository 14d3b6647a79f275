"""
Pytest configuration and fixtures for plugin host tests
"""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Models and built-in plugins must be imported before create_all
import plugin_host.models  # noqa: F401
import plugin_host.plugins.builtin  # noqa: F401
from plugin_host.config import Settings
from plugin_host.constants import PluginType
from plugin_host.database import Base
from plugin_host.models.course_module import CourseSection
from plugin_host.runtime import PluginRuntime, build_runtime

HOST_VERSION = 2024100700

BUILTIN_MANIFESTS = {
    ("module", "quiz"): {
        "component": "module_quiz",
        "version": 2024012400,
        "release": "4.5.0",
        "requires": 2024011500,
        "dependencies": {"core": 2024011500},
        "entrypoint": "plugin_host.plugins.builtin.quiz:QuizModule",
    },
    ("module", "page"): {
        "component": "module_page",
        "version": 2024012400,
        "release": "4.5.0",
        "requires": 2024011500,
        "entrypoint": "plugin_host.plugins.builtin.page:PageModule",
    },
    ("block", "navigation"): {
        "component": "block_navigation",
        "version": 2024012400,
        "requires": 2024011500,
        "entrypoint": "plugin_host.plugins.builtin.navigation:NavigationBlock",
    },
    ("block", "html"): {
        "component": "block_html",
        "version": 2024012400,
        "requires": 2024011500,
        "entrypoint": "plugin_host.plugins.builtin.html_block:HtmlBlock",
    },
    ("theme", "boost"): {
        "component": "theme_boost",
        "version": 2024012400,
        "dependencies": {"core": 2024011500},
    },
}


def write_manifest(root: Path, plugin_type: str, name: str, manifest, raw: str | None = None) -> Path:
    """Write <root>/<type>/<name>/version.json; raw text wins over the manifest dict."""
    plugin_dir = root / plugin_type / name
    plugin_dir.mkdir(parents=True, exist_ok=True)
    path = plugin_dir / "version.json"
    path.write_text(raw if raw is not None else json.dumps(manifest), encoding="utf-8")
    return path


@pytest.fixture
def plugin_root(tmp_path: Path) -> Path:
    """A plugin directory tree holding the built-in manifests."""
    root = tmp_path / "plugins"
    for (plugin_type, name), manifest in BUILTIN_MANIFESTS.items():
        write_manifest(root, plugin_type, name, manifest)
    return root


@pytest.fixture
def test_settings() -> Settings:
    return Settings(host_version=HOST_VERSION, plugin_cache_ttl=3600, debug=False)


@pytest.fixture
async def engine(tmp_path: Path):
    """A fresh SQLite database file per test."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def runtime(plugin_root: Path, session_factory, test_settings: Settings) -> PluginRuntime:
    return build_runtime(config=test_settings, session_factory=session_factory, plugins_path=plugin_root)


@pytest.fixture
async def enabled_runtime(runtime: PluginRuntime, session_factory) -> PluginRuntime:
    """Runtime with every built-in module and block enabled (not installed)."""
    async with session_factory() as session:
        registry = runtime.registry(session)
        for plugin_type, name in (
            (PluginType.MODULE, "quiz"),
            (PluginType.MODULE, "page"),
            (PluginType.BLOCK, "navigation"),
            (PluginType.BLOCK, "html"),
        ):
            await registry.enable(plugin_type, name)
    return runtime


@pytest.fixture
async def course_section(session_factory) -> CourseSection:
    """Section 0 of course 2."""
    async with session_factory() as session:
        section = CourseSection(course_id=2, section=0, name="General", sequence="")
        session.add(section)
        await session.commit()
        return section


@pytest.fixture
async def client(enabled_runtime: PluginRuntime, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against a fresh app wired to the test database and runtime."""
    from main import create_app
    from plugin_host.database import get_db

    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.runtime = enabled_runtime

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
