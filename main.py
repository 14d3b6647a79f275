import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plugin_host.config import settings
from plugin_host.database import Base, engine
from plugin_host.exception_handlers import register_exception_handlers
from plugin_host.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from plugin_host.routes import blocks, modules, monitoring, plugins
from plugin_host.runtime import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tasks to run at application startup and shutdown."""
    setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)
    logger.info("Starting up %s (host version %s)...", settings.app_name, settings.host_version)

    if settings.debug:
        # Importing the built-in plugins registers their tables on Base.metadata
        import plugin_host.models  # noqa: F401
        import plugin_host.plugins.builtin  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")

    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = build_runtime()

    yield

    logger.info("Shutting down the application...")
    app.state.runtime.loader.clear()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Plugin host for an LMS: activity modules, page blocks and themes",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(monitoring.router)
    app.include_router(plugins.router, prefix="/api/v1/plugins")
    app.include_router(blocks.router, prefix="/api/v1/blocks")
    app.include_router(modules.router, prefix="/api/v1/modules")

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
