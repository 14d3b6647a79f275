"""
Monitoring Routes

Liveness and readiness checks.
"""

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.config import settings
from plugin_host.database import get_db
from plugin_host.dependencies import get_runtime
from plugin_host.runtime import PluginRuntime

router = APIRouter(tags=["Monitoring"])

# Application start time for uptime calculation
APP_START_TIME = time.time()


class HealthStatus(BaseModel):
    status: str
    timestamp: str
    version: str
    host_version: int
    uptime_seconds: float


class ReadinessStatus(BaseModel):
    status: str
    timestamp: str
    checks: dict[str, dict[str, Any]]


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Liveness check. Does not touch the database or the plugin root."""
    return HealthStatus(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
        host_version=settings.host_version,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
    )


@router.get("/ready", response_model=ReadinessStatus)
async def readiness_check(
    db: AsyncSession = Depends(get_db), runtime: PluginRuntime = Depends(get_runtime)
) -> ReadinessStatus:
    checks = {
        "database": await _check_database(db),
        "plugins": _check_plugin_root(runtime),
    }
    all_healthy = all(check.get("status") == "healthy" for check in checks.values())

    return ReadinessStatus(
        status="ready" if all_healthy else "not_ready",
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=checks,
    )


async def _check_database(db: AsyncSession) -> dict[str, Any]:
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "latency_ms": round((time.perf_counter() - start) * 1000, 2)}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


def _check_plugin_root(runtime: PluginRuntime) -> dict[str, Any]:
    root = runtime.reader.root
    if not root.is_dir():
        return {"status": "unhealthy", "error": f"plugin root {root} does not exist"}
    return {"status": "healthy", "root": str(root), "cached_instances": len(runtime.cache.keys())}
