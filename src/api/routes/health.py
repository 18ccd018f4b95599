# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoints.

This module provides health and liveness endpoints for the API.
"""

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src import __version__
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

_server_start_time = time.time()


class ComponentHealth(BaseModel):
    """Individual component health status."""

    status: str = Field(description="Component status")
    latency_ms: float | None = Field(None, description="Response latency in ms")
    message: str | None = Field(None, description="Additional status message")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(description="Overall health status")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    storage_backend: str = Field(description="Enrollment store in use")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    checked_at: datetime = Field(description="When health was checked")
    database: ComponentHealth | None = None
    scheduler: ComponentHealth | None = None


async def check_database(request: Request) -> ComponentHealth | None:
    """Check PostgreSQL database connection, if one is configured."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        return None

    start = time.time()
    if not await database.check_connection():
        logger.error("Database health check failed")
        return ComponentHealth(status="unhealthy", message="Database unreachable")

    latency = (time.time() - start) * 1000
    return ComponentHealth(status="healthy", latency_ms=round(latency, 2))


def check_scheduler(request: Request) -> ComponentHealth | None:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return None
    if scheduler.is_running:
        return ComponentHealth(status="healthy")
    return ComponentHealth(status="degraded", message="Reconciliation sweep not running")


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report API health with database and sweep status."""
    settings = request.app.state.settings

    db_health = await check_database(request)
    scheduler_health = check_scheduler(request)

    statuses = [c.status for c in (db_health, scheduler_health) if c is not None]
    if any(s == "unhealthy" for s in statuses):
        overall_status = "unhealthy"
    elif all(s == "healthy" for s in statuses):
        overall_status = "healthy"
    else:
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=__version__,
        environment=settings.environment,
        storage_backend=settings.enrollment.storage_backend,
        uptime_seconds=int(time.time() - _server_start_time),
        checked_at=utc_now(),
        database=db_health,
        scheduler=scheduler_health,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
