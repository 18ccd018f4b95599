# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the Campus Roster API.
Nothing is constructed at import time: the store, event bus, notifier,
services and reconciliation scheduler are built in the lifespan and kept
on app.state, where the dependencies in src.api.dependencies find them.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src import __version__
from src.api.middleware.auth import AuthMiddleware
from src.api.middleware.context import RequestContextMiddleware
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import Settings, get_settings
from src.domains.auth.jwt import JWTManager
from src.domains.auth.password import PasswordHasher
from src.domains.class_.service import ClassService
from src.domains.enrollment.memory_store import InMemoryEnrollmentStore
from src.domains.enrollment.placement import PlacementPolicy
from src.domains.enrollment.reconciler import StatsReconciler
from src.domains.enrollment.service import EnrollmentService
from src.domains.enrollment.sql_store import SqlEnrollmentStore
from src.domains.enrollment.store import EnrollmentStore
from src.domains.enrollment.transfer import TransferService
from src.infrastructure.background import ReconciliationScheduler
from src.infrastructure.database import RosterDatabase
from src.infrastructure.events import EventBus
from src.infrastructure.notifications import CredentialsNotifier, EmailChannel
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def _open_store(app: FastAPI, settings: Settings) -> EnrollmentStore:
    """Return the injected store, or build the configured one."""
    store = getattr(app.state, "store", None)
    if store is not None:
        return store

    if settings.enrollment.storage_backend == "memory":
        logger.warning("Using in-memory enrollment store; data is lost on shutdown")
        return InMemoryEnrollmentStore()

    database = RosterDatabase(settings)
    await database.connect()
    app.state.database = database
    logger.info("Database connection initialized")
    return SqlEnrollmentStore(database)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup:
    - Enrollment store (PostgreSQL or in-memory)
    - Event bus and credentials notifier
    - Enrollment, transfer and class services
    - Reconciliation sweep scheduler

    Shutdown runs in reverse order.
    """
    settings: Settings = app.state.settings
    logger.info(
        "Starting Campus Roster API: environment=%s, debug=%s",
        settings.environment,
        settings.debug,
    )

    # =========================================================================
    # Startup
    # =========================================================================
    store = await _open_store(app, settings)
    app.state.store = store

    event_bus = EventBus()
    notifier = CredentialsNotifier(EmailChannel(settings.smtp))
    notifier.register(event_bus)
    app.state.event_bus = event_bus
    app.state.notifier = notifier

    reconciler = StatsReconciler(store, drift_threshold=settings.reconciliation.drift_threshold)
    app.state.reconciler = reconciler
    app.state.enrollment_service = EnrollmentService(
        store=store,
        reconciler=reconciler,
        event_bus=event_bus,
        hasher=PasswordHasher(),
        max_attempts=settings.enrollment.max_attempts,
        default_policy=PlacementPolicy(settings.enrollment.default_policy),
        max_bulk_size=settings.enrollment.max_bulk_size,
    )
    app.state.transfer_service = TransferService(store, reconciler, event_bus)
    app.state.class_service = ClassService(
        store,
        reconciler,
        default_capacity=settings.enrollment.default_section_capacity,
    )

    scheduler = None
    if settings.reconciliation.sweep_enabled:
        scheduler = ReconciliationScheduler(
            reconciler,
            interval_minutes=settings.reconciliation.sweep_interval_minutes,
        )
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================
    if scheduler is not None:
        await scheduler.stop()

    notifier.unregister(event_bus)
    event_bus.clear()

    database = getattr(app.state, "database", None)
    if database is not None:
        await database.close()
        app.state.database = None
        logger.info("Database connections closed")

    logger.info("Shutting down Campus Roster API")


def create_app(
    settings: Settings | None = None,
    store: EnrollmentStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings.
        store: Store to use instead of the configured backend.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Campus Roster API",
        description="Capacity-safe class and section enrollment",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # =========================================================================
    # State
    # =========================================================================
    app.state.settings = settings
    app.state.store = store
    app.state.database = None

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================
    app.add_middleware(AuthMiddleware, jwt_manager=JWTManager(settings.jwt))
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app


def run() -> None:
    """Serve the API with uvicorn using API_ settings."""
    settings = get_settings()
    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        workers=settings.api.workers,
        reload=settings.api.reload,
    )
