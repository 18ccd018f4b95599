# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get authenticated users and their domain actor
- Enforce role capabilities
- Get service instances built in the application lifespan

Example:
    @router.post("/{class_id}/students")
    async def enroll_student(
        actor: Annotated[Actor, Depends(RequireCapability(Capability.ENROLL_STUDENT))],
        service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
    ):
        ...
"""

import logging
from typing import Any

from fastapi import HTTPException, Request, status

from src.api.middleware.auth import CurrentUser, get_current_user
from src.domains.auth.roles import Actor, Capability, has_capability
from src.domains.class_.service import ClassService
from src.domains.enrollment.reconciler import StatsReconciler
from src.domains.enrollment.service import EnrollmentService
from src.domains.enrollment.transfer import TransferService
from src.utils.logging import bind_context

logger = logging.getLogger(__name__)


def _from_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return value


def get_enrollment_service(request: Request) -> EnrollmentService:
    return _from_state(request, "enrollment_service")


def get_transfer_service(request: Request) -> TransferService:
    return _from_state(request, "transfer_service")


def get_class_service(request: Request) -> ClassService:
    return _from_state(request, "class_service")


def get_reconciler(request: Request) -> StatsReconciler:
    return _from_state(request, "reconciler")


def require_auth(request: Request) -> CurrentUser:
    """Require authentication.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


class RequireCapability:
    """Dependency that requires role capabilities and yields the actor.

    The caller's role is looked up once in ROLE_CAPABILITIES; the
    returned Actor is what services use for organization checks.

    Example:
        @router.post("/admin/reconcile")
        async def reconcile(
            actor: Actor = Depends(RequireCapability(Capability.RECONCILE_STATS)),
        ):
            ...
    """

    def __init__(self, *capabilities: Capability) -> None:
        self.capabilities = capabilities

    def __call__(self, request: Request) -> Actor:
        user = require_auth(request)
        actor = user.to_actor()
        if actor is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Unknown role",
            )

        missing = [c for c in self.capabilities if not has_capability(actor.role, c)]
        if missing:
            logger.info(
                "Capability denied: user=%s, role=%s, missing=%s",
                actor.user_id,
                actor.role.value,
                ",".join(missing),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing capabilities: {', '.join(missing)}",
            )

        bind_context(user_id=actor.user_id, organization_id=actor.organization_id)
        return actor
