# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Administrative API endpoints.

- POST /reconcile - Run reconciliation on demand
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import RequireCapability, get_reconciler
from src.api.errors import to_http_exception
from src.api.v1.views import report_to_response
from src.domains.auth.roles import Actor, Capability, has_capability
from src.domains.enrollment.errors import EnrollmentServiceError
from src.domains.enrollment.reconciler import StatsReconciler
from src.models.enrollment import ReconciliationResponse

router = APIRouter()


@router.post("/reconcile", response_model=ReconciliationResponse)
async def reconcile(
    actor: Annotated[Actor, Depends(RequireCapability(Capability.RECONCILE_STATS))],
    reconciler: Annotated[StatsReconciler, Depends(get_reconciler)],
) -> ReconciliationResponse:
    """Recompute cached counters.

    Super admins sweep every organization; admins reconcile their own.
    """
    cross_organization = has_capability(actor.role, Capability.CROSS_ORGANIZATION)
    if not cross_organization and actor.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Caller has no organization",
        )

    try:
        if cross_organization:
            report = await reconciler.reconcile_all()
        else:
            report = await reconciler.reconcile_organization(actor.organization_id)
    except EnrollmentServiceError as e:
        raise to_http_exception(e)
    return report_to_response(report)
