# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    classes: Class and section creation, capacity summary, enrollment.
    sections: Section capacity, teacher assignment and deletion.
    students: Transfer and withdrawal.
    admin: On-demand reconciliation.
"""

from fastapi import APIRouter

from src.api.v1 import admin, classes, sections, students

router = APIRouter(prefix="/api/v1")

router.include_router(classes.router, prefix="/classes", tags=["Classes"])
router.include_router(sections.router, prefix="/sections", tags=["Sections"])
router.include_router(students.router, prefix="/students", tags=["Students"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])

__all__ = ["router"]
