# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment, transfer and reconciliation API schemas."""

from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from src.models.class_ import SectionResponse


class EnrollStudentRequest(BaseModel):
    """Request to enroll a new student into a class."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    roll_number: str | None = Field(default=None, max_length=20)
    preferred_section_name: str | None = Field(
        default=None,
        min_length=1,
        max_length=1,
        description="Section letter to try first",
    )
    policy: Literal["first_fit", "load_balanced"] | None = None


class BulkEnrollRequest(BaseModel):
    students: list[EnrollStudentRequest] = Field(min_length=1)
    policy: Literal["first_fit", "load_balanced"] | None = None


class StudentResponse(BaseModel):
    """Student view returned after enrollment."""

    id: str
    organization_id: str | None
    name: str
    email: str
    roll_number: str | None = None
    section_id: str | None = None


class EnrollmentResponse(BaseModel):
    student: StudentResponse
    section: SectionResponse
    attempts: int


class BulkEnrollFailure(BaseModel):
    email: str
    code: str
    reason: str


class BulkEnrollResponse(BaseModel):
    enrolled: list[EnrollmentResponse]
    failed: list[BulkEnrollFailure]
    total_enrolled: int
    total_failed: int


class TransferStudentRequest(BaseModel):
    target_section_id: str


class TransferResponse(BaseModel):
    student: StudentResponse
    source_section: SectionResponse | None
    target_section: SectionResponse


class DriftEntryResponse(BaseModel):
    scope: str
    entity_id: str
    counter: str
    cached: int
    actual: int


class ReconciliationResponse(BaseModel):
    organizations: int
    classes: int
    sections: int
    stale_members: int = 0
    drift: list[DriftEntryResponse]
    failures: list[str]
