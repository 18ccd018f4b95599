# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class and section API schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class ClassCreateRequest(BaseModel):
    """Request to create a class.

    organization_id is only honored for super admins; other callers
    always create in their own organization.
    """

    grade: int = Field(ge=1, le=12)
    name: str = Field(min_length=1, max_length=100)
    organization_id: str | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class ClassResponse(BaseModel):
    id: str
    organization_id: str
    grade: int
    name: str
    total_students: int


class SectionCreateRequest(BaseModel):
    """Request to create a section under a class."""

    name: str = Field(min_length=1, max_length=1, description="Single letter A-Z")
    max_students: int | None = Field(default=None, ge=1, le=50)
    teacher_id: str | None = None

    @field_validator("name")
    @classmethod
    def upper_letter(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 1 or not ("A" <= v <= "Z"):
            raise ValueError("Section name must be a single letter A-Z")
        return v


class SectionCapacityUpdate(BaseModel):
    max_students: int = Field(ge=1, le=50)


class SectionTeacherAssign(BaseModel):
    teacher_id: str


class SectionResponse(BaseModel):
    """Section view returned by section and transfer endpoints."""

    id: str
    class_id: str
    organization_id: str
    name: str
    max_students: int
    current_students: int
    available_seats: int
    is_full: bool
    teacher_id: str | None = None
    stats_updated_at: datetime | None = None


class SectionCapacity(BaseModel):
    section_id: str
    name: str
    max_students: int
    current_students: int
    available_seats: int
    is_full: bool
    teacher_id: str | None = None


class CapacitySummaryResponse(BaseModel):
    """Per-section occupancy report of a class."""

    class_id: str
    grade: int
    name: str
    sections: list[SectionCapacity]
    total_capacity: int
    total_students: int
    available_seats: int
    has_available_seats: bool
