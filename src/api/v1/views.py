# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversion of domain results into API response models."""

from src.domains.class_.service import section_to_response
from src.domains.enrollment.reconciler import ReconciliationReport
from src.domains.enrollment.service import BulkEnrollmentResult, EnrollmentResult
from src.domains.enrollment.store import UserRecord
from src.domains.enrollment.transfer import TransferResult
from src.models.enrollment import (
    BulkEnrollFailure,
    BulkEnrollResponse,
    DriftEntryResponse,
    EnrollmentResponse,
    ReconciliationResponse,
    StudentResponse,
    TransferResponse,
)


def student_to_response(student: UserRecord) -> StudentResponse:
    return StudentResponse(
        id=student.id,
        organization_id=student.organization_id,
        name=student.name,
        email=student.email,
        roll_number=student.roll_number,
        section_id=student.section_id,
    )


def enrollment_to_response(result: EnrollmentResult) -> EnrollmentResponse:
    return EnrollmentResponse(
        student=student_to_response(result.student),
        section=section_to_response(result.section),
        attempts=result.attempts,
    )


def bulk_to_response(result: BulkEnrollmentResult) -> BulkEnrollResponse:
    return BulkEnrollResponse(
        enrolled=[enrollment_to_response(r) for r in result.enrolled],
        failed=[
            BulkEnrollFailure(email=f.email, code=f.code, reason=f.reason)
            for f in result.failed
        ],
        total_enrolled=len(result.enrolled),
        total_failed=len(result.failed),
    )


def transfer_to_response(result: TransferResult) -> TransferResponse:
    return TransferResponse(
        student=student_to_response(result.student),
        source_section=(
            section_to_response(result.source_section) if result.source_section else None
        ),
        target_section=section_to_response(result.target_section),
    )


def report_to_response(report: ReconciliationReport) -> ReconciliationResponse:
    return ReconciliationResponse(
        organizations=report.organizations,
        classes=report.classes,
        sections=report.sections,
        stale_members=report.stale_members,
        drift=[DriftEntryResponse(**d.to_dict()) for d in report.drift],
        failures=list(report.failures),
    )
