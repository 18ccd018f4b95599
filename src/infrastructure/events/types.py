# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event type definitions for Campus Roster.

Publishers and subscribers refer to these constants instead of string
literals.
"""


class EventTypes:
    """All event types in Campus Roster organized by domain."""

    class Enrollment:
        """Enrollment lifecycle events."""

        CREDENTIALS_ISSUED = "enrollment.credentials.issued"
        STUDENT_ENROLLED = "enrollment.student.enrolled"
        STUDENT_TRANSFERRED = "enrollment.student.transferred"
        STUDENT_WITHDRAWN = "enrollment.student.withdrawn"


class EventPatterns:
    """Wildcard patterns for subscribing to multiple events."""

    ALL_ENROLLMENT = "enrollment.*"
    ALL_STUDENT_CHANGES = "enrollment.student.*"
