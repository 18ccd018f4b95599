# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class domain package.

Class and section administration: creation, capacity changes, teacher
assignment, deletion of empty sections and capacity summaries.
"""

from src.domains.class_.service import (
    ClassService,
    normalize_section_name,
    section_to_response,
)

__all__ = [
    "ClassService",
    "normalize_section_name",
    "section_to_response",
]
