# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for Campus Roster.

All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ) and every Python
datetime handled by the roster is timezone-aware.

Usage:
    from src.utils.datetime import utc_now

    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    deleted_at = utc_now()
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)
