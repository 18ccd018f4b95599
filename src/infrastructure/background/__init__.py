# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background jobs for Campus Roster.

The only recurring job is the reconciliation sweep, scheduled with
APScheduler inside the API process.
"""

from src.infrastructure.background.scheduler import ReconciliationScheduler, SweepState

__all__ = [
    "ReconciliationScheduler",
    "SweepState",
]
