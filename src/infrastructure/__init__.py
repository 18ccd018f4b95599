# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for external service integrations.

This package contains:
- database: Roster database connection and ORM models (PostgreSQL)
- events: In-process event bus
- notifications: Credentials delivery by email
- background: Periodic stats reconciliation sweep
"""
