# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the roster PostgreSQL database.

Example:
    from src.infrastructure.database import RosterDatabase

    database = RosterDatabase(settings)
    await database.connect()
    async with database.session() as session:
        result = await session.execute(select(Section))
"""

from src.infrastructure.database.connection import DatabaseError, RosterDatabase

__all__ = [
    "DatabaseError",
    "RosterDatabase",
]
