"""Campus Roster Backend.

Education-administration back office for organizations, classes, sections,
students and teachers, built around a capacity-safe enrollment engine.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
