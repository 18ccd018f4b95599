# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for Campus Roster.

Domains:
    auth: Roles, capability table, caller tokens and password hashing.
    enrollment: Placement, enrollment, transfer and stats reconciliation.
    class_: Class and section administration.
"""
