# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests against the in-memory store
- API tests through FastAPI's TestClient
"""

from dataclasses import dataclass

import pytest

from src.domains.auth.password import PasswordHasher
from src.domains.auth.roles import Actor, Role
from src.domains.enrollment.memory_store import InMemoryEnrollmentStore
from src.domains.enrollment.reconciler import StatsReconciler
from src.domains.enrollment.service import EnrollmentService
from src.domains.enrollment.store import ClassRecord, OrganizationRecord, SectionRecord
from src.domains.enrollment.transfer import TransferService
from src.infrastructure.events import EventBus, EventData


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (API stack)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")


# =============================================================================
# Store Fixtures
# =============================================================================


@dataclass
class SeededSchool:
    """An organization with one grade 5 class and sections A and B."""

    store: InMemoryEnrollmentStore
    organization: OrganizationRecord
    class_: ClassRecord
    section_a: SectionRecord
    section_b: SectionRecord


@pytest.fixture
def store() -> InMemoryEnrollmentStore:
    """Provide an empty in-memory store."""
    return InMemoryEnrollmentStore()


async def seed_school(
    store: InMemoryEnrollmentStore,
    capacity_a: int = 2,
    capacity_b: int = 2,
    name: str = "Test School",
) -> SeededSchool:
    """Create an organization, class 5-Blue and two empty sections."""
    organization = store.add_organization(name)
    class_ = await store.create_class(organization.id, 5, "Blue")
    section_a = await store.create_section(class_.id, organization.id, "A", capacity_a)
    section_b = await store.create_section(class_.id, organization.id, "B", capacity_b)
    return SeededSchool(store, organization, class_, section_a, section_b)


@pytest.fixture
async def school(store: InMemoryEnrollmentStore) -> SeededSchool:
    """Provide a seeded school with two sections of capacity 2."""
    return await seed_school(store)


@pytest.fixture
def admin(school: SeededSchool) -> Actor:
    """Provide an admin actor of the seeded organization."""
    user = school.store.add_user(school.organization.id, Role.ADMIN, "Admin")
    return Actor(user_id=user.id, organization_id=school.organization.id, role=Role.ADMIN)


@pytest.fixture
def super_admin() -> Actor:
    """Provide a super admin without an organization."""
    return Actor(user_id="super-admin", organization_id=None, role=Role.SUPER_ADMIN)


# =============================================================================
# Service Fixtures
# =============================================================================


class RecordingBus(EventBus):
    """Event bus that remembers every published event."""

    def __init__(self) -> None:
        super().__init__()
        self.published: list[EventData] = []
        self.subscribe("*", self._record)

    async def _record(self, event: EventData) -> None:
        self.published.append(event)

    def of_type(self, event_type: str) -> list[EventData]:
        return [e for e in self.published if e.event_type == event_type]


@pytest.fixture
def event_bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
def hasher() -> PasswordHasher:
    """Provide a fast password hasher."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def reconciler(store: InMemoryEnrollmentStore) -> StatsReconciler:
    return StatsReconciler(store)


@pytest.fixture
def enrollment_service(
    store: InMemoryEnrollmentStore,
    reconciler: StatsReconciler,
    event_bus: RecordingBus,
    hasher: PasswordHasher,
) -> EnrollmentService:
    return EnrollmentService(store, reconciler, event_bus, hasher)


@pytest.fixture
def transfer_service(
    store: InMemoryEnrollmentStore,
    reconciler: StatsReconciler,
    event_bus: RecordingBus,
) -> TransferService:
    return TransferService(store, reconciler, event_bus)


@pytest.fixture
def make_school(store: InMemoryEnrollmentStore):
    """Provide a factory seeding further schools into the shared store."""

    async def factory(capacity_a: int = 2, capacity_b: int = 2, name: str = "Other School"):
        return await seed_school(store, capacity_a, capacity_b, name)

    return factory
