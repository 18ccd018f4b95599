# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the roster API.

The full application runs through FastAPI's TestClient with the
in-memory store; classes and sections are created through the API.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from src.api.app import create_app
from src.core.config.settings import (
    EnrollmentSettings,
    JWTSettings,
    ReconciliationSettings,
    Settings,
)
from src.domains.auth.jwt import JWTManager
from src.domains.auth.roles import Role
from src.domains.enrollment.memory_store import InMemoryEnrollmentStore

pytestmark = pytest.mark.integration


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="development",
        log_level="WARNING",
        jwt=JWTSettings(secret_key=SecretStr("integration-test-secret")),
        enrollment=EnrollmentSettings(storage_backend="memory"),
        reconciliation=ReconciliationSettings(sweep_enabled=False),
    )


@pytest.fixture
def store() -> InMemoryEnrollmentStore:
    return InMemoryEnrollmentStore()


@pytest.fixture
def organization(store):
    return store.add_organization("Integration School")


@pytest.fixture
def client(settings, store):
    """Create test client with the lifespan running."""
    with TestClient(create_app(settings, store=store)) as client:
        yield client


@pytest.fixture
def token_for(settings, store, organization):
    """Build Authorization headers for a new user of the given role."""
    manager = JWTManager(settings.jwt)

    def factory(role: Role | str, organization_id: str | None = None) -> dict[str, str]:
        org_id = organization_id or organization.id
        if isinstance(role, Role):
            user = store.add_user(org_id, role, f"{role.value} user")
            role_value, user_id = role.value, user.id
        else:
            role_value, user_id = role, "unknown-role-user"
        token = manager.create_access_token(user_id, role_value, org_id)
        return {"Authorization": f"Bearer {token}"}

    return factory


@pytest.fixture
def admin_headers(token_for) -> dict[str, str]:
    return token_for(Role.ADMIN)


@pytest.fixture
def roster(client, admin_headers) -> dict[str, str]:
    """Create class 5-Blue with sections A and B of one seat each."""
    response = client.post(
        "/api/v1/classes", json={"grade": 5, "name": "Blue"}, headers=admin_headers
    )
    assert response.status_code == 201
    class_id = response.json()["id"]

    ids = {"class_id": class_id}
    for name in ("a", "b"):
        response = client.post(
            f"/api/v1/classes/{class_id}/sections",
            json={"name": name, "max_students": 1},
            headers=admin_headers,
        )
        assert response.status_code == 201
        ids[response.json()["name"]] = response.json()["id"]
    return ids


def enroll(client, headers, class_id, email, **extra):
    return client.post(
        f"/api/v1/classes/{class_id}/students",
        json={"name": "Pupil", "email": email, **extra},
        headers=headers,
    )


class TestHealth:
    def test_health(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["storage_backend"] == "memory"
        assert body["database"] is None

    def test_liveness(self, client) -> None:
        assert client.get("/health/live").json() == {"status": "alive"}


class TestAccessControl:
    """Tests for authentication and capability checks."""

    def test_missing_token(self, client, roster) -> None:
        response = enroll(client, {}, roster["class_id"], "a@example.org")

        assert response.status_code == 401

    def test_invalid_token(self, client, roster) -> None:
        headers = {"Authorization": "Bearer not-a-token"}

        assert enroll(client, headers, roster["class_id"], "a@example.org").status_code == 401

    def test_student_cannot_enroll(self, client, roster, token_for) -> None:
        response = enroll(client, token_for(Role.STUDENT), roster["class_id"], "a@example.org")

        assert response.status_code == 403

    def test_unknown_role(self, client, roster, token_for) -> None:
        response = enroll(client, token_for("principal"), roster["class_id"], "a@example.org")

        assert response.status_code == 403

    def test_teacher_reads_capacity_only(self, client, roster, token_for) -> None:
        headers = token_for(Role.TEACHER)

        capacity = client.get(f"/api/v1/classes/{roster['class_id']}/capacity", headers=headers)
        assert capacity.status_code == 200
        assert enroll(client, headers, roster["class_id"], "a@example.org").status_code == 403

    def test_admin_of_other_organization(self, client, store, roster, token_for) -> None:
        other = store.add_organization("Elsewhere")
        headers = token_for(Role.ADMIN, organization_id=other.id)

        response = enroll(client, headers, roster["class_id"], "a@example.org")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "cross_organization"


class TestEnrollment:
    """Tests for enrollment endpoints."""

    def test_enroll_first_fit(self, client, roster, admin_headers) -> None:
        response = enroll(client, admin_headers, roster["class_id"], "Ada@Example.org")

        assert response.status_code == 201
        body = response.json()
        assert body["student"]["email"] == "ada@example.org"
        assert body["student"]["section_id"] == roster["A"]
        assert body["section"]["name"] == "A"
        assert body["section"]["current_students"] == 1
        assert body["attempts"] == 1

    def test_preferred_section(self, client, roster, admin_headers) -> None:
        response = enroll(
            client, admin_headers, roster["class_id"], "b@example.org", preferred_section_name="B"
        )

        assert response.json()["section"]["name"] == "B"

    def test_full_class_returns_occupancy(self, client, roster, admin_headers) -> None:
        enroll(client, admin_headers, roster["class_id"], "a@example.org")
        enroll(client, admin_headers, roster["class_id"], "b@example.org")

        response = enroll(client, admin_headers, roster["class_id"], "c@example.org")

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "no_capacity"
        assert {o["name"] for o in detail["occupancy"]} == {"A", "B"}
        assert all(o["available_seats"] == 0 for o in detail["occupancy"])

    def test_duplicate_email(self, client, roster, admin_headers) -> None:
        enroll(client, admin_headers, roster["class_id"], "a@example.org")

        response = enroll(client, admin_headers, roster["class_id"], "A@example.org")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "duplicate_student"

    def test_invalid_email(self, client, roster, admin_headers) -> None:
        response = enroll(client, admin_headers, roster["class_id"], "not-an-email")

        assert response.status_code == 422

    def test_unknown_class(self, client, roster, admin_headers) -> None:
        assert enroll(client, admin_headers, "missing", "a@example.org").status_code == 404

    def test_lost_races_return_retry_after(self, client, store, roster, admin_headers) -> None:
        with patch.object(
            store, "conditional_append_member", AsyncMock(return_value=False)
        ):
            response = enroll(client, admin_headers, roster["class_id"], "a@example.org")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        assert response.json()["detail"]["code"] == "capacity_race"
        assert store.active_students() == []

    def test_bulk_reports_per_student(self, client, roster, admin_headers) -> None:
        students = [
            {"name": f"Pupil {i}", "email": f"p{i}@example.org"} for i in range(3)
        ]

        response = client.post(
            f"/api/v1/classes/{roster['class_id']}/students/bulk",
            json={"students": students, "policy": "load_balanced"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total_enrolled"] == 2
        assert body["total_failed"] == 1
        assert body["failed"][0]["code"] == "no_capacity"
        assert {e["section"]["name"] for e in body["enrolled"]} == {"A", "B"}

    def test_bulk_over_limit(self, client, roster, admin_headers) -> None:
        students = [
            {"name": f"Pupil {i}", "email": f"p{i}@example.org"} for i in range(41)
        ]

        response = client.post(
            f"/api/v1/classes/{roster['class_id']}/students/bulk",
            json={"students": students},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "bulk_limit_exceeded"

    def test_bulk_limit_follows_settings(self, settings, store, admin_headers) -> None:
        settings.enrollment.max_bulk_size = 45
        students = [
            {"name": f"Pupil {i}", "email": f"p{i}@example.org"} for i in range(41)
        ]

        with TestClient(create_app(settings, store=store)) as client:
            class_id = client.post(
                "/api/v1/classes", json={"grade": 6, "name": "Red"}, headers=admin_headers
            ).json()["id"]
            client.post(
                f"/api/v1/classes/{class_id}/sections",
                json={"name": "a", "max_students": 1},
                headers=admin_headers,
            )
            response = client.post(
                f"/api/v1/classes/{class_id}/students/bulk",
                json={"students": students},
                headers=admin_headers,
            )

        assert response.status_code == 200
        body = response.json()
        assert body["total_enrolled"] == 1
        assert body["total_failed"] == 40


class TestPlacementChanges:
    """Tests for transfer and withdrawal."""

    def test_transfer_and_withdraw(self, client, roster, admin_headers) -> None:
        student_id = enroll(client, admin_headers, roster["class_id"], "a@example.org").json()[
            "student"
        ]["id"]

        response = client.post(
            f"/api/v1/students/{student_id}/transfer",
            json={"target_section_id": roster["B"]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["student"]["section_id"] == roster["B"]
        assert body["source_section"]["current_students"] == 0
        assert body["target_section"]["current_students"] == 1

        again = client.post(
            f"/api/v1/students/{student_id}/transfer",
            json={"target_section_id": roster["B"]},
            headers=admin_headers,
        )
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "already_in_section"

        withdrawn = client.delete(f"/api/v1/students/{student_id}", headers=admin_headers)
        assert withdrawn.status_code == 200

        capacity = client.get(
            f"/api/v1/classes/{roster['class_id']}/capacity",
            params={"verify": True},
            headers=admin_headers,
        )
        assert capacity.status_code == 200
        assert capacity.json()["total_students"] == 0

    def test_transfer_into_full_section(self, client, roster, admin_headers) -> None:
        first = enroll(client, admin_headers, roster["class_id"], "a@example.org").json()
        enroll(client, admin_headers, roster["class_id"], "b@example.org")

        response = client.post(
            f"/api/v1/students/{first['student']['id']}/transfer",
            json={"target_section_id": roster["B"]},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "no_capacity"


class TestSections:
    """Tests for section administration endpoints."""

    def test_capacity_and_deletion_guards(self, client, roster, admin_headers) -> None:
        enroll(client, admin_headers, roster["class_id"], "a@example.org")

        raised = client.patch(
            f"/api/v1/sections/{roster['A']}/capacity",
            json={"max_students": 3},
            headers=admin_headers,
        )
        assert raised.status_code == 200
        assert raised.json()["available_seats"] == 2

        not_empty = client.delete(f"/api/v1/sections/{roster['A']}", headers=admin_headers)
        assert not_empty.status_code == 409
        assert not_empty.json()["detail"]["code"] == "section_not_empty"

        deleted = client.delete(f"/api/v1/sections/{roster['B']}", headers=admin_headers)
        assert deleted.status_code == 204

    def test_capacity_below_occupancy(self, client, store, roster, admin_headers) -> None:
        client.patch(
            f"/api/v1/sections/{roster['A']}/capacity",
            json={"max_students": 2},
            headers=admin_headers,
        )
        enroll(client, admin_headers, roster["class_id"], "a@example.org")
        enroll(client, admin_headers, roster["class_id"], "b@example.org")

        response = client.patch(
            f"/api/v1/sections/{roster['A']}/capacity",
            json={"max_students": 1},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["occupancy"][0]["current_students"] == 2

    def test_capacity_out_of_range(self, client, roster, admin_headers) -> None:
        response = client.patch(
            f"/api/v1/sections/{roster['A']}/capacity",
            json={"max_students": 51},
            headers=admin_headers,
        )

        assert response.status_code == 422

    def test_teacher_assignment(self, client, store, organization, roster, admin_headers) -> None:
        teacher = store.add_user(organization.id, Role.TEACHER, "Teacher")
        url = f"/api/v1/sections/{roster['A']}/teacher"

        assigned = client.put(url, json={"teacher_id": teacher.id}, headers=admin_headers)
        assert assigned.status_code == 200
        assert assigned.json()["teacher_id"] == teacher.id

        second = client.put(url, json={"teacher_id": teacher.id}, headers=admin_headers)
        assert second.status_code == 409

        removed = client.delete(url, headers=admin_headers)
        assert removed.json()["teacher_id"] is None


class TestAdmin:
    def test_admin_reconciles_own_organization(self, client, roster, admin_headers) -> None:
        response = client.post("/api/v1/admin/reconcile", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["organizations"] == 1
        assert body["sections"] == 2
        assert body["drift"] == []
        assert body["stale_members"] == 0

    def test_super_admin_sweeps_everything(self, client, store, roster, token_for) -> None:
        store.add_organization("Second School")
        headers = token_for(Role.SUPER_ADMIN)

        response = client.post("/api/v1/admin/reconcile", headers=headers)

        assert response.json()["organizations"] == 2

    def test_teacher_cannot_reconcile(self, client, token_for) -> None:
        response = client.post("/api/v1/admin/reconcile", headers=token_for(Role.TEACHER))

        assert response.status_code == 403
