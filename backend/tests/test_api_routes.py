from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from community_watch.config import settings
from community_watch.database import get_db
from community_watch.main import app
from community_watch.models import HouseholdDistributionMark, Issue
from community_watch.routers import issues as issues_router
from community_watch.session import create_access_token, start_refresh_session


@pytest.fixture()
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _bearer(subject: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject)}"}


def test_workspace_access_for_admin(client, world) -> None:
    response = client.get("/api/v1/workspace/access", headers=_bearer("admin@example.com"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["canAccessAdmin"] is True
    assert payload["isSuperAdmin"] is True
    assert payload["staffId"] == world.admin.id
    assert payload["homePath"] == "/admin/dashboard"


def test_workspace_access_without_session_is_all_false(client, world) -> None:
    payload = client.get("/api/v1/workspace/access").json()

    assert payload["canAccessAdmin"] is False
    assert payload["canAccessStaff"] is False
    assert payload["canAccessCommunity"] is False
    assert payload["homePath"] is None


def test_staff_gate_for_resident_redirects_to_community(client, world) -> None:
    response = client.get("/api/v1/workspace/gate/staff", headers=_bearer("resident@example.com"))

    assert response.json() == {
        "workspace": "staff",
        "outcome": "redirect",
        "redirectTo": "/community/dashboard",
    }


def test_login_page_is_always_allowed(client, world) -> None:
    response = client.get("/api/v1/workspace/gate/admin", params={"path": "/admin/login"})

    assert response.json()["outcome"] == "allow"


def test_unknown_workspace_is_rejected(client, world) -> None:
    assert client.get("/api/v1/workspace/gate/backoffice").status_code == 422


def test_delete_community_issue_returns_problem_details(client, db, world) -> None:
    issue = Issue(title="Flooded drain", reporter_id=world.resident.id, zone_id=world.z1)
    db.add(issue)
    db.commit()

    response = client.delete(f"/api/v1/issues/{issue.id}", headers=_bearer("admin@example.com"))

    assert response.status_code == 403
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "ISSUE_COMMUNITY_AUTHORED"
    assert db.query(Issue).count() == 1


def test_delete_staff_issue(client, db, world) -> None:
    issue = Issue(title="Walkabout note", zone_id=world.z1)
    db.add(issue)
    db.commit()

    response = client.delete(f"/api/v1/issues/{issue.id}", headers=_bearer("clerk@example.com"))

    assert response.status_code == 204
    db.expire_all()
    assert db.query(Issue).count() == 0


def test_delete_without_session_is_401(client, world) -> None:
    response = client.delete("/api/v1/issues/1")

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"


def test_status_change_enqueues_reporter_notification(client, db, world, monkeypatch) -> None:
    issue = Issue(title="Broken light", reporter_id=world.resident.id, zone_id=world.z1)
    db.add(issue)
    db.commit()
    calls = []
    monkeypatch.setattr(
        issues_router,
        "create_issue_status_notification",
        SimpleNamespace(delay=lambda *args: calls.append(args)),
    )

    response = client.patch(
        f"/api/v1/issues/{issue.id}/status",
        json={"status": "in_progress"},
        headers=_bearer("leader@example.com"),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"
    assert response.json()["can_delete"] is False
    assert calls == [(issue.id, "pending", "in_progress")]


def test_issue_list_is_scoped_for_residents(client, db, world) -> None:
    db.add_all([
        Issue(title="Mine", reporter_id=world.resident.id, zone_id=world.z1),
        Issue(title="Staff note", zone_id=world.z1),
    ])
    db.commit()

    response = client.get("/api/v1/issues", headers=_bearer("resident@example.com"))

    assert response.status_code == 200
    assert [item["title"] for item in response.json()] == ["Mine"]


def test_ketua_cawangan_marks_household_and_progress_updates(client, world) -> None:
    headers = _bearer("900101015555@staff.local")

    response = client.post(
        f"/api/v1/aids-programs/{world.program}/households/{world.h1}/distribution",
        json={"notes": "Collected at the hall"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["received"] is True
    assert response.json()["marked_by"] == world.kc.id

    progress = client.get(
        f"/api/v1/aids-programs/{world.program}/progress", headers=_bearer("admin@example.com")
    ).json()
    assert progress["total_households"] == 3
    assert progress["distributed_households"] == 1


def test_marking_outside_assigned_zone_is_forbidden(client, db, world) -> None:
    response = client.post(
        f"/api/v1/aids-programs/{world.program}/households/{world.h3}/distribution",
        headers=_bearer("900101015555@staff.local"),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "DISTRIBUTION_NOT_ASSIGNED"
    assert db.query(HouseholdDistributionMark).count() == 0


def test_refresh_cookie_rotates_on_mutation(client, db, world) -> None:
    tokens = start_refresh_session(db, "kc2@example.com")
    db.commit()

    response = client.post(
        f"/api/v1/aids-programs/{world.program}/households/{world.h3}/distribution",
        headers={"Cookie": f"{settings.AUTH_REFRESH_COOKIE_NAME}={tokens.refresh_token}"},
    )

    assert response.status_code == 200
    assert response.headers[settings.AUTH_ROTATED_ACCESS_HEADER]
    assert response.headers["cache-control"] == "no-store"
    assert settings.AUTH_REFRESH_COOKIE_NAME in response.headers["set-cookie"]


def test_health_reports_database(client) -> None:
    response = client.get("/api/v1/system/health")

    assert response.status_code == 200
    assert response.json()["database"] == "ok"


def test_issue_detail_is_limited_to_visible_issues(client, db, world) -> None:
    own = Issue(title="Mine", reporter_id=world.resident.id, zone_id=world.z1)
    other = Issue(title="Zone 3 note", zone_id=world.z3)
    db.add_all([own, other])
    db.commit()

    assert client.get(f"/api/v1/issues/{own.id}", headers=_bearer("resident@example.com")).status_code == 200

    response = client.get(f"/api/v1/issues/{other.id}", headers=_bearer("leader@example.com"))
    assert response.status_code == 403
    assert response.json()["code"] == "ISSUE_ACCESS_DENIED"

    assert client.get("/api/v1/issues/9999", headers=_bearer("admin@example.com")).status_code == 404


def test_permission_endpoints_require_admin(client, world) -> None:
    assert client.get("/api/v1/permissions", headers=_bearer("admin@example.com")).json() == []

    response = client.get(f"/api/v1/permissions/staff/{world.clerk.id}", headers=_bearer("clerk@example.com"))
    assert response.status_code == 403
    assert response.json()["code"] == "ADMIN_REQUIRED"
