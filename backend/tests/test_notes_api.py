from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from app.db import GetDb
from app.main import app
from app.modules.core import router as core_router
from app.modules.notifications import router as notifications_router

SECRET = "test-secret"


def _auth(user_id):
    token = jwt.encode(
        {"sub": user_id, "exp": datetime.now(tz=timezone.utc) + timedelta(minutes=5)},
        SECRET,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", SECRET)

    def _override_db():
        yield db

    app.dependency_overrides[GetDb] = _override_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create(client, user_id="U1", **fields):
    body = {"ContainerKey": "PROJ-1", "Title": "Launch checklist"}
    body.update(fields)
    response = client.post("/api/notes", json=body, headers=_auth(user_id))
    assert response.status_code == 201
    return response.json()["Note"]


def test_requires_bearer_token(client):
    response = client.get("/api/notes/mine")
    assert response.status_code == 401
    assert response.json() == {"Success": False, "Error": "Authentication required"}


def test_create_and_read_roundtrip(client):
    note = _create(client, Content="Steps", IsPublic=False)
    assert note["OwnerUserId"] == "U1"
    assert note["Status"] == "open"

    response = client.get(f"/api/notes/{note['Id']}", headers=_auth("U1"))
    body = response.json()
    assert body["Success"] is True
    assert body["Note"]["Permissions"] == {"CanRead": True, "CanEdit": True, "IsOwner": True}


def test_validation_errors_use_envelope(client):
    response = client.post("/api/notes", json={"ContainerKey": "PROJ-1"}, headers=_auth("U1"))
    assert response.status_code == 422
    assert response.json()["Success"] is False

    response = client.post(
        "/api/notes", json={"ContainerKey": "PROJ-1", "Title": "  "}, headers=_auth("U1")
    )
    assert response.status_code == 400
    assert response.json() == {"Success": False, "Error": "Title is required"}


def test_private_note_is_forbidden_to_others(client):
    note = _create(client)
    response = client.get(f"/api/notes/{note['Id']}", headers=_auth("U2"))
    assert response.status_code == 403
    assert response.json()["Success"] is False


def test_patch_is_partial(client):
    note = _create(client, Content="original")
    response = client.patch(f"/api/notes/{note['Id']}", json={"Content": "changed"}, headers=_auth("U1"))
    assert response.status_code == 200
    assert response.json()["Note"]["Title"] == "Launch checklist"
    assert response.json()["Note"]["Content"] == "changed"


def test_sharing_flow(client):
    note = _create(client)
    note_id = note["Id"]

    response = client.put(
        f"/api/notes/{note_id}/permissions/U2", json={"PermissionType": "write"}, headers=_auth("U1")
    )
    assert response.status_code == 200
    assert response.json()["Grant"]["PermissionType"] == "write"

    listing = client.get("/api/notes/containers/PROJ-1", headers=_auth("U2")).json()
    assert [entry["Id"] for entry in listing["Notes"]] == [note_id]
    assert listing["Notes"][0]["Permissions"] == {"CanRead": True, "CanEdit": True, "IsOwner": False}

    response = client.delete(f"/api/notes/{note_id}", headers=_auth("U2"))
    assert response.status_code == 403

    response = client.post(
        f"/api/notes/{note_id}/permissions",
        json={"UserIds": ["U3", "U1"], "PermissionType": "read"},
        headers=_auth("U1"),
    )
    body = response.json()
    assert (body["Total"], body["Succeeded"], body["Failed"]) == (2, 1, 1)

    response = client.post(
        f"/api/notes/{note_id}/permissions",
        json={"UserIds": [], "PermissionType": "read"},
        headers=_auth("U1"),
    )
    assert response.status_code == 400
    assert response.json() == {"Success": False, "Error": "At least one user is required"}

    grants = client.get(f"/api/notes/{note_id}/permissions", headers=_auth("U1")).json()["Grants"]
    assert sorted(grant["UserId"] for grant in grants) == ["U2", "U3"]

    response = client.delete(f"/api/notes/{note_id}/permissions/U2", headers=_auth("U1"))
    assert response.json() == {"Success": True, "NoteId": note_id, "UserId": "U2"}
    assert client.get(f"/api/notes/{note_id}", headers=_auth("U2")).status_code == 403


def test_delete_missing_note_is_not_found(client):
    response = client.delete("/api/notes/12345", headers=_auth("U1"))
    assert response.status_code == 404
    assert response.json() == {"Success": False, "Error": "Note not found"}


def test_mine_public_and_statistics(client):
    _create(client, Title="Public one", IsPublic=True)
    _create(client, Title="Private one")

    mine = client.get("/api/notes/mine", headers=_auth("U1")).json()
    assert len(mine["Notes"]) == 2

    public = client.get("/api/notes/containers/PROJ-1/public", headers=_auth("U2")).json()
    assert [entry["Title"] for entry in public["Notes"]] == ["Public one"]

    stats = client.get("/api/notes/statistics", headers=_auth("U1")).json()["Statistics"]
    assert stats == {"TotalCount": 2, "MyCount": 2, "SharedCount": 0, "UpcomingDeadlines": 0}


def test_jql_search_endpoint(client):
    _create(client, ContainerKey="ABC-7")
    response = client.post(
        "/api/search/jql",
        json={"Function": "issuesWithNotes", "Operator": "not in"},
        headers=_auth("U2"),
    )
    assert response.json() == {"Success": True, "Jql": 'key not in ("ABC-7")'}

    response = client.post(
        "/api/search/jql",
        json={"Function": "issuesWithNotesAfter", "Arguments": ["tomorrow"]},
        headers=_auth("U2"),
    )
    assert response.status_code == 400


def test_share_users_without_tracker(client, monkeypatch):
    monkeypatch.delenv("TRACKER_BASE_URL", raising=False)
    response = client.get("/api/notes/share-users", params={"container_key": "PROJ-1"}, headers=_auth("U1"))
    assert response.status_code == 502
    assert response.json()["Success"] is False


def test_reminders_listing(client):
    deadline = (datetime.now(tz=timezone.utc) + timedelta(days=2)).isoformat()
    _create(client, Deadline=deadline)

    reminders = client.get("/api/notifications", headers=_auth("U1")).json()["Reminders"]
    assert len(reminders) == 1
    assert reminders[0]["Status"] == "pending"
    assert reminders[0]["IsSent"] is False
    assert client.get("/api/notifications", headers=_auth("U2")).json()["Reminders"] == []


class _RecordingChannel:
    def __init__(self):
        self.delivered = []
        self.closed = False

    def Deliver(self, recipient_id, note, hours_until_deadline):
        self.delivered.append(recipient_id)
        return True

    def Close(self):
        self.closed = True


def test_sweep_endpoint_requires_token(client, monkeypatch):
    monkeypatch.delenv("NOTES_SWEEP_TOKEN", raising=False)
    assert client.post("/api/notifications/sweep").status_code == 503

    monkeypatch.setenv("NOTES_SWEEP_TOKEN", "s3cret")
    assert client.post("/api/notifications/sweep").status_code == 401
    assert client.post("/api/notifications/sweep", headers={"X-Sweep-Token": "wrong"}).status_code == 401


def test_sweep_endpoint_runs_pass(client, monkeypatch):
    monkeypatch.setenv("NOTES_SWEEP_TOKEN", "s3cret")
    channel = _RecordingChannel()
    monkeypatch.setattr(notifications_router, "ResolveDeliveryChannel", lambda: channel)

    deadline = (datetime.now(tz=timezone.utc) + timedelta(hours=3)).isoformat()
    _create(client, Deadline=deadline)

    response = client.post("/api/notifications/sweep", headers={"X-Sweep-Token": "s3cret"})
    assert response.status_code == 200
    assert response.json() == {
        "Success": True,
        "Total": 1,
        "Sent": 1,
        "Failed": 0,
        "Abandoned": 0,
        "Skipped": 0,
    }
    assert channel.delivered == ["U1"]
    assert channel.closed


def test_health(client):
    assert client.get("/api/health").json() == {"Success": True, "Status": "ok"}


def test_expired_token_is_rejected(client):
    token = jwt.encode(
        {"sub": "U1", "exp": datetime.now(tz=timezone.utc) - timedelta(minutes=1)},
        SECRET,
        algorithm="HS256",
    )
    response = client.get("/api/notes/mine", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["Error"] == "Token expired"


def test_readiness_checks_schema(client, engine, monkeypatch):
    monkeypatch.setattr(core_router, "GetEngine", lambda: engine)
    assert client.get("/api/health/db").json() == {"Success": True, "Status": "ok"}
    assert client.get("/api/health/ready").json() == {"Success": True, "Status": "ok"}


def test_readiness_fails_without_schema(client, monkeypatch):
    bare = create_engine("sqlite://", poolclass=StaticPool)

    @event.listens_for(bare, "connect")
    def _attach_empty_schema(dbapi_connection, _record):
        dbapi_connection.execute("ATTACH DATABASE ':memory:' AS notes")

    monkeypatch.setattr(core_router, "GetEngine", lambda: bare)
    try:
        response = client.get("/api/health/ready")
    finally:
        bare.dispose()

    assert response.status_code == 503
    body = response.json()
    assert body["Success"] is False
    assert body["Error"] == "Schema not initialized"
    assert sorted(body["Missing"]) == ["note_notifications", "note_permissions", "notes"]


def test_db_health_reports_unavailable(client, monkeypatch):
    def _broken_engine():
        raise OperationalError("SELECT 1", {}, Exception("login failed"))

    monkeypatch.setattr(core_router, "GetEngine", _broken_engine)
    response = client.get("/api/health/db")
    assert response.status_code == 503
    assert response.json() == {"Success": False, "Status": "error", "Error": "Database unavailable"}
