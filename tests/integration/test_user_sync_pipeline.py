"""Integration tests for user synchronization across the HTTP pipeline."""

from __future__ import annotations

import asyncio
from collections.abc import Generator

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from sqlmodel import select

from identity_sync.api.http.app import create_app
from identity_sync.api.http.app_data import ApplicationDependencies
from identity_sync.api.http.middleware.user_sync import ReconciliationGate
from identity_sync.core.models.identity import RequestIdentity
from identity_sync.core.services.user.reconciliation import UserReconciliationService
from identity_sync.entities.core.user import UserStoreError, UserTable

pytestmark = pytest.mark.integration

ANN = {
    "X-Test-Sid": "s1",
    "X-Test-Sub": "auth0|42",
    "X-Test-Name": "Ann",
    "X-Test-Email": "a@x.com",
}


def _install_identity_provider(app: FastAPI) -> None:
    """Stand-in for the identity provider integration, driven by test headers."""

    @app.middleware("http")
    async def identity_provider(request: Request, call_next):
        sid = request.headers.get("X-Test-Sid")
        if sid is None:
            request.state.identity = RequestIdentity.anonymous()
        else:
            request.state.identity = RequestIdentity.from_claims(
                {
                    "sid": sid,
                    "sub": request.headers.get("X-Test-Sub"),
                    "name": request.headers.get("X-Test-Name"),
                    "email": request.headers.get("X-Test-Email"),
                }
            )
        return await call_next(request)


@pytest.fixture
def app_dependencies(
    db_service, session_storage, session_cache, user_repository
) -> ApplicationDependencies:
    reconciliation = UserReconciliationService(user_repository, max_append_attempts=3)
    return ApplicationDependencies(
        database_service=db_service,
        session_storage=session_storage,
        session_cache=session_cache,
        user_repository=user_repository,
        reconciliation_service=reconciliation,
        reconciliation_gate=ReconciliationGate(user_repository, session_cache, reconciliation),
    )


@pytest.fixture
def client(app_dependencies) -> Generator[TestClient]:
    app = create_app(app_dependencies)
    _install_identity_provider(app)
    with TestClient(app) as test_client:
        yield test_client


def _stored_rows(db_service) -> list[UserTable]:
    with db_service.session_scope() as session:
        return list(session.exec(select(UserTable).order_by(UserTable.id)).all())


class TestServiceEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
        assert "X-Request-ID" in response.headers

    def test_ready(self, client):
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"user_store": True, "session_storage": True},
            "user_store_connected": False,
        }

    def test_ready_reports_user_store_connection_after_login(self, client):
        client.get("/users/me", headers=ANN)

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["user_store_connected"] is True

    def test_not_ready_while_session_storage_is_unavailable(
        self, client, session_storage, monkeypatch
    ):
        monkeypatch.setattr(session_storage, "is_available", lambda: False)

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"
        assert response.json()["checks"] == {"user_store": True, "session_storage": False}

    def test_not_ready_while_user_store_is_unreachable(self, client, db_service, monkeypatch):
        monkeypatch.setattr(db_service, "health_check", lambda: False)

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["user_store"] is False

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestUserSynchronization:
    def test_anonymous_request_touches_nothing(self, client, db_service):
        response = client.get("/users/me")

        assert response.status_code == 401
        assert _stored_rows(db_service) == []
        assert not db_service.connected

    def test_first_login_creates_user(self, client, db_service, session_cache):
        response = client.get("/users/me", headers=ANN)

        assert response.status_code == 200
        body = response.json()
        assert body["Name"] == "Ann"
        assert body["email"] == "a@x.com"
        assert body["uuid"] == "auth0|42"
        assert body["phone"] is None
        assert body["id"] is not None

        rows = _stored_rows(db_service)
        assert [(row.name, row.email, row.uuid) for row in rows] == [
            ("Ann", "a@x.com", "auth0|42")
        ]

    def test_first_login_caches_session(self, client, session_cache):
        client.get("/users/me", headers=ANN)

        cached = asyncio.run(session_cache.get_user("s1"))
        assert cached is not None
        assert cached.uuid == "auth0|42"

    def test_cached_session_skips_store(self, client, db_service):
        first = client.get("/users/me", headers=ANN)
        with db_service.session_scope() as session:
            for row in session.exec(select(UserTable)).all():
                session.delete(row)

        second = client.get("/users/me", headers=ANN)

        assert second.status_code == 200
        assert second.json() == first.json()
        assert _stored_rows(db_service) == []

    def test_new_session_for_known_subject_reuses_user(self, client, db_service):
        client.get("/users/me", headers=ANN)

        response = client.get("/users/me", headers={**ANN, "X-Test-Sid": "s2"})

        assert response.status_code == 200
        assert len(_stored_rows(db_service)) == 1

    def test_second_provider_is_linked_to_existing_user(self, client, db_service, seed_user):
        stored = seed_user(uuid="auth0|old", email="a@x.com", name="Ann", phone="555-0100")

        response = client.get("/users/me", headers=ANN)

        assert response.status_code == 200
        assert response.json()["uuid"] == "auth0|old, auth0|42"
        rows = _stored_rows(db_service)
        assert len(rows) == 1
        assert rows[0].id == stored.id
        assert rows[0].phone == "555-0100"

    def test_identity_without_email_or_name(self, client, db_service):
        headers = {"X-Test-Sid": "s1", "X-Test-Sub": "github|9"}

        response = client.get("/users/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["Name"] == ""
        assert response.json()["email"] is None

    def test_identity_without_subject_is_not_reconciled(self, client, db_service):
        headers = {"X-Test-Sid": "s1", "X-Test-Email": "a@x.com"}

        response = client.get("/users/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "No user linked to this session"
        assert db_service.connected
        assert _stored_rows(db_service) == []

    def test_store_failure_fails_the_request(self, client, user_repository, monkeypatch):
        async def _refuse() -> None:
            raise UserStoreError("User store connect failed: refused")

        monkeypatch.setattr(user_repository, "connect", _refuse)

        response = client.get("/users/me", headers=ANN)

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal Server Error"
        assert "request_id" in response.json()

    def test_unauthenticated_routes_still_work_during_store_outage(
        self, client, user_repository, monkeypatch
    ):
        async def _refuse() -> None:
            raise UserStoreError("User store connect failed: refused")

        monkeypatch.setattr(user_repository, "connect", _refuse)

        assert client.get("/health").status_code == 200

