"""Tests for the user CLI commands."""

import pytest
from sqlmodel import select
from typer.testing import CliRunner

from identity_sync.cli import app
from identity_sync.entities.core.user import UserStoreError, UserTable

runner = CliRunner()


@pytest.fixture
def cli_repository(monkeypatch, user_repository):
    monkeypatch.setattr(
        "identity_sync.cli.user_commands.get_user_repository", lambda: user_repository
    )
    return user_repository


def test_lookup_finds_user_by_subject(cli_repository, seed_user):
    seed_user(uuid="google|1, auth0|42", email="a@x.com", name="Ann")

    result = runner.invoke(app, ["users", "lookup", "--sub", "auth0|42"])

    assert result.exit_code == 0
    assert "Ann" in result.output


def test_lookup_without_match_fails(cli_repository):
    result = runner.invoke(app, ["users", "lookup", "--sub", "auth0|42", "--email", "a@x.com"])

    assert result.exit_code == 1
    assert "No matching user" in result.output


def test_reconcile_links_subject_to_existing_user(cli_repository, seed_user, db_service):
    stored = seed_user(uuid="google|1", email="a@x.com", name="Ann")

    result = runner.invoke(
        app, ["users", "reconcile", "--sub", "auth0|42", "--email", "a@x.com"]
    )

    assert result.exit_code == 0
    with db_service.session_scope() as session:
        row = session.get(UserTable, stored.id)
        assert row is not None
        assert row.uuid == "google|1, auth0|42"
        assert row.name == "Ann"


def test_reconcile_creates_unknown_identity(cli_repository, db_service):
    result = runner.invoke(app, ["users", "reconcile", "--sub", "auth0|42", "--name", "Ann"])

    assert result.exit_code == 0
    with db_service.session_scope() as session:
        rows = session.exec(select(UserTable)).all()
        assert [(row.name, row.email, row.uuid) for row in rows] == [("Ann", None, "auth0|42")]


def test_reconcile_reports_store_failure(monkeypatch):
    class FailingRepository:
        async def connect(self):
            raise UserStoreError("User store connect failed: refused")

    monkeypatch.setattr(
        "identity_sync.cli.user_commands.get_user_repository", lambda: FailingRepository()
    )

    result = runner.invoke(app, ["users", "reconcile", "--sub", "auth0|42"])

    assert result.exit_code == 1
    assert "Reconciliation failed" in result.output
