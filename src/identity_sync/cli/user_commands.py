"""User store CLI commands."""

import asyncio

import typer
from rich.table import Table

from identity_sync.cli.utils import console, get_user_repository
from identity_sync.core.models.identity import IdentityClaims
from identity_sync.core.services.user.reconciliation import (
    UserReconciliationService,
    get_user_from_db,
)
from identity_sync.entities.core.user import User, UserStoreError

users_app = typer.Typer(help="👥 User reconciliation commands")


def _render_user(user: User, title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Email", style="blue")
    table.add_column("Subjects", style="yellow")
    table.add_column("Phone", style="magenta")
    table.add_row(
        str(user.id),
        user.name,
        user.email or "",
        user.uuid,
        user.phone or "",
    )
    console.print(table)


@users_app.command("lookup")
def lookup_user(
    sub: str = typer.Option(..., "--sub", "-s", help="Identity provider subject"),
    email: str | None = typer.Option(None, "--email", "-e", help="Email address"),
) -> None:
    """
    🔍 Find the stored user for a subject/email pair without changing anything.
    """
    repository = get_user_repository()
    try:
        user = asyncio.run(get_user_from_db(repository, sub, email))
    except UserStoreError as e:
        console.print(f"[red]❌ Lookup failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    if user is None:
        console.print("[yellow]No matching user[/yellow]")
        raise typer.Exit(code=1)

    _render_user(user, "Matching user")


@users_app.command("reconcile")
def reconcile_user(
    sub: str = typer.Option(..., "--sub", "-s", help="Identity provider subject"),
    email: str | None = typer.Option(None, "--email", "-e", help="Email address"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
) -> None:
    """
    🔗 Create or link the stored user for an identity, as a login would.
    """
    repository = get_user_repository()
    claims = IdentityClaims(sid="cli", sub=sub, name=name, email=email)

    async def _reconcile() -> User:
        await repository.connect()
        return await UserReconciliationService(repository).reconcile(claims)

    try:
        user = asyncio.run(_reconcile())
    except UserStoreError as e:
        console.print(f"[red]❌ Reconciliation failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    _render_user(user, "Reconciled user")
