"""Database CLI commands."""

import typer
from sqlalchemy.exc import SQLAlchemyError

from identity_sync.cli.utils import console, get_database_service
from identity_sync.core.services.database.db_manage import DbManageService

db_app = typer.Typer(help="🗄️ Database commands")


@db_app.command("init")
def init_db() -> None:
    """Create all database tables."""
    try:
        DbManageService(get_database_service()).create_all()
    except SQLAlchemyError as e:
        console.print(f"[red]❌ Failed to initialize database: {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print("[green]✅ Database initialized[/green]")


@db_app.command("check")
def check_db() -> None:
    """Check that the database is reachable."""
    if not get_database_service().health_check():
        console.print("[red]❌ Database unreachable[/red]")
        raise typer.Exit(code=1)
    console.print("[green]✅ Database reachable[/green]")
