"""
CueBill CLI.

Command-line interface for common operations: create and seed the
database, inspect live sessions, check dependencies.
"""

import sys

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="cuebill",
    help="CueBill venue session and billing CLI",
    add_completion=False,
)
console = Console()


def _money(cents: int | None) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:.2f}"


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init():
    """Create database tables."""
    from sqlalchemy.exc import SQLAlchemyError

    from shared.infrastructure.db import engine
    from cuebill_api.models import Base

    console.print(f"[blue]Creating tables on: {engine.url.render_as_string(hide_password=True)}[/blue]")
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Tables created/verified[/green]")


@app.command()
def db_seed(
    force: bool = typer.Option(False, "--force", "-f", help="Allow seeding in production"),
):
    """Seed database with a demo organization."""
    from sqlalchemy.exc import SQLAlchemyError

    from shared.config.settings import settings
    from shared.infrastructure.db import get_db_context
    from cuebill_api.seed import seed

    if settings.environment == "production" and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    try:
        with get_db_context() as db:
            org = seed(db)
    except SQLAlchemyError as e:
        console.print(f"[red]✗ Seeding failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Seeded organization {org.slug} (id={org.id})[/green]")


# =============================================================================
# Session Commands
# =============================================================================

@app.command()
def sessions(
    organization_id: int = typer.Argument(..., help="Organization to list"),
    status: str = typer.Option(None, "--status", "-s", help="active, paused, completed or cancelled"),
    limit: int = typer.Option(50, help="Max sessions to show"),
):
    """List sessions with their current cost."""
    from shared.config.constants import SessionStatus
    from shared.infrastructure.db import get_db_context
    from shared.infrastructure.events import SessionEventPublisher
    from cuebill_api.services.domain import SessionService

    with get_db_context() as db:
        service = SessionService(db, publisher=SessionEventPublisher(enabled=False))
        rows = service.list_sessions(organization_id, status=status, limit=limit)

        table = Table(title=f"Sessions for organization {organization_id}")
        table.add_column("Code", style="cyan")
        table.add_column("Table", style="magenta")
        table.add_column("Status")
        table.add_column("Minutes", justify="right")
        table.add_column("Occupancy", justify="right", style="green")
        table.add_column("Consumables", justify="right", style="green")
        table.add_column("Total", justify="right", style="bold green")

        for session in rows:
            if session.status in SessionStatus.OPEN:
                estimate = service.estimate_for(session)
                minutes = estimate.billable_minutes
                occupancy = estimate.occupancy_amount_cents
                total = estimate.total_amount_cents
                status_cell = f"[yellow]{session.status} (live)[/yellow]"
            else:
                minutes = session.billable_minutes
                occupancy = session.occupancy_amount_cents
                total = session.total_amount_cents
                status_cell = session.status
            table.add_row(
                session.code,
                str(session.table_id),
                status_cell,
                str(minutes) if minutes is not None else "-",
                _money(occupancy),
                _money(session.consumable_subtotal_cents),
                _money(total),
            )

    if not rows:
        console.print("[yellow]No sessions found[/yellow]")
        return
    console.print(table)


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health():
    """Check database and Redis connectivity."""
    import time

    from shared.infrastructure.db import get_db_context
    from shared.infrastructure.events import check_redis_health
    from cuebill_api.routers.health.routes import check_database

    table = Table(title="Dependency Health")
    table.add_column("Dependency", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Response Time", style="yellow")

    start = time.time()
    with get_db_context() as db:
        db_status = check_database(db)
    elapsed = (time.time() - start) * 1000
    table.add_row("Database", _status_cell(db_status), f"{elapsed:.0f}ms")

    start = time.time()
    redis_status = check_redis_health()
    elapsed = (time.time() - start) * 1000
    table.add_row("Redis", _status_cell(redis_status), f"{elapsed:.0f}ms")

    console.print(table)
    if db_status["status"] != "healthy":
        raise typer.Exit(1)


def _status_cell(result: dict[str, str]) -> str:
    if result["status"] == "healthy":
        return "✓ Healthy"
    return f"[red]✗ {result.get('error', result['status'])}[/red]"


@app.command()
def version():
    """Show version information."""
    from cuebill_api import __version__

    table = Table(title="CueBill Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("API", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
