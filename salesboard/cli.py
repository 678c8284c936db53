"""Salesboard CLI - sync and inspect sheet connections from the terminal."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import SalesboardError

app = typer.Typer(
    name="salesboard",
    help="Google Sheets sync for the sales pipeline dashboard",
    no_args_is_help=True,
)
console = Console()


def _engine():
    from .deps import get_sync_engine
    return get_sync_engine()


async def _ensure_schema() -> None:
    from .config import settings
    if "sqlite" in settings.database_url:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show sync logs")):
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("sync")
def sync(user: str = typer.Option(None, "--user", "-u", help="Only this user's connections")):
    """Sync active sheet connections into the database."""

    async def _run():
        await _ensure_schema()
        return await _engine().sync_all(user_id=user)

    result = asyncio.run(_run())

    table = Table(title="Sync Results")
    table.add_column("Connection", style="cyan")
    table.add_column("Type")
    table.add_column("Imported", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Status")
    for summary in result.connections:
        status = summary.state if summary.ok else f"[red]{summary.error_code}[/red]"
        table.add_row(
            summary.connection_id[:8], summary.sheet_type, str(summary.imported),
            str(summary.skipped), str(summary.failed), status,
        )
    console.print(table)

    for summary in result.connections:
        for err in summary.errors[:10]:
            console.print(f"[dim]{summary.connection_id[:8]} row {err.row}: {err.reason}[/dim]")
    if result.aborted:
        console.print("[red]Batch aborted after a database failure.[/red]")
        raise typer.Exit(1)


@app.command("analyze")
def analyze(
    url: str = typer.Argument(..., help="Google Sheet URL"),
    tab: list[str] = typer.Option(None, "--tab", "-t", help="Tab name (repeatable)"),
    entity_type: str = typer.Option(None, "--type", help="Expected entity type"),
    user: str = typer.Option(None, "--user", "-u", help="Use this user's Google credential"),
):
    """Preview a sheet and suggest a column mapping."""

    async def _run():
        await _ensure_schema()
        return await _engine().analyze(
            url, tab_names=tab or None, entity_type_hint=entity_type, user_id=user,
            on_slow=lambda name: console.print("[yellow]This is taking longer than expected...[/yellow]"),
        )

    try:
        result = asyncio.run(_run())
    except SalesboardError as e:
        console.print(Panel(f"[red]{e.message}[/red]\n\n{e.remediation}", title=e.code.value))
        raise typer.Exit(1)

    for analysis in result.tabs:
        title = f"{analysis.tab_name or 'Sheet'}: {analysis.entity_type} ({analysis.confidence}%)"
        if analysis.error_code:
            console.print(Panel(f"[red]{analysis.error}[/red]", title=title))
            continue
        table = Table(title=title)
        table.add_column("Column", style="cyan")
        table.add_column("Field", style="green")
        table.add_column("Transform")
        table.add_column("Confidence", justify="right")
        for m in analysis.mappings:
            table.add_row(m.source_column, m.target_field, m.transformation, str(m.confidence))
        console.print(table)
        for warning in analysis.warnings:
            console.print(f"[yellow]! {warning}[/yellow]")


@app.command("connections")
def connections(user: str = typer.Argument(..., help="User id")):
    """List a user's sheet connections."""
    from .database import async_session_factory
    from .services import connection_svc

    async def _run():
        await _ensure_schema()
        async with async_session_factory() as db:
            return await connection_svc.list_connections(db, user, include_inactive=True)

    rows = asyncio.run(_run())
    table = Table(title=f"Sheet Connections for {user}")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Sheet")
    table.add_column("Active")
    table.add_column("Last Synced")
    for c in rows:
        table.add_row(
            str(c.id)[:8], c.sheet_type, c.sheet_name or c.spreadsheet_id,
            "yes" if c.is_active else "[dim]no[/dim]",
            c.last_synced_at.strftime("%Y-%m-%d %H:%M") if c.last_synced_at else "[dim]never[/dim]",
        )
    console.print(table)


@app.command("credentials-status")
def credentials_status(user: str = typer.Argument(..., help="User id")):
    """Show whether a user has a usable Google credential."""
    from .deps import get_credential_manager

    async def _run():
        await _ensure_schema()
        return await get_credential_manager().status(user)

    status = asyncio.run(_run())
    if status is None:
        console.print(f"[yellow]No Google credential stored for {user}.[/yellow] Public sheets sync via CSV export.")
        return

    table = Table(title="Google Credential")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("User", status.user_id)
    table.add_row("Expires", status.expires_at.isoformat())
    table.add_row("Valid", "yes" if status.is_valid else "[red]expired[/red] (refresh on next sync)")
    console.print(table)


@app.command("serve")
def serve(
    port: int = typer.Option(8030, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Launch the sync API with the background auto-sync worker."""
    import uvicorn

    console.print(f"[bold cyan]Starting Salesboard sync API at http://{host}:{port}[/bold cyan]")
    uvicorn.run("salesboard.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
