"""Mini README: Entry point CLI for the grant ledger.

This script exposes a Typer CLI with three commands: ``serve`` starts the
FastAPI service for the front end, ``import-grants`` runs a structured
workbook import straight into the configured ledger, and ``summary``
prints portfolio totals. Settings come from ``GRANTLEDGER_*`` environment
variables or a local ``.env`` file.
"""

from __future__ import annotations

from pathlib import Path

import typer
import uvicorn

from grantledger.configuration import get_settings
from grantledger.exceptions import GrantLedgerError
from grantledger.finance import LedgerStore, portfolio_summary
from grantledger.ingestion import import_grants_from_excel
from grantledger.logging_utils import configure_root_logger

cli = typer.Typer(help="Manage research grants, budgets and expenses.")


@cli.command()
def serve(
    host: str = typer.Option(None, help="Host interface to bind."),
    port: int = typer.Option(None, help="Port to listen on."),
    production: bool = typer.Option(
        False, help="Use production server settings (disable auto-reload)."
    ),
) -> None:
    """Start the ledger API using uvicorn."""

    settings = get_settings()
    effective_host = host or settings.interface_host
    effective_port = port or settings.interface_port
    configure_root_logger(settings.log_level)

    typer.echo(
        f"Serving ledger {settings.ledger_path} on http://{effective_host}:{effective_port}"
    )
    uvicorn.run(
        "grantledger.interface.web_app:create_application",
        host=effective_host,
        port=effective_port,
        factory=True,
        reload=not production,
    )


@cli.command("import-grants")
def import_grants(
    workbook: Path = typer.Argument(..., help="Spreadsheet with one grant per row."),
) -> None:
    """Create grants and their budgets from a spreadsheet."""

    settings = get_settings()
    configure_root_logger(settings.log_level)
    try:
        result = import_grants_from_excel(LedgerStore.from_settings(settings), workbook)
    except GrantLedgerError as error:
        typer.secho(f"Import failed: {error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from error

    if not result.success:
        typer.secho(f"Import failed: {result.error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(
        f"Imported {result.grants_count} grants with {result.categories_count} budget categories"
        + (f" ({result.skipped_count} rows skipped)" if result.skipped_count else "")
    )


@cli.command()
def summary() -> None:
    """Print totals across every grant in the ledger."""

    settings = get_settings()
    configure_root_logger(settings.log_level)
    try:
        totals = portfolio_summary(LedgerStore.from_settings(settings).get_all())
    except GrantLedgerError as error:
        typer.secho(f"Cannot read ledger: {error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from error

    typer.echo(f"Grants:           {totals['total_grants']} ({totals['active_grants']} active)")
    typer.echo(f"Total budget:     ${totals['total_budget']:,.2f}")
    typer.echo(f"Total spent:      ${totals['total_spent']:,.2f}")
    typer.echo(f"Remaining budget: ${totals['remaining_budget']:,.2f}")


if __name__ == "__main__":
    cli()
