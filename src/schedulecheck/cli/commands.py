"""CLI commands for schedule-check.

Commands:
- serve: run the Web API with uvicorn
- check: authenticate an exam number locally and print the schedule
- history: show the login history row for an exam number
- show-config: print the effective configuration (secrets masked)
"""

import os
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from schedulecheck.config.app_config import (
    CONFIG_ENV,
    AppConfig,
    describe_config,
    load_app_config,
)
from schedulecheck.core.authenticator import authenticate, load_roster
from schedulecheck.core.ledger import LoginLedger, login_timestamp, lookup_history
from schedulecheck.errors import ConfigurationError, LedgerWriteError, StoreError
from schedulecheck.store.base import RecordStore, WritableRecordStore
from schedulecheck.store.factory import open_store

app = typer.Typer(
    name="schedule-check",
    help="Exam schedule lookup with login-history accounting.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML config file")


def _load_config_or_exit(config_path: Path | None) -> AppConfig:
    """Load configuration, or exit with the validation message."""
    try:
        return load_app_config(config_path, force_reload=True)
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration error: {e}[/red]")
        raise typer.Exit(code=1)


def _open_store_or_exit(config: AppConfig, table: str) -> RecordStore:
    try:
        store = open_store(config.store)
        store.resolve_table(table)
        return store
    except (ConfigurationError, StoreError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    config_path: Path | None = ConfigOption,
) -> None:
    """Run the Web API."""
    import uvicorn

    if config_path is not None:
        os.environ[CONFIG_ENV] = str(config_path)
    _load_config_or_exit(config_path)

    uvicorn.run("schedulecheck.web.api:app", host=host, port=port)


@app.command()
def check(
    exam_number: str = typer.Argument(..., help="Exam number"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Password"
    ),
    record: bool = typer.Option(False, "--record", help="Also update login history"),
    config_path: Path | None = ConfigOption,
) -> None:
    """Authenticate an exam number and print its schedule."""
    config = _load_config_or_exit(config_path)
    store = _open_store_or_exit(config, config.store.roster_table)

    try:
        roster = load_roster(store, config.store.roster_table)
    except StoreError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    profile = authenticate(roster, exam_number, password)
    if profile is None:
        console.print("[red]✗ Exam number or password is incorrect[/red]")
        raise typer.Exit(code=1)

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in profile.to_dict().items():
        table.add_row(name, value)
    console.print(table)

    if not record:
        return

    if not isinstance(store, WritableRecordStore):
        console.print(
            f"[yellow]⚠ Backend '{config.store.backend}' is read-only; "
            "login history not recorded[/yellow]"
        )
        return

    ledger = LoginLedger(
        store,
        config.store.ledger_table,
        policy=config.ledger.missing_policy,  # type: ignore[arg-type]
        write_mode=config.ledger.write_mode,  # type: ignore[arg-type]
        serialize_writes=config.ledger.serialize_writes,
    )
    now = login_timestamp(utc_offset_hours=config.ledger.utc_offset_hours)
    try:
        result = ledger.record_login(profile.exam_number, now)
    except LedgerWriteError as e:
        console.print(f"[yellow]⚠ {e}[/yellow]")
        raise typer.Exit(code=1)

    if result.status == "skipped":
        console.print(f"[yellow]⚠ Login history skipped ({result.reason})[/yellow]")
    else:
        count = result.record.login_count if result.record else "?"
        console.print(f"[green]✓ Login history {result.status}[/green] [dim](count: {count})[/dim]")


@app.command()
def history(
    exam_number: str = typer.Argument(..., help="Exam number"),
    config_path: Path | None = ConfigOption,
) -> None:
    """Show the login history for an exam number."""
    config = _load_config_or_exit(config_path)
    table_name = config.store.ledger_table
    store = _open_store_or_exit(config, table_name)

    try:
        record = lookup_history(store, table_name, exam_number)
    except StoreError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if record is None:
        console.print(f"[yellow]No login history for '{exam_number}'[/yellow]")
        raise typer.Exit(code=1)

    table = Table(show_header=True, header_style="bold")
    table.add_column("examNumber", style="cyan")
    table.add_column("loginCount", justify="right")
    table.add_column("firstLogin")
    table.add_column("lastLogin")
    table.add_row(
        record.exam_number,
        str(record.login_count),
        record.first_login or "-",
        record.last_login or "-",
    )
    console.print(table)


@app.command(name="show-config")
def show_config(config_path: Path | None = ConfigOption) -> None:
    """Print the effective configuration with secrets masked."""
    config = _load_config_or_exit(config_path)

    for section, values in describe_config(config).items():
        console.print(f"[bold]{section}[/bold]")
        for key, value in values.items():
            console.print(f"  [dim]{key}:[/dim] {value}")


if __name__ == "__main__":
    app()
