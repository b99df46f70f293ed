"""Command Line Interface for the EMR intake service.

Operational commands: create the schema, run the API server and inspect
stored patients from a terminal.

Security Impact:
    - Database credentials are never printed
    - Patient listings show the same projection as the list endpoint
"""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.api.logging_config import setup_logging
from src.domain.ports import EMRError, StoragePort
from src.domain.services import AggregateQueryService, AttachmentStore, IdentityLifecycleManager
from src.infrastructure.settings import APP_VERSION, settings

app = typer.Typer(
    name="emr-intake",
    help="EMR intake service: patient demographics, sections, visits and appointments",
    add_completion=False
)
console = Console()


def create_storage_adapter_cli() -> StoragePort:
    """Create and initialize the configured storage adapter (CLI wrapper)."""
    try:
        from src.main import create_storage_adapter
        storage = create_storage_adapter()
    except Exception as e:
        console.print(f"[red]✗[/red] Failed to create storage adapter: {str(e)}")
        raise typer.Exit(code=1)

    result = storage.initialize_schema()
    if not result.is_success():
        console.print(f"[red]✗[/red] Failed to initialize storage: {result.error}")
        storage.close()
        raise typer.Exit(code=1)
    return storage


def _query_service(storage: StoragePort) -> AggregateQueryService:
    attachments = AttachmentStore(storage, settings.max_upload_bytes, settings.allowed_image_types)
    return AggregateQueryService(storage, IdentityLifecycleManager(storage, attachments))


@app.command()
def init_db() -> None:
    """Create tables and indexes in the configured database."""
    with console.status("[bold green]Initializing storage..."):
        storage = create_storage_adapter_cli()
    storage.close()
    console.print(f"[green]✓[/green] Schema ready ({settings.db_config.db_type})")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: EMR_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: EMR_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)"),
) -> None:
    """Run the HTTP API with uvicorn."""
    from src.main import run_server

    console.print(f"[bold blue]{settings.app_name}[/bold blue] on {host or settings.host}:{port or settings.port}")
    run_server(host=host, port=port, reload=reload)


@app.command()
def patients(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Filter on first or last name"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum rows"),
    offset: int = typer.Option(0, "--offset", help="Rows to skip"),
) -> None:
    """List patients newest first."""
    storage = create_storage_adapter_cli()
    try:
        summaries = _query_service(storage).list_patients(limit=limit, offset=offset, name=name)
    except EMRError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(code=1)
    finally:
        storage.close()

    if not summaries:
        console.print("[yellow]No patients found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Date of Birth")
    table.add_column("Gender")
    table.add_column("Blood Group")
    table.add_column("Email")
    table.add_column("Created")
    for summary in summaries:
        full_name = " ".join(part for part in (summary.name.first, summary.name.middle, summary.name.last) if part)
        table.add_row(
            summary.id,
            full_name,
            summary.date_of_birth,
            summary.gender.value,
            summary.blood_group.value,
            summary.email or "-",
            summary.created_at.strftime("%Y-%m-%d %H:%M") if summary.created_at else "-",
        )
    console.print(table)


@app.command()
def show(patient_id: str = typer.Argument(..., help="Patient identifier")) -> None:
    """Print a patient's full record as JSON."""
    storage = create_storage_adapter_cli()
    try:
        record = _query_service(storage).get_patient(patient_id)
    except EMRError as e:
        console.print(f"[red]✗[/red] {e.kind}: {e.message}")
        raise typer.Exit(code=1)
    finally:
        storage.close()

    console.print_json(record.model_dump_json())


@app.command()
def info() -> None:
    """Display configuration."""
    console.print("[bold blue]System Information[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", settings.app_name)
    info_table.add_row("Database Type:", settings.db_config.db_type)
    if settings.db_config.db_type == "duckdb":
        info_table.add_row("Database Path:", settings.get_db_path())
    elif settings.db_config.db_type == "postgresql":
        info_table.add_row("Database Host:", settings.db_config.host or "-")
        info_table.add_row("Database Name:", settings.db_config.database or "-")
    info_table.add_row("Max Upload:", f"{settings.max_upload_bytes / (1024 * 1024):.1f} MB")
    info_table.add_row("Image Types:", ", ".join(settings.allowed_image_types))
    info_table.add_row("Log Level:", settings.log_level)

    console.print(info_table)


def _print_version(value: bool) -> None:
    if value:
        console.print(f"emr-intake v{APP_VERSION}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version information"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """EMR intake service."""
    setup_logging(use_json=settings.json_logs, log_level="DEBUG" if verbose else "WARNING")
    logging.getLogger(__name__).debug("Verbose logging enabled")


if __name__ == "__main__":
    app()
