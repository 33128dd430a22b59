#!/usr/bin/env python3
"""
Command-line interface for Campus Leasing.

Provides operator tools for reviewing deletions, restoring entities,
terminating leases and exporting the audit trail.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import pandas as pd  # type: ignore[import-untyped]
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .audit_trail import Actor, AuditRecorder, TraceIdFilter, trace_context
from .config import LeasingConfig, configure, get_config
from .exceptions import LeasingError
from .soft_delete import LifecycleService
from .store import Store
from .termination import TerminationOrchestrator

console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s [%(trace_id)s] %(name)s: %(message)s"

RESTORE_TYPES = ["campus", "block", "unit", "company", "lease"]


def setup_logging(config: LeasingConfig) -> None:
    """Configure the root logger from the configured level."""
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(config.log_level)
    for handler in root.handlers:
        if not any(isinstance(f, TraceIdFilter) for f in handler.filters):
            handler.addFilter(TraceIdFilter())


def open_store(config: LeasingConfig) -> Store:
    return Store(config.database_url, echo=config.database_echo).open()


def make_actor(
    config: LeasingConfig, username: Optional[str], role: Optional[str]
) -> Actor:
    return Actor(
        username=username or config.audit_default_actor,
        role=role or config.audit_default_role,
    )


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("--database-url", envvar="LEASING_DATABASE_URL", help="Database URL")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    """Campus Leasing - soft delete, restore and audit tools."""
    config = configure(database_url=database_url) if database_url else get_config()
    setup_logging(config)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Campus Leasing[/bold blue] v{__version__}\n"
                "[dim]Office leasing with recoverable deletions[/dim]\n\n"
                "Use [bold]leasing --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
@click.pass_obj
def config_show(settings: LeasingConfig, format: str) -> None:
    """Display current configuration."""
    config_dict = settings.to_dict()

    if format == "json":
        console.print_json(data=config_dict)
    elif format == "yaml":
        import yaml  # type: ignore[import-untyped]

        console.print(yaml.safe_dump(config_dict, default_flow_style=False))
    else:
        table = Table(title="Leasing Configuration", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        # Group settings by category
        categories = {
            "General": ["application_name", "environment", "log_level"],
            "Store": ["database_url", "database_echo"],
            "Audit Trail": [
                "audit_enabled",
                "audit_default_actor",
                "audit_default_role",
                "rollback_window_days",
            ],
            "Pagination": ["pagination_default_limit", "pagination_max_limit"],
            "Roles": ["restore_roles", "termination_roles"],
        }

        for category, names in categories.items():
            table.add_row(f"[bold]{category}[/bold]", "")
            for name in names:
                value = config_dict[name]
                if isinstance(value, bool):
                    value = "✓" if value else "✗"
                elif isinstance(value, list):
                    value = ", ".join(value)
                table.add_row(f"  {name}", str(value))

        console.print(table)


@config.command("validate")
@click.pass_obj
def config_validate(settings: LeasingConfig) -> None:
    """Validate current configuration."""
    issues = []
    warnings = []

    if settings.pagination_default_limit > settings.pagination_max_limit:
        issues.append("Default page size exceeds the maximum page size")

    if not set(settings.restore_roles) <= set(settings.termination_roles):
        warnings.append("Some restore roles cannot terminate leases")

    if not settings.audit_enabled and settings.environment == "production":
        warnings.append("Audit trail is disabled in production")

    is_sqlite = settings.database_url.startswith("sqlite")
    if is_sqlite and settings.environment == "production":
        warnings.append("SQLite is not recommended for production")

    if issues:
        console.print("[red]✗ Configuration validation failed:[/red]")
        for issue in issues:
            console.print(f"  [red]• {issue}[/red]")
        sys.exit(1)

    console.print("[green]✓ Configuration is valid[/green]")
    if warnings:
        console.print("\n[yellow]⚠ Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  [yellow]• {warning}[/yellow]")


@cli.group()
def db() -> None:
    """Database management."""
    pass


@db.command("init")
@click.pass_obj
def db_init(settings: LeasingConfig) -> None:
    """Create missing tables."""
    try:
        open_store(settings).close()
    except LeasingError as e:
        console.print(f"[red]Error initializing database: {e}[/red]")
        sys.exit(1)
    console.print("[green]✓ Database initialized[/green]")


@cli.command("deleted")
@click.pass_obj
def deleted(settings: LeasingConfig) -> None:
    """List soft-deleted entities, most recent first."""
    try:
        with open_store(settings) as store:
            items = LifecycleService(store).list_deleted()
    except LeasingError as e:
        console.print(f"[red]Error listing deleted entities: {e}[/red]")
        sys.exit(1)

    if not items:
        console.print("[yellow]No deleted entities[/yellow]")
        return

    table = Table(title=f"Deleted Entities ({len(items)})")
    table.add_column("Deleted At", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("Name", style="green")
    table.add_column("ID", style="dim")
    for item in items:
        table.add_row(
            item.deleted_at.strftime("%Y-%m-%d %H:%M:%S"), item.type, item.name, item.id
        )
    console.print(table)


@cli.command("restore")
@click.argument("entity_type", type=click.Choice(RESTORE_TYPES))
@click.argument("entity_id")
@click.option("--actor", help="Username recorded in the audit trail")
@click.option("--role", help="Role recorded in the audit trail")
@click.pass_obj
def restore(
    settings: LeasingConfig,
    entity_type: str,
    entity_id: str,
    actor: Optional[str],
    role: Optional[str],
) -> None:
    """Restore a deleted entity (for leases, ENTITY_ID is the company id)."""
    try:
        with trace_context(), open_store(settings) as store:
            restored = LifecycleService(store).restore(
                entity_type, entity_id, make_actor(settings, actor, role)
            )
    except LeasingError as e:
        console.print(f"[red]Restore failed: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ Restored {entity_type} {entity_id}[/green]")
    console.print_json(data=restored.to_public())


@cli.command("terminate")
@click.argument("company_id")
@click.option("--actor", help="Username recorded in the audit trail")
@click.option("--role", help="Role recorded in the audit trail")
@click.pass_obj
def terminate(
    settings: LeasingConfig, company_id: str, actor: Optional[str], role: Optional[str]
) -> None:
    """Terminate a company's lease and release its units."""
    try:
        with trace_context(), open_store(settings) as store:
            summary = TerminationOrchestrator(store).terminate(
                company_id, make_actor(settings, actor, role)
            )
    except LeasingError as e:
        console.print(f"[red]Termination failed: {e}[/red]")
        sys.exit(1)

    console.print(
        Panel.fit(
            f"[bold green]✓ Lease terminated[/bold green]\n\n"
            f"Company: [cyan]{summary.company_name}[/cyan]\n"
            f"Units vacated: {summary.units_vacated}\n"
            f"Reservations released: {summary.reservations_released}\n"
            f"Leases retired: {summary.leases_retired}\n"
            f"Documents retired: {summary.documents_retired}\n"
            f"Score entries retired: {summary.score_entries_retired}",
            border_style="green",
        )
    )


@cli.group()
def audit() -> None:
    """Audit trail review and export."""
    pass


@audit.command("list")
@click.option("--page", type=int, default=1, help="Page number")
@click.option("--limit", type=int, default=None, help="Entries per page")
@click.option("--format", type=click.Choice(["table", "json", "csv"]), default="table")
@click.pass_obj
def audit_list(
    settings: LeasingConfig, page: int, limit: Optional[int], format: str
) -> None:
    """List audit entries, newest first."""
    try:
        with open_store(settings) as store:
            result = AuditRecorder(store, config=settings).list_entries(page, limit)
    except LeasingError as e:
        console.print(f"[red]Error reading audit trail: {e}[/red]")
        sys.exit(1)

    entries = result["data"]
    pagination = result["pagination"]

    if format == "json":
        console.print_json(data=result)
    elif format == "csv":
        print(pd.DataFrame(entries).to_csv(index=False))
    else:
        table = Table(
            title=(
                f"Audit Trail (page {pagination['page']} of "
                f"{pagination['totalPages']}, {pagination['totalCount']} entries)"
            )
        )
        table.add_column("Timestamp", style="cyan")
        table.add_column("User", style="green")
        table.add_column("Action", style="yellow")
        table.add_column("Entity", style="blue")
        table.add_column("Details")
        for entry in entries:
            table.add_row(
                entry["timestamp"],
                entry["user"],
                entry["action"],
                entry["entityType"],
                entry["details"] or "",
            )
        console.print(table)


@audit.command("export")
@click.option("--output", type=click.Path(), required=True, help="Output file path")
@click.option("--format", type=click.Choice(["json", "csv", "excel"]), default="csv")
@click.pass_obj
def audit_export(settings: LeasingConfig, output: str, format: str) -> None:
    """Export the full audit trail."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Exporting audit trail...", total=None)

        try:
            with open_store(settings) as store:
                entries = AuditRecorder(store, config=settings).storage.query()
        except LeasingError as e:
            progress.stop()
            console.print(f"[red]Error exporting audit trail: {e}[/red]")
            sys.exit(1)

        progress.update(task, description=f"Found {len(entries)} entries, exporting...")

        df = pd.DataFrame([entry.model_dump(mode="json") for entry in entries])

        output_path = Path(output)
        if format == "json":
            df.to_json(output_path, orient="records", date_format="iso", indent=2)
        elif format == "excel":
            df.to_excel(output_path, index=False, engine="openpyxl")
        else:  # csv
            df.to_csv(output_path, index=False)

        progress.stop()
        console.print(
            f"[green]✓ Exported {len(entries)} audit entries to {output_path}[/green]"
        )


@audit.command("verify")
@click.pass_obj
def audit_verify(settings: LeasingConfig) -> None:
    """Recalculate entry checksums and report tampering."""
    try:
        with open_store(settings) as store:
            results = AuditRecorder(store, config=settings).verify_integrity()
    except LeasingError as e:
        console.print(f"[red]Error verifying audit trail: {e}[/red]")
        sys.exit(1)

    console.print(
        f"Checked [cyan]{results['total_checked']}[/cyan] entries: "
        f"[green]{results['valid']} valid[/green], "
        f"[red]{results['invalid']} invalid[/red]"
    )
    if results["invalid"]:
        for item in results["invalid_entries"]:
            console.print(f"  [red]• {item['id']} ({item['timestamp']})[/red]")
        sys.exit(1)


@cli.command("serve")
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", type=int, default=8000, help="Port to listen on")
@click.pass_obj
def serve(settings: LeasingConfig, host: str, port: int) -> None:
    """Run the restore gateway."""
    import uvicorn

    from .gateway import create_app

    uvicorn.run(create_app(config=settings), host=host, port=port)


if __name__ == "__main__":
    cli()
