"""Main CLI interface for SafeMove using Click."""

import json
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from ..config import ZONE_NAMES, ConfigManager, SafeMoveConfig
from ..core import (
    BatchCoordinator,
    BatchReport,
    BatchRequest,
    CancellationToken,
    ConflictChecker,
    EventKind,
    parse_file_entries,
)
from ..database import Database, TransferJournal
from ..errors import SafeMoveError, ValidationError
from ..utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2


def _load_config(ctx, require_zones=()) -> tuple[ConfigManager, SafeMoveConfig]:
    config_manager = ConfigManager(ctx.obj.get("config_path"))
    config = config_manager.load(require_zones=require_zones)
    setup_logging(
        level=config.logging.level,
        log_dir=config.logging.log_dir,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        console_enabled=config.logging.console_enabled,
        file_enabled=config.logging.file_enabled,
    )
    return config_manager, config


def _load_request_data(request_file: Path):
    """Read a YAML or JSON request file. A bare list is taken as the files."""
    try:
        with open(request_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid request file: {e}") from e

    if isinstance(data, list):
        data = {"files": data}
    return data


def _read_request(
    request_file: Path,
    operation: Optional[str] = None,
    overwrite: Optional[bool] = None,
) -> BatchRequest:
    """Load a full batch request, applying command-line overrides."""
    data = _load_request_data(request_file)
    if isinstance(data, dict):
        if operation is not None:
            data["operation"] = operation
        if overwrite is not None:
            data["overwrite"] = overwrite
    return BatchRequest.parse(data)


def _open_journal(config: SafeMoveConfig) -> tuple[Database, TransferJournal] | None:
    if not config.database.journal_enabled:
        return None
    db = Database(config.database.path)
    db.create_all_tables()
    return db, TransferJournal(db.get_session())


def _exit_code(report: BatchReport) -> int:
    if report.failed_count == 0 and not report.cancelled:
        return EXIT_OK
    if report.completed_count == 0:
        return EXIT_FAILED
    return EXIT_PARTIAL


def _print_report(report: BatchReport):
    table = Table(title="Transfer Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Total", str(report.total))
    table.add_row("  ├─ Completed", str(report.completed_count))
    table.add_row("  └─ Failed", str(report.failed_count))
    console.print(table)

    for error in report.errors:
        console.print(f"  [red]✗[/red] {error}")

    if report.cancelled:
        console.print(f"\n[yellow]⚠ {report.message}[/yellow]")
    elif report.success:
        console.print(f"\n[bold green]✓ {report.message}[/bold green]")
    else:
        console.print(f"\n[bold yellow]⚠ {report.message}[/bold yellow]")


def _run_with_progress(coordinator: BatchCoordinator, batch: BatchRequest) -> BatchReport:
    """Stream the batch into a progress bar. Ctrl-C stops after the current item."""
    cancel = CancellationToken()
    stream = coordinator.stream(batch, cancel=cancel)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Starting...", total=len(batch.files))
        try:
            for event in stream:
                if event.kind is EventKind.PROGRESS:
                    progress.update(
                        task,
                        completed=event.current - 1,
                        description=f"[cyan]{event.current_file}",
                    )
                else:
                    progress.update(task, completed=event.current, description="[cyan]Done")
        except KeyboardInterrupt:
            cancel.cancel()
            console.print("[yellow]Cancelling after the current item...[/yellow]")

    report = stream.join()
    if stream.error is not None:
        raise stream.error
    return report


@click.group()
@click.version_option(version="0.1.0", prog_name="SafeMove")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx, config: Optional[Path]):
    """
    SafeMove - verified file transfers between confined zones.

    Copies or moves files from the source zone (DOWNLOAD_PATH) to the
    destination zone (MEDIA_PATH), verifying every cross-device copy.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--operation", type=click.Choice(["copy", "move"]), help="Override the operation")
@click.option("--overwrite/--no-overwrite", default=None, help="Override overwrite behavior")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.option("--no-progress", is_flag=True, help="Do not show a progress bar")
@click.pass_context
def run(
    ctx,
    request_file: Path,
    operation: Optional[str],
    overwrite: Optional[bool],
    as_json: bool,
    no_progress: bool,
):
    """
    Run a batch request file.

    The file (YAML or JSON) holds ``operation``, ``overwrite`` and a ``files``
    list of ``sourcePath``/``destinationPath`` pairs.
    """
    journal = None
    try:
        _, config = _load_config(ctx, require_zones=ZONE_NAMES)
        batch = _read_request(request_file, operation, overwrite)
        journal = _open_journal(config)
        coordinator = BatchCoordinator.from_config(
            config, journal=journal[1] if journal else None
        )

        if as_json or no_progress:
            report = coordinator.run(batch)
        else:
            report = _run_with_progress(coordinator, batch)

    except SafeMoveError as e:
        if as_json:
            click.echo(json.dumps({"success": False, "code": e.code, "error": e.message}))
        else:
            console.print(f"[bold red]✗ Error:[/bold red] {e.message}")
        sys.exit(EXIT_FAILED)
    except Exception as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e}")
        logger.exception("Run command error")
        sys.exit(EXIT_FAILED)
    finally:
        if journal:
            journal[1].session.close()
            journal[0].close()

    if as_json:
        click.echo(json.dumps(report.to_dict()))
    else:
        _print_report(report)
    sys.exit(_exit_code(report))


@cli.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print conflicts as JSON")
@click.pass_context
def check(ctx, request_file: Path, as_json: bool):
    """List destinations in a request file that already exist."""
    try:
        _, config = _load_config(ctx, require_zones=("destination",))
        files = parse_file_entries(_load_request_data(request_file))
        checker = ConflictChecker(config.zones.root_for("destination"))
        existing = checker.check(files)
    except SafeMoveError as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e.message}")
        sys.exit(EXIT_FAILED)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "success": True,
                    "existingFiles": [
                        {
                            "sourcePath": item.source_path,
                            "destinationPath": item.destination_path,
                            "fileName": item.file_name,
                        }
                        for item in existing
                    ],
                }
            )
        )
        return

    if not existing:
        console.print("[green]✓ No destination conflicts[/green]")
        return

    table = Table(title="Existing Destinations", show_header=True, header_style="bold yellow")
    table.add_column("File", style="yellow")
    table.add_column("Destination", style="cyan")
    table.add_column("Source", style="dim")
    for item in existing:
        table.add_row(item.file_name, item.destination_path, item.source_path)
    console.print(table)
    console.print(f"\n[yellow]⚠ {len(existing)} destination(s) already exist[/yellow]")


@cli.command()
@click.option("--limit", default=20, show_default=True, help="Number of rows to show")
@click.pass_context
def history(ctx, limit: int):
    """Show recent transfers from the journal."""
    _, config = _load_config(ctx)
    if not config.database.journal_enabled:
        console.print(
            "[yellow]⚠ The transfer journal is disabled.[/yellow] "
            "Set [cyan]database.journal_enabled: true[/cyan] in the config."
        )
        sys.exit(EXIT_FAILED)

    db, journal = _open_journal(config)
    try:
        rows = journal.recent(limit)
    finally:
        journal.session.close()
        db.close()

    if not rows:
        console.print("[dim]No transfers recorded yet.[/dim]")
        return

    table = Table(title="Recent Transfers", show_header=True, header_style="bold cyan")
    table.add_column("When", style="dim")
    table.add_column("Op")
    table.add_column("Source")
    table.add_column("Destination")
    table.add_column("Status")
    table.add_column("Reason", style="dim")
    colors = {"succeeded": "green", "skipped": "yellow", "failed": "red"}
    for row in rows:
        color = colors.get(row.status, "white")
        table.add_row(
            row.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            row.operation,
            row.source_path,
            row.destination_path,
            f"[{color}]{row.status}[/{color}]",
            row.reason or "",
        )
    console.print(table)


@cli.command()
@click.pass_context
def init(ctx):
    """Create a default configuration file and, if enabled, the journal database."""
    console.print("\n[bold cyan]SafeMove Initialization[/bold cyan]\n")

    try:
        config_manager, config = _load_config(ctx)

        if config_manager.loaded_from is None:
            written = config_manager.save(config)
            console.print(f"✓ Created default configuration: [green]{written}[/green]")
        else:
            console.print(
                f"✓ Loaded configuration from: [green]{config_manager.loaded_from}[/green]"
            )

        if config.database.journal_enabled:
            db = Database(config.database.path)
            db.create_all_tables()
            db.close()
            console.print(f"✓ Created transfer journal: [green]{config.database.path}[/green]")

        console.print("\n[bold green]✓ Initialization complete![/bold green]")
        console.print("\n[cyan]Next steps:[/cyan]")
        console.print("  1. Set [yellow]DOWNLOAD_PATH[/yellow] and [yellow]MEDIA_PATH[/yellow]")
        console.print("  2. Review configuration: [yellow]safemove config show[/yellow]")
        console.print("  3. Check a batch: [yellow]safemove check batch.yaml[/yellow]")

    except Exception as e:
        console.print(f"\n[bold red]✗ Initialization failed:[/bold red] {e}")
        logger.exception("Initialization error")
        sys.exit(EXIT_FAILED)


@cli.group(name="config")
def config_group():
    """Manage SafeMove configuration."""
    pass


@config_group.command(name="show")
@click.pass_context
def config_show(ctx):
    """Display current configuration."""
    console.print("\n[bold cyan]SafeMove Configuration[/bold cyan]\n")

    config_manager, config = _load_config(ctx)

    console.print("[bold]Zones:[/bold]")
    for zone in ("source", "destination"):
        env_name = getattr(config.zones, f"{zone}_env")
        try:
            root = config.zones.root_for(zone)
            exists = root.is_dir()
            color = "green" if exists else "red"
            console.print(f"  [{color}]{'✓' if exists else '✗'}[/{color}] {zone}: {root}")
        except SafeMoveError:
            console.print(f"  [red]✗[/red] {zone}: [yellow]{env_name} not set[/yellow]")

    console.print("\n[bold]Transfer Settings:[/bold]")
    console.print(f"  Hash Algorithm: {config.transfer.hash_algorithm}")
    console.print(f"  Chunk Size: {config.transfer.chunk_size} bytes")
    console.print(f"  Cleanup Empty Dirs: {config.transfer.cleanup_empty_dirs}")
    console.print(f"  Progress Buffer: {config.transfer.progress_buffer}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  Level: {config.logging.level}")
    console.print(f"  File Logging: {config.logging.file_enabled} ({config.logging.log_dir})")

    console.print("\n[bold]Journal:[/bold]")
    journal_state = (
        "[green]Enabled[/green]" if config.database.journal_enabled else "[yellow]Disabled[/yellow]"
    )
    console.print(f"  {journal_state} ({config.database.path})")

    console.print(f"\n[dim]Config file: {config_manager.loaded_from or '(defaults)'}[/dim]")


if __name__ == "__main__":
    cli()
