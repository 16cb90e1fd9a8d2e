"""
Command-line interface for the mailsort classifier.

Queue scans from local folders or a Google Drive folder, run the batch
engine over them and review, export or archive the results.
"""

import asyncio
import signal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from mailsort.config import get_settings
from mailsort.engine import BatchEngine, CancellationToken, EngineEventType
from mailsort.export import (
    FORWARDING_TITLES,
    GROUP_ORDER,
    archive_result,
    build_forwarding_request,
    grouped_results,
    write_csv,
)
from mailsort.extraction.gemini_client import parse_response
from mailsort.models import Classification, RemoteSource, WorkItem, WorkItemStatus
from mailsort.queue import ImportMerger, QueueStore
from mailsort.routing import map_record
from mailsort.storage import LocalFolderSource, StorageSource
from mailsort.utils.errors import MailsortException
from mailsort.utils.logging import setup_logging

app = typer.Typer(
    name="mailsort",
    help="Classify scanned postal mail and decide where each letter goes",
    add_completion=False,
)
console = Console()

STATUS_STYLES = {
    WorkItemStatus.IDLE: "dim",
    WorkItemStatus.ANALYZING: "cyan",
    WorkItemStatus.SUCCEEDED: "green",
    WorkItemStatus.FAILED: "red",
    WorkItemStatus.NEEDS_REVIEW: "yellow",
}


def _results_table(items: List[WorkItem]) -> Table:
    table = Table(title="Analysis Results")
    table.add_column("File", style="cyan")
    table.add_column("Item ID")
    table.add_column("Recipient")
    table.add_column("Sender")
    table.add_column("Classification")
    table.add_column("Suggested Filename", style="dim")

    for item in items:
        style = STATUS_STYLES[item.status]
        if item.status == WorkItemStatus.FAILED:
            table.add_row(item.display_name, "-", "-", "-", f"[{style}]FAILED[/{style}]", item.error or "")
            continue
        for result in item.results or []:
            table.add_row(
                item.display_name,
                result.canonical_item_id,
                result.recipient_name or "Unknown",
                result.sender or "Unknown",
                f"[{style}]{result.classification.label}[/{style}]",
                result.suggested_filename,
            )
    return table


def _print_summary(store: QueueStore) -> None:
    counts = store.counts()
    console.print(
        f"\n[bold]Summary:[/bold] {counts[WorkItemStatus.SUCCEEDED]} succeeded, "
        f"{counts[WorkItemStatus.NEEDS_REVIEW]} need review, "
        f"{counts[WorkItemStatus.FAILED]} failed"
    )

    groups = grouped_results(store.items())
    for classification in GROUP_ORDER:
        if groups[classification]:
            console.print(f"  {classification.label}: {len(groups[classification])}")

    for classification, title in FORWARDING_TITLES.items():
        request = build_forwarding_request(title, groups[classification])
        if request:
            console.print(f"\n[bold]{title}[/bold]")
            console.print(request)


async def _watch_events(engine: BatchEngine, progress: Progress, task_id) -> None:
    queue = engine.events.subscribe()
    try:
        while True:
            event = await queue.get()
            if event.type == EngineEventType.ITEM_FINISHED:
                progress.advance(task_id)
            progress.update(task_id, description=engine.state.heartbeat)
    finally:
        engine.events.unsubscribe(queue)


async def _archive_results(
    store: QueueStore,
    sources: Dict[str, StorageSource],
    local: StorageSource,
    drive_folder: Optional[str],
    local_dir: Optional[str],
) -> Tuple[int, int]:
    """Archive every result; Drive scans go to ``drive_folder``, local scans to ``local_dir``."""
    archived = failed = 0
    for item, result in store.results():
        if isinstance(item.source, RemoteSource):
            source, destination = sources.get(item.source.provider), drive_folder
        else:
            source, destination = local, local_dir
        if source is None or not destination:
            continue

        try:
            await archive_result(source, item, result, destination)
        except MailsortException as e:
            console.print(f"[red]✗[/red] Could not archive {item.display_name}: {e.message}")
            failed += 1
        else:
            archived += 1
    return archived, failed


def _install_interrupt(token: CancellationToken) -> None:
    def _on_interrupt() -> None:
        console.print("\n[yellow]Stopping after the current step...[/yellow]")
        token.cancel()

    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, _on_interrupt)
    except (NotImplementedError, RuntimeError):
        # Not available on every platform; Ctrl-C then aborts outright
        pass


@app.command()
def connect(
    credentials_path: Optional[Path] = typer.Option(
        None,
        "--credentials",
        "-c",
        help="Path to Google OAuth2 credentials JSON",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Force re-authentication",
    ),
):
    """Authenticate with Google Drive."""

    async def _connect():
        try:
            from mailsort.google_drive.auth import GoogleDriveAuth

            settings = get_settings()
            auth = GoogleDriveAuth(credentials_path=credentials_path or settings.drive_credentials_path)

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                progress.add_task("Authenticating with Google Drive...", total=None)
                await auth.authenticate(force_reauth=force)

            user_info = await auth.get_user_info()
            console.print(
                f"[green]✓[/green] Successfully authenticated as: {user_info.get('emailAddress', 'Unknown')}"
            )

        except MailsortException as e:
            console.print(f"[red]✗[/red] Authentication failed: {e.message}")
            raise typer.Exit(1)

    asyncio.run(_connect())


@app.command()
def process(
    paths: Optional[List[Path]] = typer.Argument(
        None,
        help="Local scan files or folders to queue",
    ),
    drive_folder: Optional[str] = typer.Option(
        None,
        "--drive-folder",
        "-d",
        help="Google Drive folder ID to import (defaults to DRIVE_INPUT_FOLDER_ID)",
    ),
    use_drive: bool = typer.Option(
        False,
        "--drive",
        help="Import from the configured Drive input folder",
    ),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Write results to this CSV file"),
    archive_folder: Optional[str] = typer.Option(
        None,
        "--archive-folder",
        "-a",
        help="Drive folder ID to archive analysed Drive scans into (defaults to DRIVE_ARCHIVE_FOLDER_ID)",
    ),
    archive_dir: Optional[Path] = typer.Option(
        None,
        "--archive-dir",
        help="Local directory to archive analysed local scans into",
    ),
    pacing: Optional[float] = typer.Option(
        None,
        "--pacing",
        help="Seconds to wait between items (defaults to PACING_INTERVAL)",
    ),
    recursive: bool = typer.Option(True, "--recursive/--flat", help="Descend into sub-folders"),
):
    """Queue scans and classify every letter in them."""

    async def _process():
        settings = get_settings()
        store = QueueStore()
        merger = ImportMerger(store)
        local = LocalFolderSource(recursive=recursive)
        sources: Dict[str, StorageSource] = {}

        try:
            files = []
            for path in paths or []:
                if path.is_dir():
                    await merger.import_from(local, str(path))
                elif path.is_file():
                    files.append(path.resolve())
                else:
                    console.print(f"[yellow]Skipping missing path:[/yellow] {path}")
            if files:
                merger.import_local(files)

            folder_id = drive_folder or (settings.drive_input_folder_id if use_drive else None)
            if folder_id:
                from mailsort.google_drive.client import create_drive_client

                drive = create_drive_client()
                await drive.connect()
                sources[drive.provider_name] = drive
                await merger.import_from(drive, folder_id)

            if not len(store):
                console.print("No scans found to process")
                return

            from mailsort.extraction.gemini_client import create_extraction_client

            engine = BatchEngine(
                store,
                create_extraction_client(),
                sources=sources,
                local_source=local,
                pacing_interval=pacing,
            )
            token = CancellationToken()
            _install_interrupt(token)

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TextColumn("{task.completed}/{task.total}"),
                console=console,
            ) as progress:
                task_id = progress.add_task("Starting...", total=len(store))
                watcher = asyncio.create_task(_watch_events(engine, progress, task_id))
                try:
                    await engine.run(token)
                finally:
                    watcher.cancel()

            console.print(_results_table(list(store.items())))
            _print_summary(store)

            if csv_path:
                count = write_csv(store.results(), csv_path)
                console.print(f"[green]✓[/green] Exported {count} row(s) to {csv_path}")

            drive_archive = archive_folder or settings.drive_archive_folder_id
            if (sources and drive_archive) or archive_dir:
                archived, failed = await _archive_results(
                    store, sources, local, drive_archive, str(archive_dir) if archive_dir else None
                )
                console.print(f"[green]✓[/green] Archived {archived} file(s)")
                if failed:
                    console.print(f"[yellow]{failed} file(s) could not be archived[/yellow]")

        except MailsortException as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(1)

    asyncio.run(_process())


@app.command()
def classify(
    raw_file: Path = typer.Argument(..., help="JSON file holding a saved extraction answer"),
    filename: Optional[str] = typer.Option(
        None,
        "--filename",
        "-n",
        help="Original scan filename, used to recover the item ID",
    ),
):
    """Re-run the routing rules on a saved extraction answer, offline."""
    try:
        records = parse_response(raw_file.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot read {raw_file}: {e}")
        raise typer.Exit(1)
    except MailsortException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    results = [map_record(record, filename) for record in records]
    if not results:
        console.print("No letters found in the answer")
        return

    table = Table(title=f"Classification of {raw_file.name}")
    table.add_column("Item ID", style="cyan")
    table.add_column("Recipient")
    table.add_column("Routing")
    table.add_column("Classification")
    table.add_column("Suggested Filename", style="dim")
    for result in results:
        style = "yellow" if result.classification == Classification.UNDETERMINED else "green"
        table.add_row(
            result.canonical_item_id,
            result.recipient_name or "Unknown",
            result.routing.value,
            f"[{style}]{result.classification.label}[/{style}]",
            result.suggested_filename,
        )
    console.print(table)

    for result in results:
        if result.reasoning:
            console.print(f"[dim]{result.canonical_item_id}: {result.reasoning}[/dim]")



@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Mailsort - classify scanned mail and route it with Gemini."""
    load_dotenv()
    setup_logging(log_level="DEBUG" if debug else None)


if __name__ == "__main__":
    app()
