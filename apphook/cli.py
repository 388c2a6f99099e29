"""Command line front end for discovery and database maintenance."""

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .cancel import ScanCancelled
from .config import HookSettings, load_settings
from .database import DatabaseError, DatabaseStore
from .discovery import discover_installed, discover_packaged, manual_record, search_all
from .driver_app import (
    DOWNLOAD_URL,
    close_driver_app,
    launch_driver_app,
    open_download_page,
    open_folder_for_path,
    start_file,
)
from .models import APP_TITLE, AppRecord
from .sysinfo import build_summary

_LOGGER = logging.getLogger(__name__)

app = typer.Typer(name="apphook", help=f"{APP_TITLE} - add games to the Adrenalin database", no_args_is_help=True)
console = Console()


class ScanKind(str, Enum):
    packaged = "packaged"
    installed = "installed"
    search = "search"


def _settings(ctx: typer.Context) -> HookSettings:
    return ctx.obj if isinstance(ctx.obj, HookSettings) else load_settings()


def _store(ctx: typer.Context) -> DatabaseStore:
    return DatabaseStore(_settings(ctx).data_dir)


def _fail(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


def _require_database(store: DatabaseStore) -> None:
    if not store.exists():
        _fail(f"No {store.path.name} file found.")


def _run_scan(settings: HookSettings, kind: ScanKind, term: Optional[str]) -> List[AppRecord]:
    if kind is ScanKind.search and not (term or "").strip():
        _fail("A search needs --term.")
    with console.status("Scanning...") as status:
        progress = status.update
        try:
            if kind is ScanKind.packaged:
                return discover_packaged(term, progress, settings=settings)
            if kind is ScanKind.installed:
                return discover_installed(term, progress, settings=settings)
            return search_all(term or "", progress, settings=settings)
        except (ScanCancelled, KeyboardInterrupt):
            _fail("Operation cancelled.")
    return []


def _print_records(records: Iterable[AppRecord], registered: Iterable[str]) -> None:
    hooked = {title.casefold() for title in registered}
    table = Table(title="Discovered applications")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Executable")
    table.add_column("Source")
    table.add_column("Hooked")
    for index, record in enumerate(records, start=1):
        mark = "yes" if record.name.casefold() in hooked else ""
        table.add_row(str(index), escape(record.name), escape(record.exe_path), record.source.value, mark)
    console.print(table)


def _show(ctx: typer.Context, records: List[AppRecord]) -> None:
    _print_records(records, _store(ctx).load_titles())
    console.print(f"Loaded {len(records)} item(s).")


def parse_selection(text: str, count: int) -> List[int]:
    """Zero-based indices for a selection like ``1,3-5`` or ``all`` over ``count`` rows."""
    text = text.strip().casefold()
    if text in ("all", "*"):
        return list(range(count))
    chosen: List[int] = []
    for part in text.replace(" ", "").split(","):
        if not part:
            continue
        first, sep, last = part.partition("-")
        try:
            start = int(first)
            stop = int(last) if sep else start
        except ValueError:
            raise ValueError(f"Invalid selection: {part}") from None
        if start < 1 or stop > count or start > stop:
            raise ValueError(f"Selection out of range: {part} (1-{count})")
        for number in range(start, stop + 1):
            if number - 1 not in chosen:
                chosen.append(number - 1)
    return chosen


def _add(ctx: typer.Context, records: List[AppRecord]) -> None:
    settings = _settings(ctx)
    store = DatabaseStore(settings.data_dir)
    close_driver_app(settings.driver_process_name)
    try:
        added, skipped = store.add(records)
    except (DatabaseError, OSError) as exc:
        _LOGGER.error("Hook failed: %s", exc)
        _fail(f"Hook failed: {exc}")
        return
    console.print(f"[green]Added: {added}[/green]  Skipped (already present): {skipped}")


def _launch_or_point_to_download(download: bool) -> bool:
    if launch_driver_app():
        return True
    console.print(f"[yellow]Driver software not found in the standard install paths.[/yellow] Download: {DOWNLOAD_URL}")
    if download:
        open_download_page()
    return False


def version_callback(value: bool) -> None:
    if value:
        console.print(f"apphook version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Folder holding gmdb.blb"),
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
) -> None:
    settings = load_settings()
    if data_dir is not None:
        settings = settings.model_copy(update={"data_dir": data_dir})
    ctx.obj = settings


@app.command()
def scan(
    ctx: typer.Context,
    kind: ScanKind = typer.Argument(ScanKind.packaged),
    term: Optional[str] = typer.Option(None, "--term", "-t", help="Only names containing this text"),
) -> None:
    """List discoverable applications."""
    _show(ctx, _run_scan(_settings(ctx), kind, term))


@app.command()
def search(ctx: typer.Context, term: str = typer.Argument(..., help="Text the application name must contain")) -> None:
    """Search packaged and installed applications at once."""
    _show(ctx, _run_scan(_settings(ctx), ScanKind.search, term))


@app.command()
def hook(
    ctx: typer.Context,
    kind: ScanKind = typer.Argument(ScanKind.packaged),
    term: Optional[str] = typer.Option(None, "--term", "-t"),
    pick: Optional[str] = typer.Option(None, "--pick", "-p", help="Rows to hook from the # column, e.g. 1,3-5 or all"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    open_driver: Optional[bool] = typer.Option(
        None, "--open-driver/--no-open-driver", help="Start the driver software afterwards"
    ),
) -> None:
    """Discover applications and add the selected ones to the database."""
    records = _run_scan(_settings(ctx), kind, term)
    if not records:
        _fail("No items found!")
    _print_records(records, _store(ctx).load_titles())
    if pick is None:
        pick = "all" if yes else typer.prompt("Rows to hook (e.g. 1,3-5 or all)")
    try:
        chosen = [records[index] for index in parse_selection(pick, len(records))]
    except ValueError as exc:
        _fail(str(exc))
        return
    if not chosen:
        _fail("No items selected!")
    if not yes:
        for record in chosen:
            console.print(f" - {escape(record.name)}")
        if not typer.confirm(f"Hook {len(chosen)} application(s)?"):
            console.print("Hook aborted!")
            raise typer.Exit()
    _add(ctx, chosen)
    if open_driver is None:
        open_driver = not yes and typer.confirm("Open the driver software now?", default=False)
    if open_driver:
        _launch_or_point_to_download(download=False)


@app.command("hook-manual")
def hook_manual(
    ctx: typer.Context,
    exe: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True),
    open_driver: bool = typer.Option(False, "--open-driver", help="Start the driver software afterwards"),
) -> None:
    """Add a single executable by hand."""
    _add(ctx, [manual_record(exe)])
    if open_driver:
        _launch_or_point_to_download(download=False)


@app.command("list")
def list_titles(ctx: typer.Context) -> None:
    """Show the titles already in the database."""
    store = _store(ctx)
    _require_database(store)
    for title in store.load_titles_ordered():
        console.print(title)


@app.command()
def remove(ctx: typer.Context, titles: List[str] = typer.Argument(...)) -> None:
    """Remove games by title."""
    settings = _settings(ctx)
    store = DatabaseStore(settings.data_dir)
    _require_database(store)
    close_driver_app(settings.driver_process_name)
    try:
        removed = store.remove(titles)
    except (DatabaseError, OSError) as exc:
        _fail(f"Remove failed: {exc}")
        return
    console.print(f"Removed {removed} item(s).")


@app.command()
def verify(ctx: typer.Context) -> None:
    """Count hooked games whose executable is gone."""
    store = _store(ctx)
    _require_database(store)
    total, missing = store.verify()
    console.print(f"{total} games hooked")
    console.print(f"{missing} executables missing")


@app.command()
def backup(ctx: typer.Context) -> None:
    """Copy the database to backup.blb."""
    try:
        _store(ctx).backup()
    except OSError as exc:
        _fail(f"Backup failed: {exc}")
    console.print("Backup created successfully!")


@app.command()
def restore(ctx: typer.Context) -> None:
    """Overwrite the database with backup.blb."""
    try:
        _store(ctx).restore()
    except OSError as exc:
        _fail(f"Restore failed: {exc}")
    console.print("Backup restored successfully!")


@app.command()
def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y"),
    relaunch: bool = typer.Option(True, "--relaunch/--no-relaunch", help="Start the driver software afterwards"),
) -> None:
    """Delete the database so the driver software rebuilds it."""
    if not yes and not typer.confirm("Reset the game settings database?"):
        raise typer.Exit()
    settings = _settings(ctx)
    close_driver_app(settings.driver_process_name)
    try:
        DatabaseStore(settings.data_dir).reset()
    except OSError as exc:
        _fail(f"Reset failed: {exc}")
    console.print("Database has been reset!")
    if relaunch and not launch_driver_app():
        console.print("[yellow]Driver software not found; start it manually to rebuild the database.[/yellow]")


@app.command()
def edit(ctx: typer.Context) -> None:
    """Open the raw database in $EDITOR."""
    store = _store(ctx)
    _require_database(store)
    original = store.read_raw()
    edited = typer.edit(original, extension=".json")
    if edited is None or edited == original:
        console.print("No changes.")
        return
    close_driver_app(_settings(ctx).driver_process_name)
    store.write_raw(edited)
    console.print("Saved.")


@app.command("open-driver")
def open_driver(
    download: bool = typer.Option(False, "--download", help="Open the download page when it is not installed"),
) -> None:
    """Start the driver software."""
    if not _launch_or_point_to_download(download):
        raise typer.Exit(code=1)


@app.command()
def start(exe: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True)) -> None:
    """Start an application."""
    if not start_file(exe):
        _fail("Failed to start application.")


@app.command("open-location")
def open_location(path: Path = typer.Argument(..., resolve_path=True)) -> None:
    """Open the folder holding an executable."""
    if not open_folder_for_path(path):
        _fail(f"Folder not found for {path}")


@app.command()
def info() -> None:
    """Show GPU, driver and system details."""
    with console.status("Collecting system information..."):
        summary = build_summary(__version__)
    console.print(summary, markup=False, highlight=False)


if __name__ == "__main__":
    app()
