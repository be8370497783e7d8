"""CLI for transbatch."""

import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .cache_store import HashCacheStore
from .config import (
    Profile,
    build_pipeline_config,
    default_config_dir,
    default_profile_path,
    load_profile,
    save_profile,
    set_profile_value,
    sync_session_from_profile,
)
from .errors import ConfigError, RunError, SyncAuthError, SyncError, SyncTimeoutError
from .hashing import is_valid_digest
from .models import RunReport
from .pipeline import Pipeline
from .sync import pull as sync_pull, push as sync_push, test_connection, transport_kind
from .transform_client import TransformClient
from .utils import format_iso_date


app = typer.Typer(help="""\
Batch image translation. Scans a folder, skips files that were already
processed, and sends the rest to the translation service one at a time.""")

cache_app = typer.Typer(help="Inspect and synchronize the processed-file hash cache")
app.add_typer(cache_app, name="cache")

config_app = typer.Typer(help="Show or change profile settings")
app.add_typer(config_app, name="config")

console = Console()

SECRET_KEYS = {"api_key", "remote_db_token", "remote_db_pass"}


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    debug = verbose or os.environ.get("DEBUG", "").lower() in ("1", "true", "yes")
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug, markup=False)],
        force=True,
    )


def _load_profile_or_exit() -> Profile:
    try:
        return load_profile()
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def _open_store(profile: Profile) -> HashCacheStore:
    return HashCacheStore(profile.resolved_cache_path())


def _mask(value: str) -> str:
    if not value:
        return ""
    return "*" * 8 if len(value) <= 8 else f"{value[:4]}…{value[-2:]}"


def _print_report(report: RunReport) -> None:
    console.print()
    console.print("[bold]Run summary[/bold]")
    console.print(f"  Discovered:         {report.discovered}")
    console.print(f"  Skipped (existing): {report.skipped_existing}")
    console.print(f"  Skipped (history):  {report.skipped_history}")
    if report.hash_failures:
        console.print(f"  [yellow]Hash failures:      {report.hash_failures}[/yellow]")
    console.print(f"  Attempted:          {report.attempted}")
    console.print(f"  [green]Succeeded:          {report.succeeded}[/green]")
    if report.failed:
        console.print(f"  [red]Failed:             {len(report.failed)}[/red]")
        for path in report.failed:
            console.print(f"    [red]✗[/red] {path}")
    if report.cache_writes_failed or report.cache_writes_dropped:
        console.print(
            f"  [yellow]Cache writes lost:  {report.cache_writes_failed} failed, "
            f"{report.cache_writes_dropped} dropped[/yellow]"
        )
    console.print(f"  Credits used:       {report.credits_used}")


@app.command()
def run(
    input_dir: Path = typer.Argument(..., help="Folder with images to process"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output folder (default: INPUT/translated)"),
    include: Optional[List[Path]] = typer.Option(None, "--include", "-i", help="Only process files under these paths (repeatable)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Translation model (overrides profile)"),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Target language (overrides profile)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Translate every new image under INPUT_DIR.

    Examples:
        transbatch run ./chapter-12
        transbatch run ./scans --output ./out --lang tr
        transbatch run ./scans -i ./scans/vol1 -i ./scans/vol2
    """
    setup_logging(verbose)
    stored = _load_profile_or_exit()

    overrides = {}
    if model:
        overrides["model"] = model
    if lang:
        overrides["target_lang"] = lang
    profile = stored.model_copy(update=overrides)

    api_key = profile.resolved_api_key()
    if not api_key:
        console.print("[red]✗[/red] No API key configured")
        console.print("[dim]Set one with: transbatch config set api_key <KEY> (or TRANSBATCH_API_KEY)[/dim]")
        raise typer.Exit(1)

    try:
        config = build_pipeline_config(
            profile,
            input_dir,
            output_dir=output,
            include=[str(p) for p in include] if include else None,
        )
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold]Processing {config.input_dir}[/bold]")
    console.print(f"[dim]Output: {config.output_dir}  Model: {profile.model}  Language: {profile.target_lang}[/dim]")

    client = TransformClient(api_key, endpoint=profile.translate_url)
    try:
        report = Pipeline(config, client).run()
    except RunError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    finally:
        client.close()

    if report.nothing_to_do:
        console.print("[green]✓[/green] All files have already been processed")
    else:
        _print_report(report)

    if report.credits_used:
        # Reload so a concurrent `config set` is not overwritten
        latest = _load_profile_or_exit()
        latest.total_credits_used += report.credits_used
        save_profile(latest)
        console.print(f"[dim]Total credits used: {latest.total_credits_used}[/dim]")


# ============= cache =============

@cache_app.command("list")
def cache_list(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum rows to show (0 = all)"),
):
    """List cached entries, newest first."""
    store = _open_store(_load_profile_or_exit())
    entries = store.list_all()
    if not entries:
        console.print("[yellow]Hash cache is empty[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Hash", style="cyan")
    table.add_column("Name")
    table.add_column("Folder")
    table.add_column("Created (UTC)", style="dim")
    shown = entries if limit <= 0 else entries[:limit]
    for entry in shown:
        table.add_row(entry.hash[:12], entry.name, entry.folder, format_iso_date(entry.created_at))
    console.print(table)
    if len(shown) < len(entries):
        console.print(f"[dim]Showing {len(shown)} of {len(entries)} entries[/dim]")


@cache_app.command("show")
def cache_show(digest: str = typer.Argument(..., help="Full content hash")):
    """Show one cached entry."""
    store = _open_store(_load_profile_or_exit())
    entry = store.get(digest.lower())
    if entry is None:
        console.print(f"[red]✗[/red] No entry for {digest}")
        raise typer.Exit(1)
    console.print(f"[bold]Hash:[/bold]    {entry.hash}")
    console.print(f"[bold]Name:[/bold]    {entry.name}")
    console.print(f"[bold]Folder:[/bold]  {entry.folder}")
    console.print(f"[bold]Created:[/bold] {format_iso_date(entry.created_at)}")


@cache_app.command("delete")
def cache_delete(digest: str = typer.Argument(..., help="Full content hash")):
    """Delete one cached entry so the file is processed again."""
    if not is_valid_digest(digest.lower()):
        console.print(f"[red]✗[/red] Not a valid content hash: {digest}")
        raise typer.Exit(1)
    store = _open_store(_load_profile_or_exit())
    if not store.delete(digest.lower()):
        console.print(f"[yellow]No entry for {digest}[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Deleted {digest}")


@cache_app.command("clear")
def cache_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete every cached entry."""
    store = _open_store(_load_profile_or_exit())
    if not yes and not typer.confirm(f"Delete all {store.count()} entries from {store.db_path}?"):
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(1)
    removed = store.clear()
    console.print(f"[green]✓[/green] Removed {removed} entries")


def _sync_failed(action: str, e: SyncError) -> None:
    console.print(f"[red]✗[/red] {action} failed: {e}")
    if isinstance(e, SyncAuthError):
        console.print("[yellow]Hint: check remote_db_token or remote_db_user/remote_db_pass[/yellow]")
    elif isinstance(e, SyncTimeoutError):
        console.print("[yellow]Hint: check remote_db_url and your network connection[/yellow]")
    raise typer.Exit(1)


@cache_app.command("push")
def cache_push(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    """Upload local cache entries to the remote database."""
    setup_logging(verbose)
    profile = _load_profile_or_exit()
    try:
        session = sync_session_from_profile(profile)
        console.print(f"[bold]Pushing to {session.url} ({transport_kind(session.url)})...[/bold]")
        sent = sync_push(_open_store(profile), session)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    except SyncError as e:
        _sync_failed("Push", e)
    console.print(f"[green]✓[/green] Pushed {sent} entries")


@cache_app.command("pull")
def cache_pull(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    """Download remote cache entries into the local cache."""
    setup_logging(verbose)
    profile = _load_profile_or_exit()
    try:
        session = sync_session_from_profile(profile)
        console.print(f"[bold]Pulling from {session.url} ({transport_kind(session.url)})...[/bold]")
        received = sync_pull(_open_store(profile), session)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    except SyncError as e:
        _sync_failed("Pull", e)
    console.print(f"[green]✓[/green] Pulled {received} entries")


@cache_app.command("test")
def cache_test(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    """Check that the remote database is reachable and accepts the credentials."""
    setup_logging(verbose)
    profile = _load_profile_or_exit()
    try:
        session = sync_session_from_profile(profile)
        message = test_connection(session)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    except SyncError as e:
        _sync_failed("Connection test", e)
    console.print(f"[green]✓[/green] {message}")


# ============= config =============

@config_app.command("show")
def config_show():
    """Print the current profile (secrets masked)."""
    profile = _load_profile_or_exit()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in profile.model_dump().items():
        shown = _mask(value) if key in SECRET_KEYS else str(value)
        table.add_row(key, shown)
    console.print(table)
    console.print(f"[dim]Profile: {default_profile_path()}[/dim]")
    if profile.cache_enabled:
        console.print(f"[dim]Hash cache: {profile.resolved_cache_path()}[/dim]")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name (see `transbatch config show`)"),
    value: str = typer.Argument(..., help="New value"),
):
    """Change one profile setting.

    Examples:
        transbatch config set api_key sk-...
        transbatch config set database_mode remote
        transbatch config set remote_db_url wss://db.example.com
    """
    profile = _load_profile_or_exit()
    try:
        updated = set_profile_value(profile, key, value)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    path = save_profile(updated)
    shown = _mask(value) if key in SECRET_KEYS else value
    console.print(f"[green]✓[/green] {key} = {shown}")
    console.print(f"[dim]Saved to {path} (config dir {default_config_dir()})[/dim]")


def main():
    app()
