"""
Command-line interface for locsync.

Provides commands for:
- Synchronizing locale files with the source file's history
- Inspecting the differences between two versions of a JSON file
- Managing the DeepL API key

Usage:
    locsync sync                                  # everything from env / .env
    locsync sync --base HEAD~1 --head HEAD --targets "locales/*/app.json"
    locsync diff old.json new.json
    locsync diff locales/en/app.json --base v1.0 --head main --json
    locsync keys list
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from locsync import __version__
from locsync.config import SyncConfig, parse_tag_list
from locsync.diff import StructuralDiffer
from locsync.errors import ConfigError, SyncError
from locsync.models import ChangeKind, ChangeSet, EntryOutcome
from locsync.pipeline import RunResult, SyncPipeline
from locsync.sources import FileSnapshotLoader, GitRevisionLoader
from locsync.translate.base import Tier

app = typer.Typer(
    name="locsync",
    help="locsync: propagate JSON source-file changes into translated locale files",
    add_completion=False,
)
console = Console()

KIND_STYLES = {
    ChangeKind.ADDED: "green",
    ChangeKind.MODIFIED: "yellow",
    ChangeKind.REMOVED: "red",
}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def version_callback(value: bool):
    if value:
        console.print(f"locsync v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log debug details (including the computed differences)",
    ),
):
    """locsync: keep locale JSON files in sync with their source file."""
    setup_logging(verbose)


def _preview(value) -> str:
    text = json.dumps(value, ensure_ascii=False)
    return text if len(text) <= 60 else text[:57] + "..."


def print_changes(changes: ChangeSet) -> None:
    if changes.is_empty:
        console.print("[dim]No differences.[/]")
        return
    table = Table(title=f"Differences ({len(changes)})")
    table.add_column("Kind")
    table.add_column("Path", style="cyan")
    table.add_column("Old", style="dim")
    table.add_column("New")
    for entry in changes:
        style = KIND_STYLES[entry.kind]
        table.add_row(
            f"[{style}]{entry.kind.value}[/]",
            str(entry.path),
            _preview(entry.old_value.to_python()) if entry.old_value is not None else "",
            _preview(entry.new_value.to_python()) if entry.new_value is not None else "",
        )
    console.print(table)


def print_run(result: RunResult, show_failures: bool = True) -> None:
    if not result.documents:
        console.print("[dim]No target documents processed.[/]")
        return
    table = Table(title="Target documents")
    table.add_column("File", style="cyan")
    table.add_column("Locale")
    table.add_column("Status")
    table.add_column("Applied", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Modified")
    for doc in result.documents:
        status = "[green]ok[/]" if doc.succeeded else f"[red]error[/] [dim]{doc.error}[/]"
        failed = doc.count(EntryOutcome.FAILED)
        table.add_row(
            doc.path,
            doc.locale,
            status,
            str(doc.count(EntryOutcome.APPLIED)),
            str(doc.count(EntryOutcome.SKIPPED)),
            f"[red]{failed}[/]" if failed else "0",
            "✓" if doc.modified else "-",
        )
    console.print(table)

    if show_failures:
        for doc in result.documents:
            for entry_result in doc.entries:
                if entry_result.failed:
                    console.print(
                        f"  [red]✗[/] {doc.path} {entry_result.entry.path}: {entry_result.reason}"
                    )


@app.command()
def sync(
    source: Optional[str] = typer.Option(
        None, "--source", "-s",
        help="Source JSON file (SOURCE_JSON_FILE_PATH)",
    ),
    targets: Optional[str] = typer.Option(
        None, "--targets", "-t",
        help="Glob of target locale files (TARGET_JSON_GLOB_PATTERN)",
    ),
    exclude: Optional[str] = typer.Option(
        None, "--exclude", "-x",
        help="Glob of files to leave alone (EXCLUDE_FROM_TARGET_GLOB)",
    ),
    base: Optional[str] = typer.Option(
        None, "--base",
        help="Revision before the change (BASE_COMMIT_SHA)",
    ),
    head: Optional[str] = typer.Option(
        None, "--head",
        help="Revision after the change (HEAD_COMMIT_SHA)",
    ),
    backend: Optional[str] = typer.Option(
        None, "--backend", "-b",
        help="Translation backend: deepl (default) or dummy",
    ),
    free: Optional[bool] = typer.Option(
        None, "--free/--paid",
        help="Use the free or the paid DeepL endpoint (IS_DEEPL_FREE_API)",
    ),
    tags: Optional[str] = typer.Option(
        None, "--tags",
        help="Comma-separated non-splitting tags (DEEPL_NON_SPLITTING_TAGS)",
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w",
        help="Documents processed in parallel (MAX_CONCURRENT_DOCUMENTS)",
    ),
    commit: Optional[bool] = typer.Option(
        None, "--commit/--no-commit",
        help="Commit and push modified files (COMMIT_CHANGES)",
    ),
    branch: Optional[str] = typer.Option(
        None, "--branch",
        help="Branch to commit to (GIT_BRANCH_NAME)",
    ),
    as_json: bool = typer.Option(
        False, "--json",
        help="Print the run result as JSON",
    ),
):
    """Propagate source-file changes into every target locale file."""
    try:
        config = SyncConfig.from_env(
            source_file=source,
            target_glob=targets,
            exclude_glob=exclude,
            base_rev=base,
            head_rev=head,
            translator_backend=backend,
            tier=None if free is None else (Tier.FREE if free else Tier.PAID),
            non_splitting_tags=None if tags is None else parse_tag_list(tags),
            max_workers=workers,
            commit_changes=commit,
            branch=branch,
        )
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {e}", style="bold")
        raise typer.Exit(1)

    try:
        pipeline = SyncPipeline(config)
        result = pipeline.run()
    except (SyncError, ValueError) as e:
        console.print(f"[red]Workflow error:[/] {e}", style="bold")
        raise typer.Exit(1)

    if as_json:
        console.print_json(data=result.to_dict())
    else:
        print_run(result)
        console.print(f"\n[bold]{result.summary()}[/]")
        if result.committed:
            console.print("[green]Committed and pushed translated files.[/]")

    if not result.success:
        raise typer.Exit(1)


@app.command()
def diff(
    before: Path = typer.Argument(..., help="JSON file (old version, or the file to read from git)"),
    after: Optional[Path] = typer.Argument(None, help="New version of the file"),
    base: Optional[str] = typer.Option(None, "--base", help="Old git revision of BEFORE"),
    head: Optional[str] = typer.Option(None, "--head", help="New git revision of BEFORE"),
    as_json: bool = typer.Option(False, "--json", help="Print the differences as JSON"),
):
    """Show the differences between two versions of a JSON file."""
    try:
        if after is not None:
            old, new = FileSnapshotLoader().load(before, after)
        elif base and head:
            old, new = GitRevisionLoader().load(str(before), base, head)
        else:
            console.print("[red]Error:[/] Provide AFTER or both --base and --head", style="bold")
            raise typer.Exit(1)
    except SyncError as e:
        console.print(f"[red]Error:[/] {e}", style="bold")
        raise typer.Exit(1)

    changes = StructuralDiffer().diff(old, new)
    if as_json:
        typer.echo(json.dumps(changes.to_dict(), ensure_ascii=False, indent=2))
    else:
        print_changes(changes)


@app.command()
def keys(
    action: str = typer.Argument(..., help="Action: list, set, delete, status"),
    service: str = typer.Argument("deepl", help="Service name"),
):
    """Manage API keys.

    Examples:
        locsync keys list
        locsync keys set deepl
        locsync keys status deepl
        locsync keys delete deepl
    """
    from locsync.keys import KeyManager

    km = KeyManager()

    if action == "list":
        table = Table(title="API Keys Status")
        table.add_column("Service", style="cyan")
        table.add_column("Status")
        table.add_column("Source", style="yellow")
        table.add_column("Value", style="dim")
        for info in km.list_keys():
            status = "[green]✓ Set[/]" if info.is_set else "[red]✗ Not set[/]"
            table.add_row(info.service, status, info.source, info.masked_value or "-")
        console.print(table)
        console.print("\n[dim]Priority: env > keychain > config file[/]")

    elif action == "set":
        key = typer.prompt(f"API key for {service}", hide_input=True)
        location = km.set_key(service, key.strip())
        console.print(f"[green]Stored {service} key in {location}.[/]")

    elif action == "delete":
        if km.delete_key(service):
            console.print(f"[green]Deleted {service} key.[/]")
        else:
            console.print(f"[yellow]No stored {service} key.[/]")

    elif action == "status":
        info = km.get_key_info(service)
        if info.is_set:
            console.print(f"{service}: [green]set[/] via {info.source} ({info.masked_value})")
        else:
            console.print(f"{service}: [red]not set[/] (export {km.env_var(service)} or run: locsync keys set {service})")

    else:
        console.print(f"[red]Unknown action:[/] {action}. Use list, set, delete or status.")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
