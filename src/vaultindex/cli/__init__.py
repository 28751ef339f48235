"""
CLI for vaultindex.

Provides a command-line interface for indexing and searching a Markdown vault.
"""

import asyncio
import logging
import signal
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.table import Table

from vaultindex.core import (
    CancellationSignal,
    VaultIndexConfig,
    folder_paths_to_include_patterns,
    include_patterns_to_folder_paths,
    load_config,
)
from vaultindex.infrastructure import SearchScope
from vaultindex.services import (
    IndexingCancelledError,
    IndexingResult,
    IndexProgress,
    IndexUpdateOptions,
    ServicesContainer,
    create_services,
)

# Initialize Rich Console
console = Console()

app = typer.Typer(
    name="vaultindex",
    help="Incremental semantic index for a Markdown vault",
    add_completion=False,
)


@dataclass
class CLIState:
    vault: Path
    config_path: Optional[Path]


def configure_logging(config: VaultIndexConfig) -> None:
    """Route library logging through rich at the configured level."""
    level = getattr(logging, config.logging.level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    vault: Path = typer.Option(Path("."), "--vault", "-V", help="Vault root directory"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML or JSON configuration file"
    ),
):
    """Index and search the notes of a vault."""
    load_dotenv()
    ctx.obj = CLIState(vault=vault, config_path=config_path)


def _load(ctx: typer.Context) -> tuple[VaultIndexConfig, Path]:
    state: CLIState = ctx.obj
    vault = state.vault
    if not vault.is_dir():
        console.print(f"[bold red]Error:[/bold red] Vault directory not found: {vault}")
        raise typer.Exit(1)
    config = load_config(state.config_path)
    configure_logging(config)
    return config, vault


class RichProgressObserver:
    """Renders IndexProgress snapshots on a rich Progress display."""

    def __init__(self, progress: Progress):
        self._progress = progress
        self._files = progress.add_task("Scanning vault...", total=None)
        self._chunks = progress.add_task("Embedding", total=None)

    def on_progress(self, snapshot: IndexProgress) -> None:
        description = snapshot.current_file or "Scanning vault..."
        self._progress.update(
            self._files,
            completed=snapshot.completed_files,
            total=snapshot.total_files or None,
            description=f"Files  {description}",
        )
        label = "Embedding"
        if snapshot.waiting_for_rate_limit:
            label = "[yellow]Waiting for rate limit...[/yellow]"
        self._progress.update(
            self._chunks,
            completed=snapshot.completed_chunks,
            total=snapshot.total_chunks or None,
            description=label,
        )


def _print_result(result: IndexingResult, title: str) -> None:
    summary = Table.grid(padding=1)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Total Files:", str(result.total_files))
    summary.add_row("New Files:", str(result.new_files))
    summary.add_row("Updated Files:", str(result.updated_files))
    summary.add_row("Removed Files:", str(result.removed_files))
    summary.add_row("Total Chunks:", str(result.total_chunks))
    summary.add_row("Persisted Chunks:", str(result.persisted_chunks))
    summary.add_row("Duration:", f"{result.duration_seconds:.2f}s")
    if result.failures:
        summary.add_row("Failed:", f"[red]{result.failed_count}[/red]")

    if result.skipped:
        title = f"{title} (nothing to embed)"
    console.print(
        Panel(
            summary,
            title=f"[bold green]{title}[/bold green]",
            border_style="green",
            expand=False,
        )
    )

    if result.failures:
        console.print("\n[bold red]Failures:[/bold red]")
        console.print(result.failure_summary(max_details=5))


def _install_cancel_handler(cancel: CancellationSignal) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel)
    except (NotImplementedError, RuntimeError):
        # Not supported on this platform; Ctrl-C falls back to KeyboardInterrupt.
        pass


async def _run_update(
    container: ServicesContainer, options: IndexUpdateOptions
) -> IndexingResult:
    cancel = CancellationSignal()
    _install_cancel_handler(cancel)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            observer = RichProgressObserver(progress)
            return await container.indexing_service.update_index(
                options,
                on_progress=observer,
                cancel=cancel,
            )
    finally:
        await container.close()


def _update_command(
    ctx: typer.Context,
    reindex_all: bool,
    title: str,
    folders: Optional[list[str]] = None,
) -> None:
    config, vault = _load(ctx)
    try:
        container = create_services(vault, config=config)
        options = container.update_options(reindex_all=reindex_all)
        if folders:
            options = replace(
                options, include_patterns=folder_paths_to_include_patterns(folders)
            )
            scope = include_patterns_to_folder_paths(options.include_patterns)
            names = ", ".join(folder or "(vault root)" for folder in scope)
            console.print(f"[dim]Folders: {names}[/dim]")
        result = asyncio.run(_run_update(container, options))
        _print_result(result, title)
    except IndexingCancelledError:
        console.print("[yellow]Indexing cancelled; completed batches were saved.[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def index(ctx: typer.Context):
    """Rebuild the whole index for the configured embedding model."""
    console.print("[bold blue]Rebuilding index[/bold blue]...")
    _update_command(ctx, reindex_all=True, title="Indexing Complete")


@app.command()
def update(
    ctx: typer.Context,
    folders: Optional[list[str]] = typer.Option(
        None,
        "--folder",
        "-d",
        help="Only index notes under this folder. Can be given multiple times.",
    ),
):
    """
    Index new and modified notes and drop deleted ones.

    With --folder only notes under the given folders are (re)embedded;
    deleted notes are dropped from the whole vault.
    """
    console.print("[bold blue]Updating index[/bold blue]...")
    _update_command(ctx, reindex_all=False, title="Update Complete", folders=folders)


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Search query"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of results"),
    min_similarity: Optional[float] = typer.Option(
        None, "--min-similarity", "-s", help="Minimum cosine similarity"
    ),
    files: Optional[list[str]] = typer.Option(
        None, "--file", "-f", help="Restrict to a note path. Can be given multiple times."
    ),
    folders: Optional[list[str]] = typer.Option(
        None, "--folder", "-d", help="Restrict to a folder. Can be given multiple times."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show full chunk content"),
):
    """Search the indexed notes."""
    config, vault = _load(ctx)

    async def _search(container: ServicesContainer):
        try:
            options = container.search_options(limit=limit)
            if min_similarity is not None:
                options = replace(options, min_similarity=min_similarity)
            if files or folders:
                options = replace(options, scope=SearchScope.of(files or (), folders or ()))
            return await container.indexing_service.search_text(query, options)
        finally:
            await container.close()

    try:
        container = create_services(vault, config=config)
        matches = asyncio.run(_search(container))
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not matches:
        console.print("[yellow]No results found.[/yellow]")
        return

    for i, match in enumerate(matches, 1):
        header = (
            f"[bold cyan]{i}. {match.path}[/bold cyan]"
            f"[dim]:{match.start_line}-{match.end_line}[/dim] "
            f"[green]({match.similarity:.3f})[/green]"
        )
        console.print(header)
        content = match.content if verbose else "\n".join(match.content.splitlines()[:3])
        console.print(content, markup=False)
        console.print()


@app.command()
def clear(
    ctx: typer.Context,
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="Embedding model to clear (default: configured model)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete every vector of an embedding model."""
    config, vault = _load(ctx)
    target = model or config.embedding.model
    if not yes and not typer.confirm(f"Delete all vectors for model '{target}'?"):
        raise typer.Exit(0)

    async def _clear(container: ServicesContainer) -> None:
        try:
            await container.indexing_service.clear(target)
        finally:
            await container.close()

    try:
        container = create_services(vault, config=config)
        asyncio.run(_clear(container))
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(f"[bold green]Cleared[/bold green] vectors for model '{target}'")


@app.command()
def stats(ctx: typer.Context):
    """Show the number of stored vectors per embedding model."""
    config, vault = _load(ctx)

    async def _stats(container: ServicesContainer):
        try:
            return await container.indexing_service.get_stats()
        finally:
            await container.close()

    try:
        container = create_services(vault, config=config)
        rows = asyncio.run(_stats(container))
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="Index Statistics")
    table.add_column("Model", style="cyan")
    table.add_column("Dimension", justify="right")
    table.add_column("Vectors", justify="right")
    for row in rows:
        marker = " *" if row.model == config.embedding.model else ""
        table.add_row(f"{row.model}{marker}", str(row.dimension or "-"), str(row.row_count))
    if not rows:
        console.print("[yellow]The index is empty.[/yellow]")
        return
    console.print(table)


@app.command()
def watch(
    ctx: typer.Context,
    interval_hours: Optional[float] = typer.Option(
        None, "--interval-hours", help="Minimum hours between automatic updates"
    ),
    initial: bool = typer.Option(
        True, "--initial/--no-initial", help="Run an incremental update before watching"
    ),
):
    """Watch the vault and update the index when notes change."""
    config, vault = _load(ctx)
    config.auto_update.enabled = True
    if interval_hours is not None:
        config.auto_update.interval_hours = interval_hours

    async def _watch(container: ServicesContainer) -> None:
        service = container.create_auto_update()
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, stop.set)
        except (NotImplementedError, RuntimeError):
            pass
        try:
            if initial:
                result = await service.run_update()
                if result is not None:
                    _print_result(result, "Update Complete")
            await service.start(container.vault_path)
            console.print(
                f"[bold blue]Watching[/bold blue] {container.vault_path} "
                "[dim](Ctrl-C to stop)[/dim]"
            )
            await stop.wait()
        finally:
            await service.stop()
            await container.close()

    try:
        container = create_services(vault, config=config)
        asyncio.run(_watch(container))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print("[bold]Stopped watching.[/bold]")


if __name__ == "__main__":
    app()
