"""CLI for blockstore."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from . import ops
from .block import write_block
from .config import load_store_config
from .constants import BLOCKSTORE_VERSION
from .errors import BlockError
from .multihash import Multihash
from .storage import BlockStore, CacheStore, make_block_store
from .sync import sync as sync_stores
from .utils import format_timestamp, humanize_size


app = typer.Typer(help="""\
Content-addressed block storage. List, inspect, fetch and store
blocks, and synchronize blocks between stores.""")

console = Console()
err_console = Console(stderr=True)


class _Options:
    """Global options shared by all commands."""
    store_uri: Optional[str] = None
    config_path: Optional[Path] = None


_options = _Options()


@app.callback()
def main(
    store: Optional[str] = typer.Option(None, "--store", "-s", help="Store URI (overrides config), e.g. file:./blocks"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to blockstore.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging and store selection."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _options.store_uri = store
    _options.config_path = config


def _fail(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def _open_store() -> BlockStore:
    """Build the store selected by --store or the configuration."""
    try:
        config = load_store_config(_options.config_path)
        if _options.store_uri:
            config = config.model_copy(update={"uri": _options.store_uri})
        return config.build()
    except (BlockError, NotImplementedError, FileNotFoundError, ValidationError) as e:
        _fail(str(e))


def _parse_id(text: str) -> Multihash:
    try:
        return Multihash.from_hex(text)
    except BlockError as e:
        _fail(str(e))


@app.command("list")
def list_cmd(
    after: Optional[str] = typer.Option(None, "--after", help="Only list ids after this hex cursor"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of blocks to list"),
    algorithm: Optional[str] = typer.Option(None, "--algorithm", "-a", help="Only list blocks using this algorithm"),
):
    """List stored blocks in id order."""
    store = _open_store()
    try:
        stats = list(ops.list_blocks(store, after=after, limit=limit, algorithm=algorithm))
    except BlockError as e:
        _fail(str(e))

    if not stats:
        console.print("[dim]No blocks stored[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Size", justify="right")
    table.add_column("Stored", style="dim")
    for stat in stats:
        table.add_row(stat.id.hex, humanize_size(stat.size), format_timestamp(stat.stored_at))
    console.print(table)
    console.print(f"[dim]{len(stats)} blocks, {humanize_size(sum(s.size for s in stats))}[/dim]")


@app.command()
def stat(block_id: str = typer.Argument(..., help="Block id (hex multihash)")):
    """Show stored stats for a block."""
    store = _open_store()
    id = _parse_id(block_id)
    info = ops.stat(store, id)
    if info is None:
        _fail(f"Block not found: {block_id}")
    console.print(f"[bold]id[/bold]         {info.id.hex}")
    console.print(f"[bold]algorithm[/bold]  {info.id.algorithm.value}")
    console.print(f"[bold]size[/bold]       {info.size} ({humanize_size(info.size)})")
    console.print(f"[bold]stored at[/bold]  {format_timestamp(info.stored_at)}")
    if info.source:
        console.print(f"[bold]source[/bold]     {info.source}")


@app.command()
def get(
    block_id: str = typer.Argument(..., help="Block id (hex multihash)"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write content to this file instead of stdout"),
):
    """Write a block's content to stdout or a file."""
    store = _open_store()
    id = _parse_id(block_id)
    try:
        block = ops.get(store, id)
        if block is None:
            _fail(f"Block not found: {block_id}")
        if out is not None:
            with out.open("wb") as sink:
                written = write_block(block, sink)
            err_console.print(f"[green]✓[/green] Wrote {humanize_size(written)} to {out}")
        else:
            write_block(block, sys.stdout.buffer)
            sys.stdout.buffer.flush()
    except BlockError as e:
        _fail(str(e))


@app.command()
def put(files: List[Path] = typer.Argument(..., help="Files to store")):
    """Store files as blocks and print their ids."""
    store = _open_store()
    for path in files:
        if not path.is_file():
            _fail(f"Not a file: {path}")
        try:
            block = ops.store_source(store, path)
        except BlockError as e:
            _fail(f"{path}: {e}")
        if block is None:
            err_console.print(f"[yellow]Skipped empty file:[/yellow] {path}")
            continue
        console.print(f"{block.id.hex}  {humanize_size(block.size):>10}  {path}")


@app.command("rm")
def remove(block_ids: List[str] = typer.Argument(..., help="Block ids to delete")):
    """Delete blocks from the store."""
    store = _open_store()
    ids = [_parse_id(text) for text in block_ids]
    for id in ids:
        if ops.delete(store, id):
            console.print(f"[red]-[/red] {id.hex}")
        else:
            console.print(f"[dim]  {id.hex} (not stored)[/dim]")


@app.command()
def sync(
    source: str = typer.Argument(..., help="Source store URI"),
    dest: str = typer.Argument(..., help="Destination store URI"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be copied"),
):
    """Copy blocks that are in SOURCE but not in DEST."""
    try:
        source_store = make_block_store(source)
        dest_store = make_block_store(dest)
        summary = sync_stores(source_store, dest_store, dry_run=dry_run)
    except (BlockError, NotImplementedError) as e:
        _fail(str(e))

    verb = "Would copy" if dry_run else "Copied"
    console.print(f"[green]✓[/green] {verb} {summary.count} blocks ({humanize_size(summary.size)})")


@app.command()
def reap(
    target: Optional[int] = typer.Argument(None, help="Target cache size in bytes (default: the size limit)"),
):
    """Evict cached blocks until the cache is at most TARGET bytes."""
    store = _open_store()
    if not isinstance(store, CacheStore):
        _fail("The configured store has no cache; add a 'cache' section to blockstore.yaml")
    try:
        freed = store.reap(target)
    except BlockError as e:
        _fail(str(e))
    console.print(
        f"[green]✓[/green] Freed {humanize_size(freed)}; "
        f"cache holds {humanize_size(store.total_size)} of {humanize_size(store.size_limit)}"
    )


@app.command()
def version():
    """Show the blockstore version."""
    console.print(f"blockstore {BLOCKSTORE_VERSION}")


if __name__ == "__main__":
    app()
