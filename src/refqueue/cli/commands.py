"""Queue commands: local replica setup, put/pop/ls/rm, and remote sync."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from refqueue.config import QueueConfig
from refqueue.core.exceptions import RefQueueError
from refqueue.core.git import get_git_version, is_git_available
from refqueue.core.repository import Repository
from refqueue.queue import RefQueue

console = Console()
err_console = Console(stderr=True)

EXIT_EMPTY = 2


def fail(exc: Exception) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {exc}")
    return typer.Exit(1)


def _queue(ctx: typer.Context) -> RefQueue:
    queue = ctx.obj
    if not isinstance(queue, RefQueue):
        raise RuntimeError("queue context not initialized")
    return queue


def init(ctx: typer.Context) -> None:
    """Create an empty bare replica."""
    queue = _queue(ctx)
    try:
        queue.repo.init(bare=True)
    except RefQueueError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Replica ready at {queue.repo.path}")


def join(
    ctx: typer.Context,
    remote: Optional[str] = typer.Argument(None, help="Remote URL or path (defaults to configured remote)"),
    save: bool = typer.Option(False, "--save", help="Store the remote in the config file"),
) -> None:
    """Bootstrap the replica from a remote (shallow) and fetch the queue."""
    queue = _queue(ctx)
    if remote:
        queue.remote = remote
    try:
        queue.join()
    except RefQueueError as e:
        raise fail(e)
    if save and queue.remote:
        QueueConfig().set_remote(queue.remote)
    console.print(f"[green]✓[/green] Joined {queue.remote} ({queue.size()} item(s) queued)")


def put(
    ctx: typer.Context,
    data: Optional[str] = typer.Argument(None, help="Payload; read from stdin when omitted"),
    publish: bool = typer.Option(False, "--publish", help="Push the new item to the remote"),
) -> None:
    """Enqueue a payload."""
    queue = _queue(ctx)
    payload = data.encode("utf-8") if data is not None else sys.stdin.buffer.read()
    try:
        item = queue.enqueue(payload)
        if publish:
            queue.publish(prune=False)
    except RefQueueError as e:
        raise fail(e)
    typer.echo(item.name)


def pop(
    ctx: typer.Context,
    publish: bool = typer.Option(False, "--publish", help="Push the claim to the remote"),
) -> None:
    """Claim the oldest item and write its payload to stdout."""
    queue = _queue(ctx)
    try:
        item = queue.pop()
        if item is None:
            err_console.print("[yellow]Queue is empty[/yellow]")
            raise typer.Exit(EXIT_EMPTY)
        if publish:
            queue.publish()
    except RefQueueError as e:
        raise fail(e)
    typer.echo(item.payload, nl=False)


def ls(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List queued items oldest first."""
    queue = _queue(ctx)
    try:
        refs = queue.items()
    except RefQueueError as e:
        raise fail(e)

    if json_output:
        typer.echo(json.dumps([ref.to_dict() for ref in refs], indent=2))
        return

    table = Table(title=f"Queue {queue.namespace}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Object", style="magenta")
    table.add_column("Created", style="green")
    for index, ref in enumerate(refs):
        table.add_row(
            str(index),
            ref.name[len(queue.namespace):],
            ref.target[:12],
            ref.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


def rm(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Item name, with or without the namespace prefix"),
) -> None:
    """Delete an item without reading it."""
    queue = _queue(ctx)
    full_name = name if name.startswith("refs/") else f"{queue.namespace}{name}"
    try:
        queue.delete(full_name)
    except (RefQueueError, ValueError) as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Removed {full_name}")


def pull(
    ctx: typer.Context,
    prune: bool = typer.Option(True, "--prune/--no-prune", help="Drop local items that are gone remotely"),
) -> None:
    """Fetch the queue namespace from the remote."""
    queue = _queue(ctx)
    try:
        queue.pull(prune=prune)
    except RefQueueError as e:
        raise fail(e)
    console.print(f"[green]✓[/green] Pulled {queue.pattern} from {queue.remote}")


def push(
    ctx: typer.Context,
    prune: bool = typer.Option(True, "--prune/--no-prune", help="Delete remote items claimed locally"),
) -> None:
    """Push the queue namespace to the remote."""
    queue = _queue(ctx)
    try:
        report = queue.publish(prune=prune)
    except RefQueueError as e:
        raise fail(e)
    console.print(
        f"[green]✓[/green] Pushed {queue.pattern} to {queue.remote}: "
        f"{len(report.updated)} updated, {len(report.deleted)} pruned"
    )
    for status in report.rejected_deletions:
        console.print(f"[yellow]⚠[/yellow] Remote kept {status.destination}: {status.summary}")


def config(
    set_remote: Optional[str] = typer.Option(None, "--set-remote", help="Remote URL or path"),
    set_namespace: Optional[str] = typer.Option(None, "--set-namespace", help="Namespace, e.g. refs/queue/"),
    set_repo: Optional[Path] = typer.Option(None, "--set-repo", help="Local replica path"),
) -> None:
    """Show or update the configuration file."""
    cfg = QueueConfig()
    try:
        if set_remote is not None:
            cfg.set_remote(set_remote)
        if set_namespace is not None:
            cfg.set_namespace(set_namespace)
        if set_repo is not None:
            cfg.set_repo_path(set_repo)
        values = cfg.to_dict()
    except RefQueueError as e:
        raise fail(e)

    table = Table(title="refqueue configuration", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in values.items():
        table.add_row(key, value if value is not None else "[dim]unset[/dim]")
    console.print(table)


def doctor(ctx: typer.Context) -> None:
    """Check that git is usable and the replica exists."""
    queue = _queue(ctx)
    healthy = True

    if is_git_available():
        console.print(f"[green]✓[/green] git {get_git_version()}")
    else:
        console.print("[red]✗[/red] git executable not found on PATH")
        healthy = False

    if healthy and queue.repo.is_repo():
        console.print(f"[green]✓[/green] Replica {queue.repo.path}")
    else:
        console.print(f"[yellow]⚠[/yellow] No replica at {queue.repo.path} (run init or join)")
        healthy = False

    console.print(f"  Namespace: {queue.namespace}")
    console.print(f"  Remote:    {queue.remote or '[dim]unset[/dim]'}")
    if not healthy:
        raise typer.Exit(1)


def build_queue(
    repo: Optional[Path],
    namespace: Optional[str],
    remote: Optional[str],
) -> RefQueue:
    """Combine command-line overrides with the configuration file."""
    cfg = QueueConfig()
    return RefQueue(
        Repository(repo or cfg.get_repo_path()),
        namespace=namespace or cfg.get_namespace(),
        remote=remote or cfg.get_remote(),
    )
