"""refqueue command-line interface."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from refqueue.core.exceptions import RefQueueError

from . import commands

app = typer.Typer(
    name="refqueue",
    help="Distributed FIFO queue stored as git refs.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def callback(
    ctx: typer.Context,
    repo: Optional[Path] = typer.Option(None, "--repo", "-r", help="Local replica path"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Ref namespace, e.g. refs/queue/"),
    remote: Optional[str] = typer.Option(None, "--remote", help="Remote URL or path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log git invocations"),
) -> None:
    """Resolve the queue the subcommand operates on."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    if ctx.invoked_subcommand == "config":
        return
    try:
        ctx.obj = commands.build_queue(repo, namespace, remote)
    except RefQueueError as e:
        raise commands.fail(e)


app.command()(commands.init)
app.command()(commands.join)
app.command()(commands.put)
app.command()(commands.pop)
app.command()(commands.ls)
app.command()(commands.rm)
app.command()(commands.pull)
app.command()(commands.push)
app.command()(commands.config)
app.command()(commands.doctor)


def main() -> None:
    app()


__all__ = ["app", "main"]
