"""CLI entry point for vcgot."""

import asyncio
import functools
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click
import structlog

from vcgot.app import build_service, configure_logging, load_config
from vcgot.exceptions import ConfigError, VcsError
from vcgot.got import formatter
from vcgot.got.service import GotService

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, None]])


def async_command(f: F) -> Callable[..., None]:
    """Run an async click command with asyncio.run(), mapping VcsError to a CLI error."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            asyncio.run(f(*args, **kwargs))
        except VcsError as e:
            logger.debug("cli_command_failed", command=f.__name__, error=str(e))
            raise click.ClickException(str(e).rstrip("\n")) from e

    return wrapper


class ConsoleSink:
    """Renders streamed remote output, redrawing the current progress line."""

    def __init__(self) -> None:
        self._width = 0

    def line(self, text: str) -> None:
        click.echo("\r" + text.ljust(self._width))
        self._width = 0

    def progress(self, text: str) -> None:
        if not text and not self._width:
            return
        click.echo("\r" + text.ljust(self._width), nl=False)
        self._width = len(text)


def _service(ctx: click.Context) -> GotService:
    return ctx.obj["service"]


@click.group()
@click.option(
    "-C",
    "--directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    help="Run as if started in this directory.",
)
@click.pass_context
def cli(ctx: click.Context, directory: Path) -> None:
    """Query and change got work trees."""
    try:
        config = load_config()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    configure_logging(config)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["cwd"] = directory.absolute()
    ctx.obj["service"] = build_service(config)


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def status(ctx: click.Context, paths: tuple[Path, ...]) -> None:
    """Show the status of files in the work tree."""
    service = _service(ctx)
    cwd = ctx.obj["cwd"]
    if len(paths) == 1 and (cwd / paths[0]).is_file():
        file_status = await service.file_status(cwd / paths[0])
        click.echo(formatter.format_file_status(str(paths[0]), file_status))
        return
    entries = await service.dir_status(cwd, paths)
    click.echo(formatter.format_status(entries))


@cli.command()
@click.option("-l", "--limit", type=int, default=None, help="Show at most N commits.")
@click.option("-c", "--start", default=None, help="Start from this commit.")
@click.option("-x", "--stop", default=None, help="Stop after this commit.")
@click.option("-S", "--search", default=None, help="Only commits matching a pattern.")
@click.option("-R", "--reverse", is_flag=True, help="Oldest commits first.")
@click.option("-p", "--patch", is_flag=True, help="Include diffs.")
@click.option("--raw", is_flag=True, help="Print the full log text.")
@click.argument("path", required=False, type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def log(
    ctx: click.Context,
    limit: int | None,
    start: str | None,
    stop: str | None,
    search: str | None,
    reverse: bool,
    patch: bool,
    raw: bool,
    path: Path | None,
) -> None:
    """Show commit history."""
    result = await _service(ctx).log(
        ctx.obj["cwd"],
        path,
        limit=limit,
        start=start,
        stop=stop,
        search=search,
        reverse=reverse,
        include_diff=patch,
    )
    if raw or patch:
        click.echo(result.text, nl=False)
    else:
        click.echo(formatter.format_log(result.entries))


@cli.command()
@click.option("-s", "--staged", is_flag=True, help="Show staged changes.")
@click.option("-c", "--commit", "commits", multiple=True, help="Commit(s) to compare.")
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def diff(
    ctx: click.Context, staged: bool, commits: tuple[str, ...], paths: tuple[Path, ...]
) -> None:
    """Show changes."""
    if len(commits) > 2:
        raise click.UsageError("At most two commits can be compared.")
    rev1, rev2 = (*commits, None, None)[:2]
    text = await _service(ctx).diff(
        ctx.obj["cwd"], paths, rev1=rev1, rev2=rev2, staged=staged
    )
    click.echo(formatter.format_diff(text))


@cli.command()
@click.option("-c", "--commit", default=None, help="Annotate as of this commit.")
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def blame(ctx: click.Context, commit: str | None, path: Path) -> None:
    """Show which commit last changed each line of a file."""
    lines = await _service(ctx).blame(ctx.obj["cwd"] / path, commit)
    click.echo(formatter.format_blame(lines))


@cli.command()
@click.pass_context
@async_command
async def branches(ctx: click.Context) -> None:
    """List branches."""
    click.echo(formatter.format_branches(await _service(ctx).branches(ctx.obj["cwd"])))


@cli.command()
@click.pass_context
@async_command
async def refs(ctx: click.Context) -> None:
    """List branch, remote and tag names."""
    names = await _service(ctx).references(ctx.obj["cwd"])
    click.echo(formatter.format_references(names))


@cli.command()
@click.pass_context
@async_command
async def info(ctx: click.Context) -> None:
    """Show work tree information."""
    click.echo(formatter.format_info(await _service(ctx).info(ctx.obj["cwd"])))


@cli.command()
@click.argument("remote", default="origin")
@click.pass_context
@async_command
async def url(ctx: click.Context, remote: str) -> None:
    """Print the URL of a remote."""
    found = await _service(ctx).repository_url(ctx.obj["cwd"], remote)
    if found is None:
        raise click.ClickException(f"No URL configured for remote {remote!r}")
    click.echo(found)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def add(ctx: click.Context, paths: tuple[Path, ...]) -> None:
    """Schedule files for addition."""
    result = await _service(ctx).add(ctx.obj["cwd"], paths)
    click.echo(formatter.format_result(result))


@cli.command()
@click.option("-k", "--keep-local", is_flag=True, help="Keep the on-disk files.")
@click.option("-f", "--force", is_flag=True, help="Remove modified files too.")
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def remove(
    ctx: click.Context, keep_local: bool, force: bool, paths: tuple[Path, ...]
) -> None:
    """Schedule files for removal."""
    result = await _service(ctx).remove(
        ctx.obj["cwd"], paths, keep_local=keep_local, force=force
    )
    click.echo(formatter.format_result(result))


@cli.command()
@click.option("-R", "--recursive", is_flag=True, help="Revert directories recursively.")
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def revert(ctx: click.Context, recursive: bool, paths: tuple[Path, ...]) -> None:
    """Discard local changes."""
    result = await _service(ctx).revert(ctx.obj["cwd"], paths, recursive=recursive)
    click.echo(formatter.format_result(result))


@cli.command()
@click.option("-m", "--message", required=True, help="Commit message.")
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.pass_context
@async_command
async def commit(ctx: click.Context, message: str, paths: tuple[Path, ...]) -> None:
    """Commit changes."""
    commit_id = await _service(ctx).commit(ctx.obj["cwd"], message, paths)
    click.echo(f"Created commit {commit_id}" if commit_id else "Committed")


@cli.command()
@click.option("-c", "--commit", default=None, help="Update to this commit.")
@click.option("-b", "--branch", default=None, help="Switch to this branch.")
@click.pass_context
@async_command
async def update(ctx: click.Context, commit: str | None, branch: str | None) -> None:
    """Bring the work tree up to date."""
    new_id = await _service(ctx).update(ctx.obj["cwd"], rev=commit, branch=branch)
    click.echo(f"Updated to {new_id}" if new_id else "Work tree is up to date")


@cli.command()
@click.argument("remote", required=False)
@click.pass_context
@async_command
async def fetch(ctx: click.Context, remote: str | None) -> None:
    """Fetch changes from a remote repository."""
    operation = await _service(ctx).start_fetch(
        ctx.obj["cwd"], remote, sink=ConsoleSink()
    )
    await operation.wait()


@cli.command()
@click.option("-b", "--branch", default=None, help="Branch to send.")
@click.argument("remote", required=False)
@click.pass_context
@async_command
async def send(ctx: click.Context, branch: str | None, remote: str | None) -> None:
    """Send changes to a remote repository."""
    operation = await _service(ctx).start_send(
        ctx.obj["cwd"], remote, branch=branch, sink=ConsoleSink()
    )
    await operation.wait()


def run() -> None:
    cli(obj={})
