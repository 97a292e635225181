"""Async front-end for got work trees."""

import re
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import structlog

from vcgot.core.config import VcGotConfig
from vcgot.core.events import REMOTE_STARTED, Event, EventBus
from vcgot.exceptions import AmbiguousStatusError, UnsupportedOperationError
from vcgot.got import parser, repo_config
from vcgot.got.invoker import CommandInvoker, option, switch
from vcgot.got.models import (
    AnnotationLine,
    BranchEntry,
    CommandResult,
    FileStatus,
    LogResult,
    RemoteResult,
    StatusEntry,
    WorktreeInfo,
)
from vcgot.got.streaming import OutputSink, RemoteOperation
from vcgot.got.version import FlagStrategy, parse_version_output

logger = structlog.get_logger()

_AUTHOR_HEADER_RE = re.compile(r"^Author:\s*(?P<author>.*\S)\s*$")


def split_author_header(message: str) -> tuple[str | None, str]:
    """Strip leading ``Author:`` pseudo-headers from a commit message.

    Returns the last author override found (or None) and the remaining
    message, which is otherwise left untouched.
    """
    author = None
    lines = message.split("\n")
    i = 0
    while i < len(lines) and (m := _AUTHOR_HEADER_RE.match(lines[i])):
        author = m.group("author")
        i += 1
    if author is None:
        return None, message
    if i < len(lines) and not lines[i].strip():
        i += 1
    return author, "\n".join(lines[i:])


class GotService:
    """One session against the got executable.

    The tool version, and the flags that depend on it, are queried once and
    cached for the lifetime of the service.
    """

    def __init__(
        self,
        config: VcGotConfig,
        *,
        invoker: CommandInvoker | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._config = config
        self._event_bus = event_bus
        self._invoker = invoker or CommandInvoker(config, event_bus)
        self._version: str | None = None
        self._flags: FlagStrategy | None = None

    @property
    def invoker(self) -> CommandInvoker:
        return self._invoker

    # -- session --------------------------------------------------------------

    async def version(self) -> str:
        """Return the version reported by ``got -V``, querying it at most once."""
        if self._version is None:
            result = await self._invoker.run_unscoped("version", "-V")
            self._version = parse_version_output(result.stdout)
            logger.debug("got_version", version=self._version)
        return self._version

    async def flags(self) -> FlagStrategy:
        if self._flags is None:
            self._flags = FlagStrategy(await self.version())
        return self._flags

    def root(self, path: Path) -> Path:
        return self._invoker.root_for(path)

    # -- state queries --------------------------------------------------------

    async def info(self, cwd: Path) -> WorktreeInfo:
        result = await self._invoker.run("info", cwd=cwd)
        return parser.parse_info(result.stdout)

    async def working_revision(self, cwd: Path) -> str:
        return (await self.info(cwd)).base_commit

    async def current_branch(self, cwd: Path) -> str:
        return (await self.info(cwd)).branch

    async def file_status(self, path: Path) -> FileStatus:
        """Status of a single file.

        A file got does not report is either up to date or ignored. A second
        pass that includes ignored files settles it: a file listed there as
        unregistered is ignored, anything else is up to date.
        """
        path = path.expanduser().absolute()
        try:
            return await self._reported_status(path)
        except AmbiguousStatusError:
            return await self._resolve_unreported(path)

    async def _reported_status(self, path: Path) -> FileStatus:
        result = await self._invoker.run("status", cwd=path.parent, paths=[path])
        for entry in parser.parse_status(result.stdout):
            return entry.status
        raise AmbiguousStatusError(path)

    async def _resolve_unreported(self, path: Path) -> FileStatus:
        result = await self._invoker.run(
            "status", ["-I"], cwd=path.parent, paths=[path]
        )
        for entry in parser.parse_status(result.stdout):
            if entry.status is FileStatus.UNREGISTERED:
                return FileStatus.IGNORED
        return FileStatus.UP_TO_DATE

    async def dir_status(
        self, cwd: Path, paths: Sequence[Path | str] = ()
    ) -> Iterator[StatusEntry]:
        """Status entries for *paths* (or the whole of *cwd*), in got's order.

        Paths in the entries are relative to *cwd*.
        """
        cwd = cwd.expanduser().absolute()
        root, _ = self._invoker.locate(cwd, paths)
        result = await self._invoker.run("status", cwd=cwd, paths=paths or [cwd])
        return parser.parse_status(result.stdout, root=root, cwd=cwd)

    async def log(
        self,
        cwd: Path,
        path: Path | str | None = None,
        *,
        limit: int | None = None,
        start: str | None = None,
        stop: str | None = None,
        search: str | None = None,
        reverse: bool = False,
        include_diff: bool = False,
    ) -> LogResult:
        search_flag = (await self.flags()).log_search if search else ""
        result = await self._invoker.run(
            "log",
            option("-l", limit),
            option("-c", start),
            option("-x", stop),
            option(search_flag, search),
            switch("-R", reverse),
            switch("-p", include_diff),
            cwd=cwd,
            paths=[path] if path else (),
        )
        return parser.parse_log(result.stdout, limit=limit or None)

    async def log_outgoing(self, cwd: Path, remote: str = "origin") -> LogResult:
        """Commits on the current branch that the remote branch lacks."""
        branch = await self.current_branch(cwd)
        remote_branch = f"{remote}/{branch}"
        log = await self.log(cwd, start=branch, stop=f"refs/remotes/{remote_branch}")
        return _drop_stop_commit(log, remote_branch)

    async def log_incoming(self, cwd: Path, remote: str = "origin") -> LogResult:
        """Commits on the remote branch that the current branch lacks."""
        branch = await self.current_branch(cwd)
        log = await self.log(
            cwd, start=f"refs/remotes/{remote}/{branch}", stop=branch
        )
        return _drop_stop_commit(log, branch)

    async def previous_revision(self, path: Path, rev: str) -> str | None:
        log = await self.log(path.parent, path, limit=2, start=rev)
        if len(log.entries) < 2:
            return None
        return log.entries[1].id.id

    async def diff(
        self,
        cwd: Path,
        paths: Sequence[Path | str] = (),
        *,
        rev1: str | None = None,
        rev2: str | None = None,
        staged: bool = False,
    ) -> str:
        result = await self._invoker.run(
            "diff",
            switch("-s", staged),
            option("-c", rev1),
            option("-c", rev2),
            self._config.diff_switches,
            cwd=cwd,
            paths=paths,
        )
        return result.stdout

    async def cat(self, path: Path, rev: str) -> str:
        result = await self._invoker.run(
            "cat", option("-c", rev), cwd=path.parent, paths=[path]
        )
        return result.stdout

    async def blame(
        self, path: Path, rev: str | None = None
    ) -> Iterator[AnnotationLine]:
        result = await self._invoker.run(
            "blame", option("-c", rev), cwd=path.parent, paths=[path]
        )
        return parser.parse_blame(result.stdout)

    async def branches(self, cwd: Path) -> list[BranchEntry]:
        result = await self._invoker.run("branch", ["-l"], cwd=cwd)
        return parser.parse_branches(result.stdout)

    async def references(self, cwd: Path) -> list[str]:
        result = await self._invoker.run("ref", ["-l"], cwd=cwd)
        return parser.parse_references(result.stdout)

    async def repository_url(self, cwd: Path, remote: str = "origin") -> str | None:
        info = await self.info(cwd)
        if info.repository is None:
            return None
        return repo_config.remote_url(info.repository, remote)

    # -- mutations ------------------------------------------------------------

    async def add(self, cwd: Path, paths: Sequence[Path | str]) -> CommandResult:
        _require_paths(paths)
        return await self._invoker.run("add", cwd=cwd, paths=paths)

    async def remove(
        self,
        cwd: Path,
        paths: Sequence[Path | str],
        *,
        keep_local: bool = False,
        force: bool = False,
    ) -> CommandResult:
        _require_paths(paths)
        return await self._invoker.run(
            "remove",
            switch("-k", keep_local),
            switch("-f", force),
            cwd=cwd,
            paths=paths,
        )

    async def revert(
        self, cwd: Path, paths: Sequence[Path | str], *, recursive: bool = False
    ) -> CommandResult:
        _require_paths(paths)
        return await self._invoker.run(
            "revert", switch("-R", recursive), cwd=cwd, paths=paths
        )

    async def stage(self, cwd: Path, paths: Sequence[Path | str]) -> CommandResult:
        _require_paths(paths)
        return await self._invoker.run("stage", cwd=cwd, paths=paths)

    async def unstage(self, cwd: Path, paths: Sequence[Path | str]) -> CommandResult:
        _require_paths(paths)
        return await self._invoker.run("unstage", cwd=cwd, paths=paths)

    async def commit(
        self, cwd: Path, message: str, paths: Sequence[Path | str] = ()
    ) -> str | None:
        """Commit and return the new commit id.

        ``Author:`` pseudo-headers at the top of *message* become ``-A``; the
        rest of the message is passed verbatim.
        """
        author, body = split_author_header(message)
        result = await self._invoker.run(
            "commit",
            option("-A", author),
            ["-m", body],
            cwd=cwd,
            paths=paths,
        )
        commit_id = parser.parse_created_id(result.stdout)
        logger.info("got_committed", commit=commit_id, cwd=str(cwd))
        return commit_id

    async def create_branch(
        self,
        cwd: Path,
        name: str,
        *,
        rev: str | None = None,
        switch_worktree: bool = True,
    ) -> CommandResult:
        return await self._invoker.run(
            "branch",
            option("-c", rev),
            switch("-n", not switch_worktree),
            cwd=cwd,
            args=[name],
        )

    async def create_tag(
        self, cwd: Path, name: str, message: str, *, rev: str | None = None
    ) -> str | None:
        result = await self._invoker.run(
            "tag",
            ["-m", message],
            option("-c", rev),
            cwd=cwd,
            args=[name],
        )
        return parser.parse_created_id(result.stdout)

    async def update(
        self,
        cwd: Path,
        *,
        rev: str | None = None,
        branch: str | None = None,
        paths: Sequence[Path | str] = (),
    ) -> str | None:
        result = await self._invoker.run(
            "update",
            option("-b", branch),
            option("-c", rev),
            cwd=cwd,
            paths=paths,
        )
        return parser.parse_updated_id(result.stdout)

    async def integrate(self, cwd: Path, branch: str) -> CommandResult:
        return await self._invoker.run("integrate", cwd=cwd, args=[branch])

    # -- remote operations ----------------------------------------------------

    async def start_fetch(
        self,
        cwd: Path,
        remote: str | None = None,
        *,
        sink: OutputSink | None = None,
        on_done: Callable[[RemoteResult], None] | None = None,
    ) -> RemoteOperation:
        return await self._start_remote(
            "fetch", [], cwd, remote, sink=sink, on_done=on_done
        )

    async def start_send(
        self,
        cwd: Path,
        remote: str | None = None,
        *,
        branch: str | None = None,
        sink: OutputSink | None = None,
        on_done: Callable[[RemoteResult], None] | None = None,
    ) -> RemoteOperation:
        return await self._start_remote(
            "send", option("-b", branch), cwd, remote, sink=sink, on_done=on_done
        )

    async def _start_remote(
        self,
        operation: str,
        options: list[str],
        cwd: Path,
        remote: str | None,
        *,
        sink: OutputSink | None,
        on_done: Callable[[RemoteResult], None] | None,
    ) -> RemoteOperation:
        process = await self._invoker.spawn(
            operation, options, cwd=cwd, args=[remote] if remote else ()
        )
        logger.info("remote_started", operation=operation, remote=remote)
        if self._event_bus is not None:
            await self._event_bus.emit(
                Event(
                    name=REMOTE_STARTED,
                    operation=operation,
                    data={"remote": remote, "cwd": str(cwd)},
                )
            )
        return RemoteOperation(
            operation,
            process,
            sink=sink,
            on_done=on_done,
            event_bus=self._event_bus,
        )

    # -- no got equivalent ----------------------------------------------------

    async def rename_file(self, old: Path, new: Path) -> None:
        raise UnsupportedOperationError("rename")

    async def modify_change_comment(self, cwd: Path, rev: str, message: str) -> None:
        raise UnsupportedOperationError("modify-change-comment")

    async def steal_lock(self, path: Path) -> None:
        raise UnsupportedOperationError("steal-lock")

    async def mark_resolved(self, paths: Sequence[Path | str]) -> None:
        raise UnsupportedOperationError("mark-resolved")


def _require_paths(paths: Sequence[Path | str]) -> None:
    if not paths:
        raise ValueError("No files specified.")


def _drop_stop_commit(log: LogResult, stop_alias: str) -> LogResult:
    """Drop the trailing commit ``got log -x`` includes when it is *stop_alias*."""
    if log.entries and stop_alias in log.entries[-1].id.aliases:
        return parser.parse_log(log.text, limit=len(log.entries) - 1)
    return log
