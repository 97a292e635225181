"""Build and execute got command lines."""

import asyncio
import contextlib
import os
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import NoReturn

import structlog

from vcgot.core.config import VcGotConfig
from vcgot.core.events import COMMAND_FAILED, Event, EventBus
from vcgot.exceptions import CommandFailedError, NotARepositoryError
from vcgot.got.models import CommandResult

logger = structlog.get_logger()

WORKTREE_MARKER = ".got"
_TIMEOUT_EXIT_STATUS = 124
_NOT_FOUND_EXIT_STATUS = 127


def option(flag: str, value: object) -> list[str]:
    """``[flag, value]``, or nothing when *value* is None or empty."""
    if value is None or value == "" or value is False:
        return []
    return [flag, str(value)]


def switch(flag: str, enabled: bool) -> list[str]:
    return [flag] if enabled else []


def find_root(path: Path) -> Path | None:
    """Return the nearest ancestor of *path* holding a ``.got`` directory."""
    path = path.expanduser().absolute()
    start = path if path.is_dir() else path.parent
    for candidate in (start, *start.parents):
        if (candidate / WORKTREE_MARKER).is_dir():
            return candidate
    return None


class CommandInvoker:
    """Runs got subcommands from the root of the owning work tree.

    Holds only its configuration; every call is independent.
    """

    def __init__(self, config: VcGotConfig, event_bus: EventBus | None = None) -> None:
        self._config = config
        self._event_bus = event_bus

    @property
    def program(self) -> str:
        return self._config.program

    def root_for(self, target: Path) -> Path:
        root = find_root(target)
        if root is None:
            raise NotARepositoryError(target)
        return root

    def build_argv(
        self,
        operation: str,
        options: Iterable[Sequence[str]] = (),
        positional: Sequence[str] = (),
    ) -> list[str]:
        argv = [self.program, operation]
        for opt in options:
            argv.extend(opt)
        if positional:
            argv.append("--")
            argv.extend(positional)
        return argv

    def locate(
        self, cwd: Path, paths: Sequence[Path | str] = ()
    ) -> tuple[Path, list[str]]:
        """Find the work-tree root and express *paths* relative to it.

        The root is the one owning the first path, or *cwd* when no path is
        given. Relative paths are taken relative to *cwd*.
        """
        cwd = cwd.expanduser().absolute()
        absolute = [p if Path(p).is_absolute() else cwd / p for p in map(Path, paths)]
        root = self.root_for(absolute[0] if absolute else cwd)
        relative = [os.path.relpath(p, root) for p in absolute]
        return root, relative

    async def run(
        self,
        operation: str,
        *options: Sequence[str],
        cwd: Path,
        paths: Sequence[Path | str] = (),
        args: Sequence[str] = (),
        check: bool = True,
    ) -> CommandResult:
        """Run ``got <operation> <options> -- <args> <paths>`` in the work-tree root.

        Raises NotARepositoryError before starting anything when *cwd* (or
        the first path) is outside a work tree, and CommandFailedError on a
        non-zero exit when *check* is set.
        """
        root, relative = self.locate(cwd, paths)
        argv = self.build_argv(operation, options, [*args, *relative])
        result = await self.execute(operation, argv, cwd=root)
        if check and not result.success:
            await self._fail(result)
        return result

    async def run_unscoped(
        self, operation: str, *argv_tail: str, cwd: Path | None = None
    ) -> CommandResult:
        """Run a command that needs no work tree, such as ``got -V``."""
        argv = [self.program, *argv_tail]
        result = await self.execute(operation, argv, cwd=cwd)
        if not result.success:
            await self._fail(result)
        return result

    async def execute(
        self, operation: str, argv: Sequence[str], *, cwd: Path | None
    ) -> CommandResult:
        """Execute *argv* via asyncio.create_subprocess_exec and capture output."""
        timeout = self._config.command_timeout
        logger.debug("got_exec", command=list(argv), cwd=str(cwd) if cwd else None)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return CommandResult(
                operation=operation,
                exit_status=_NOT_FOUND_EXIT_STATUS,
                stderr=f"{self.program} is not installed or not in PATH",
            )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=timeout
            )
        except TimeoutError:
            logger.warning("got_exec_timeout", command=list(argv), timeout=timeout)
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            return CommandResult(
                operation=operation,
                exit_status=_TIMEOUT_EXIT_STATUS,
                stderr=f"Command timed out after {timeout}s",
            )

        return CommandResult(
            operation=operation,
            exit_status=proc.returncode or 0,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
        )

    async def spawn(
        self,
        operation: str,
        *options: Sequence[str],
        cwd: Path,
        args: Sequence[str] = (),
    ) -> asyncio.subprocess.Process:
        """Start a long-running command with stderr merged into stdout."""
        root, _ = self.locate(cwd)
        argv = self.build_argv(operation, options, args)
        logger.debug("got_spawn", command=argv, cwd=str(root))
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError:
            raise CommandFailedError(
                operation,
                f"{self.program} is not installed or not in PATH",
                _NOT_FOUND_EXIT_STATUS,
            ) from None

    async def _fail(self, result: CommandResult) -> NoReturn:
        diagnostic = result.stderr or result.stdout
        logger.warning(
            "got_exec_failed",
            operation=result.operation,
            exit_status=result.exit_status,
        )
        if self._event_bus is not None:
            await self._event_bus.emit(
                Event(
                    name=COMMAND_FAILED,
                    operation=result.operation,
                    data={
                        "exit_status": result.exit_status,
                        "diagnostic": diagnostic,
                    },
                )
            )
        raise CommandFailedError(result.operation, diagnostic, result.exit_status)
