"""Incremental output handling for long-running remote operations.

``got fetch`` and ``got send`` redraw their progress lines with carriage
returns. ProgressBuffer turns the raw byte stream into finished lines plus
the line currently being redrawn; RemoteOperation drives a subprocess
through it without blocking the caller.
"""

import asyncio
import codecs
import contextlib
from collections.abc import Callable
from typing import Protocol

import structlog

from vcgot.core.events import REMOTE_CANCELLED, REMOTE_FINISHED, Event, EventBus
from vcgot.exceptions import CommandFailedError
from vcgot.got.models import RemoteResult

logger = structlog.get_logger()

_READ_CHUNK = 4096


class OutputSink(Protocol):
    def line(self, text: str) -> None:
        """A line has been terminated by a newline."""
        ...

    def progress(self, text: str) -> None:
        """The current, unterminated line now reads *text*."""
        ...


class ProgressBuffer:
    """Line buffer where ``\\r`` erases back to the start of the current line."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._current: list[str] = []
        self._pending_cr = False
        self.lines: list[str] = []

    @property
    def pending(self) -> str:
        return "".join(self._current)

    def feed(self, chunk: bytes | str) -> list[str]:
        """Consume a chunk and return the lines it completed."""
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        completed: list[str] = []
        for char in text:
            if self._pending_cr:
                self._pending_cr = False
                if char != "\n":
                    self._current.clear()
            if char == "\r":
                self._pending_cr = True
            elif char == "\n":
                completed.append(self.pending)
                self._current.clear()
            else:
                self._current.append(char)
        self.lines.extend(completed)
        return completed

    def close(self) -> list[str]:
        """Flush the decoder; an unterminated last line counts as complete."""
        completed = self.feed(self._decoder.decode(b"", final=True))
        if self._pending_cr:
            self._pending_cr = False
            self._current.clear()
        if self._current:
            completed.append(self.pending)
            self.lines.append(self.pending)
            self._current.clear()
        return completed

    def text(self) -> str:
        return "".join(f"{line}\n" for line in self.lines)


class RemoteOperation:
    """Handle for a streamed ``got fetch`` / ``got send`` run.

    The subprocess output is pumped into *sink* as it arrives. Completion is
    reported through *on_done* and a ``remote.finished`` event; ``wait()``
    returns the result or raises CommandFailedError. ``cancel()`` kills the
    process and discards whatever was produced so far.
    """

    def __init__(
        self,
        operation: str,
        process: asyncio.subprocess.Process,
        *,
        sink: OutputSink | None = None,
        on_done: Callable[[RemoteResult], None] | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.operation = operation
        self._process = process
        self._sink = sink
        self._on_done = on_done
        self._event_bus = event_bus
        self._buffer = ProgressBuffer()
        self._cancelled = False
        self._task: asyncio.Task[RemoteResult] = asyncio.create_task(self._pump())

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def _pump(self) -> RemoteResult:
        stream = self._process.stdout
        if stream is not None:
            while chunk := await stream.read(_READ_CHUNK):
                self._deliver(self._buffer.feed(chunk))
        self._deliver(self._buffer.close())
        exit_status = await self._process.wait()

        result = RemoteResult(
            operation=self.operation,
            exit_status=exit_status,
            output=self._buffer.text(),
        )
        logger.info(
            "remote_finished", operation=self.operation, exit_status=exit_status
        )
        if self._on_done is not None:
            try:
                self._on_done(result)
            except Exception:
                logger.exception("remote_on_done_error", operation=self.operation)
        if self._event_bus is not None:
            await self._event_bus.emit(
                Event(
                    name=REMOTE_FINISHED,
                    operation=self.operation,
                    data=result.model_dump(exclude={"operation"}),
                )
            )
        return result

    def _deliver(self, completed: list[str]) -> None:
        if self._sink is None:
            return
        for line in completed:
            self._sink.line(line)
        self._sink.progress(self._buffer.pending)

    async def wait(self) -> RemoteResult:
        result = await self._task
        if result.exit_status != 0:
            raise CommandFailedError(self.operation, result.output, result.exit_status)
        return result

    async def cancel(self) -> None:
        if self._task.done():
            return
        self._cancelled = True
        with contextlib.suppress(ProcessLookupError):
            self._process.kill()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        await self._process.wait()
        logger.info("remote_cancelled", operation=self.operation)
        if self._event_bus is not None:
            await self._event_bus.emit(
                Event(name=REMOTE_CANCELLED, operation=self.operation)
            )
