"""Data models for got command results."""

import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class FileStatus(StrEnum):
    UP_TO_DATE = "up-to-date"
    EDITED = "edited"
    ADDED = "added"
    REMOVED = "removed"
    CONFLICT = "conflict"
    MISSING = "missing"
    UNREGISTERED = "unregistered"
    IGNORED = "ignored"


class StageStatus(StrEnum):
    MODIFIED = "staged-modified"
    ADDED = "staged-added"
    REMOVED = "staged-removed"


class StatusEntry(BaseModel):
    """One line of ``got status`` output."""

    model_config = ConfigDict(frozen=True)

    path: str
    status: FileStatus
    stage: StageStatus | None = None


class CommitRef(BaseModel):
    """A commit id plus the branch and tag names that point at it."""

    model_config = ConfigDict(frozen=True)

    id: str
    aliases: tuple[str, ...] = ()

    @property
    def short_id(self) -> str:
        return self.id[:10]


class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: CommitRef
    author: str = ""
    date: str = ""
    message: str = ""
    diff: str | None = None

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]


class LogResult(BaseModel):
    """Separator-stripped log text with the entries parsed from it."""

    model_config = ConfigDict(frozen=True)

    text: str
    entries: list[LogEntry] = []


class AnnotationLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_number: int
    revision: str
    date: datetime.date
    author: str
    text: str = ""


class BranchEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    commit: str
    is_current: bool = False
    is_out_of_date: bool = False


class WorktreeInfo(BaseModel):
    """Parsed output of ``got info``."""

    model_config = ConfigDict(frozen=True)

    root: Path
    base_commit: str
    path_prefix: str = "/"
    branch_reference: str = ""
    uuid: str = ""
    repository: Path | None = None

    @property
    def branch(self) -> str:
        return self.branch_reference.removeprefix("refs/heads/")


class CommandResult(BaseModel):
    """Captured output of a single subprocess invocation."""

    model_config = ConfigDict(frozen=True)

    operation: str
    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_status == 0


class RemoteResult(BaseModel):
    """Result of a streamed remote operation (fetch or send)."""

    model_config = ConfigDict(frozen=True)

    operation: str
    exit_status: int
    output: str = ""
