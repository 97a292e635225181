"""Pure functions to format got results for terminal display."""

from collections.abc import Iterable

from vcgot.got.models import (
    AnnotationLine,
    BranchEntry,
    CommandResult,
    FileStatus,
    LogEntry,
    StageStatus,
    StatusEntry,
    WorktreeInfo,
)

_STATUS_CODE = {
    FileStatus.UP_TO_DATE: " ",
    FileStatus.EDITED: "M",
    FileStatus.ADDED: "A",
    FileStatus.REMOVED: "D",
    FileStatus.CONFLICT: "C",
    FileStatus.MISSING: "!",
    FileStatus.UNREGISTERED: "?",
    FileStatus.IGNORED: "I",
}

_STAGE_CODE = {
    StageStatus.MODIFIED: "M",
    StageStatus.ADDED: "A",
    StageStatus.REMOVED: "D",
}


def format_status(entries: Iterable[StatusEntry]) -> str:
    """Format status entries one per line, staged entries marked in column two."""
    lines: list[str] = []
    for entry in entries:
        stage = _STAGE_CODE[entry.stage] if entry.stage else " "
        lines.append(f"{_STATUS_CODE[entry.status]}{stage} {entry.path}")

    if not lines:
        return "Work tree clean"
    return "\n".join(lines)


def format_file_status(path: str, status: FileStatus) -> str:
    return f"{path}: {status}"


def format_branches(branches: list[BranchEntry]) -> str:
    if not branches:
        return "No branches found."

    lines: list[str] = []
    for branch in branches:
        marker = "* " if branch.is_current else "  "
        suffix = " (work tree out of date)" if branch.is_out_of_date else ""
        lines.append(f"{marker}{branch.name} {branch.commit[:10]}{suffix}")
    return "\n".join(lines)


def format_references(names: list[str]) -> str:
    return "\n".join(names)


def format_log(entries: list[LogEntry]) -> str:
    """One-line-per-commit summary."""
    if not entries:
        return "No commits found."

    lines: list[str] = []
    for entry in entries:
        aliases = f" ({', '.join(entry.id.aliases)})" if entry.id.aliases else ""
        lines.append(f"{entry.id.short_id}{aliases} {entry.subject}")
        lines.append(f"    {entry.author}, {entry.date}")
    return "\n".join(lines)


def format_blame(lines: Iterable[AnnotationLine]) -> str:
    out: list[str] = []
    for line in lines:
        out.append(
            f"{line.line_number:>5} {line.revision[:8]} {line.date.isoformat()} "
            f"{line.author:<10} {line.text}"
        )
    return "\n".join(out)


def format_info(info: WorktreeInfo) -> str:
    lines = [
        f"work tree: {info.root}",
        f"base commit: {info.base_commit}",
        f"branch: {info.branch or '(none)'}",
    ]
    if info.repository is not None:
        lines.append(f"repository: {info.repository}")
    return "\n".join(lines)


def format_result(result: CommandResult) -> str:
    """Echo what got printed for a mutating command."""
    return (result.stdout or result.stderr).rstrip("\n")


def format_diff(diff_text: str) -> str:
    if not diff_text.strip():
        return "No changes to display."
    return diff_text.rstrip("\n")
