"""Line grammars for got command output.

Every function here is pure: it takes captured text and returns typed
results. Functions returning iterators produce results lazily, line by line.
"""

import datetime
import os
import re
from collections.abc import Iterator
from pathlib import Path

from vcgot.got.models import (
    AnnotationLine,
    BranchEntry,
    CommitRef,
    FileStatus,
    LogEntry,
    LogResult,
    StageStatus,
    StatusEntry,
    WorktreeInfo,
)

_STATUS_CHARS: dict[str, FileStatus | None] = {
    "M": FileStatus.EDITED,
    "A": FileStatus.ADDED,
    "D": FileStatus.REMOVED,
    "C": FileStatus.CONFLICT,
    "!": FileStatus.MISSING,
    "~": FileStatus.EDITED,  # obstructed
    "?": FileStatus.UNREGISTERED,
    "m": FileStatus.EDITED,  # mode change
    "N": None,  # non-existent path given on the command line
}

_STAGE_CHARS: dict[str, StageStatus] = {
    "M": StageStatus.MODIFIED,
    "A": StageStatus.ADDED,
    "D": StageStatus.REMOVED,
}

# "<status><stage> <path>"
_STATUS_LINE_RE = re.compile(r"^(?P<status>.)(?P<stage>.) (?P<path>.+)$")

# Log anchors, exported for hosts that highlight raw log text.
LOG_SEPARATOR_RE = re.compile(r"^-{20,}$")
COMMIT_LINE_RE = re.compile(r"^commit (?P<id>[0-9a-f]+)(?: \((?P<aliases>[^)]*)\))?$")
AUTHOR_LINE_RE = re.compile(r"^from: (?P<author>.*)$")
DATE_LINE_RE = re.compile(r"^date: (?P<date>.*)$")
_VIA_LINE_RE = re.compile(r"^via: .*$")

_BRANCH_LINE_RE = re.compile(r"^(?P<marker>[*~ ]) (?P<name>.+?): (?P<id>[0-9a-f]+)$")
_REF_LINE_RE = re.compile(r"^refs/(?:heads|remotes|tags)/(?P<name>.+?):")
_BLAME_LINE_RE = re.compile(
    r"^(?P<line>\d+)\) (?P<rev>[0-9a-f]+) "
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2}) "
    r"(?P<author>\S+)(?: +(?P<text>.*))?$"
)
_CREATED_RE = re.compile(r"^Created (?:commit|tag) (?P<id>[0-9a-f]+)$", re.MULTILINE)
_UPDATED_RE = re.compile(
    r"^Updated to (?:commit |refs/\S+: )(?P<id>[0-9a-f]+)$", re.MULTILINE
)


def parse_status_char(char: str) -> FileStatus | None:
    """Map a got status character to a FileStatus; None when not reported."""
    return _STATUS_CHARS.get(char)


def parse_stage_char(char: str) -> StageStatus | None:
    return _STAGE_CHARS.get(char)


def relocate_path(path: str, root: Path | None, cwd: Path | None) -> str:
    """Re-express a work-tree-root relative *path* relative to *cwd*."""
    if root is None or cwd is None:
        return path
    return os.path.relpath(root / path, cwd)


def parse_status(
    output: str, *, root: Path | None = None, cwd: Path | None = None
) -> Iterator[StatusEntry]:
    """Yield one StatusEntry per recognized ``got status`` line.

    Paths are reported by got relative to the work-tree root. When both
    *root* and *cwd* are given they are re-expressed relative to *cwd*.
    A blank status column with a staged change yields an up-to-date entry
    carrying the stage. Other lines with an unrecognized or unreported status
    character are skipped.
    A path is reported at most once.
    """
    seen: set[str] = set()
    for line in output.splitlines():
        m = _STATUS_LINE_RE.match(line)
        if m is None:
            continue
        stage = parse_stage_char(m.group("stage"))
        status = parse_status_char(m.group("status"))
        if status is None and m.group("status") == " " and stage is not None:
            # staged only: the work tree matches the staged copy
            status = FileStatus.UP_TO_DATE
        if status is None:
            continue
        path = relocate_path(m.group("path"), root, cwd)
        if path in seen:
            continue
        seen.add(path)
        yield StatusEntry(path=path, status=status, stage=stage)


def _without_separators(lines: list[str]) -> Iterator[str]:
    # A dash line only separates commits when a commit header follows it;
    # elsewhere it is diff or message content.
    for i, line in enumerate(lines):
        if (
            LOG_SEPARATOR_RE.match(line)
            and i + 1 < len(lines)
            and COMMIT_LINE_RE.match(lines[i + 1])
        ):
            continue
        yield line


def strip_log_separators(output: str) -> str:
    return "\n".join(_without_separators(output.splitlines()))


def _split_log_blocks(output: str) -> list[list[str]]:
    blocks: list[list[str]] = []
    current: list[str] | None = None
    for line in _without_separators(output.splitlines()):
        if COMMIT_LINE_RE.match(line):
            current = [line]
            blocks.append(current)
        elif current is not None:
            current.append(line)
    return blocks


def _parse_log_block(lines: list[str]) -> LogEntry:
    header = COMMIT_LINE_RE.match(lines[0])
    if header is None:
        raise ValueError(f"Log block does not start with a commit line: {lines[0]!r}")
    aliases = tuple(
        a.strip() for a in (header.group("aliases") or "").split(",") if a.strip()
    )
    author = ""
    date = ""
    i = 1
    while i < len(lines):
        line = lines[i]
        if m := AUTHOR_LINE_RE.match(line):
            author = m.group("author")
        elif m := DATE_LINE_RE.match(line):
            date = m.group("date")
        elif not _VIA_LINE_RE.match(line):
            break
        i += 1

    # The message body is indented by one space; the first unindented,
    # non-empty line starts the embedded diff.
    message_lines: list[str] = []
    diff_lines: list[str] = []
    for line in lines[i:]:
        if diff_lines or (line and not line.startswith(" ")):
            diff_lines.append(line)
        else:
            message_lines.append(line.removeprefix(" "))

    return LogEntry(
        id=CommitRef(id=header.group("id"), aliases=aliases),
        author=author,
        date=date,
        message="\n".join(message_lines).strip("\n"),
        diff="\n".join(diff_lines) + "\n" if diff_lines else None,
    )


def parse_log(
    output: str,
    *,
    limit: int | None = None,
    reverse: bool = False,
    search: str | None = None,
) -> LogResult:
    """Parse ``got log`` output into entries and separator-free text.

    *search* keeps the blocks whose message matches the regular expression,
    *reverse* flips block order and *limit* truncates the result. The text
    returned covers exactly the entries returned.
    """
    blocks = _split_log_blocks(output)
    entries = [_parse_log_block(block) for block in blocks]
    pairs = list(zip(blocks, entries, strict=True))
    if search:
        pattern = re.compile(search)
        pairs = [(b, e) for b, e in pairs if pattern.search(e.message)]
    if reverse:
        pairs.reverse()
    if limit is not None:
        pairs = pairs[: max(limit, 0)]

    text = "".join("\n".join(block) + "\n" for block, _ in pairs)
    return LogResult(text=text, entries=[e for _, e in pairs])


def parse_branches(output: str) -> list[BranchEntry]:
    """Parse ``got branch -l`` output."""
    branches: list[BranchEntry] = []
    for line in output.splitlines():
        m = _BRANCH_LINE_RE.match(line)
        if m is None:
            continue
        marker = m.group("marker")
        branches.append(
            BranchEntry(
                name=m.group("name"),
                commit=m.group("id"),
                is_current=marker in ("*", "~"),
                is_out_of_date=marker == "~",
            )
        )
    return branches


def parse_references(output: str) -> list[str]:
    """Parse ``got ref -l`` output into a name table headed by ``HEAD``."""
    names = ["HEAD"]
    for line in output.splitlines():
        m = _REF_LINE_RE.match(line)
        if m is not None and m.group("name") not in names:
            names.append(m.group("name"))
    return names


def parse_annotation_line(line: str) -> AnnotationLine | None:
    m = _BLAME_LINE_RE.match(line)
    if m is None:
        return None
    try:
        day = datetime.date(
            int(m.group("year")), int(m.group("month")), int(m.group("day"))
        )
    except ValueError:
        return None
    return AnnotationLine(
        line_number=int(m.group("line")),
        revision=m.group("rev"),
        date=day,
        author=m.group("author"),
        text=m.group("text") or "",
    )


def parse_blame(output: str) -> Iterator[AnnotationLine]:
    """Yield annotation lines from ``got blame`` output, skipping malformed ones."""
    for line in output.splitlines():
        annotation = parse_annotation_line(line)
        if annotation is not None:
            yield annotation


def parse_info(output: str) -> WorktreeInfo:
    """Parse ``got info`` ``key: value`` lines."""
    fields: dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition(": ")
        if sep:
            fields[key.strip()] = value.strip()

    if "work tree" not in fields or "work tree base commit" not in fields:
        raise ValueError("got info output lacks work tree fields")

    repository = fields.get("repository")
    return WorktreeInfo(
        root=Path(fields["work tree"]),
        base_commit=fields["work tree base commit"],
        path_prefix=fields.get("work tree path prefix", "/"),
        branch_reference=fields.get("work tree branch reference", ""),
        uuid=fields.get("work tree UUID", ""),
        repository=Path(repository) if repository else None,
    )


def parse_created_id(output: str) -> str | None:
    """Return the id from a ``Created commit <id>`` or ``Created tag <id>`` line."""
    m = _CREATED_RE.search(output)
    return m.group("id") if m else None


def parse_updated_id(output: str) -> str | None:
    m = _UPDATED_RE.search(output)
    return m.group("id") if m else None
