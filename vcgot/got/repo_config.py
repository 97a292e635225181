"""Best-effort lookup of remote URLs in a repository's git-style config file.

The file is not part of got's command surface, so a missing file, section
or key is reported as None rather than an error.
"""

import re
from pathlib import Path

import structlog

logger = structlog.get_logger()

_SECTION_RE = re.compile(r'^\s*\[\s*(?P<section>[^\s\]"]+)(?:\s+"(?P<name>[^"]*)")?\s*\]\s*$')
_KEY_VALUE_RE = re.compile(r"^\s*(?P<key>[A-Za-z][A-Za-z0-9-]*)\s*=\s*(?P<value>.*?)\s*$")


def find_config_file(repository: Path) -> Path | None:
    """Return the config file of a bare repository or of a ``.git`` directory."""
    for candidate in (repository / "config", repository / ".git" / "config"):
        if candidate.is_file():
            return candidate
    return None


def read_remote_url(text: str, remote: str = "origin", key: str = "url") -> str | None:
    """Scan config *text* for ``key`` under ``[remote "<remote>"]``."""
    in_section = False
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", ";")):
            continue
        if m := _SECTION_RE.match(line):
            in_section = (
                m.group("section").lower() == "remote" and m.group("name") == remote
            )
            continue
        if in_section and (m := _KEY_VALUE_RE.match(line)):
            if m.group("key").lower() == key:
                return _unquote(m.group("value"))
    return None


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def remote_url(repository: Path, remote: str = "origin") -> str | None:
    config_file = find_config_file(repository)
    if config_file is None:
        logger.debug("repo_config_missing", repository=str(repository))
        return None
    try:
        text = config_file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("repo_config_read_failed", path=str(config_file), error=str(exc))
        return None
    return read_remote_url(text, remote)
