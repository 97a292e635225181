"""got version parsing and version-dependent flag selection.

got development snapshots report versions such as ``0.85-current``. A
``-current`` version is the development line that follows the release of
the same number, so ``0.85-current`` orders after ``0.85`` and before
``0.86``.
"""

import re
from functools import total_ordering

_CURRENT_SUFFIX = "-current"
_VERSION_OUTPUT_RE = re.compile(r"^got\s+(?P<version>\S+)", re.MULTILINE)

#: Last release whose ``got log`` used ``-s`` for the search pattern.
LAST_LOWERCASE_SEARCH_RELEASE = "0.85"


@total_ordering
class GotVersion:
    """A parsed got version string."""

    __slots__ = ("current", "parts", "raw")

    def __init__(self, raw: str) -> None:
        self.raw = raw.strip()
        self.current = self.raw.endswith(_CURRENT_SUFFIX)
        base = self.raw.removesuffix(_CURRENT_SUFFIX)
        self.parts = tuple(int(p) for p in re.findall(r"\d+", base))
        if not self.parts:
            raise ValueError(f"Invalid got version: {raw!r}")

    def _key(self) -> tuple[tuple[int, ...], bool]:
        # Pad so that 0.85 and 0.85.0 compare equal.
        parts = self.parts
        while len(parts) > 1 and parts[-1] == 0:
            parts = parts[:-1]
        return parts, self.current

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GotVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "GotVersion") -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"GotVersion({self.raw!r})"

    def __str__(self) -> str:
        return self.raw


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as version *a* is older, equal to or newer than *b*."""
    va, vb = GotVersion(a), GotVersion(b)
    if va == vb:
        return 0
    return -1 if va < vb else 1


def version_le(version: str, target: str) -> bool:
    return compare_versions(version, target) <= 0


def parse_version_output(output: str) -> str:
    """Extract the version from ``got -V`` output (``got 0.85``)."""
    m = _VERSION_OUTPUT_RE.search(output)
    if m is None:
        raise ValueError(f"Unrecognized got version output: {output.strip()!r}")
    return m.group("version")


class FlagStrategy:
    """Flags whose spelling depends on the got version, fixed at construction."""

    __slots__ = ("log_search", "version")

    def __init__(self, version: str) -> None:
        self.version = GotVersion(version)
        if self.version <= GotVersion(LAST_LOWERCASE_SEARCH_RELEASE):
            self.log_search = "-s"
        else:
            self.log_search = "-S"

    def __repr__(self) -> str:
        return f"FlagStrategy(version={self.version.raw!r}, log_search={self.log_search!r})"
