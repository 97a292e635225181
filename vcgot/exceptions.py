"""Shared exception types for vcgot."""

from pathlib import Path


class VcsError(Exception):
    """Base exception for all vcgot errors."""


class ConfigError(VcsError):
    """Configuration is invalid or missing."""


class NotARepositoryError(VcsError):
    """No enclosing got work tree was found."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Not a got work tree: {self.path}")


class CommandFailedError(VcsError):
    """The wrapped tool exited with a non-zero status.

    The diagnostic text is kept exactly as the tool printed it; the message
    only prefixes it with the logical operation name.
    """

    def __init__(self, operation: str, diagnostic: str, exit_status: int = 1) -> None:
        self.operation = operation
        self.diagnostic = diagnostic
        self.exit_status = exit_status
        super().__init__(f"{operation}: {diagnostic}")


class UnsupportedOperationError(VcsError):
    """The operation has no equivalent in the wrapped tool."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation}: not supported by got")


class AmbiguousStatusError(VcsError):
    """A file produced no status line; resolved internally by a second query."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Ambiguous status for {self.path}")
