"""Shared fixtures for vcgot tests."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vcgot.core.config import VcGotConfig
from vcgot.core.events import EventBus


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests."""
    monkeypatch.setitem(VcGotConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("VCGOT_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config():
    return VcGotConfig()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def worktree(tmp_path):
    """A directory that looks like the root of a got work tree."""
    root = tmp_path / "wt"
    (root / ".got").mkdir(parents=True)
    return root


def make_proc(returncode=0, stdout="", stderr=""):
    """Create a mock subprocess result."""
    proc = MagicMock()
    proc.returncode = returncode
    stdout_bytes = stdout if isinstance(stdout, bytes) else stdout.encode()
    stderr_bytes = stderr if isinstance(stderr, bytes) else stderr.encode()
    proc.communicate = AsyncMock(return_value=(stdout_bytes, stderr_bytes))
    proc.wait = AsyncMock(return_value=returncode)
    proc.kill = MagicMock()
    return proc


def patch_subprocess(*procs):
    """Patch asyncio.create_subprocess_exec to return the given procs in order."""
    if len(procs) == 1:
        kwargs = {"return_value": procs[0]}
    else:
        kwargs = {"side_effect": list(procs)}
    return patch(
        "vcgot.got.invoker.asyncio.create_subprocess_exec",
        new_callable=AsyncMock,
        **kwargs,
    )
