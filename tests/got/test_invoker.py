"""Tests for CommandInvoker with mocked subprocess."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import make_proc, patch_subprocess

from vcgot.core.config import VcGotConfig
from vcgot.core.events import COMMAND_FAILED
from vcgot.exceptions import CommandFailedError, NotARepositoryError
from vcgot.got.invoker import CommandInvoker, find_root, option, switch


@pytest.fixture
def invoker(config):
    return CommandInvoker(config)


class TestFlagHelpers:
    def test_option_with_value(self):
        assert option("-c", "abc") == ["-c", "abc"]

    def test_option_numeric_value(self):
        assert option("-l", 5) == ["-l", "5"]

    @pytest.mark.parametrize("value", [None, ""])
    def test_option_absent_value_emits_nothing(self, value):
        assert option("-c", value) == []

    def test_switch(self):
        assert switch("-R", True) == ["-R"]
        assert switch("-R", False) == []


class TestFindRoot:
    def test_root_itself(self, worktree):
        assert find_root(worktree) == worktree

    def test_nested_directory(self, worktree):
        nested = worktree / "a" / "b"
        nested.mkdir(parents=True)
        assert find_root(nested) == worktree

    def test_file_path(self, worktree):
        f = worktree / "file.txt"
        f.write_text("x")
        assert find_root(f) == worktree

    def test_nonexistent_file_in_tree(self, worktree):
        assert find_root(worktree / "new.txt") == worktree

    def test_outside_tree(self, tmp_path):
        assert find_root(tmp_path) is None


class TestBuildArgv:
    def test_no_positional(self, invoker):
        argv = invoker.build_argv("branch", [["-l"]])
        assert argv == ["got", "branch", "-l"]

    def test_end_of_flags_marker_before_paths(self, invoker):
        argv = invoker.build_argv("add", [], ["-weird.txt", "b.txt"])
        assert argv == ["got", "add", "--", "-weird.txt", "b.txt"]

    def test_absent_options_leave_no_placeholders(self, invoker):
        argv = invoker.build_argv(
            "log", [option("-l", None), option("-c", "abc"), switch("-R", False)]
        )
        assert argv == ["got", "log", "-c", "abc"]

    def test_custom_program(self):
        invoker = CommandInvoker(VcGotConfig(program="/opt/got/bin/got"))
        assert invoker.build_argv("status")[0] == "/opt/got/bin/got"


class TestLocate:
    def test_paths_made_root_relative(self, invoker, worktree):
        sub = worktree / "src"
        sub.mkdir()
        root, rel = invoker.locate(sub, ["a.py", worktree / "README"])
        assert root == worktree
        assert rel == ["src/a.py", "README"]

    def test_not_a_repository(self, invoker, tmp_path):
        with pytest.raises(NotARepositoryError) as exc_info:
            invoker.locate(tmp_path)
        assert exc_info.value.path == tmp_path


class TestRun:
    async def test_success(self, invoker, worktree):
        proc = make_proc(stdout="M  foo.txt\n")
        with patch_subprocess(proc) as mock_exec:
            result = await invoker.run("status", cwd=worktree, paths=["foo.txt"])

        assert result.success
        assert result.stdout == "M  foo.txt\n"
        assert mock_exec.call_args.args == ("got", "status", "--", "foo.txt")
        assert mock_exec.call_args.kwargs["cwd"] == worktree

    async def test_runs_from_root_of_first_path(self, invoker, worktree, tmp_path):
        proc = make_proc()
        with patch_subprocess(proc) as mock_exec:
            await invoker.run("add", cwd=tmp_path, paths=[worktree / "x" / "y.c"])
        assert mock_exec.call_args.kwargs["cwd"] == worktree
        assert mock_exec.call_args.args[-1] == "x/y.c"

    async def test_not_a_repository_before_subprocess(self, invoker, tmp_path):
        with patch_subprocess(make_proc()) as mock_exec:
            with pytest.raises(NotARepositoryError):
                await invoker.run("status", cwd=tmp_path)
        mock_exec.assert_not_called()

    async def test_failure_carries_diagnostic_verbatim(self, invoker, worktree):
        diagnostic = "got: foo.txt: no such entry found in tree\n  détail\t\n"
        proc = make_proc(returncode=1, stderr=diagnostic)
        with patch_subprocess(proc):
            with pytest.raises(CommandFailedError) as exc_info:
                await invoker.run("cat", cwd=worktree, paths=["foo.txt"])

        err = exc_info.value
        assert err.diagnostic == diagnostic
        assert diagnostic in str(err)
        assert str(err).startswith("cat: ")
        assert err.exit_status == 1
        assert err.operation == "cat"

    async def test_failure_falls_back_to_stdout(self, invoker, worktree):
        proc = make_proc(returncode=2, stdout="got: bad\n")
        with patch_subprocess(proc):
            with pytest.raises(CommandFailedError) as exc_info:
                await invoker.run("status", cwd=worktree)
        assert exc_info.value.diagnostic == "got: bad\n"

    async def test_failure_not_raised_without_check(self, invoker, worktree):
        proc = make_proc(returncode=1, stderr="nope")
        with patch_subprocess(proc):
            result = await invoker.run("status", cwd=worktree, check=False)
        assert not result.success
        assert result.stderr == "nope"

    async def test_failure_not_retried(self, invoker, worktree):
        proc = make_proc(returncode=1, stderr="got: connection refused")
        with patch_subprocess(proc) as mock_exec:
            with pytest.raises(CommandFailedError):
                await invoker.run("status", cwd=worktree)
        assert mock_exec.call_count == 1

    async def test_failure_emits_event(self, config, event_bus, worktree):
        received = []

        async def handler(event):
            received.append(event)

        event_bus.subscribe(COMMAND_FAILED, handler)
        invoker = CommandInvoker(config, event_bus)
        with patch_subprocess(make_proc(returncode=1, stderr="boom")):
            with pytest.raises(CommandFailedError):
                await invoker.run("commit", cwd=worktree)

        assert len(received) == 1
        assert received[0].operation == "commit"
        assert received[0].data["diagnostic"] == "boom"

    async def test_program_not_found(self, invoker, worktree):
        with patch(
            "vcgot.got.invoker.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            side_effect=FileNotFoundError,
        ):
            with pytest.raises(CommandFailedError) as exc_info:
                await invoker.run("status", cwd=worktree)
        assert exc_info.value.exit_status == 127
        assert "not installed" in exc_info.value.diagnostic

    async def test_timeout_kills_process(self, worktree):
        invoker = CommandInvoker(VcGotConfig(command_timeout=0.01))

        async def never_finishes():
            await asyncio.sleep(10)

        proc = MagicMock()
        proc.communicate = never_finishes
        proc.kill = MagicMock()
        with patch_subprocess(proc):
            with pytest.raises(CommandFailedError) as exc_info:
                await invoker.run("log", cwd=worktree)
        proc.kill.assert_called_once()
        assert "timed out" in exc_info.value.diagnostic


class TestRunUnscoped:
    async def test_version_query_needs_no_worktree(self, invoker):
        with patch_subprocess(make_proc(stdout="got 0.85\n")) as mock_exec:
            result = await invoker.run_unscoped("version", "-V")
        assert result.stdout == "got 0.85\n"
        assert mock_exec.call_args.args == ("got", "-V")


class TestSpawn:
    async def test_merges_stderr(self, invoker, worktree):
        with patch_subprocess(make_proc()) as mock_exec:
            await invoker.spawn("fetch", cwd=worktree, args=["origin"])
        assert mock_exec.call_args.args == ("got", "fetch", "--", "origin")
        assert mock_exec.call_args.kwargs["stderr"] == asyncio.subprocess.STDOUT

    async def test_not_a_repository(self, invoker, tmp_path):
        with pytest.raises(NotARepositoryError):
            await invoker.spawn("fetch", cwd=tmp_path)
