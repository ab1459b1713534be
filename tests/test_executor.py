"""Tests for the executor that runs real processes, using fake brew scripts."""

import os
import signal
import stat
import sys
import time
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from brewmaintainer.core.command import (
    BrewCommand,
    CommandTimeoutError,
    ExecutionFailedError,
    InputRequestedError,
)
from brewmaintainer.core.executor import RealBrewCommand, _kill_process

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")


@pytest.fixture
def fake_brew(tmp_path):
    """Return a factory writing a shell script that stands in for brew."""
    def make(body):
        script = tmp_path / "brew"
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return RealBrewCommand(str(script))
    return make


def test_execute_returns_stdout(fake_brew):
    """Test that stdout of a successful command is returned."""
    executor = fake_brew('echo "brew $@"')
    assert executor.execute(BrewCommand.outdated()) == "brew outdated --json\n"


def test_execute_failure_carries_stderr(fake_brew):
    """Test that a non-zero exit raises with the command's stderr."""
    executor = fake_brew('echo "Error: No such keg" >&2\nexit 1')
    with pytest.raises(ExecutionFailedError) as excinfo:
        executor.execute(BrewCommand.cleanup())
    assert "No such keg" in excinfo.value.detail


def test_execute_missing_binary(tmp_path):
    """Test that a missing brew binary is an execution failure."""
    executor = RealBrewCommand(str(tmp_path / "does-not-exist"))
    with pytest.raises(ExecutionFailedError):
        executor.execute(BrewCommand.update())


def test_execute_passes_command_environment(fake_brew):
    """Test that the command's environment reaches the process."""
    executor = fake_brew('echo "$BREW_MAINTAINER_TEST_VALUE"')
    cmd = BrewCommand.update({"BREW_MAINTAINER_TEST_VALUE": "from-command"})
    assert executor.execute(cmd).strip() == "from-command"


def test_envs_passes_home_and_path(monkeypatch):
    """Test that only HOME and PATH are forwarded explicitly."""
    monkeypatch.setenv("HOME", "/Users/me")
    monkeypatch.setenv("PATH", "/opt/homebrew/bin:/usr/bin")
    monkeypatch.setenv("SECRET_TOKEN", "nope")
    assert RealBrewCommand().envs() == {"HOME": "/Users/me", "PATH": "/opt/homebrew/bin:/usr/bin"}


def test_execute_with_timeout_success(fake_brew):
    """Test a command finishing in time without prompting."""
    executor = fake_brew('echo "==> Upgrading $2"\necho "==> Pouring $2.bottle.tar.gz"')
    executor.execute_with_timeout(BrewCommand.upgrade("wget"), timedelta(seconds=20))


def test_execute_with_timeout_exit_code(fake_brew):
    """Test that a non-zero exit is reported with its code."""
    executor = fake_brew("exit 3")
    with pytest.raises(ExecutionFailedError) as excinfo:
        executor.execute_with_timeout(BrewCommand.upgrade("wget"), timedelta(seconds=20))
    assert "Process exited with code: 3" in str(excinfo.value)


def test_execute_with_timeout_detects_prompt(fake_brew):
    """Test that a prompt kills the process instead of waiting for the timeout."""
    executor = fake_brew('echo "Do you want to continue? [y/N]"\nsleep 30')
    start = time.monotonic()
    with pytest.raises(InputRequestedError) as excinfo:
        executor.execute_with_timeout(BrewCommand.upgrade("wget"), timedelta(seconds=60))
    assert time.monotonic() - start < 15
    assert "continue?" in excinfo.value.line.lower()


def test_execute_with_timeout_detects_prompt_on_stderr(fake_brew):
    """Test that prompts printed on stderr are detected too."""
    executor = fake_brew('echo "Password:" >&2\nsleep 30')
    with pytest.raises(InputRequestedError):
        executor.execute_with_timeout(BrewCommand.upgrade("wget"), timedelta(seconds=60))


def test_prompt_wins_over_exit_status(fake_brew):
    """Test that a prompt printed right before exiting still counts as a prompt."""
    executor = fake_brew('echo "Proceed? (y/n)"\nexit 0')
    with pytest.raises(InputRequestedError):
        executor.execute_with_timeout(BrewCommand.upgrade("wget"), timedelta(seconds=20))


def test_execute_with_timeout_kills_slow_command(fake_brew, tmp_path):
    """Test that a command running past the timeout is killed."""
    marker = tmp_path / "finished"
    executor = fake_brew(f'sleep 3\ntouch "{marker}"')
    start = time.monotonic()
    with pytest.raises(CommandTimeoutError):
        executor.execute_with_timeout(BrewCommand.upgrade("wget"), timedelta(seconds=0.5))
    assert time.monotonic() - start < 3
    time.sleep(4)
    assert not os.path.exists(marker)


def test_execute_with_timeout_missing_binary(tmp_path):
    """Test that a missing brew binary is an execution failure."""
    executor = RealBrewCommand(str(tmp_path / "does-not-exist"))
    with pytest.raises(ExecutionFailedError):
        executor.execute_with_timeout(BrewCommand.upgrade("wget"), timedelta(seconds=5))


def test_exited_process_group_is_left_alone():
    """Test that a finished process whose pipes are drained is not signalled."""
    process = MagicMock(pid=4242)
    process.poll.return_value = 0
    finished_reader = MagicMock()
    finished_reader.is_alive.return_value = False

    with patch("brewmaintainer.core.executor.os.killpg") as killpg:
        _kill_process(process, [finished_reader, finished_reader])

    killpg.assert_not_called()
    process.wait.assert_called_once_with(timeout=5)


def test_running_process_group_is_killed():
    """Test that a process still running, or still holding a pipe, is killed."""
    running = MagicMock(pid=4242)
    running.poll.return_value = None
    exited = MagicMock(pid=4343)
    exited.poll.return_value = 0
    finished_reader = MagicMock()
    finished_reader.is_alive.return_value = False
    reading_reader = MagicMock()
    reading_reader.is_alive.return_value = True

    with patch("brewmaintainer.core.executor.os.killpg") as killpg:
        _kill_process(running, [finished_reader])
        _kill_process(exited, [finished_reader, reading_reader])

    assert [call.args for call in killpg.call_args_list] == [
        (4242, signal.SIGKILL), (4343, signal.SIGKILL),
    ]
