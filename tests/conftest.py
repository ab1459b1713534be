"""Shared fixtures for the brew-maintainer tests."""

import pytest

from brewmaintainer.core.command import CommandExecutor


class MockBrewCommand(CommandExecutor):
    """In-memory executor that records commands and replays canned responses."""

    def __init__(self):
        self.captured_commands = []
        self.execute_responses = []
        self.timeout_responses = []

    def with_execute_response(self, response):
        """Queue a stdout string, or an exception to raise, for execute()."""
        self.execute_responses.append(response)
        return self

    def with_timeout_response(self, response):
        """Queue None, or an exception to raise, for execute_with_timeout()."""
        self.timeout_responses.append(response)
        return self

    def _capture(self, cmd, timeout=None):
        self.captured_commands.append({
            "command": "brew",
            "args": cmd.to_args(),
            "envs": cmd.to_env(),
            "timeout": timeout,
        })

    def execute(self, cmd):
        self._capture(cmd)
        if self.execute_responses:
            response = self.execute_responses.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response
        return "Mock output"

    def envs(self):
        return {"HOME": "/mock/home", "PATH": "/mock/path"}

    def execute_with_timeout(self, cmd, timeout):
        self._capture(cmd, timeout)
        if self.timeout_responses:
            response = self.timeout_responses.pop(0)
            if isinstance(response, BaseException):
                raise response

    def called_args(self):
        return [captured["args"] for captured in self.captured_commands]

    def assert_command_called(self, expected_args):
        assert expected_args in self.called_args(), \
            f"Command with args {expected_args} was not called. Captured: {self.called_args()}"

    def assert_call_count(self, expected):
        assert len(self.captured_commands) == expected, \
            f"Expected {expected} calls, got {len(self.captured_commands)}"


@pytest.fixture
def mock_brew():
    return MockBrewCommand()
