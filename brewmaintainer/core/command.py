"""
Brew command model and executor interface.

This module defines the commands the maintainer sends to Homebrew, the errors
a command can end with, and the abstract executor every runner implements.
"""

import abc
import logging
from datetime import timedelta
from typing import Dict, List, Optional

# Set up logger
logger = logging.getLogger("brewmaintainer.core")

UPDATE = "update"
OUTDATED = "outdated"
UPGRADE = "upgrade"
CLEANUP = "cleanup"

COMMAND_KINDS = (UPDATE, OUTDATED, UPGRADE, CLEANUP)


class BrewError(Exception):
    """Base exception for brew command errors."""
    pass


class ExecutionFailedError(BrewError):
    """Exception raised when a brew command cannot run or exits with an error."""

    def __init__(self, detail: str = ""):
        super().__init__(f"Error executing the brew command: {detail}" if detail
                         else "Error executing the brew command")
        self.detail = detail


class InputRequestedError(BrewError):
    """Exception raised when a brew command waits for user input."""

    def __init__(self, line: str = ""):
        super().__init__("Error Input request cannot be fulfilled")
        self.line = line


class CommandTimeoutError(BrewError):
    """Exception raised when a brew command runs longer than its timeout."""

    def __init__(self, timeout: Optional[timedelta] = None):
        super().__init__("Error command takes more than the timeout requested")
        self.timeout = timeout


class BrewCommand:
    """A single brew invocation with the environment it runs in."""

    def __init__(self, kind: str, envs: Optional[Dict[str, str]] = None,
                 package_name: Optional[str] = None, dry_run: bool = False):
        if kind not in COMMAND_KINDS:
            raise ValueError(f"Unknown brew command: {kind}")
        if kind == UPGRADE and not package_name:
            raise ValueError("An upgrade command needs a package name")
        self.kind = kind
        self.envs = dict(envs or {})
        self.package_name = package_name
        self.dry_run = dry_run

    @classmethod
    def update(cls, envs: Optional[Dict[str, str]] = None) -> "BrewCommand":
        return cls(UPDATE, envs)

    @classmethod
    def outdated(cls, envs: Optional[Dict[str, str]] = None) -> "BrewCommand":
        return cls(OUTDATED, envs)

    @classmethod
    def upgrade(cls, package_name: str, envs: Optional[Dict[str, str]] = None) -> "BrewCommand":
        return cls(UPGRADE, envs, package_name=package_name)

    @classmethod
    def cleanup(cls, envs: Optional[Dict[str, str]] = None, dry_run: bool = False) -> "BrewCommand":
        return cls(CLEANUP, envs, dry_run=dry_run)

    def to_args(self) -> List[str]:
        """Convert the command to brew CLI arguments."""
        if self.kind == UPDATE:
            return ["update"]
        elif self.kind == OUTDATED:
            return ["outdated", "--json"]
        elif self.kind == UPGRADE:
            return ["upgrade", self.package_name]
        else:
            args = ["cleanup"]
            if self.dry_run:
                args.append("--dry-run")
            return args

    def to_env(self) -> Dict[str, str]:
        return dict(self.envs)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BrewCommand):
            return NotImplemented
        return (self.kind, self.package_name, self.dry_run, self.envs) == \
            (other.kind, other.package_name, other.dry_run, other.envs)

    def __repr__(self) -> str:
        return f"BrewCommand({' '.join(self.to_args())!r})"


class CommandExecutor(abc.ABC):
    """Abstract base class for anything able to run brew commands."""

    @abc.abstractmethod
    def execute(self, cmd: BrewCommand) -> str:
        """
        Run a command to completion.

        Args:
            cmd: The command to run

        Returns:
            The command's standard output

        Raises:
            BrewError: If the command could not run or failed
        """
        pass

    @abc.abstractmethod
    def envs(self) -> Dict[str, str]:
        """Get the environment variables passed along with every command."""
        pass

    @abc.abstractmethod
    def execute_with_timeout(self, cmd: BrewCommand, timeout: timedelta) -> None:
        """
        Run a command that must neither exceed the timeout nor ask for input.

        Args:
            cmd: The command to run
            timeout: Maximum time the command may run

        Raises:
            InputRequestedError: If the command prompted for user input
            CommandTimeoutError: If the command exceeded the timeout
            ExecutionFailedError: If the command could not run or failed
        """
        pass
