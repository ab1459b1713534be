"""Executor that runs real brew processes."""

import os
import queue
import logging
import signal
import subprocess
import threading
from datetime import timedelta
from typing import Dict, IO, List, Optional

from brewmaintainer.core.command import (
    BrewCommand,
    CommandExecutor,
    CommandTimeoutError,
    ExecutionFailedError,
    InputRequestedError,
)
from brewmaintainer.core.utils import is_waiting_for_input

logger = logging.getLogger("brewmaintainer.core.executor")

PASSTHROUGH_ENV_VARS = ("HOME", "PATH")

# Event tags placed on the monitor queue
_INPUT = "input"
_COMPLETED = "completed"


class RealBrewCommand(CommandExecutor):
    """Runs brew commands as child processes."""

    def __init__(self, brew_binary: str = "brew"):
        """
        Initialize the executor.

        Args:
            brew_binary: Name or path of the brew executable
        """
        self.brew_binary = brew_binary

    def _command_line(self, cmd: BrewCommand) -> List[str]:
        return [self.brew_binary] + cmd.to_args()

    def _process_env(self, cmd: BrewCommand) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(cmd.to_env())
        return env

    def envs(self) -> Dict[str, str]:
        envs = {}
        for name in PASSTHROUGH_ENV_VARS:
            value = os.environ.get(name)
            if value is not None:
                envs[name] = value
        return envs

    def execute(self, cmd: BrewCommand) -> str:
        args = cmd.to_args()
        logger.info(f"executing: brew {' '.join(args)}")

        try:
            result = subprocess.run(
                self._command_line(cmd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=self._process_env(cmd),
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ExecutionFailedError(str(e)) from e

        if result.returncode != 0:
            raise ExecutionFailedError(result.stderr.decode("utf-8", errors="replace"))

        try:
            return result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExecutionFailedError(str(e)) from e

    def execute_with_timeout(self, cmd: BrewCommand, timeout: timedelta) -> None:
        args = cmd.to_args()
        logger.info(f"executing: brew {' '.join(args)}")
        timeout_seconds = max(timeout.total_seconds(), 0)

        try:
            process = subprocess.Popen(
                self._command_line(cmd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=self._process_env(cmd),
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ExecutionFailedError(str(e)) from e

        logger.info(f"executing with PID {process.pid}")
        events: "queue.Queue" = queue.Queue()

        readers = [
            threading.Thread(target=_monitor_output, args=(process.stdout, events), daemon=True),
            threading.Thread(target=_monitor_output, args=(process.stderr, events), daemon=True),
        ]
        for reader in readers:
            reader.start()
        waiter = threading.Thread(target=_monitor_completion, args=(process, events), daemon=True)
        waiter.start()

        try:
            try:
                tag, value = events.get(timeout=timeout_seconds)
            except queue.Empty:
                logger.warning(f"brew {' '.join(args)} exceeded {timeout}")
                raise CommandTimeoutError(timeout)

            if tag == _INPUT:
                logger.warning(f"brew {' '.join(args)} is waiting for input: {value.strip()}")
                raise InputRequestedError(value)

            # A prompt printed right before exiting outranks the exit status
            for reader in readers:
                reader.join(timeout=1)
            prompt = _pending_prompt(events)
            if prompt is not None:
                logger.warning(f"brew {' '.join(args)} asked for input before exiting: {prompt.strip()}")
                raise InputRequestedError(prompt)

            if isinstance(value, BaseException):
                raise ExecutionFailedError(str(value)) from value
            if value != 0:
                raise ExecutionFailedError(f"Process exited with code: {value}")
        finally:
            _kill_process(process, readers)


def _monitor_output(stream: Optional[IO[str]], events: "queue.Queue") -> None:
    """Read a child stream line by line and report the first input prompt."""
    if stream is None:
        return
    try:
        for line in stream:
            logger.debug(line.rstrip())
            if is_waiting_for_input(line):
                events.put((_INPUT, line))
                break
    except (OSError, ValueError):
        # Pipe torn down after the process group was killed
        pass


def _monitor_completion(process: subprocess.Popen, events: "queue.Queue") -> None:
    try:
        events.put((_COMPLETED, process.wait()))
    except OSError as e:
        events.put((_COMPLETED, e))


def _pending_prompt(events: "queue.Queue") -> Optional[str]:
    while True:
        try:
            tag, value = events.get_nowait()
        except queue.Empty:
            return None
        if tag == _INPUT:
            return value


def _kill_process(process: subprocess.Popen, readers: List[threading.Thread]) -> None:
    """
    Kill the child's process group so helpers brew spawned go with it.

    The group is left alone once brew has exited and both pipes reached EOF,
    since no process of the session is left holding them.
    """
    if process.poll() is None or any(reader.is_alive() for reader in readers):
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
    try:
        process.wait(timeout=5)
    except subprocess.TimeoutExpired:
        logger.error(f"Process {process.pid} did not exit after being killed")
