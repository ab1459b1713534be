"""Runtime settings read from the environment."""

import logging
import os
from datetime import timedelta
from typing import Mapping, Optional

from brewmaintainer.core.utils import default_log_dir

logger = logging.getLogger("brewmaintainer.config")

ENV_BREW = "BREW_MAINTAINER_BREW"
ENV_TIMEOUT = "BREW_MAINTAINER_TIMEOUT"
ENV_LOG_DIR = "BREW_MAINTAINER_LOG_DIR"
ENV_LOG_LEVEL = "BREW_MAINTAINER_LOG_LEVEL"

DEFAULT_TIMEOUT_MINUTES = 5.0
DEFAULT_LOG_LEVEL = "INFO"
LOG_FILE_NAME = "brew-maintainer.daily.log"


class MaintainerConfig:
    """Settings shared by every brew-maintainer command."""

    def __init__(self, brew_binary: str = "brew",
                 timeout_minutes: float = DEFAULT_TIMEOUT_MINUTES,
                 log_dir: Optional[str] = None,
                 log_level: str = DEFAULT_LOG_LEVEL):
        self.brew_binary = brew_binary
        self.timeout_minutes = timeout_minutes
        self.log_dir = log_dir or default_log_dir()
        self.log_level = log_level

    @property
    def upgrade_timeout(self) -> timedelta:
        return timedelta(minutes=self.timeout_minutes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MaintainerConfig":
        """
        Build the settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings with defaults for anything unset or invalid
        """
        if environ is None:
            environ = os.environ

        timeout_minutes = DEFAULT_TIMEOUT_MINUTES
        raw_timeout = environ.get(ENV_TIMEOUT)
        if raw_timeout:
            try:
                timeout_minutes = float(raw_timeout)
                if timeout_minutes <= 0:
                    raise ValueError("timeout must be positive")
            except ValueError as e:
                logger.warning(f"Ignoring invalid {ENV_TIMEOUT}={raw_timeout!r}: {e}")
                timeout_minutes = DEFAULT_TIMEOUT_MINUTES

        log_level = environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            logger.warning(f"Ignoring invalid {ENV_LOG_LEVEL}={log_level!r}")
            log_level = DEFAULT_LOG_LEVEL

        return cls(
            brew_binary=environ.get(ENV_BREW) or "brew",
            timeout_minutes=timeout_minutes,
            log_dir=environ.get(ENV_LOG_DIR) or None,
            log_level=log_level,
        )
