"""
Homebrew formula for installing brew-maintainer as a macOS service.

The release workflow renders the formula from the metadata of a published
build. Fields it has not filled in yet carry PLACEHOLDER, and `validate` /
`check_rendered` refuse to pass a formula that still contains one.
"""

import logging
import re
from typing import List, Optional, Tuple

logger = logging.getLogger("brewmaintainer.formula")

PLACEHOLDER = "<REPLACED_BY_GITHUB_ACTION>"
BINARY_NAME = "brew-maintainer"
DEFAULT_DESC = "Automated Homebrew maintenance tool (update, upgrade, cleanup with logs)"
DEFAULT_LICENSE = "MIT"
DEFAULT_INTERVAL = 6 * 60 * 60
DEFAULT_SERVICE_PATH = "/opt/homebrew/bin:/usr/local/bin:/usr/bin:/bin"

KEEP_ALIVE = "keep_alive"
INTERVAL = "interval"
RUN_TYPES = (KEEP_ALIVE, INTERVAL)

METADATA_FIELDS = ("desc", "homepage", "version", "url", "sha256", "license")

_SHA256_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_FIELD_RE = re.compile(r'^\s*(%s)\s+"(.*)"\s*$' % "|".join(METADATA_FIELDS))


class FormulaError(Exception):
    """Exception raised when a formula cannot be rendered."""
    pass


class FormulaMetadata:
    """Descriptive fields at the top of the formula."""

    def __init__(self, desc: str = DEFAULT_DESC, homepage: str = PLACEHOLDER,
                 version: str = PLACEHOLDER, url: str = PLACEHOLDER,
                 sha256: str = PLACEHOLDER, license: str = DEFAULT_LICENSE):
        self.desc = desc
        self.homepage = homepage
        self.version = version
        self.url = url
        self.sha256 = sha256
        self.license = license

    def fields(self) -> List[Tuple[str, str]]:
        return [(name, getattr(self, name)) for name in METADATA_FIELDS]


class ServiceConfig:
    """The formula's service block."""

    def __init__(self, run_type: str = KEEP_ALIVE, interval: int = DEFAULT_INTERVAL,
                 log_path: str = f"log/{BINARY_NAME}.log",
                 error_log_path: str = f"log/{BINARY_NAME}.err.log",
                 path_env: str = DEFAULT_SERVICE_PATH):
        if run_type not in RUN_TYPES:
            raise FormulaError(f"Unknown service run type: {run_type}")
        self.run_type = run_type
        self.interval = interval
        # Both log paths are relative to Homebrew's var directory
        self.log_path = log_path
        self.error_log_path = error_log_path
        self.path_env = path_env

    def schedule_text(self) -> str:
        """Describe when the service runs, for the caveats."""
        if self.run_type == KEEP_ALIVE:
            return "will be kept running via macOS service"
        hours, remainder = divmod(self.interval, 3600)
        if remainder == 0 and hours > 0:
            unit = "hour" if hours == 1 else "hours"
            return f"will automatically run every {hours} {unit} via macOS service"
        minutes = self.interval / 60
        return f"will automatically run every {minutes:g} minutes via macOS service"


def _ruby_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("#{", "\\#{")
    return f'"{escaped}"'


def render_caveats(service: ServiceConfig, var_dir: str = "#{var}") -> str:
    """
    Build the caveats text shown after installation.

    Args:
        service: The service block the caveats describe
        var_dir: Homebrew's var directory, or the Ruby interpolation for it

    Returns:
        Caveats text, one line per sentence
    """
    return (
        f"{BINARY_NAME} {service.schedule_text()}.\n"
        f"Logs are stored under:\n"
        f"  {var_dir}/{service.log_path}\n"
        f"If a run requires user input, it will be skipped and noted in the log.\n"
    )


def render_formula(metadata: FormulaMetadata, service: ServiceConfig) -> str:
    """
    Render the Ruby formula.

    Args:
        metadata: Descriptive fields
        service: Service block settings

    Returns:
        The formula source
    """
    lines = ["class BrewMaintainer < Formula"]
    for name, value in metadata.fields():
        lines.append(f"  {name} {_ruby_string(value)}")
    lines += [
        "",
        "  depends_on :macos # only macOS supported",
        "",
        "  def install",
        f'    bin.install "{BINARY_NAME}"',
        "  end",
        "",
        "  service do",
        f'    run [opt_bin/"{BINARY_NAME}"]',
    ]
    if service.run_type == KEEP_ALIVE:
        lines.append("    keep_alive true")
    else:
        lines.append("    run_type :interval")
        lines.append(f"    interval {service.interval}")
    lines += [
        f"    log_path var/{_ruby_string(service.log_path)}",
        f"    error_log_path var/{_ruby_string(service.error_log_path)}",
        "    working_dir var",
        f"    environment_variables PATH: {_ruby_string(service.path_env)}",
        "  end",
        "",
        "  def caveats",
        "    <<~EOS",
    ]
    for line in render_caveats(service).splitlines():
        lines.append(f"      {line}" if line else "")
    lines += [
        "    EOS",
        "  end",
        "end",
    ]
    return "\n".join(lines) + "\n"


def _check_log_path(label: str, path: str) -> Optional[str]:
    if not path:
        return f"{label} is empty"
    if path.startswith("/"):
        return f"{label} must be relative to var, got {path}"
    if ".." in path.split("/"):
        return f"{label} must stay inside var, got {path}"
    if not path.startswith("log/"):
        return f"{label} must live under var/log, got {path}"
    return None


def validate(metadata: FormulaMetadata, service: ServiceConfig) -> List[str]:
    """
    Check that a formula is ready to publish.

    Args:
        metadata: Descriptive fields
        service: Service block settings

    Returns:
        List of problems; empty if the formula is publishable
    """
    problems = []

    for name, value in metadata.fields():
        if not value or not value.strip():
            problems.append(f"{name} is empty")
        elif PLACEHOLDER in value:
            problems.append(f"{name} still holds the release placeholder")

    if metadata.sha256 and PLACEHOLDER not in metadata.sha256 \
            and not _SHA256_RE.match(metadata.sha256):
        problems.append("sha256 must be 64 hexadecimal characters")

    for label, path in (("log_path", service.log_path),
                        ("error_log_path", service.error_log_path)):
        problem = _check_log_path(label, path)
        if problem:
            problems.append(problem)

    if service.log_path and service.log_path == service.error_log_path:
        problems.append("log_path and error_log_path must differ")

    if service.run_type == INTERVAL and service.interval <= 0:
        problems.append("interval must be a positive number of seconds")

    if not service.path_env or not service.path_env.strip():
        problems.append("PATH environment variable is empty")

    for problem in problems:
        logger.debug(f"Formula problem: {problem}")
    return problems


def find_placeholders(text: str) -> List[Tuple[int, str]]:
    """
    Find lines of a rendered formula that still carry the placeholder.

    Args:
        text: Formula source

    Returns:
        (line number, line) pairs, line numbers starting at 1
    """
    return [(lineno, line.strip())
            for lineno, line in enumerate(text.splitlines(), start=1)
            if PLACEHOLDER in line]


def check_rendered(text: str) -> List[str]:
    """
    Check a rendered formula file.

    Args:
        text: Formula source

    Returns:
        List of problems; empty if every metadata field is filled in
    """
    problems = [f"line {lineno}: placeholder left in `{line}`"
                for lineno, line in find_placeholders(text)]

    seen = {}
    for line in text.splitlines():
        match = _FIELD_RE.match(line)
        if match:
            seen[match.group(1)] = match.group(2)

    for name in METADATA_FIELDS:
        if name not in seen:
            problems.append(f"{name} is missing")
        elif not seen[name].strip():
            problems.append(f"{name} is empty")

    sha256 = seen.get("sha256", "")
    if sha256 and PLACEHOLDER not in sha256 and not _SHA256_RE.match(sha256):
        problems.append("sha256 must be 64 hexadecimal characters")

    if "service do" not in text:
        problems.append("service block is missing")

    return problems
