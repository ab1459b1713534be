"""Models for the packages reported by `brew outdated --json`."""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from brewmaintainer.core.command import ExecutionFailedError

logger = logging.getLogger("brewmaintainer.core.formulae")


class Package:
    """An outdated formula or cask."""

    def __init__(self, name: str, installed_versions: Optional[List[str]] = None,
                 current_version: str = "", pinned: bool = False,
                 pinned_version: Optional[str] = None):
        self.name = name
        self.installed_versions = list(installed_versions or [])
        self.current_version = current_version
        self.pinned = pinned
        self.pinned_version = pinned_version or ""

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Package":
        """
        Build a package from one entry of brew's outdated JSON.

        Args:
            data: A formula or cask object

        Returns:
            The package, with missing fields left empty
        """
        return cls(
            name=data.get("name", ""),
            installed_versions=data.get("installed_versions") or [],
            current_version=data.get("current_version") or "",
            pinned=bool(data.get("pinned", False)),
            pinned_version=data.get("pinned_version"),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Package):
            return NotImplemented
        return vars(self) == vars(other)

    def __repr__(self) -> str:
        return f"Package({self.name!r})"

    def __str__(self) -> str:
        return (f"{self.name}(available:{self.current_version}): "
                f"|installed: {', '.join(self.installed_versions)}"
                f"|pinned: {str(self.pinned).lower()}"
                f"|pinned-version: {self.pinned_version}|")


class OutdatedPackages:
    """The packages brew reported as outdated, in brew's order."""

    def __init__(self, packages: Optional[List[Package]] = None):
        self.packages = list(packages or [])

    def __iter__(self) -> Iterator[Package]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self.packages)

    def __bool__(self) -> bool:
        return bool(self.packages)

    def names(self) -> List[str]:
        return [package.name for package in self.packages]

    def __str__(self) -> str:
        return "\n".join(str(package) for package in self.packages)


def parse_outdated(text: str) -> OutdatedPackages:
    """
    Parse the output of `brew outdated --json`.

    Both the v1 layout (a list of formulae) and the v2 layout (an object with
    "formulae" and "casks" lists) are accepted. Empty output means nothing is
    outdated.

    Args:
        text: Raw JSON printed by brew

    Returns:
        The outdated packages

    Raises:
        ExecutionFailedError: If the output is not the JSON brew prints
    """
    if not text.strip():
        return OutdatedPackages()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing brew outdated output: {e}")
        raise ExecutionFailedError(f"error on parsing: {e}") from e

    if isinstance(data, dict):
        entries = list(data.get("formulae") or []) + list(data.get("casks") or [])
    elif isinstance(data, list):
        entries = data
    else:
        raise ExecutionFailedError(f"error on parsing: unexpected JSON {type(data).__name__}")

    packages = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name"):
            logger.debug(f"Skipping malformed outdated entry: {entry!r}")
            continue
        packages.append(Package.from_json(entry))

    return OutdatedPackages(packages)
