"""
Homebrew maintenance workflow.

The maintainer refreshes Homebrew's taps, upgrades every outdated package one
at a time and cleans up afterwards. A package whose upgrade asks for input or
runs too long is skipped and reported rather than stopping the run.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import List, Optional

from brewmaintainer.core.command import BrewCommand, BrewError, CommandExecutor
from brewmaintainer.core.formulae import OutdatedPackages, Package, parse_outdated
from brewmaintainer.core.utils import format_duration

logger = logging.getLogger("brewmaintainer.core.maintainer")

DEFAULT_UPGRADE_TIMEOUT = timedelta(minutes=5)


class MaintenanceError(Exception):
    """Exception raised when a maintenance step fails and the run is aborted."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{message}: {cause}" if cause else message)
        self.message = message
        self.cause = cause


class MaintenanceReport:
    """Outcome of a maintenance run."""

    def __init__(self):
        self.update_output = ""
        self.outdated = OutdatedPackages()
        self.failed_upgrades: List[Package] = []
        self.cleanup_output = ""
        self.dry_run = False
        self.duration = 0.0

    @property
    def upgraded(self) -> List[Package]:
        if self.dry_run:
            return []
        failed = {package.name for package in self.failed_upgrades}
        return [package for package in self.outdated if package.name not in failed]

    @property
    def success(self) -> bool:
        return not self.failed_upgrades


class BrewMaintainer:
    """Runs the individual maintenance steps through a command executor."""

    def __init__(self, executor: CommandExecutor):
        self.executor = executor

    def update_reference_repositories(self) -> str:
        """Run `brew update` and return its output."""
        return self.executor.execute(BrewCommand.update(self.executor.envs()))

    def find_outdated_packages(self) -> OutdatedPackages:
        """Run `brew outdated --json` and parse the result."""
        output = self.executor.execute(BrewCommand.outdated(self.executor.envs()))
        return parse_outdated(output)

    def upgrade_packages_with_timeout(self, outdated_packages: OutdatedPackages,
                                      timeout: timedelta) -> List[Package]:
        """
        Upgrade each outdated package on its own.

        Args:
            outdated_packages: Packages to upgrade, in order
            timeout: Maximum time a single upgrade may take

        Returns:
            The packages whose upgrade failed, timed out or asked for input
        """
        failed_upgrade = []
        for package in outdated_packages:
            try:
                self.executor.execute_with_timeout(
                    BrewCommand.upgrade(package.name, self.executor.envs()), timeout
                )
            except BrewError as e:
                logger.warning(f"Skipping {package.name}: {e}")
                failed_upgrade.append(package)
        return failed_upgrade

    def cleanup(self, dry_run: bool = False) -> str:
        """Run `brew cleanup` and return its output."""
        return self.executor.execute(BrewCommand.cleanup(self.executor.envs(), dry_run=dry_run))


def run_maintenance(brew_maintainer: BrewMaintainer,
                    timeout: timedelta = DEFAULT_UPGRADE_TIMEOUT,
                    dry_run: bool = False) -> MaintenanceReport:
    """
    Run the full update, outdated, upgrade and cleanup sequence.

    Args:
        brew_maintainer: Maintainer bound to an executor
        timeout: Maximum time a single package upgrade may take
        dry_run: If True, only report what would be upgraded and cleaned

    Returns:
        Report describing the run

    Raises:
        MaintenanceError: If update, outdated or cleanup fails
    """
    report = MaintenanceReport()
    report.dry_run = dry_run
    start_time = time.time()
    logger.info(f"=== Brew Maintenance Run at {datetime.now().astimezone().isoformat(timespec='seconds')} ===")

    if dry_run:
        logger.info("DRY RUN: skipping brew update, no package will be upgraded")
    else:
        try:
            report.update_output = brew_maintainer.update_reference_repositories()
        except BrewError as e:
            raise MaintenanceError("❌ Failed to update reference repositories", e) from e
        logger.info(f"output: {report.update_output}")
        logger.info("✅ brew update done")

    try:
        report.outdated = brew_maintainer.find_outdated_packages()
    except BrewError as e:
        raise MaintenanceError("❌ Failed in finding outdated packages", e) from e
    logger.info(f"outdated packages: \n{report.outdated}")
    logger.info("✅ brew outdated done")

    if dry_run:
        for package in report.outdated:
            logger.info(f"Would upgrade: {package}")
    else:
        report.failed_upgrades = brew_maintainer.upgrade_packages_with_timeout(report.outdated, timeout)
        logger.info(f"failed upgrade: {[package.name for package in report.failed_upgrades]}")
        logger.info("✅ brew upgrade done")

    try:
        report.cleanup_output = brew_maintainer.cleanup(dry_run=dry_run)
    except BrewError as e:
        raise MaintenanceError("❌ Failed to cleanup", e) from e
    logger.info(f"output: {report.cleanup_output}")
    logger.info("✅ brew cleanup done")

    report.duration = time.time() - start_time
    logger.info(f"Run complete in {format_duration(report.duration)}")
    return report
