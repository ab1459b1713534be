#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Command-line interface for brew-maintainer.

This module provides the main command-line interface for the brew-maintainer
tool, using argparse to parse arguments and subcommands. Run without a
subcommand it performs a full maintenance run, which is what the Homebrew
service invokes.
"""

import argparse
import logging
import logging.handlers
import os
import sys
from datetime import timedelta
from typing import List, Optional, TextIO

from brewmaintainer import __version__
from brewmaintainer.core.command import BrewError
from brewmaintainer.core.config import LOG_FILE_NAME, MaintainerConfig
from brewmaintainer.core.executor import RealBrewCommand
from brewmaintainer.core.formulae import OutdatedPackages, Package
from brewmaintainer.core.maintainer import BrewMaintainer, MaintenanceError, run_maintenance
from brewmaintainer.core.utils import ensure_dir
from brewmaintainer.formula import (
    FormulaError,
    FormulaMetadata,
    INTERVAL,
    KEEP_ALIVE,
    ServiceConfig,
    check_rendered,
    render_formula,
    validate,
)

# Configure logging
logger = logging.getLogger("brewmaintainer")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# formula options that only apply when rendering, with their argparse dests
RENDER_OPTIONS = (
    ("--version", "formula_version"),
    ("--url", "url"),
    ("--sha256", "sha256"),
    ("--homepage", "homepage"),
    ("--interval", "interval"),
    ("--keep-alive", "keep_alive"),
    ("--output", "output"),
    ("--allow-placeholders", "allow_placeholders"),
)


def setup_logging(verbose: bool = False, debug: bool = False,
                  log_dir: Optional[str] = None, level_name: str = "INFO",
                  stream: Optional[TextIO] = None) -> Optional[str]:
    """
    Set up logging configuration.

    Logs go to the console stream and, when log_dir is given, to a file
    rotated at midnight.

    Args:
        verbose: Whether to enable verbose logging (at least INFO level)
        debug: Whether to enable debug logging (DEBUG level)
        log_dir: Directory for the rotated log file, or None to skip the file
        level_name: Level used when neither flag is given
        stream: Console stream (defaults to sys.stdout)

    Returns:
        Path of the log file, or None if file logging is disabled
    """
    log_level = logging.getLevelName(level_name)
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        # -v never hides messages a more verbose configured level would show
        log_level = min(logging.INFO, log_level)

    handlers: List[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]

    log_file = None
    if log_dir and ensure_dir(log_dir):
        log_file = os.path.join(log_dir, LOG_FILE_NAME)
        try:
            handlers.append(logging.handlers.TimedRotatingFileHandler(
                log_file, when="midnight", encoding="utf-8"
            ))
        except OSError as e:
            print(f"Warning: cannot write log file {log_file}: {e}", file=sys.stderr)
            log_file = None

    # Configure root logger
    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers, force=True)

    if log_file:
        logger.info(f"brew-maintainer logging initialized ({log_file})")
    else:
        logger.info("brew-maintainer logging initialized")
    return log_file


def positive_minutes(value: str) -> float:
    """argparse type for a strictly positive number of minutes."""
    try:
        minutes = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of minutes: {value!r}")
    if minutes <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {value}")
    return minutes


def _add_timeout_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout", type=positive_minutes, default=None, metavar="MINUTES",
        help="Maximum minutes a single package upgrade may take (default: 5)"
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="brew-maintainer",
        description="brew-maintainer - Automated Homebrew maintenance (update, upgrade, cleanup with logs)"
    )
    parser.add_argument(
        "--version", action="version", version=f"brew-maintainer {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging (INFO level)"
    )
    parser.add_argument(
        "-X", "--debug", action="store_true", help="Enable debug logging (DEBUG level)"
    )
    parser.add_argument(
        "--log-dir", type=str, default=None,
        help="Directory for the daily rotated log (default: Homebrew's var/log)"
    )
    parser.add_argument(
        "--no-log-file", action="store_true", help="Only log to the console"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run update, upgrade and cleanup (default)")
    _add_timeout_argument(run_parser)
    run_parser.add_argument(
        "--dry-run", action="store_true",
        help="Only report what would be upgraded and cleaned"
    )

    subparsers.add_parser("update", help="Update Homebrew and its taps")
    subparsers.add_parser("outdated", help="List outdated packages")

    upgrade_parser = subparsers.add_parser("upgrade", help="Upgrade packages one at a time")
    upgrade_parser.add_argument(
        "packages", nargs="*",
        help="Packages to upgrade (if not specified, upgrade every outdated package)"
    )
    _add_timeout_argument(upgrade_parser)

    cleanup_parser = subparsers.add_parser("cleanup", help="Remove stale downloads and old versions")
    cleanup_parser.add_argument(
        "--dry-run", action="store_true",
        help="Only show what would be removed"
    )

    # Formula command
    formula_parser = subparsers.add_parser("formula", help="Render or check the Homebrew formula")
    formula_parser.add_argument("--version", dest="formula_version", help="Release version")
    formula_parser.add_argument("--url", help="Release archive URL")
    formula_parser.add_argument("--sha256", help="Release archive checksum")
    formula_parser.add_argument("--homepage", help="Project homepage")
    schedule = formula_parser.add_mutually_exclusive_group()
    schedule.add_argument(
        "--interval", type=int, metavar="SECONDS",
        help="Run the service on an interval instead of keeping it alive"
    )
    schedule.add_argument(
        "--keep-alive", action="store_true", help="Keep the service running (default)"
    )
    formula_parser.add_argument(
        "--output", "-o", type=str, help="Write the formula to this file instead of stdout"
    )
    formula_parser.add_argument(
        "--check", type=str, metavar="FILE",
        help="Validate an already rendered formula instead of rendering one "
             "(cannot be combined with the rendering options)"
    )
    formula_parser.add_argument(
        "--allow-placeholders", action="store_true",
        help="Render even if release fields are still placeholders"
    )

    return parser


def _timeout(parsed_args: argparse.Namespace, config: MaintainerConfig) -> timedelta:
    if parsed_args.timeout is not None:
        return timedelta(minutes=parsed_args.timeout)
    return config.upgrade_timeout


def run_full_maintenance(maintainer: BrewMaintainer, timeout: timedelta, dry_run: bool) -> int:
    """
    Run the complete maintenance sequence.

    Returns:
        Exit code (0 if every package upgraded, 1 otherwise)
    """
    try:
        report = run_maintenance(maintainer, timeout=timeout, dry_run=dry_run)
    except MaintenanceError as e:
        logger.error(str(e))
        logger.debug("Exception details:", exc_info=True)
        return 1

    if report.failed_upgrades:
        logger.warning(f"{len(report.failed_upgrades)} package(s) were skipped: "
                       f"{', '.join(package.name for package in report.failed_upgrades)}")
        return 1
    return 0


def run_step(maintainer: BrewMaintainer, parsed_args: argparse.Namespace,
             config: MaintainerConfig) -> int:
    """
    Run a single maintenance step.

    Returns:
        Exit code (0 for success, 1 for failures)
    """
    command = parsed_args.command
    try:
        if command == "update":
            print(maintainer.update_reference_repositories(), end="")
        elif command == "outdated":
            outdated = maintainer.find_outdated_packages()
            if outdated:
                print(outdated)
            else:
                print("All packages are up to date")
        elif command == "upgrade":
            if parsed_args.packages:
                packages = OutdatedPackages([Package(name) for name in parsed_args.packages])
            else:
                packages = maintainer.find_outdated_packages()
            failed = maintainer.upgrade_packages_with_timeout(packages, _timeout(parsed_args, config))
            for package in failed:
                print(f"Skipped: {package.name}")
            return 1 if failed else 0
        elif command == "cleanup":
            print(maintainer.cleanup(dry_run=parsed_args.dry_run), end="")
    except BrewError as e:
        logger.error(f"brew {command} failed: {e}")
        logger.debug("Exception details:", exc_info=True)
        return 1
    return 0


def run_formula(parsed_args: argparse.Namespace) -> int:
    """
    Render the Homebrew formula, or validate a rendered one.

    Returns:
        Exit code (0 if the formula is valid, 1 otherwise)
    """
    if parsed_args.check:
        try:
            with open(parsed_args.check, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            logger.error(f"Cannot read formula {parsed_args.check}: {e}")
            return 1
        problems = check_rendered(text)
        for problem in problems:
            print(f"{parsed_args.check}: {problem}")
        return 1 if problems else 0

    metadata = FormulaMetadata()
    for field, value in (("version", parsed_args.formula_version), ("url", parsed_args.url),
                         ("sha256", parsed_args.sha256), ("homepage", parsed_args.homepage)):
        if value is not None:
            setattr(metadata, field, value)

    try:
        if parsed_args.interval is not None:
            service = ServiceConfig(run_type=INTERVAL, interval=parsed_args.interval)
        else:
            service = ServiceConfig(run_type=KEEP_ALIVE)
    except FormulaError as e:
        logger.error(str(e))
        return 1

    problems = validate(metadata, service)
    if parsed_args.allow_placeholders:
        problems = [problem for problem in problems if "placeholder" not in problem]
    if problems:
        for problem in problems:
            print(f"formula: {problem}", file=sys.stderr)
        return 1

    text = render_formula(metadata, service)
    if parsed_args.output:
        try:
            with open(parsed_args.output, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            logger.error(f"Cannot write formula {parsed_args.output}: {e}")
            return 1
        logger.info(f"Formula written to {parsed_args.output}")
    else:
        print(text, end="")
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application.

    Args:
        args: Command-line arguments (if None, use sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    if args is None:
        args = sys.argv[1:]

    parser = create_parser()
    parsed_args = parser.parse_args(args)

    # The service runs the binary without arguments
    if parsed_args.command is None:
        parsed_args.command = "run"
        parsed_args.timeout = None
        parsed_args.dry_run = False

    config = MaintainerConfig.from_env()
    if parsed_args.log_dir:
        config.log_dir = parsed_args.log_dir

    if parsed_args.command == "formula":
        if parsed_args.check:
            render_options = [option for option, value in RENDER_OPTIONS
                              if getattr(parsed_args, value) not in (None, False)]
            if render_options:
                parser.error(f"formula --check cannot be combined with {', '.join(render_options)}")

        # The rendered formula goes to stdout; logs go to stderr
        setup_logging(
            parsed_args.verbose, parsed_args.debug,
            level_name="WARNING", stream=sys.stderr,
        )
        return run_formula(parsed_args)

    setup_logging(
        parsed_args.verbose, parsed_args.debug,
        log_dir=None if parsed_args.no_log_file else config.log_dir,
        level_name=config.log_level,
    )

    maintainer = BrewMaintainer(RealBrewCommand(config.brew_binary))
    if parsed_args.command == "run":
        return run_full_maintenance(maintainer, _timeout(parsed_args, config), parsed_args.dry_run)
    return run_step(maintainer, parsed_args, config)


if __name__ == "__main__":
    sys.exit(main())
