"""
brew-maintainer - Automated Homebrew maintenance for macOS

This tool keeps a Homebrew installation current without supervision: it
updates the taps, upgrades outdated packages one by one (skipping any that
ask for input or hang) and cleans up old versions, logging every run.
"""

__version__ = "0.1.0"
