#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Main entry point for running brew-maintainer as a module.
Example: python -m brewmaintainer
"""

import sys
from brewmaintainer.cli import main

if __name__ == "__main__":
    sys.exit(main())
