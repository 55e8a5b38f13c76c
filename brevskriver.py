#!/usr/bin/env python3
"""
CLI entry point for running Brevskriver Local as a script.

Delegates to ``brevskriver_local.cli.main`` so both the installed console
script and direct script execution share the same implementation.
"""

from brevskriver_local import __author__ as _AUTHOR, __description__ as _DESCRIPTION, __version__ as _VERSION
from brevskriver_local.cli import BrevskriverCLI, main

__all__ = ["BrevskriverCLI", "main", "__version__", "__author__", "__description__"]

__author__ = _AUTHOR
__description__ = _DESCRIPTION
__version__ = _VERSION


if __name__ == "__main__":
    main()
