"""
Entry point for running discovr as a module.

This allows the package to be executed with: python -m discovr
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
