"""CLI entry point for buildwatch.

Usage:
    python -m buildwatch [options] [task]

Example:
    python -m buildwatch styles
    python -m buildwatch watch
    python -m buildwatch --list
"""

from .runner import main
import sys

if __name__ == '__main__':
    sys.exit(main())
