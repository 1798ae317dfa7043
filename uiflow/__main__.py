"""
uiflow entrypoint.

Usage:
    python -m uiflow <command> [path]
"""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
