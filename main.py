"""Main entry point for running the Rampart API server."""

import sys

from src.api.server import run


def main() -> None:
    """Serve until shutdown and exit with the controller's exit code."""
    sys.exit(run())


if __name__ == "__main__":
    main()
