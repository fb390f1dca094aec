"""CLI entry point for tune-in.

Usage:
    tune-in wrap [assistant-args...] [--no-pause]
    python -m tunein hook play
"""

import sys


def main() -> int:
    """Main entry point for the tune-in CLI."""
    from tunein.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
