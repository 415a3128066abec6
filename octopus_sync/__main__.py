"""
Entry point for running octopus_sync as a module.

Usage:
    python -m octopus_sync --help
    python -m octopus_sync sync --dry-run
    python -m octopus_sync status
"""

from octopus_sync.cli import cli

if __name__ == "__main__":
    cli()
