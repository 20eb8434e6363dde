"""Command-line interface for auxiliaire.

This module provides the main CLI entry point and assembles all commands.

Commands:
- backup: Back up solutions to a local directory
"""

from __future__ import annotations

import click

from auxiliaire.client.cli.backup import backup, configure_logging
from auxiliaire.client.cli.config import (
    get_exercism_config_dir,
    get_exercism_user_file,
    load_exercism_config,
    resolve_token,
)


@click.group()
@click.version_option(package_name="auxiliaire")
def cli() -> None:
    """auxiliaire - Backup of Exercism.org solutions."""


cli.add_command(backup)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Utilities
    "configure_logging",
    "get_exercism_config_dir",
    "get_exercism_user_file",
    "load_exercism_config",
    "resolve_token",
]
