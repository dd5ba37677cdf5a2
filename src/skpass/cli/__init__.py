"""
SKPass CLI -- the password store from the command line.

This package organizes the CLI into modular command groups.
The main Click group is defined here and all subcommands
are registered via register functions.

Entry point: skpass.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="skpass")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
def main(verbose: bool):
    """SKPass -- find it, decrypt it, forget it.

    Every change committed. Every sync rebased.
    """
    setup_logging(verbose)


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .store_cmd import register_store_commands
from .sync_cmd import register_sync_commands
from .config_cmd import register_config_commands
from .daemon_cmd import register_daemon_commands

register_store_commands(main)
register_sync_commands(main)
register_config_commands(main)
register_daemon_commands(main)
