"""Shared utilities for all CLI command modules.

Provides the Rich console instance, config loading, the interactive
picker, and the error exit used across every command group.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Mapping, NoReturn, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import SKPASS_HOME
from ..config import load_config
from ..errors import RepositoryError
from ..models import SkpassConfig
from ..repository import RepositoryHandle

console = Console()
logger = logging.getLogger("skpass.cli")


def setup_logging(verbose: bool) -> None:
    """Configure the root logger once for the CLI process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )


def fail(message: str) -> NoReturn:
    """Print an error and exit non-zero."""
    console.print(f"[bold red]Error:[/] {escape(message)}")
    sys.exit(1)


def get_config(home: Optional[str]) -> SkpassConfig:
    return load_config(Path(home).expanduser() if home else None)


def open_repository(config: SkpassConfig) -> RepositoryHandle:
    """Open the store's repository or exit with a readable error."""
    if not config.git.enabled:
        fail("Git integration is disabled in the config (git.enabled: false).")
    try:
        return RepositoryHandle.open(config.store.path, config.git)
    except RepositoryError as exc:
        fail(str(exc))


def pick(entries: Mapping[str, Path], query: Optional[str] = None) -> Optional[str]:
    """Let the user choose one display name.

    An exact match for ``query`` is returned straight away. Otherwise
    the names containing ``query`` (all names without one) are listed
    and the user picks by number or by name. A blank answer cancels.

    Returns:
        The chosen display name, or None on cancellation.
    """
    if query is not None and query in entries:
        return query

    names = sorted(n for n in entries if query is None or query in n)
    if not names:
        console.print(f"[yellow]No password matches[/] {escape(query or '')}")
        return None
    if len(names) == 1 and query is not None:
        return names[0]

    table = Table(show_header=False, box=None)
    for i, name in enumerate(names, 1):
        table.add_row(f"[dim]{i:>3}[/]", escape(name))
    console.print(table)

    answer = click.prompt("Select", default="", show_default=False).strip()
    if not answer:
        return None
    if answer.isdigit() and 1 <= int(answer) <= len(names):
        return names[int(answer) - 1]
    if answer in entries:
        return answer
    console.print(f"[yellow]Unknown selection:[/] {escape(answer)}")
    return None


__all__ = [
    "SKPASS_HOME",
    "console",
    "fail",
    "get_config",
    "logger",
    "open_repository",
    "pick",
    "setup_logging",
]
