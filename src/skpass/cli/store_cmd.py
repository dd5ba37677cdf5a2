"""Store commands: list, show, status, commit."""

from __future__ import annotations

import sys
from typing import Optional

import click
from rich.markup import escape
from rich.table import Table

from ._common import SKPASS_HOME, console, fail, get_config, open_repository, pick
from ..clipboard import PyperclipChannel, StdoutChannel
from ..errors import DecryptFailed, RepositoryError, StoreUnavailable, UnsupportedStatusError
from ..gpg import GpgDecryptor
from ..handoff import SecretHandoff
from ..models import ChangeKind
from ..notify import ConsoleNotifier, LogNotifier
from ..store import StoreIndex


def _load_entries(config):
    try:
        return StoreIndex.from_config(config.store).mapping()
    except StoreUnavailable as exc:
        fail(str(exc))


def register_store_commands(main: click.Group) -> None:
    """Register list/show/status/commit."""

    @main.command("list")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    def list_cmd(home: str):
        """List every password in the store."""
        config = get_config(home)
        entries = _load_entries(config)
        for name in sorted(entries):
            click.echo(name)

    @main.command("show")
    @click.argument("name", required=False)
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    @click.option("--timeout", type=float, default=None, help="Seconds before the clipboard is cleared.")
    @click.option("--print", "to_stdout", is_flag=True, help="Print instead of copying.")
    @click.option("--no-wait", is_flag=True, help="Return right after copying.")
    def show(name: Optional[str], home: str, timeout: Optional[float], to_stdout: bool, no_wait: bool):
        """Decrypt a password and copy it to the clipboard.

        NAME may be a full display name or part of one; without it,
        every password is offered for selection.
        """
        config = get_config(home)
        entries = _load_entries(config)
        selection = pick(entries, name)

        if to_stdout:
            channel, notifier = StdoutChannel(click.echo), LogNotifier()
        else:
            channel, notifier = PyperclipChannel(), ConsoleNotifier(console)
        handoff = SecretHandoff.from_config(
            config, GpgDecryptor(config.store.gpg_path), channel, notifier
        )

        try:
            result = handoff.reveal(selection, entries, timeout)
        except DecryptFailed:
            sys.exit(1)

        if not result.revealed:
            console.print("[dim]Nothing selected.[/]")
            return
        if to_stdout or no_wait:
            return

        try:
            handoff.wait()
        except KeyboardInterrupt:
            handoff.clear_now()

    @main.command("status")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    def status(home: str):
        """Show uncommitted changes in the store."""
        config = get_config(home)
        with open_repository(config) as handle:
            snapshot = handle.status()

        if snapshot.is_empty:
            console.print("\n  [green]Store is clean.[/]\n")
            return

        table = Table(title="Uncommitted changes")
        table.add_column("Path")
        table.add_column("Index")
        table.add_column("Working tree")
        for entry in snapshot.entries:
            table.add_row(
                escape(entry.path),
                entry.index.value if entry.index else "",
                entry.workdir.value if entry.workdir else "",
            )
        console.print(table)

    @main.command("commit")
    @click.argument("path", required=False, type=click.Path())
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    @click.option(
        "--expect",
        type=click.Choice([ChangeKind.MODIFIED.value, ChangeKind.NEW.value]),
        default=ChangeKind.MODIFIED.value,
        help="What happened to PATH.",
    )
    def commit(path: Optional[str], home: str, expect: str):
        """Commit store changes, one commit per file.

        With PATH, only that file is committed, and only if it was
        changed as --expect says.
        """
        from ..tracker import ChangeTracker

        config = get_config(home)
        with open_repository(config) as handle:
            tracker = ChangeTracker(handle)
            try:
                if path:
                    tracker.commit_single(path, ChangeKind(expect))
                else:
                    tracker.commit_all()
            except (RepositoryError, UnsupportedStatusError) as exc:
                fail(str(exc))

        if not tracker.commits:
            console.print("\n  [dim]Nothing to commit.[/]\n")
            return
        for record in tracker.commits:
            console.print(f"  [green]{record.sha[:8]}[/] {escape(record.message.splitlines()[0])}")
