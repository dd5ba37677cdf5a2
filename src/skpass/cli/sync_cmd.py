"""Sync commands: sync (fetch/rebase/push), sync status."""

from __future__ import annotations

import sys

import click
from rich.markup import escape
from rich.panel import Panel

from ._common import SKPASS_HOME, console, fail, get_config, open_repository
from ..errors import RebaseConflict, RepositoryError, SyncError, UnsupportedStatusError
from ..models import Severity
from ..notify import ConsoleNotifier
from ..sync import SyncCoordinator
from ..tracker import ChangeTracker


def register_sync_commands(main: click.Group) -> None:
    """Register the sync command group."""

    @main.group("sync", invoke_without_command=True)
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    @click.option("--no-commit", is_flag=True, help="Do not commit pending changes first.")
    @click.pass_context
    def sync(ctx: click.Context, home: str, no_commit: bool):
        """Commit, fetch, rebase onto upstream, and push.

        A rebase that hits a conflict is aborted and nothing is pushed.
        """
        if ctx.invoked_subcommand is not None:
            return

        config = get_config(home)
        notifier = ConsoleNotifier(console)
        with open_repository(config) as handle:
            coordinator = SyncCoordinator.from_config(handle, config.git)
            try:
                if not no_commit:
                    committed = ChangeTracker(handle).commit_all()
                    if not committed.is_empty:
                        console.print(f"  Committed [bold]{len(committed)}[/] change(s)")
                report = coordinator.synchronize()
            except RebaseConflict as exc:
                notifier.notify(
                    f"Could not rebase {exc.local_branch} onto {exc.upstream_branch}. "
                    "The rebase was aborted; resolve the conflict manually.",
                    Severity.ERROR,
                    config.notification_duration_ms,
                )
                sys.exit(1)
            except SyncError as exc:
                notifier.notify(str(exc), Severity.ERROR, config.notification_duration_ms)
                sys.exit(1)
            except (RepositoryError, UnsupportedStatusError) as exc:
                fail(str(exc))

        rebase = report.rebase
        if rebase.fast_forward:
            console.print(f"  Fast-forwarded to [cyan]{escape(rebase.upstream_branch)}[/]")
        elif rebase.completed_steps:
            console.print(f"  Replayed [bold]{rebase.completed_steps}[/] commit(s)")
        if report.pushed:
            console.print("  [green]Pushed[/]")
        console.print("  [green]Store is in sync.[/]")

    @sync.command("status")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    def sync_status(home: str):
        """Show how the store's branch relates to its upstream."""
        config = get_config(home)
        with open_repository(config) as handle:
            try:
                details = SyncCoordinator.from_config(handle, config.git).tracking()
            except RepositoryError as exc:
                fail(str(exc))

        console.print()
        console.print(
            Panel(
                f"Branch: [cyan]{escape(details.local_branch)}[/]\n"
                f"Upstream: [cyan]{escape(details.upstream_branch)}[/]\n"
                f"Ahead: [bold]{details.ahead}[/]\n"
                f"Behind: [bold]{details.behind}[/]",
                title="Password store sync",
                border_style="magenta",
            )
        )
        console.print()
