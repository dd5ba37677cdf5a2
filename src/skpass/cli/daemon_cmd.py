"""Daemon commands: start, stop, status."""

from __future__ import annotations

import json
import os
import signal
import sys
from pathlib import Path

import click
from rich.panel import Panel

from ._common import SKPASS_HOME, console, fail, get_config
from ..errors import RepositoryError


def register_daemon_commands(main: click.Group) -> None:
    """Register the daemon command group."""

    @main.group()
    def daemon():
        """Background daemon -- commits and syncs the store on a timer."""

    @daemon.command("start")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    @click.option("--sync-interval", "sync_int", type=int, default=None,
                  help="Seconds between commit+sync rounds (overrides config).")
    def daemon_start(home: str, sync_int):
        """Run the daemon in the foreground (Ctrl+C to stop).

        Use systemd or similar to keep it in the background.
        """
        from ..daemon import DaemonService, is_running

        home_path = Path(home).expanduser()
        if is_running(home_path):
            console.print("[yellow]Daemon is already running.[/]")
            sys.exit(0)

        config = get_config(home)
        if sync_int is not None:
            config.git.sync_interval = sync_int
        if not config.git.enabled:
            fail("Git integration is disabled in the config (git.enabled: false).")

        try:
            svc = DaemonService.from_config(home_path, config)
        except RepositoryError as exc:
            fail(str(exc))

        console.print(f"\n  [green]Starting daemon[/] for [cyan]{svc.handle.root}[/]")
        console.print(f"  Sync: {config.git.sync_interval}s")
        console.print(f"  Log: {svc.config.log_file}")
        console.print(f"  PID: {os.getpid()}")
        console.print("  [dim]Running in foreground (Ctrl+C to stop)[/]\n")
        svc.start()
        svc.run_forever()

    @daemon.command("stop")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    def daemon_stop(home: str):
        """Stop the running daemon."""
        from ..daemon import PID_FILE, read_pid

        home_path = Path(home).expanduser()
        pid = read_pid(home_path)
        if pid is None:
            console.print("[yellow]Daemon is not running.[/]")
            return

        try:
            os.kill(pid, signal.SIGTERM)
            console.print(f"\n  [green]Sent SIGTERM to daemon (PID {pid})[/]\n")
        except ProcessLookupError:
            console.print("[yellow]Daemon process not found -- cleaning up PID file.[/]")
            (home_path / PID_FILE).unlink(missing_ok=True)

    @daemon.command("status")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    @click.option("--json-out", is_flag=True, help="Output as JSON.")
    def daemon_status(home: str, json_out: bool):
        """Show whether the daemon is running."""
        from ..daemon import read_pid

        pid = read_pid(Path(home).expanduser())
        if json_out:
            click.echo(json.dumps({"running": pid is not None, "pid": pid}))
            return
        if pid is None:
            console.print("\n  [yellow]Daemon is not running.[/]\n")
            return
        console.print(
            Panel(f"PID: [bold]{pid}[/]", title="[green]Daemon Running[/]", border_style="green")
        )
