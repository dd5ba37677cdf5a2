"""Config commands: init, show."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from ._common import SKPASS_HOME, console, get_config
from ..config import config_path, save_config
from ..models import SkpassConfig


def register_config_commands(main: click.Group) -> None:
    """Register the config command group."""

    @main.group()
    def config():
        """Inspect or create the skpass configuration."""

    @config.command("init")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    @click.option("--store", type=click.Path(), default=None, help="Password store directory.")
    @click.option("--force", is_flag=True, help="Overwrite an existing config.")
    def config_init(home: str, store: str, force: bool):
        """Write a default config file."""
        home_path = Path(home).expanduser()
        path = config_path(home_path)
        if path.exists() and not force:
            console.print(f"[yellow]Config already exists:[/] {path} (use --force)")
            return

        cfg = SkpassConfig()
        if store:
            cfg.store.path = Path(store)
        written = save_config(cfg, home_path)
        console.print(f"\n  [green]Config written:[/] {written}\n")

    @config.command("show")
    @click.option("--home", default=SKPASS_HOME, type=click.Path())
    def config_show(home: str):
        """Print the effective configuration."""
        cfg = get_config(home)
        click.echo(yaml.dump(cfg.model_dump(mode="json"), default_flow_style=False))
