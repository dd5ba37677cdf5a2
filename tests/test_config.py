"""Tests for config loading and saving."""

from __future__ import annotations

from pathlib import Path

import yaml

from skpass.config import config_path, load_config, resolve_home, save_config
from skpass.models import GitConfig, SkpassConfig, StoreConfig


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, skpass_home: Path):
        config = load_config(skpass_home)
        assert config == SkpassConfig()
        assert config.store.pattern == "*.gpg"
        assert config.store.directory_separator == "/"
        assert config.git.use_ssh is False

    def test_partial_file(self, skpass_home: Path):
        config_path(skpass_home).write_text(
            "store:\n  path: /srv/pass\n  clipboard_timeout: 10\ngit:\n  remote: backup\n"
        )

        config = load_config(skpass_home)

        assert config.store.path == Path("/srv/pass")
        assert config.store.clipboard_timeout == 10
        assert config.store.first_line_only is True
        assert config.git.remote == "backup"

    def test_malformed_yaml_gives_defaults(self, skpass_home: Path):
        config_path(skpass_home).write_text("store: [unclosed\n")
        assert load_config(skpass_home) == SkpassConfig()

    def test_invalid_values_give_defaults(self, skpass_home: Path):
        config_path(skpass_home).write_text("store:\n  clipboard_timeout: soon\n")
        assert load_config(skpass_home) == SkpassConfig()

    def test_empty_file(self, skpass_home: Path):
        config_path(skpass_home).write_text("")
        assert load_config(skpass_home) == SkpassConfig()


class TestSaveConfig:
    def test_round_trip(self, skpass_home: Path, tmp_path: Path):
        original = SkpassConfig(
            store=StoreConfig(path=tmp_path / "pass", directory_separator=":"),
            git=GitConfig(use_ssh=True, sync_interval=60),
            notification_duration_ms=1500,
        )

        path = save_config(original, skpass_home)

        assert path == skpass_home / "config.yaml"
        assert load_config(skpass_home) == original

    def test_written_as_plain_yaml(self, skpass_home: Path):
        save_config(SkpassConfig(), skpass_home)
        data = yaml.safe_load(config_path(skpass_home).read_text())
        assert data["store"]["extension"] == ".gpg"
        assert isinstance(data["store"]["path"], str)

    def test_creates_home(self, tmp_path: Path):
        home = tmp_path / "fresh"
        save_config(SkpassConfig(), home)
        assert (home / "config.yaml").exists()


def test_resolve_home_expands_user():
    assert "~" not in str(resolve_home(Path("~/somewhere")))
