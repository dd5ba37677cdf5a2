"""Tests for SSH credential resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from skpass.credentials import SshKeyResolver, find_ssh_key, is_ssh_url


def _keypair(directory: Path, name: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    private_key = directory / name
    private_key.write_text("PRIVATE")
    (directory / f"{name}.pub").write_text("PUBLIC")
    return private_key


class TestIsSshUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "git@github.com:me/pass.git",
            "ssh://git@example.com/srv/pass.git",
            "git+ssh://example.com/pass.git",
            "SSH://example.com/pass.git",
        ],
    )
    def test_ssh(self, url):
        assert is_ssh_url(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/me/pass.git",
            "file:///srv/pass.git",
            "/srv/pass.git",
            "C:/stores/pass.git",
            "../pass.git",
        ],
    )
    def test_not_ssh(self, url):
        assert is_ssh_url(url) is False


class TestFindSshKey:
    def test_needs_public_half(self, tmp_path: Path):
        (tmp_path / "id_rsa").write_text("PRIVATE")
        assert find_ssh_key([tmp_path]) is None

    def test_first_location_wins(self, tmp_path: Path):
        first = _keypair(tmp_path / "a", "id_ed25519")
        _keypair(tmp_path / "b", "id_rsa")
        assert find_ssh_key([tmp_path / "a", tmp_path / "b"]) == first

    def test_missing_location(self, tmp_path: Path):
        assert find_ssh_key([tmp_path / "nope"]) is None


class TestSshKeyResolver:
    def test_environment_points_at_key(self, tmp_path: Path):
        key = _keypair(tmp_path / "keys dir", "id_rsa")

        env = SshKeyResolver([tmp_path / "keys dir"]).environment("git@host:pass.git")

        command = env["GIT_SSH_COMMAND"]
        assert command.startswith("ssh -i ")
        assert f"'{key}'" in command
        assert "IdentitiesOnly=yes" in command

    def test_custom_ssh_command(self, tmp_path: Path):
        _keypair(tmp_path, "id_ecdsa")
        env = SshKeyResolver([tmp_path], ssh_command="/usr/bin/ssh").environment("x@y:z")
        assert env["GIT_SSH_COMMAND"].startswith("/usr/bin/ssh -i ")

    def test_no_key_uses_defaults(self, tmp_path: Path):
        assert SshKeyResolver([tmp_path]).environment("git@host:pass.git") == {}
