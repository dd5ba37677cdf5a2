"""Shared test fixtures for skpass."""

from __future__ import annotations

from pathlib import Path

import git
import pytest

from skpass.clipboard import DeliveryChannel
from skpass.errors import DecryptFailed
from skpass.gpg import Decryptor
from skpass.models import Severity
from skpass.notify import NotificationSink


class MemoryChannel(DeliveryChannel):
    """Clipboard stand-in: a single in-memory slot."""

    def __init__(self):
        self.value = ""
        self.clears = 0

    def set(self, text: str) -> None:
        self.value = text

    def get(self) -> str:
        return self.value

    def clear(self) -> None:
        self.value = ""
        self.clears += 1


class RecordingNotifier(NotificationSink):
    """Keeps every notification for inspection."""

    def __init__(self):
        self.messages: list[tuple[str, Severity, int]] = []

    def notify(self, message, severity=Severity.INFO, duration_ms=5000):
        self.messages.append((message, severity, duration_ms))


class FakeDecryptor(Decryptor):
    """Returns canned plaintext per file; unknown files fail with exit code 2."""

    def __init__(self, plaintexts: dict[Path, str] | None = None, exit_code: int = 2):
        self.plaintexts = plaintexts or {}
        self.exit_code = exit_code
        self.calls: list[Path] = []

    def decrypt(self, path: Path) -> str:
        self.calls.append(Path(path))
        if Path(path) not in self.plaintexts:
            raise DecryptFailed(self.exit_code, "gpg: decryption failed: No secret key")
        return self.plaintexts[Path(path)]


def configure_identity(repo: git.Repo) -> None:
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Test User")
        cw.set_value("user", "email", "test@skpass.local")
        cw.set_value("commit", "gpgsign", "false")


@pytest.fixture
def channel() -> MemoryChannel:
    return MemoryChannel()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def skpass_home(tmp_path: Path) -> Path:
    """Provide a temporary skpass home directory."""
    home = tmp_path / ".skpass"
    home.mkdir()
    return home


@pytest.fixture
def remote_path(tmp_path: Path) -> Path:
    """A bare repository playing the remote."""
    path = tmp_path / "remote.git"
    bare = git.Repo.init(path, bare=True)
    bare.git.symbolic_ref("HEAD", "refs/heads/main")
    bare.close()
    return path


@pytest.fixture
def store_root(tmp_path: Path, remote_path: Path) -> Path:
    """A password store with two entries, committed and pushed to the remote."""
    root = tmp_path / "store"
    repo = git.Repo.init(root)
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    configure_identity(repo)

    (root / "email").mkdir()
    (root / "email" / "work.gpg").write_bytes(b"ciphertext: work\n")
    (root / "bank.gpg").write_bytes(b"ciphertext: bank\n")
    repo.git.add("-A")
    repo.git.commit("-q", "-m", "Initial store")
    repo.create_remote("origin", str(remote_path))
    repo.git.push("-u", "origin", "main")
    repo.close()
    return root


@pytest.fixture
def peer_root(tmp_path: Path, remote_path: Path, store_root: Path) -> Path:
    """A second clone of the store, standing in for another machine."""
    path = tmp_path / "peer"
    repo = git.Repo.clone_from(str(remote_path), path, branch="main")
    configure_identity(repo)
    repo.close()
    return path


@pytest.fixture
def handle(store_root: Path):
    """An open RepositoryHandle on the store, closed after the test."""
    from skpass.repository import RepositoryHandle

    with RepositoryHandle(store_root) as h:
        yield h


@pytest.fixture
def make_decryptor():
    """Factory for FakeDecryptor instances."""
    return FakeDecryptor
