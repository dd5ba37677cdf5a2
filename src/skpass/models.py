"""
Pydantic models for the password store, its repository, and configuration.

Nothing sensitive is modelled here except PendingExpiry, which holds
a revealed secret only until its expiry timer runs out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Where the store lives and how secrets are handed over."""

    path: Path = Path("~/.password-store")
    match: str = "*.gpg"
    extension: str = ".gpg"
    directory_separator: str = "/"
    first_line_only: bool = True
    clipboard_timeout: float = 30.0
    gpg_path: str = "gpg"


class GitConfig(BaseModel):
    """How the store's repository is committed and synchronized."""

    enabled: bool = True
    remote: Optional[str] = None
    branch: Optional[str] = None
    refspecs: list[str] = Field(default_factory=list)
    use_ssh: bool = False
    ssh_key_search_locations: list[Path] = Field(
        default_factory=lambda: [Path("~/.ssh")]
    )
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    sync_interval: int = 0


class SkpassConfig(BaseModel):
    """Complete skpass configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    notification_duration_ms: int = 5000


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreEntry(BaseModel):
    """A single encrypted file and the name it is shown under."""

    absolute_path: Path
    display_name: str


class Severity(str, Enum):
    """Notification severity."""

    INFO = "info"
    ERROR = "error"


class RevealResult(BaseModel):
    """Outcome of a reveal. ``revealed`` is False when the user cancelled."""

    revealed: bool
    display_name: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass
class PendingExpiry:
    """A secret sitting on the delivery channel, waiting to be cleared."""

    secret_value: str = field(repr=False)
    expires_at: datetime


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ChangeKind(str, Enum):
    """Kind of change git reports for a path.

    COPIED and CONFLICTED can show up in a status listing but
    have no commit verb.
    """

    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    TYPE_CHANGED = "type_changed"
    COPIED = "copied"
    CONFLICTED = "conflicted"


class ChangeStatusEntry(BaseModel):
    """Status of one path in the index and in the working tree."""

    path: str
    index: Optional[ChangeKind] = None
    workdir: Optional[ChangeKind] = None
    original_path: Optional[str] = None

    @property
    def in_index(self) -> bool:
        return self.index is not None

    @property
    def in_workdir(self) -> bool:
        return self.workdir is not None

    @property
    def paths(self) -> list[str]:
        """Every path this entry touches (both sides of a rename)."""
        if self.original_path:
            return [self.original_path, self.path]
        return [self.path]


class RepositoryStatus(BaseModel):
    """A status snapshot, taken fresh from the repository."""

    entries: list[ChangeStatusEntry] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def staged(self) -> list[ChangeStatusEntry]:
        """Entries with anything recorded in the index."""
        return [e for e in self.entries if e.in_index]

    def changed(self) -> list[ChangeStatusEntry]:
        """Entries with a working-tree change."""
        return [e for e in self.entries if e.in_workdir]

    def get(self, path: str) -> Optional[ChangeStatusEntry]:
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None


class Signature(BaseModel):
    """Commit identity, used as both author and committer."""

    name: str
    email: str


class CommitRecord(BaseModel):
    """A generated commit covering exactly one logical change."""

    path: str
    message: str
    author: Signature
    sha: Optional[str] = None


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class SyncPhase(str, Enum):
    """States of the fetch -> rebase -> push cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    REBASING = "rebasing"
    PUSHING = "pushing"
    ABORTED = "aborted"


class TrackingDetails(BaseModel):
    """Current branch, its upstream, and how far apart they are."""

    local_branch: str
    upstream_branch: str
    remote_name: str
    ahead: int = 0
    behind: int = 0


class RebaseResult(BaseModel):
    """A completed rebase.

    ``completed_steps`` is zero for a fast-forward or when upstream
    had nothing new; otherwise it counts the replayed commits.
    """

    local_branch: str
    upstream_branch: str
    completed_steps: int = 0
    fast_forward: bool = False


class SyncReport(BaseModel):
    """Everything one synchronize() call did."""

    fetched: bool = False
    rebase: Optional[RebaseResult] = None
    pushed: bool = False
    phases: list[SyncPhase] = Field(default_factory=list)
