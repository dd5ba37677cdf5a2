"""
Error taxonomy for the store engine.

Every failure the engine reports is one of these. None of them
are retried automatically; the caller decides what happens next.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SkpassError(Exception):
    """Base class for all skpass errors."""


class StoreUnavailable(SkpassError):
    """Raised when the password store root is missing or unreadable."""

    def __init__(self, root: Path, reason: str):
        self.root = root
        self.reason = reason
        super().__init__(f"Password store {root} is unavailable: {reason}")


class DecryptFailed(SkpassError):
    """Raised when the decryptor exits non-zero.

    Attributes:
        exit_code: Exit code of the decryption process, verbatim.
        stderr: Whatever the process wrote to stderr.
    """

    def __init__(self, exit_code: int, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Decryption failed with exit code {exit_code}")


class UnsupportedStatusError(SkpassError):
    """Raised for a working-tree status that has no commit verb."""

    def __init__(self, kind: object):
        self.kind = kind
        super().__init__(f"Unsupported file status: {kind}")


class RepositoryError(SkpassError):
    """Raised when the repository cannot be opened or used."""


class SyncError(SkpassError):
    """Base class for fetch/rebase/push failures."""


class FetchFailed(SyncError):
    """Raised when fetching from the remote fails."""


class RebaseConflict(SyncError):
    """Raised when a rebase does not complete and has been aborted."""

    def __init__(self, local_branch: str, upstream_branch: str, detail: Optional[str] = None):
        self.local_branch = local_branch
        self.upstream_branch = upstream_branch
        self.detail = detail
        super().__init__(f"Could not rebase {local_branch} onto {upstream_branch}")


class PushFailed(SyncError):
    """Raised when pushing to the remote fails."""
