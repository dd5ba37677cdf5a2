"""
Repository handle -- the one open connection to the store's git repository.

Open it once, use it through exclusive() so commits and syncs never
interleave, and close it on the way out (it is a context manager).
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional

import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from .errors import RepositoryError
from .models import (
    ChangeKind,
    ChangeStatusEntry,
    GitConfig,
    RepositoryStatus,
    Signature,
)

logger = logging.getLogger("skpass.repository")

# Porcelain v1 status letters. X is the index column, Y the working tree.
INDEX_CODES = {
    "A": ChangeKind.NEW,
    "M": ChangeKind.MODIFIED,
    "D": ChangeKind.DELETED,
    "R": ChangeKind.RENAMED,
    "T": ChangeKind.TYPE_CHANGED,
    "C": ChangeKind.COPIED,
}
WORKDIR_CODES = {
    "?": ChangeKind.NEW,
    "A": ChangeKind.NEW,
    "M": ChangeKind.MODIFIED,
    "D": ChangeKind.DELETED,
    "R": ChangeKind.RENAMED,
    "T": ChangeKind.TYPE_CHANGED,
}
UNMERGED = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


def parse_status(output: str) -> RepositoryStatus:
    """Parse ``git status --porcelain=v1 -z`` output.

    Args:
        output: Raw NUL-separated status output.

    Returns:
        One entry per path, in the order git listed them.
    """
    tokens = output.split("\0")
    entries: list[ChangeStatusEntry] = []
    i = 0
    while i < len(tokens):
        record = tokens[i]
        i += 1
        if len(record) < 4:
            continue
        xy, path = record[:2], record[3:]

        if xy in UNMERGED:
            entries.append(
                ChangeStatusEntry(
                    path=path, index=ChangeKind.CONFLICTED, workdir=ChangeKind.CONFLICTED
                )
            )
            continue

        original = None
        if xy[0] in "RC" or xy[1] in "RC":
            original = tokens[i]
            i += 1

        entries.append(
            ChangeStatusEntry(
                path=path,
                index=None if xy == "??" else INDEX_CODES.get(xy[0]),
                workdir=WORKDIR_CODES.get(xy[1]),
                original_path=original,
            )
        )
    return RepositoryStatus(entries=entries)


class RepositoryHandle:
    """Owns the open repository for the lifetime of the process.

    Not safe for concurrent use: anything that changes the repository
    must run inside ``exclusive()``.

    Args:
        path: Working tree of the repository (the store root).
        author: Commit identity. Defaults to the repository's
            user.name / user.email.
    """

    def __init__(self, path: Path, author: Optional[Signature] = None):
        try:
            self._repo: Optional[git.Repo] = git.Repo(Path(path).expanduser())
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise RepositoryError(f"{path} is not a git repository") from exc
        self._repo.git.update_environment(GIT_LITERAL_PATHSPECS="1")
        self._author = author
        self._lock = threading.RLock()
        logger.debug("Opened repository %s", self.root)

    @classmethod
    def open(cls, path: Path, config: Optional[GitConfig] = None) -> "RepositoryHandle":
        author = None
        if config and config.author_name and config.author_email:
            author = Signature(name=config.author_name, email=config.author_email)
        return cls(path, author=author)

    def __enter__(self) -> "RepositoryHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the repository. Safe to call more than once."""
        with self._lock:
            if self._repo is not None:
                self._repo.close()
                self._repo = None
                logger.debug("Closed repository")

    @property
    def repo(self) -> git.Repo:
        if self._repo is None:
            raise RepositoryError("Repository handle is closed")
        return self._repo

    @property
    def root(self) -> Path:
        return Path(self.repo.working_tree_dir)

    @contextmanager
    def exclusive(self) -> Iterator[git.Repo]:
        """Hold the handle for a sequence of repository operations."""
        with self._lock:
            yield self.repo

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def signature(self) -> Signature:
        """The identity used as author and committer.

        Raises:
            RepositoryError: If no identity is configured anywhere.
        """
        if self._author is not None:
            return self._author
        reader = self.repo.config_reader()
        name = reader.get_value("user", "name", default="")
        email = reader.get_value("user", "email", default="")
        if not name or not email:
            raise RepositoryError(
                "No commit identity: set user.name and user.email in git, "
                "or git.author_name / git.author_email in the skpass config"
            )
        return Signature(name=str(name), email=str(email))

    def identity_env(self, author: bool = True) -> dict[str, str]:
        """Environment that makes git use :meth:`signature`."""
        sig = self.signature()
        env = {"GIT_COMMITTER_NAME": sig.name, "GIT_COMMITTER_EMAIL": sig.email}
        if author:
            env.update(GIT_AUTHOR_NAME=sig.name, GIT_AUTHOR_EMAIL=sig.email)
        return env

    # ------------------------------------------------------------------
    # Working tree
    # ------------------------------------------------------------------

    def relative_path(self, path: Path | str) -> str:
        """Repository-relative, forward-slash path for ``path``."""
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.relative_to(self.root)
            except ValueError:
                raise RepositoryError(f"{path} is outside the store at {self.root}") from None
        return p.as_posix()

    def status(self, paths: Iterable[str] = ()) -> RepositoryStatus:
        """Fresh working-tree status, optionally limited to ``paths``."""
        args = ["--porcelain=v1", "-z", "--untracked-files=all"]
        paths = list(paths)
        if paths:
            args += ["--", *paths]
        return parse_status(self.repo.git.status(*args))

    def has_head(self) -> bool:
        return self.repo.head.is_valid()

    def head_sha(self) -> Optional[str]:
        if not self.has_head():
            return None
        return self.repo.head.commit.hexsha

    def stage(self, paths: Iterable[str]) -> None:
        """Stage additions, modifications and deletions of ``paths``."""
        self.repo.git.add("-A", "--", *paths)

    def unstage(self, paths: Iterable[str]) -> None:
        """Remove ``paths`` from the index, leaving the working tree alone."""
        paths = list(paths)
        if not paths:
            return
        if self.has_head():
            self.repo.git.reset("-q", "HEAD", "--", *paths)
        else:
            self.repo.git.rm("--cached", "-r", "-q", "--ignore-unmatch", "--", *paths)
        logger.debug("Unstaged %s", ", ".join(paths))

    def commit(self, message: str, paths: Iterable[str]) -> str:
        """Commit exactly ``paths`` (already staged).

        Returns:
            The new commit's SHA.

        Raises:
            RepositoryError: If git refuses the commit.
        """
        paths = list(paths)
        args = ["-q", "-m", message]
        if self.has_head():
            args += ["--", *paths]
        try:
            self.repo.git.commit(*args, env=self.identity_env())
        except GitCommandError as exc:
            raise RepositoryError(f"Commit failed: {str(exc.stderr).strip()}") from exc
        return self.repo.head.commit.hexsha
