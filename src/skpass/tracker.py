"""
Change tracker -- one commit per changed file, always.

The store's history is an audit log: every add, edit, delete or
rename of a secret gets its own machine-written commit. Staging
is recomputed from scratch each time, so leftovers from an
interrupted run never end up in the wrong commit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from .errors import UnsupportedStatusError
from .models import ChangeKind, CommitRecord, RepositoryStatus
from .repository import RepositoryHandle

logger = logging.getLogger("skpass.tracker")

COMMIT_FOOTER = "This commit was automatically generated by skpass."

VERBS = {
    ChangeKind.NEW: "Add",
    ChangeKind.MODIFIED: "Modify",
    ChangeKind.DELETED: "Delete",
    ChangeKind.RENAMED: "Rename",
    ChangeKind.TYPE_CHANGED: "Change filetype for",
}


def verb_for(kind: ChangeKind) -> str:
    """Commit verb for a change kind.

    Raises:
        UnsupportedStatusError: For kinds that are never committed.
    """
    try:
        return VERBS[kind]
    except KeyError:
        raise UnsupportedStatusError(kind) from None


def commit_message(kind: ChangeKind, path: str) -> str:
    return f"{verb_for(kind)} password store file {path}\n\n{COMMIT_FOOTER}"


class ChangeTracker:
    """Turns working-tree changes into commits through a RepositoryHandle.

    ``commits`` holds the records of the most recent commit_all() or
    commit_single() call only.
    """

    def __init__(self, handle: RepositoryHandle):
        self.handle = handle
        self.commits: list[CommitRecord] = []

    def commit_all(self) -> RepositoryStatus:
        """Commit every working-tree change, one commit per path.

        Anything already staged is unstaged first, then status is
        read again and each changed path is staged and committed on
        its own.

        Returns:
            The status snapshot that was committed; empty if nothing changed.

        Raises:
            UnsupportedStatusError: If git reports a change with no verb
                (a conflict, for example). Nothing further is committed.
        """
        self.commits = []
        with self.handle.exclusive():
            current = self.handle.status()
            for entry in current.entries:
                if ChangeKind.CONFLICTED in (entry.index, entry.workdir):
                    raise UnsupportedStatusError(ChangeKind.CONFLICTED)

            staged = current.staged()
            if staged:
                paths = [p for entry in staged for p in entry.paths]
                logger.info("Unstaging %d leftover path(s)", len(paths))
                self.handle.unstage(paths)

            status = self.handle.status()
            for entry in status.changed():
                message = commit_message(entry.workdir, entry.path)
                self.handle.stage(entry.paths)
                self._record(entry.path, message, self.handle.commit(message, entry.paths))

        if status.is_empty:
            logger.debug("No changes to commit")
        return status

    def commit_single(self, path: Union[Path, str], expected: ChangeKind) -> bool:
        """Commit one file if, and only if, it changed the way the caller expects.

        Args:
            path: File in the store (absolute, or relative to the root).
            expected: ChangeKind.MODIFIED after an edit, NEW after an add.

        Returns:
            True if a commit was made. A file whose live status differs
            from ``expected`` is left alone and False is returned.
        """
        self.commits = []
        with self.handle.exclusive():
            rel = self.handle.relative_path(path)
            entry = self.handle.status([rel]).get(rel)
            if entry is None or entry.in_index or entry.workdir != expected:
                logger.info(
                    "Not committing %s: expected %s, found %s",
                    rel,
                    expected.value,
                    entry.workdir.value if entry and entry.workdir else "no change",
                )
                return False

            message = commit_message(expected, rel)
            self.handle.stage([rel])
            self._record(rel, message, self.handle.commit(message, [rel]))
        return True

    def _record(self, path: str, message: str, sha: str) -> None:
        record = CommitRecord(
            path=path, message=message, author=self.handle.signature(), sha=sha
        )
        self.commits.append(record)
        logger.info("Committed %s (%s)", message.splitlines()[0], sha[:8])
