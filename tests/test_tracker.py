"""Tests for the change tracker -- one commit per changed path."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from skpass.errors import UnsupportedStatusError
from skpass.models import ChangeKind
from skpass.repository import parse_status
from skpass.tracker import COMMIT_FOOTER, ChangeTracker, commit_message, verb_for


def _commit_count(handle) -> int:
    return int(handle.repo.git.rev_list("--count", "HEAD"))


def _new_commits(handle, since: str) -> list:
    return list(handle.repo.iter_commits(f"{since}..HEAD"))


class TestVerbs:
    """Tests for the change kind -> verb mapping."""

    @pytest.mark.parametrize(
        "kind, verb",
        [
            (ChangeKind.NEW, "Add"),
            (ChangeKind.MODIFIED, "Modify"),
            (ChangeKind.DELETED, "Delete"),
            (ChangeKind.RENAMED, "Rename"),
            (ChangeKind.TYPE_CHANGED, "Change filetype for"),
        ],
    )
    def test_verbs(self, kind, verb):
        assert verb_for(kind) == verb

    @pytest.mark.parametrize("kind", [ChangeKind.COPIED, ChangeKind.CONFLICTED])
    def test_unsupported(self, kind):
        with pytest.raises(UnsupportedStatusError):
            verb_for(kind)

    def test_message_format(self):
        message = commit_message(ChangeKind.MODIFIED, "email/work.gpg")
        assert message == f"Modify password store file email/work.gpg\n\n{COMMIT_FOOTER}"


class TestCommitAll:
    """Tests for ChangeTracker.commit_all."""

    def test_nothing_changed(self, handle):
        before = _commit_count(handle)
        tracker = ChangeTracker(handle)

        status = tracker.commit_all()

        assert status.is_empty
        assert tracker.commits == []
        assert _commit_count(handle) == before

    def test_single_edit(self, handle, store_root: Path):
        """One edited file -> one 'Modify' commit touching only that file."""
        before = handle.head_sha()
        (store_root / "email" / "work.gpg").write_bytes(b"new ciphertext")

        status = ChangeTracker(handle).commit_all()

        assert len(status) == 1
        commits = _new_commits(handle, before)
        assert len(commits) == 1
        commit = commits[0]
        assert commit.message.startswith("Modify password store file email/work.gpg")
        assert COMMIT_FOOTER in commit.message
        assert set(commit.stats.files) == {"email/work.gpg"}
        assert commit.author.name == "Test User"
        assert commit.committer.email == "test@skpass.local"
        assert handle.status().is_empty

    def test_add_modify_delete(self, handle, store_root: Path):
        before = handle.head_sha()
        (store_root / "email" / "work.gpg").write_bytes(b"edited")
        (store_root / "bank.gpg").unlink()
        (store_root / "web").mkdir()
        (store_root / "web" / "shop.gpg").write_bytes(b"new")

        tracker = ChangeTracker(handle)
        tracker.commit_all()

        commits = _new_commits(handle, before)
        assert len(commits) == 3
        subjects = {c.summary for c in commits}
        assert subjects == {
            "Modify password store file email/work.gpg",
            "Delete password store file bank.gpg",
            "Add password store file web/shop.gpg",
        }
        for commit in commits:
            assert len(commit.stats.files) == 1
        assert {r.sha for r in tracker.commits} == {c.hexsha for c in commits}

    def test_leftover_staging_is_split(self, handle, store_root: Path):
        """Two files staged together by someone else still get two commits."""
        before = handle.head_sha()
        (store_root / "email" / "work.gpg").write_bytes(b"a")
        (store_root / "bank.gpg").write_bytes(b"b")
        handle.repo.git.add("-A")

        ChangeTracker(handle).commit_all()

        commits = _new_commits(handle, before)
        assert len(commits) == 2
        assert all(len(c.stats.files) == 1 for c in commits)

    def test_staged_rename_becomes_delete_and_add(self, handle):
        before = handle.head_sha()
        handle.repo.git.mv("bank.gpg", "money.gpg")

        ChangeTracker(handle).commit_all()

        subjects = {c.summary for c in _new_commits(handle, before)}
        assert subjects == {
            "Delete password store file bank.gpg",
            "Add password store file money.gpg",
        }

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
    def test_file_replaced_by_symlink(self, handle, store_root: Path):
        """A regular file turned into a symlink is one 'Change filetype' commit."""
        before = handle.head_sha()
        target = store_root / "bank.gpg"
        target.unlink()
        os.symlink("email/work.gpg", target)

        status = ChangeTracker(handle).commit_all()

        assert status.get("bank.gpg").workdir == ChangeKind.TYPE_CHANGED
        commits = _new_commits(handle, before)
        assert [c.summary for c in commits] == [
            "Change filetype for password store file bank.gpg"
        ]
        assert handle.status().is_empty

    def test_records_only_latest_run(self, handle, store_root: Path):
        tracker = ChangeTracker(handle)
        (store_root / "bank.gpg").write_bytes(b"first")
        tracker.commit_all()
        (store_root / "email" / "work.gpg").write_bytes(b"second")

        tracker.commit_all()

        assert [r.path for r in tracker.commits] == ["email/work.gpg"]
        tracker.commit_all()
        assert tracker.commits == []

    def test_conflict_stops_before_touching_index(self, handle):
        with patch.object(handle, "status", return_value=parse_status("UU bank.gpg\0")), \
                patch.object(handle, "unstage") as unstage, \
                patch.object(handle, "commit") as commit:
            with pytest.raises(UnsupportedStatusError):
                ChangeTracker(handle).commit_all()

        unstage.assert_not_called()
        commit.assert_not_called()


class TestCommitSingle:
    """Tests for ChangeTracker.commit_single."""

    def test_edit(self, handle, store_root: Path):
        before = handle.head_sha()
        (store_root / "bank.gpg").write_bytes(b"edited")

        assert ChangeTracker(handle).commit_single("bank.gpg", ChangeKind.MODIFIED) is True

        commits = _new_commits(handle, before)
        assert len(commits) == 1
        assert commits[0].summary == "Modify password store file bank.gpg"

    def test_add_with_absolute_path(self, handle, store_root: Path):
        path = store_root / "email" / "home.gpg"
        path.write_bytes(b"new")

        assert ChangeTracker(handle).commit_single(path, ChangeKind.NEW) is True
        assert handle.repo.head.commit.summary == "Add password store file email/home.gpg"

    def test_only_that_file(self, handle, store_root: Path):
        (store_root / "bank.gpg").write_bytes(b"edited")
        (store_root / "email" / "work.gpg").write_bytes(b"also edited")

        ChangeTracker(handle).commit_single("bank.gpg", ChangeKind.MODIFIED)

        assert set(handle.repo.head.commit.stats.files) == {"bank.gpg"}
        assert handle.status().get("email/work.gpg").workdir == ChangeKind.MODIFIED

    def test_unchanged_file_is_noop(self, handle):
        before = handle.head_sha()
        assert ChangeTracker(handle).commit_single("bank.gpg", ChangeKind.MODIFIED) is False
        assert handle.head_sha() == before

    def test_wrong_expectation_is_noop(self, handle, store_root: Path):
        """A modified file is left alone when the caller expected a new one."""
        before = handle.head_sha()
        (store_root / "bank.gpg").write_bytes(b"edited")

        tracker = ChangeTracker(handle)
        assert tracker.commit_single("bank.gpg", ChangeKind.NEW) is False
        assert handle.head_sha() == before
        assert tracker.commits == []
