"""
Sync coordinator -- fetch, rebase onto upstream, push.

    Idle -> Fetching -> Rebasing -> Pushing -> Idle
                           |
                           +-> Aborted -> Idle

Never merges. A rebase that does not complete cleanly is aborted
on the spot, so the branch is back where it started and no
conflict markers are left in the store. Nothing is retried: the
caller decides whether to run the cycle again.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple, Optional

from git.exc import GitCommandError

from .credentials import CredentialResolver, SshKeyResolver, is_ssh_url
from .errors import FetchFailed, PushFailed, RebaseConflict, RepositoryError
from .models import GitConfig, RebaseResult, SyncPhase, SyncReport, TrackingDetails
from .repository import RepositoryHandle

logger = logging.getLogger("skpass.sync")


class Upstream(NamedTuple):
    local_branch: str
    remote_name: str
    remote_branch: str

    @property
    def ref(self) -> str:
        return f"{self.remote_name}/{self.remote_branch}"


def _git_error(exc: GitCommandError) -> str:
    return str(exc.stderr).strip() or str(exc)


class SyncCoordinator:
    """Runs the fetch/rebase/push cycle against one RepositoryHandle.

    Args:
        handle: The open repository.
        config: Remote/branch/refspec overrides.
        credentials: Optional resolver for SSH remotes.
    """

    def __init__(
        self,
        handle: RepositoryHandle,
        config: Optional[GitConfig] = None,
        credentials: Optional[CredentialResolver] = None,
    ):
        self.handle = handle
        self.config = config or GitConfig()
        self.credentials = credentials
        self.phase = SyncPhase.IDLE
        self._trail: list[SyncPhase] = []
        self._in_cycle = False

    @classmethod
    def from_config(cls, handle: RepositoryHandle, config: GitConfig) -> "SyncCoordinator":
        credentials = None
        if config.use_ssh:
            credentials = SshKeyResolver(config.ssh_key_search_locations)
        return cls(handle, config, credentials)

    # ------------------------------------------------------------------
    # Branch bookkeeping
    # ------------------------------------------------------------------

    def upstream(self) -> Upstream:
        """Current branch and the remote branch it follows.

        Raises:
            RepositoryError: On a detached HEAD or when no upstream is
                configured in git or in the skpass config.
        """
        repo = self.handle.repo
        try:
            branch = repo.active_branch
        except TypeError as exc:
            raise RepositoryError("HEAD is detached, cannot sync") from exc

        tracking = branch.tracking_branch()
        remote_name = self.config.remote or (tracking.remote_name if tracking else None)
        if remote_name is None:
            raise RepositoryError(f"Branch {branch.name} has no upstream to sync with")
        remote_branch = self.config.branch or (tracking.remote_head if tracking else branch.name)
        return Upstream(branch.name, remote_name, remote_branch)

    def tracking(self) -> TrackingDetails:
        """How far the current branch and its upstream have diverged."""
        with self.handle.exclusive():
            up = self.upstream()
            ahead = behind = 0
            if self._ref_exists(up.ref):
                ahead = self._count(f"{up.ref}..HEAD")
                behind = self._count(f"HEAD..{up.ref}")
            elif self.handle.has_head():
                ahead = self._count("HEAD")
            return TrackingDetails(
                local_branch=up.local_branch,
                upstream_branch=up.ref,
                remote_name=up.remote_name,
                ahead=ahead,
                behind=behind,
            )

    # ------------------------------------------------------------------
    # The cycle
    # ------------------------------------------------------------------

    def fetch(self) -> None:
        """Fetch the upstream remote's ref-specs.

        Raises:
            FetchFailed: On any network, auth or git failure.
        """
        with self.handle.exclusive() as repo:
            self._set_phase(SyncPhase.FETCHING)
            try:
                up = self.upstream()
                logger.info("Fetching from %s", up.remote_name)
                with self._credentials(up.remote_name):
                    repo.git.fetch(up.remote_name, *self.config.refspecs)
            except GitCommandError as exc:
                logger.error("Fetch from %s failed: %s", up.remote_name, _git_error(exc))
                raise FetchFailed(f"Fetch failed: {_git_error(exc)}") from exc
            except ValueError as exc:
                logger.error("Fetch from %s failed: %s", up.remote_name, exc)
                raise FetchFailed(f"Fetch failed: {exc}") from exc
            finally:
                self._settle()

    def rebase(self) -> RebaseResult:
        """Rebase the current branch onto its upstream.

        Returns:
            The completed rebase. ``completed_steps`` is zero when
            nothing had to be replayed.

        Raises:
            RebaseConflict: If the rebase did not complete. It has
                been aborted and HEAD is back at its old commit.
            RepositoryError: If there is no upstream to rebase onto.
        """
        with self.handle.exclusive() as repo:
            self._set_phase(SyncPhase.REBASING)
            try:
                return self._rebase(repo)
            finally:
                self._settle()

    def push(self) -> None:
        """Push the current branch to its upstream.

        Raises:
            PushFailed: If the remote rejected the push (commonly
                non-fast-forward) or could not be reached.
        """
        with self.handle.exclusive() as repo:
            self._set_phase(SyncPhase.PUSHING)
            try:
                up = self.upstream()
                refspec = f"refs/heads/{up.local_branch}:refs/heads/{up.remote_branch}"
                logger.info("Pushing %s to %s", up.local_branch, up.ref)
                with self._credentials(up.remote_name):
                    repo.git.push(up.remote_name, refspec)
            except GitCommandError as exc:
                logger.error("Push failed: %s", _git_error(exc))
                raise PushFailed(f"Push failed: {_git_error(exc)}") from exc
            except ValueError as exc:
                logger.error("Push failed: %s", exc)
                raise PushFailed(f"Push failed: {exc}") from exc
            finally:
                self._settle()

    def synchronize(self) -> SyncReport:
        """Fetch, rebase, and push if there is anything to push.

        Errors from any step propagate; the report is only returned
        for a complete cycle.
        """
        report = SyncReport()
        with self.handle.exclusive():
            self._trail = []
            self._in_cycle = True
            try:
                self.fetch()
                report.fetched = True
                report.rebase = self.rebase()
                if self.tracking().ahead > 0:
                    self.push()
                    report.pushed = True
            finally:
                self._in_cycle = False
                self._settle()
            report.phases = list(self._trail)
        logger.info(
            "Sync complete: %d replayed, pushed=%s",
            report.rebase.completed_steps,
            report.pushed,
        )
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rebase(self, repo) -> RebaseResult:
        up = self.upstream()
        if not self.handle.has_head():
            raise RepositoryError(f"{up.local_branch} has no commits to rebase")
        if not self._ref_exists(up.ref):
            raise RepositoryError(f"Upstream {up.ref} does not exist, fetch first")

        ahead = self._count(f"{up.ref}..HEAD")
        behind = self._count(f"HEAD..{up.ref}")
        result = RebaseResult(local_branch=up.local_branch, upstream_branch=up.ref)
        if behind == 0:
            logger.info("%s is up to date with %s", up.local_branch, up.ref)
            return result

        before = self.handle.head_sha()
        try:
            repo.git.rebase(up.ref, env=self.handle.identity_env())
        except GitCommandError as exc:
            self._abort(before)
            raise RebaseConflict(up.local_branch, up.ref, _git_error(exc)) from exc

        if self._rebase_in_progress():
            self._abort(before)
            raise RebaseConflict(up.local_branch, up.ref, "rebase stopped before completing")

        if ahead == 0:
            result.fast_forward = True
            logger.info("Fast-forwarded %s to %s", up.local_branch, up.ref)
        else:
            result.completed_steps = self._count(f"{up.ref}..HEAD")
            logger.info(
                "Rebased %s onto %s (%d commit(s) replayed)",
                up.local_branch,
                up.ref,
                result.completed_steps,
            )
        return result

    def _abort(self, before: Optional[str]) -> None:
        self._set_phase(SyncPhase.ABORTED)
        if self._rebase_in_progress():
            try:
                self.handle.repo.git.rebase("--abort")
            except GitCommandError as exc:
                logger.error("Could not abort rebase: %s", _git_error(exc))
        after = self.handle.head_sha()
        if after != before:
            logger.error("HEAD moved during aborted rebase: %s -> %s", before, after)
        else:
            logger.warning("Rebase aborted, HEAD restored to %s", (before or "")[:8])

    def _rebase_in_progress(self) -> bool:
        git_dir = Path(self.handle.repo.git_dir)
        return (git_dir / "rebase-merge").exists() or (git_dir / "rebase-apply").exists()

    def _ref_exists(self, ref: str) -> bool:
        try:
            self.handle.repo.git.rev_parse("--verify", "--quiet", f"{ref}^{{commit}}")
        except GitCommandError:
            return False
        return True

    def _count(self, revision_range: str) -> int:
        return int(self.handle.repo.git.rev_list("--count", revision_range))

    def _set_phase(self, phase: SyncPhase) -> None:
        if not self._in_cycle and self.phase == SyncPhase.IDLE:
            self._trail = []
        self.phase = phase
        self._trail.append(phase)
        logger.debug("Sync phase: %s", phase.value)

    def _settle(self) -> None:
        if not self._in_cycle:
            self._set_phase(SyncPhase.IDLE)

    @contextmanager
    def _credentials(self, remote_name: str) -> Iterator[None]:
        env: dict[str, str] = {}
        if self.credentials is not None:
            url = self.handle.repo.remote(remote_name).url
            if is_ssh_url(url):
                env = self.credentials.environment(url)
        with self.handle.repo.git.custom_environment(**env):
            yield
