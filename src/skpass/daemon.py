"""
SKPass Daemon -- keeps the store committed and in sync.

A single worker thread owns the repository handle and works
through a queue of commands, so a commit and a sync can never
run at the same time. A scheduler thread drops COMMIT and SYNC
onto that queue every sync_interval seconds.
"""

from __future__ import annotations

import logging
import os
import queue
import signal
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from git.exc import GitCommandError

from .config import resolve_home
from .errors import SkpassError, SyncError
from .models import Severity, SkpassConfig
from .notify import LogNotifier, NotificationSink
from .repository import RepositoryHandle
from .sync import SyncCoordinator
from .tracker import ChangeTracker

logger = logging.getLogger("skpass.daemon")

PID_FILE = "daemon.pid"
LOG_DIR = "logs"


class Command(str, Enum):
    """Everything the worker thread knows how to do."""

    COMMIT = "commit"
    SYNC = "sync"
    QUIT = "quit"


class DaemonConfig:
    """Configuration for the daemon process.

    Attributes:
        home: skpass home directory.
        sync_interval: Seconds between scheduled commit+sync rounds.
            Zero disables the scheduler; commands can still be submitted.
        log_file: Path for daemon log output.
    """

    def __init__(self, home: Optional[Path] = None, sync_interval: int = 300):
        self.home = resolve_home(home)
        self.sync_interval = sync_interval

        log_dir = self.home / LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = log_dir / "daemon.log"


class DaemonState:
    """Thread-safe counters and recent errors."""

    def __init__(self):
        self._lock = threading.Lock()
        self.started_at: Optional[datetime] = None
        self.last_commit: Optional[datetime] = None
        self.last_sync: Optional[datetime] = None
        self.commits_made: int = 0
        self.syncs_completed: int = 0
        self.errors: list[str] = []
        self.running: bool = False

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "running": self.running,
                "started_at": self.started_at.isoformat() if self.started_at else None,
                "last_commit": self.last_commit.isoformat() if self.last_commit else None,
                "last_sync": self.last_sync.isoformat() if self.last_sync else None,
                "commits_made": self.commits_made,
                "syncs_completed": self.syncs_completed,
                "recent_errors": self.errors[-10:],
                "pid": os.getpid(),
            }

    def record_commit(self, count: int) -> None:
        with self._lock:
            self.last_commit = datetime.now(timezone.utc)
            self.commits_made += count

    def record_sync(self) -> None:
        with self._lock:
            self.last_sync = datetime.now(timezone.utc)
            self.syncs_completed += 1

    def record_error(self, error: str) -> None:
        """Record an error, keeping only the last 50."""
        with self._lock:
            ts = datetime.now(timezone.utc).isoformat()
            self.errors.append(f"[{ts}] {error}")
            if len(self.errors) > 50:
                self.errors = self.errors[-50:]


class DaemonService:
    """The background service.

    Args:
        config: Daemon configuration.
        handle: Open repository. The service closes it on stop().
        tracker: Commits working-tree changes.
        coordinator: Fetch/rebase/push.
        notifier: Where failures are reported.
    """

    def __init__(
        self,
        config: DaemonConfig,
        handle: RepositoryHandle,
        tracker: ChangeTracker,
        coordinator: SyncCoordinator,
        notifier: Optional[NotificationSink] = None,
        notification_duration_ms: int = 5000,
    ):
        self.config = config
        self.handle = handle
        self.tracker = tracker
        self.coordinator = coordinator
        self.notifier = notifier or LogNotifier()
        self.notification_duration_ms = notification_duration_ms
        self.state = DaemonState()
        self._commands: queue.Queue[Command] = queue.Queue()
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    @classmethod
    def from_config(cls, home: Optional[Path], config: SkpassConfig) -> "DaemonService":
        handle = RepositoryHandle.open(config.store.path, config.git)
        return cls(
            DaemonConfig(home, sync_interval=config.git.sync_interval),
            handle,
            ChangeTracker(handle),
            SyncCoordinator.from_config(handle, config.git),
            notification_duration_ms=config.notification_duration_ms,
        )

    def submit(self, command: Command) -> None:
        """Queue a command for the worker thread."""
        self._commands.put(command)

    def start(self, install_handlers: bool = True) -> None:
        """Start the worker and, if an interval is set, the scheduler.

        Args:
            install_handlers: Write the PID file, log to file and
                handle SIGTERM/SIGINT. Off when embedded.
        """
        if install_handlers:
            self._write_pid()
            self._setup_logging()
            self._setup_signals()

        self.state.running = True
        self.state.started_at = datetime.now(timezone.utc)
        logger.info(
            "Daemon starting -- store=%s sync=%ds", self.handle.root, self.config.sync_interval
        )

        workers = [("worker", self._worker_loop)]
        if self.config.sync_interval > 0:
            workers.append(("scheduler", self._schedule_loop))
        for name, target in workers:
            t = threading.Thread(target=target, name=f"skpass-{name}", daemon=True)
            t.start()
            self._threads.append(t)

        logger.info("Daemon started -- PID %d", os.getpid())

    def stop(self) -> None:
        """Finish queued work, stop the threads, release the repository."""
        logger.info("Daemon stopping...")
        self._stop_event.set()
        self.submit(Command.QUIT)

        for t in self._threads:
            t.join(timeout=30)

        self.state.running = False
        self.handle.close()
        self._remove_pid()
        logger.info("Daemon stopped.")

    def run_forever(self) -> None:
        """Block until stop is signaled."""
        try:
            while not self._stop_event.is_set():
                self._stop_event.wait(timeout=1)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def dispatch(self, command: Command) -> None:
        """Run one command on the calling thread."""
        handlers = {
            Command.COMMIT: self._commit,
            Command.SYNC: self._sync,
        }
        handler = handlers.get(command)
        if handler is None:
            raise ValueError(f"Cannot dispatch {command}")
        handler()

    def _worker_loop(self) -> None:
        while True:
            command = self._commands.get()
            if command == Command.QUIT:
                break
            try:
                self.dispatch(command)
            except (SkpassError, GitCommandError) as exc:
                logger.error("%s failed: %s", command.value, exc)
                self.state.record_error(f"{command.value}: {exc}")
            except Exception as exc:
                logger.exception("Unexpected error in %s", command.value)
                self.state.record_error(f"{command.value}: {exc}")

    def _schedule_loop(self) -> None:
        while not self._stop_event.is_set():
            self._stop_event.wait(timeout=self.config.sync_interval)
            if self._stop_event.is_set():
                break
            self.submit(Command.COMMIT)
            self.submit(Command.SYNC)

    def _commit(self) -> None:
        status = self.tracker.commit_all()
        if not status.is_empty:
            logger.info("Committed %d change(s)", len(status))
        self.state.record_commit(len(status))

    def _sync(self) -> None:
        try:
            report = self.coordinator.synchronize()
        except SyncError as exc:
            self.notifier.notify(
                f"Password store sync failed: {exc}",
                Severity.ERROR,
                self.notification_duration_ms,
            )
            raise
        self.state.record_sync()
        if report.rebase and report.rebase.completed_steps:
            logger.info("Sync replayed %d commit(s)", report.rebase.completed_steps)

    def _setup_logging(self) -> None:
        """Configure file logging."""
        handler = logging.FileHandler(self.config.log_file)
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s")
        )
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(logging.INFO)

    def _setup_signals(self) -> None:
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame):
        logger.info("Received signal %s -- stopping", signal.Signals(signum).name)
        self._stop_event.set()

    def _write_pid(self) -> None:
        pid_path = self.config.home / PID_FILE
        pid_path.parent.mkdir(parents=True, exist_ok=True)
        pid_path.write_text(str(os.getpid()), encoding="utf-8")

    def _remove_pid(self) -> None:
        pid_path = self.config.home / PID_FILE
        if pid_path.exists():
            pid_path.unlink()


def read_pid(home: Optional[Path] = None) -> Optional[int]:
    """Read the daemon PID, dropping the file if the process is gone."""
    pid_path = resolve_home(home) / PID_FILE
    if not pid_path.exists():
        return None
    try:
        pid = int(pid_path.read_text(encoding="utf-8").strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        pid_path.unlink(missing_ok=True)
        return None


def is_running(home: Optional[Path] = None) -> bool:
    return read_pid(home) is not None
