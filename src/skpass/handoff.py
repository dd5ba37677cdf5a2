"""
Secret handoff -- decrypt one secret, put it on the clipboard,
and take it back when the timeout runs out.

The take-back only happens if the clipboard still holds exactly
what we put there. If the user copied something else in the
meantime, it stays. The clipboard has no lock, so between our
read and our clear another application can still write; that
window is accepted.
"""

from __future__ import annotations

import logging
import re
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Mapping, Optional

from .clipboard import DeliveryChannel
from .errors import DecryptFailed
from .gpg import Decryptor
from .models import PendingExpiry, RevealResult, Severity, SkpassConfig
from .notify import DEFAULT_DURATION_MS, NotificationSink

logger = logging.getLogger("skpass.handoff")

LINE_BREAK = re.compile(r"\r\n|\n")


def first_line(text: str) -> str:
    """Everything before the first line break."""
    return LINE_BREAK.split(text, maxsplit=1)[0]


class SecretHandoff:
    """Reveals secrets through a delivery channel for a bounded time.

    Args:
        decryptor: Turns a store file into plaintext.
        channel: Where the plaintext is delivered.
        notifier: Where the user is told about it.
        first_line_only: Deliver only the first line of the plaintext.
        timeout: Default seconds before the channel is cleared.
        notification_duration_ms: How long notifications stay up.
    """

    def __init__(
        self,
        decryptor: Decryptor,
        channel: DeliveryChannel,
        notifier: NotificationSink,
        first_line_only: bool = False,
        timeout: float = 30.0,
        notification_duration_ms: int = DEFAULT_DURATION_MS,
    ):
        self.decryptor = decryptor
        self.channel = channel
        self.notifier = notifier
        self.first_line_only = first_line_only
        self.timeout = timeout
        self.notification_duration_ms = notification_duration_ms
        self.pending: Optional[PendingExpiry] = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: SkpassConfig,
        decryptor: Decryptor,
        channel: DeliveryChannel,
        notifier: NotificationSink,
    ) -> "SecretHandoff":
        return cls(
            decryptor,
            channel,
            notifier,
            first_line_only=config.store.first_line_only,
            timeout=config.store.clipboard_timeout,
            notification_duration_ms=config.notification_duration_ms,
        )

    def reveal(
        self,
        selection: Optional[str],
        entries: Mapping[str, Path],
        ttl: Optional[float] = None,
    ) -> RevealResult:
        """Decrypt the selected entry and deliver it.

        A selection that is None or not in ``entries`` means the user
        cancelled: nothing is decrypted and nothing is delivered.

        Args:
            selection: Display name the user picked.
            entries: Display name -> encrypted file.
            ttl: Seconds until the channel is cleared. Defaults to
                the configured timeout.

        Returns:
            What was revealed, and until when.

        Raises:
            DecryptFailed: If the decryptor refused. The user has
                already been notified.
        """
        if selection is None or selection not in entries:
            logger.info("Selection cancelled, nothing revealed")
            return RevealResult(revealed=False)

        ttl = self.timeout if ttl is None else ttl
        if ttl < 0:
            raise ValueError(f"ttl must not be negative, got {ttl}")

        path = entries[selection]
        try:
            plaintext = self.decryptor.decrypt(path)
        except DecryptFailed as exc:
            self.notifier.notify(
                f"Password decryption failed. GPG returned exit code {exc.exit_code}",
                Severity.ERROR,
                self.notification_duration_ms,
            )
            raise

        if self.first_line_only:
            plaintext = first_line(plaintext)

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self.channel.set(plaintext)
            self.pending = PendingExpiry(secret_value=plaintext, expires_at=expires_at)
            timer = threading.Timer(ttl, self._expire, args=(plaintext,))
            timer.name = "skpass-expiry"
            timer.daemon = True
            self._timer = timer
            timer.start()

        logger.info("Revealed %s, expires in %ss", selection, ttl)
        self.notifier.notify(
            "The password has been copied to your clipboard.\n"
            f"It will be cleared in {ttl:g} seconds.",
            Severity.INFO,
            self.notification_duration_ms,
        )
        return RevealResult(revealed=True, display_name=selection, expires_at=expires_at)

    def reveal_in_background(
        self,
        selection: Optional[str],
        entries: Mapping[str, Path],
        ttl: Optional[float] = None,
        on_done: Optional[Callable[[Optional[RevealResult], Optional[Exception]], None]] = None,
    ) -> threading.Thread:
        """Run reveal() on a worker thread so the caller never blocks on gpg.

        ``on_done`` receives ``(result, None)`` or ``(None, error)``.
        """

        def _run() -> None:
            try:
                result = self.reveal(selection, entries, ttl)
            except Exception as exc:
                logger.error("Background reveal failed: %s", exc)
                if on_done:
                    on_done(None, exc)
                return
            if on_done:
                on_done(result, None)

        t = threading.Thread(target=_run, name="skpass-reveal", daemon=True)
        t.start()
        return t

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the pending expiry has run.

        Returns:
            True if nothing is pending anymore.
        """
        timer = self._timer
        if timer is None:
            return True
        timer.join(timeout)
        return not timer.is_alive()

    def clear_now(self) -> None:
        """Expire the pending secret immediately, e.g. on shutdown."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            if self.pending is not None:
                self._clear_if_unchanged(self.pending.secret_value)
            self._timer = None
            self.pending = None

    def _expire(self, value: str) -> None:
        with self._lock:
            try:
                self._clear_if_unchanged(value)
            except Exception as exc:
                logger.error("Could not clear clipboard: %s", exc)
            if threading.current_thread() is self._timer:
                self._timer = None
                self.pending = None

    def _clear_if_unchanged(self, value: str) -> None:
        if self.channel.contains() and self.channel.get() == value:
            self.channel.clear()
            logger.info("Clipboard cleared after timeout")
        else:
            logger.info("Clipboard changed since reveal, leaving it alone")
