"""
Decryption -- the one thing skpass never does itself.

The store's files are decrypted by an external program (gpg by
default). skpass only hands it a path and takes back text, or an
exit code when it refuses.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import DecryptFailed

logger = logging.getLogger("skpass.gpg")

# Shell convention for "command not found".
EXIT_NOT_FOUND = 127
# sysexits EX_DATAERR: gpg succeeded but the plaintext is not UTF-8.
EXIT_BAD_PLAINTEXT = 65


class Decryptor(ABC):
    """Turns an encrypted file into plaintext."""

    @abstractmethod
    def decrypt(self, path: Path) -> str:
        """Decrypt a file.

        Args:
            path: Encrypted file to decrypt.

        Returns:
            The plaintext.

        Raises:
            DecryptFailed: If decryption failed.
        """


class GpgDecryptor(Decryptor):
    """Decrypts store files with the system gpg binary.

    Key material and passphrase prompts stay with gpg and its agent.
    """

    def __init__(self, gpg_path: str = "gpg"):
        self.gpg_path = gpg_path

    def decrypt(self, path: Path) -> str:
        cmd = [self.gpg_path, "--quiet", "--yes", "--decrypt", str(path)]
        try:
            result = subprocess.run(cmd, capture_output=True, check=False)
        except FileNotFoundError as exc:
            logger.error("gpg binary not found: %s", self.gpg_path)
            raise DecryptFailed(EXIT_NOT_FOUND, str(exc)) from exc

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            logger.error(
                "gpg failed on %s (exit %d): %s", path, result.returncode, stderr.strip()
            )
            raise DecryptFailed(result.returncode, stderr)

        try:
            return result.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.error("Plaintext of %s is not valid UTF-8: %s", path, exc)
            raise DecryptFailed(
                EXIT_BAD_PLAINTEXT, f"decrypted content is not valid UTF-8: {exc}"
            ) from exc
