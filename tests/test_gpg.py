"""Tests for the gpg decryptor. gpg itself is mocked."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from skpass.errors import DecryptFailed
from skpass.gpg import EXIT_BAD_PLAINTEXT, EXIT_NOT_FOUND, GpgDecryptor


class TestGpgDecryptor:
    """Tests for GpgDecryptor.decrypt."""

    @patch("skpass.gpg.subprocess.run")
    def test_returns_plaintext(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout=b"hunter2\n", stderr=b"")

        assert GpgDecryptor().decrypt(Path("/store/a.gpg")) == "hunter2\n"

    @patch("skpass.gpg.subprocess.run")
    def test_command_line(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout=b"", stderr=b"")

        GpgDecryptor("/opt/gpg2").decrypt(Path("/store/a.gpg"))

        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "/opt/gpg2"
        assert "--decrypt" in cmd
        assert cmd[-1] == "/store/a.gpg"

    @patch("skpass.gpg.subprocess.run")
    def test_nonzero_exit(self, mock_run: MagicMock) -> None:
        """The exit code is passed through verbatim."""
        mock_run.return_value = subprocess.CompletedProcess(
            [], 2, stdout=b"", stderr=b"gpg: decryption failed: No secret key"
        )

        with pytest.raises(DecryptFailed) as info:
            GpgDecryptor().decrypt(Path("/store/a.gpg"))

        assert info.value.exit_code == 2
        assert "No secret key" in info.value.stderr

    @patch("skpass.gpg.subprocess.run", side_effect=FileNotFoundError("gpg"))
    def test_missing_binary(self, mock_run: MagicMock) -> None:
        with pytest.raises(DecryptFailed) as info:
            GpgDecryptor("no-such-gpg").decrypt(Path("/store/a.gpg"))
        assert info.value.exit_code == EXIT_NOT_FOUND

    @patch("skpass.gpg.subprocess.run")
    def test_non_utf8_plaintext(self, mock_run: MagicMock) -> None:
        """Undecodable plaintext is a DecryptFailed, not a UnicodeDecodeError."""
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout=b"\xff\xfesecret", stderr=b"")

        with pytest.raises(DecryptFailed) as info:
            GpgDecryptor().decrypt(Path("/store/a.gpg"))

        assert info.value.exit_code == EXIT_BAD_PLAINTEXT
        assert "UTF-8" in info.value.stderr
