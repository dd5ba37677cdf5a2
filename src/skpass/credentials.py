"""
Credential resolution for key-based (SSH) remotes.

Optional: only used when enabled in the config, and only for
remotes that actually speak SSH.
"""

from __future__ import annotations

import logging
import re
import shlex
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlparse

logger = logging.getLogger("skpass.credentials")

SSH_SCHEMES = {"ssh", "git+ssh", "ssh+git"}
KEY_NAMES = ("id_rsa", "id_ed25519", "id_ecdsa")

# scp-like syntax: user@host:path. Not a URL, so urlparse can't help.
SCP_LIKE = re.compile(r"^[^/@\s]+@[^/:\s]+:")


def is_ssh_url(url: str) -> bool:
    """Whether git would talk SSH to this remote."""
    if "://" in url:
        return urlparse(url).scheme.lower() in SSH_SCHEMES
    return bool(SCP_LIKE.match(url))


def find_ssh_key(search_locations: Iterable[Path]) -> Optional[Path]:
    """First private key that has its public half next to it.

    Args:
        search_locations: Directories to look in, in order.

    Returns:
        Path to the private key, or None.
    """
    for location in search_locations:
        base = Path(location).expanduser()
        for name in KEY_NAMES:
            private_key = base / name
            public_key = base / f"{name}.pub"
            if private_key.is_file() and public_key.is_file():
                return private_key
    return None


class CredentialResolver(ABC):
    """Supplies environment for git network operations on a remote."""

    @abstractmethod
    def environment(self, url: str) -> dict[str, str]:
        """Environment variables git needs to authenticate to ``url``."""


class SshKeyResolver(CredentialResolver):
    """Points git's ssh at a key found in the search locations."""

    def __init__(self, search_locations: Iterable[Path], ssh_command: str = "ssh"):
        self.search_locations = list(search_locations)
        self.ssh_command = ssh_command

    def environment(self, url: str) -> dict[str, str]:
        key = find_ssh_key(self.search_locations)
        if key is None:
            logger.warning(
                "No SSH key found in %s, using ssh defaults",
                ", ".join(str(p) for p in self.search_locations),
            )
            return {}
        logger.debug("Using SSH key %s for %s", key, url)
        return {
            "GIT_SSH_COMMAND": (
                f"{self.ssh_command} -i {shlex.quote(str(key))} -o IdentitiesOnly=yes"
            )
        }
