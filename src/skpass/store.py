"""
Store index -- every encrypted file, by the name a human would use.

A file at <root>/email/work.gpg shows up as "email/work". The
mapping is reversible, so a display name always leads back to
exactly one file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePath
from typing import Iterator

from .errors import StoreUnavailable
from .models import StoreConfig, StoreEntry

logger = logging.getLogger("skpass.store")

EXCLUDE_DIRS = {".git"}


def display_name(relative: PurePath, separator: str = "/", extension: str = ".gpg") -> str:
    """Turn a store-relative path into its display name.

    Args:
        relative: Path relative to the store root.
        separator: Joins the path components in the display name.
        extension: Suffix stripped from the file name, if present.

    Returns:
        The display name.
    """
    name = separator.join(relative.parts)
    if extension and name.endswith(extension):
        name = name[: -len(extension)]
    return name


class StoreIndex:
    """Enumerates the password store and maps files to display names."""

    def __init__(
        self,
        root: Path,
        pattern: str = "*.gpg",
        separator: str = "/",
        extension: str = ".gpg",
    ):
        self.root = Path(root).expanduser()
        self.pattern = pattern
        self.separator = separator
        self.extension = extension

    @classmethod
    def from_config(cls, config: StoreConfig) -> "StoreIndex":
        return cls(
            config.path,
            pattern=config.match,
            separator=config.directory_separator,
            extension=config.extension,
        )

    def enumerate(self) -> Iterator[StoreEntry]:
        """Lazily yield every matching file under the store root.

        The root is checked up front, so a missing store fails here
        rather than on the first iteration. Order is whatever the
        filesystem returns.

        Raises:
            StoreUnavailable: If the root is missing or unreadable.
        """
        self._check_root()
        return self._walk()

    def mapping(self) -> dict[str, Path]:
        """Display name -> absolute path, for one selection round."""
        result: dict[str, Path] = {}
        for entry in self.enumerate():
            if entry.display_name in result:
                logger.warning(
                    "Display name %s is ambiguous (%s, %s)",
                    entry.display_name,
                    result[entry.display_name],
                    entry.absolute_path,
                )
                continue
            result[entry.display_name] = entry.absolute_path
        return result

    def display_name(self, path: Path) -> str:
        """Display name for an absolute path inside the store."""
        return display_name(
            Path(path).relative_to(self.root), self.separator, self.extension
        )

    def path_for(self, name: str) -> Path:
        """Map a display name back to the absolute file path."""
        parts = name.split(self.separator) if self.separator else [name]
        return self.root.joinpath(*parts[:-1], parts[-1] + self.extension)

    def _check_root(self) -> None:
        if not self.root.exists():
            raise StoreUnavailable(self.root, "directory does not exist")
        if not self.root.is_dir():
            raise StoreUnavailable(self.root, "not a directory")
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise StoreUnavailable(self.root, "permission denied")

    def _walk(self) -> Iterator[StoreEntry]:
        for path in self.root.rglob(self.pattern):
            relative = path.relative_to(self.root)
            if EXCLUDE_DIRS.intersection(relative.parts):
                continue
            if not path.is_file():
                continue
            yield StoreEntry(
                absolute_path=path,
                display_name=display_name(relative, self.separator, self.extension),
            )
