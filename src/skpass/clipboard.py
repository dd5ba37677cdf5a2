"""
Delivery channel -- the system clipboard, one slot, last writer wins.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import pyperclip

logger = logging.getLogger("skpass.clipboard")


class DeliveryChannel(ABC):
    """Single global text slot shared with other applications."""

    @abstractmethod
    def set(self, text: str) -> None:
        """Replace the slot's content."""

    @abstractmethod
    def get(self) -> str:
        """Current content, or an empty string."""

    @abstractmethod
    def clear(self) -> None:
        """Empty the slot."""

    def contains(self) -> bool:
        return bool(self.get())


class PyperclipChannel(DeliveryChannel):
    """The OS clipboard, via pyperclip."""

    def set(self, text: str) -> None:
        pyperclip.copy(text)

    def get(self) -> str:
        return pyperclip.paste() or ""

    def clear(self) -> None:
        pyperclip.copy("")
        logger.debug("Clipboard cleared")


class StdoutChannel(DeliveryChannel):
    """Writes the secret to the console instead of the clipboard.

    Nothing can be taken back once printed, so clear() only forgets it.
    """

    def __init__(self, echo=print):
        self._echo = echo
        self._value = ""

    def set(self, text: str) -> None:
        self._value = text
        self._echo(text)

    def get(self) -> str:
        return self._value

    def clear(self) -> None:
        self._value = ""
