"""
Base classes for the collaborators the session core talks to
"""
from abc import ABC, abstractmethod
from typing import List


class ClipboardBackend(ABC):
    """
    Abstract base class for native clipboard access

    Implementations are expected to report clipboard changes to the shared
    ClipboardState, the way a clipboard watcher would.
    """

    @abstractmethod
    def write(self, kind: str, data: bytes) -> None:
        """
        Put data on the clipboard

        Args:
            kind: A ClipboardKind value (text or image)
            data: UTF-8 text or PNG bytes
        """

    @abstractmethod
    def read_files(self) -> List[str]:
        """
        Return the file paths currently on the clipboard (may be empty)

        Raises:
            OSError: If the clipboard cannot be read
        """

    @abstractmethod
    def clear(self) -> None:
        """Empty the clipboard"""


class Notifier(ABC):
    """Abstract base class for user-visible notifications"""

    @abstractmethod
    def show(self, text: str, source_device: str) -> None:
        """
        Display a notification

        Args:
            text: Message body
            source_device: Name of the device the content came from
        """


__all__ = ['ClipboardBackend', 'Notifier']
