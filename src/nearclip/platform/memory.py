"""
Headless collaborators

MemoryClipboard keeps clipboard content in process memory and LogNotifier
writes notifications to the log. Both are used when no desktop integration
is available and throughout the test suite.
"""
import logging
import threading
from typing import Iterable, List

from nearclip.common.clipboard_state import ClipboardKind, ClipboardState
from nearclip.platform.base import ClipboardBackend, Notifier

logger = logging.getLogger(__name__)


class MemoryClipboard(ClipboardBackend):
    """In-process clipboard that mirrors its changes into a ClipboardState"""

    def __init__(self, state: ClipboardState):
        self._state = state
        self._lock = threading.Lock()
        self._kind = ClipboardKind.EMPTY
        self._data = b""
        self._files: List[str] = []

    def write(self, kind: str, data: bytes) -> None:
        if kind not in (ClipboardKind.TEXT, ClipboardKind.IMAGE):
            raise ValueError(f"unsupported clipboard kind: {kind}")
        with self._lock:
            self._kind = kind
            self._data = bytes(data)
            self._files = []
        self._state.set_content(kind, data)

    def set_files(self, paths: Iterable[str]) -> None:
        """Simulate the user copying files in a file manager"""
        files = [str(p) for p in paths]
        with self._lock:
            self._kind = ClipboardKind.FILES
            self._data = b""
            self._files = files
        self._state.set_content(ClipboardKind.FILES)

    def read_files(self) -> List[str]:
        with self._lock:
            return list(self._files)

    def read(self):
        """Return (kind, data) currently held"""
        with self._lock:
            return self._kind, self._data

    def clear(self) -> None:
        with self._lock:
            self._kind = ClipboardKind.EMPTY
            self._data = b""
            self._files = []
        self._state.set_content(ClipboardKind.EMPTY)


class LogNotifier(Notifier):
    """Notifier that writes to the log instead of the desktop"""

    def show(self, text: str, source_device: str) -> None:
        logger.info(f"[{source_device or 'unknown device'}] {text}")
