"""
Process-wide clipboard state

Every session reads and mutates the same clipboard view: what the local
clipboard currently holds, which files the user picked for sharing, and
which paths the last files manifest published. All of it sits behind one
lock and is handed out as immutable snapshots.
"""
import logging
import threading
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


class ClipboardKind:
    """What the local clipboard currently holds"""
    EMPTY = "empty"
    TEXT = "text"
    IMAGE = "image"
    FILES = "files"


@dataclass(frozen=True)
class ClipboardSnapshot:
    """Consistent view of the clipboard state at one instant"""
    kind: str = ClipboardKind.EMPTY
    data: bytes = b""
    selected_files: Tuple[str, ...] = ()


class ClipboardState:
    """Lock-guarded owner of the shared clipboard view"""

    def __init__(self):
        self._lock = threading.Lock()
        self._kind = ClipboardKind.EMPTY
        self._data = b""
        self._selected: Tuple[str, ...] = ()
        self._published: FrozenSet[str] = frozenset()

    def snapshot(self) -> ClipboardSnapshot:
        with self._lock:
            return ClipboardSnapshot(self._kind, self._data, self._selected)

    def set_content(self, kind: str, data: bytes = b""):
        """Record a clipboard change (called by the clipboard watcher)"""
        with self._lock:
            self._kind = kind
            self._data = bytes(data)
        logger.debug(f"Clipboard changed: {kind} ({len(data)} bytes)")

    def select_files(self, paths: Iterable[str]):
        """Replace the user-selected file set"""
        selected = tuple(dict.fromkeys(paths))
        with self._lock:
            self._selected = selected
        logger.info(f"Selected {len(selected)} path(s) for sharing")

    def clear_selected_files(self, expected: Optional[Tuple[str, ...]] = None) -> bool:
        """
        Drop the selected file set.

        With `expected`, only clear if the selection is still the one the
        caller observed, so a newer selection made meanwhile survives.
        """
        with self._lock:
            if expected is not None and self._selected != tuple(expected):
                return False
            self._selected = ()
            return True

    def publish(self, paths: Iterable[str]):
        """Remember the paths of the manifest just sent; download is limited to these"""
        published = frozenset(paths)
        with self._lock:
            self._published = published

    def is_published(self, path: str) -> bool:
        with self._lock:
            return path in self._published
