"""
Append-only fault log

Session workers record unrecovered faults here. The file is only created
when the first fault is written, so a healthy run leaves nothing behind.
"""
import logging
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import IO, Optional

logger = logging.getLogger(__name__)


class LazyFileWriter:
    """File writer that opens its target on first write"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._file: Optional[IO[str]] = None
        self._lock = threading.Lock()

    def write(self, text: str) -> int:
        with self._lock:
            if self._file is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._file = open(self.path, 'a', encoding='utf-8')
            written = self._file.write(text)
            self._file.flush()
            return written

    def close(self):
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


def record_fault(writer: LazyFileWriter, exc: BaseException, context: str = "") -> None:
    """Append a timestamped fault entry with its traceback"""
    stamp = datetime.now().isoformat(timespec='seconds')
    header = f"[{stamp}] {context}: {exc!r}\n" if context else f"[{stamp}] {exc!r}\n"
    trace = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    try:
        writer.write(header + trace)
    except OSError as e:
        logger.error(f"Could not write fault log {writer.path}: {e}")
