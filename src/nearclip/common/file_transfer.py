"""
File chunk transfer for nearclip

pasteFile pushes files to this device one request per step: a "dir" step
creates directories, a "file" step carries one byte range of one file.
Steps belong to an operation (opID) that announces how many files it will
deliver, so the user is notified once when the last file is complete.

download serves byte ranges of files this device published in its last
files manifest.
"""
import os
import time
import logging
import threading
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Set, Tuple

from nearclip import config
from nearclip.common.errors import TransferError
from nearclip.common.protocol import RequestHead
from nearclip.platform.base import Notifier

logger = logging.getLogger(__name__)


class UploadType:
    DIR = "dir"
    FILE = "file"


FileKey = Tuple[int, str]


@dataclass
class OpProgress:
    """Progress of one pasteFile operation"""
    expected_files: int
    device_name: str = ""
    received: Dict[FileKey, int] = field(default_factory=dict)  # (file_id, path) -> bytes
    completed: Set[FileKey] = field(default_factory=set)
    last_seen: float = 0.0

    @property
    def counted(self) -> bool:
        return self.expected_files > 0


def safe_relative(rel: str) -> str:
    """
    Normalize a peer-supplied relative path.

    Raises:
        TransferError: for empty, absolute, or escaping paths
    """
    cleaned = rel.replace('\\', '/')
    if not cleaned or cleaned.startswith('/') or (len(cleaned) > 1 and cleaned[1] == ':'):
        raise TransferError(f"invalid path: {rel!r}")
    normalized = posixpath.normpath(cleaned)
    if normalized == '.' or normalized == '..' or normalized.startswith('../'):
        raise TransferError(f"invalid path: {rel!r}")
    return normalized


class FileReceiver:
    """
    Stores pushed directories and file chunks under the save directory.

    Files are tracked per operation by (fileID, path). An operation that
    announces no file count keeps a file only until it is complete, and any
    operation idle for longer than `idle_timeout` seconds is forgotten.
    """

    def __init__(self, save_dir: Path, notifier: Notifier,
                 idle_timeout: float = config.TRANSFER_IDLE_TIMEOUT,
                 clock: Callable[[], float] = time.monotonic):
        self.save_dir = Path(save_dir)
        self.notifier = notifier
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._ops: Dict[int, OpProgress] = {}

    def resolve(self, rel: str) -> Path:
        return self.save_dir / safe_relative(rel)

    def make_dirs(self, head: RequestHead) -> None:
        """Create `path` and every entry of `dirs` below the save directory"""
        targets = [d for d in [head.path, *head.dirs] if d]
        if not targets:
            raise TransferError("no directories given")
        resolved = [self.resolve(d) for d in targets]
        for target in resolved:
            target.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created {len(resolved)} director(ies) for {head.device_name or 'peer'}")

    @staticmethod
    def validate_range(head: RequestHead) -> None:
        if head.file_size < 0:
            raise TransferError(f"invalid fileSize: {head.file_size}")
        if not 0 <= head.start <= head.end <= head.file_size:
            raise TransferError(
                f"invalid range: start={head.start} end={head.end} fileSize={head.file_size}")
        if head.end - head.start != head.data_len:
            raise TransferError(
                f"range length {head.end - head.start} does not match dataLen {head.data_len}")

    def _expire_idle(self, now: float) -> None:
        """Drop operations nobody has written to for a while. Caller holds the lock."""
        stale = [op_id for op_id, op in self._ops.items()
                 if now - op.last_seen > self.idle_timeout]
        for op_id in stale:
            logger.warning(f"Dropping unfinished transfer op {op_id} "
                           f"({len(self._ops[op_id].received)} file(s) started)")
            del self._ops[op_id]

    def _begin_file(self, head: RequestHead, key: FileKey, target: Path) -> Tuple[OpProgress, bool]:
        """Register the chunk's file with its operation; returns (op, first_chunk)"""
        with self._lock:
            now = self._clock()
            self._expire_idle(now)
            op = self._ops.get(head.op_id)
            if op is None:
                op = OpProgress(expected_files=head.files_count_in_this_op,
                                device_name=head.device_name)
                self._ops[head.op_id] = op
            op.last_seen = now
            first = key not in op.received
            if first:
                op.received[key] = 0
        if first:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Size the file up front so chunks may arrive in any order
            with open(target, 'wb') as f:
                f.truncate(head.file_size)
        return op, first

    def write_chunk(self, head: RequestHead, data: bytes) -> bool:
        """
        Write one chunk. Returns True once the chunk's file is complete.

        Raises:
            TransferError: invalid head fields
            OSError: the file could not be written
        """
        if len(data) != head.data_len:
            raise TransferError(f"expected {head.data_len} bytes, got {len(data)}")
        target = self.resolve(head.path)
        key = (head.file_id, safe_relative(head.path))
        op, _ = self._begin_file(head, key, target)

        if data:
            fd = os.open(target, os.O_WRONLY | os.O_CREAT, 0o644)
            try:
                os.lseek(fd, head.start, os.SEEK_SET)
                view = memoryview(data)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
            finally:
                os.close(fd)

        op_done = False
        with self._lock:
            op.received[key] = op.received.get(key, 0) + len(data)
            file_done = op.received[key] >= head.file_size
            if file_done and op.counted:
                op.completed.add(key)
                op_done = len(op.completed) >= op.expected_files
            elif file_done:
                del op.received[key]
            if op_done or not (op.counted or op.received):
                if self._ops.get(head.op_id) is op:
                    del self._ops[head.op_id]

        if file_done:
            logger.info(f"Received file {target} ({head.file_size} bytes)")
        if op_done:
            self.notifier.show(f"Received {op.expected_files} file(s) in {self.save_dir}",
                               op.device_name)
        return file_done

    def pending_ops(self) -> Iterable[int]:
        with self._lock:
            return list(self._ops)


def resolve_download_range(path: str, start: int, end: int) -> Tuple[int, int]:
    """
    Turn a requested [start, end) range into (start, length).

    end == 0 means "to the end of the file".

    Raises:
        TransferError: range outside the file
        OSError: the file cannot be stat'ed
    """
    size = os.stat(path).st_size
    if end == 0:
        end = size
    if not 0 <= start <= end <= size:
        raise TransferError(f"invalid range: start={start} end={end} size={size}")
    return start, end - start
