"""
Peer client for nearclip

Speaks the session protocol from the other side: builds the `timeIp`
token, sends requests and reads responses. Used by the CLI and by the
integration tests.
"""
import os
import socket
import logging
import posixpath
import secrets
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from nearclip import config
from nearclip.common.auth import build_token
from nearclip.common.crypto import Crypter
from nearclip.common.enumerator import enumerate_paths
from nearclip.common.errors import AuthError, NearclipError
from nearclip.common.file_transfer import UploadType, safe_relative
from nearclip.common.framing import read_exact, read_json_frame, write_json_frame
from nearclip.common.protocol import (
    Action,
    DataType,
    MatchResponse,
    PathInfo,
    PathType,
    RequestHead,
    ResponseHead,
    StatusCode,
)

logger = logging.getLogger(__name__)

# Response heads may carry a whole files manifest
MAX_RESPONSE_HEAD_SIZE = 16 * 1024 * 1024
UPLOAD_CHUNK_SIZE = 1024 * 1024


class RequestFailed(NearclipError):
    """The peer answered with a non-success status"""

    def __init__(self, code: int, msg: str):
        self.code = code
        self.msg = msg
        super().__init__(f"peer returned {code}: {msg}")


class AuthRejected(RequestFailed, AuthError):
    """The peer refused our token or match request"""


class PeerClient:
    """Client side of a nearclip session"""

    def __init__(self, host: str, port: int = config.PORT, crypter: Optional[Crypter] = None,
                 device_name: str = "", timeout: float = 30.0):
        self.host = host
        self.port = port
        self.crypter = crypter
        self.device_name = device_name or socket.gethostname()
        self.timeout = timeout

    def _connect(self) -> socket.socket:
        sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        return sock

    def _head(self, sock: socket.socket, action: str, **fields) -> RequestHead:
        token = ""
        if action != Action.MATCH:
            if self.crypter is None:
                raise NearclipError("a shared key is required for this request")
            # The token names the address we reached the peer on
            token = build_token(self.crypter, sock.getpeername()[0])
        return RequestHead(action=action, device_name=self.device_name, time_ip=token, **fields)

    @staticmethod
    def _send(sock: socket.socket, head: RequestHead, body: bytes = b""):
        head.data_len = len(body)
        write_json_frame(sock, head.to_dict())
        if body:
            sock.sendall(body)

    @staticmethod
    def _receive(sock: socket.socket) -> Tuple[ResponseHead, bytes]:
        head = ResponseHead.from_dict(read_json_frame(sock, MAX_RESPONSE_HEAD_SIZE))
        body = read_exact(sock, head.data_len) if head.data_len else b""
        return head, body

    @classmethod
    def _expect_ok(cls, sock: socket.socket) -> Tuple[ResponseHead, bytes]:
        head, body = cls._receive(sock)
        if head.code == StatusCode.UNAUTHORIZED:
            raise AuthRejected(head.code, head.msg)
        if not head.ok:
            raise RequestFailed(head.code, head.msg)
        return head, body

    def ping(self) -> bool:
        """Check that the peer is reachable and shares our key"""
        with self._connect() as sock:
            head = self._head(sock, Action.PING)
            self._send(sock, head, self.crypter.encrypt(b"ping"))
            _, body = self._expect_ok(sock)
        return self.crypter.decrypt(body) == b"pong"

    def paste_text(self, text: str) -> ResponseHead:
        """Push text onto the peer's clipboard"""
        with self._connect() as sock:
            self._send(sock, self._head(sock, Action.PASTE_TEXT), text.encode('utf-8'))
            head, _ = self._expect_ok(sock)
        return head

    def copy(self) -> Tuple[ResponseHead, bytes]:
        """Fetch the peer's clipboard: text, image, or a files manifest"""
        with self._connect() as sock:
            self._send(sock, self._head(sock, Action.COPY))
            return self._expect_ok(sock)

    def match(self) -> MatchResponse:
        """Ask a discoverable peer for its name and shared key"""
        with self._connect() as sock:
            self._send(sock, self._head(sock, Action.MATCH))
            head, _ = self._expect_ok(sock)
        return MatchResponse.from_json(head.msg)

    def download(self, path: str, start: int = 0, end: int = 0) -> bytes:
        """Fetch one byte range of a shared file"""
        with self._connect() as sock:
            self._send(sock, self._head(sock, Action.DOWNLOAD, path=path, start=start, end=end))
            _, body = self._expect_ok(sock)
        return body

    def download_manifest(self, manifest: Sequence[PathInfo], dest_dir: Path) -> List[Path]:
        """
        Materialize a files manifest under dest_dir, reusing one connection.

        Returns the paths of the files written.
        """
        dest_dir = Path(dest_dir)
        written: List[Path] = []
        with self._connect() as sock:
            for entry in manifest:
                if entry.type == PathType.DIR:
                    (dest_dir / safe_relative(entry.save_path)).mkdir(parents=True, exist_ok=True)
                    continue

                name = posixpath.basename(entry.path)
                rel = posixpath.join(entry.save_path, name) if entry.save_path else name
                target = dest_dir / safe_relative(rel)
                target.parent.mkdir(parents=True, exist_ok=True)

                self._send(sock, self._head(sock, Action.DOWNLOAD, path=entry.path))
                _, body = self._expect_ok(sock)
                target.write_bytes(body)
                written.append(target)
        return written

    def upload(self, paths: Sequence[str]) -> int:
        """
        Push files and directories to the peer's save directory over one
        connection. Returns the number of files sent.
        """
        manifest = enumerate_paths(paths)
        files = [e for e in manifest if e.type == PathType.FILE]
        dirs = [e.save_path for e in manifest if e.type == PathType.DIR]
        op_id = secrets.randbelow(2 ** 31)

        with self._connect() as sock:
            if dirs:
                head = self._head(sock, Action.PASTE_FILE, upload_type=UploadType.DIR, dirs=dirs)
                self._send(sock, head)
                self._expect_ok(sock)

            for file_id, entry in enumerate(files):
                name = posixpath.basename(entry.path)
                rel = posixpath.join(entry.save_path, name) if entry.save_path else name
                self._upload_file(sock, entry, rel, op_id, file_id, len(files))

        logger.info(f"Uploaded {len(files)} file(s) to {self.host}:{self.port}")
        return len(files)

    def _upload_file(self, sock: socket.socket, entry: PathInfo, rel: str,
                     op_id: int, file_id: int, files_count: int):
        size = os.stat(entry.path).st_size
        start = 0
        with open(entry.path, 'rb') as f:
            while True:
                chunk = f.read(UPLOAD_CHUNK_SIZE)
                end = start + len(chunk)
                head = self._head(
                    sock, Action.PASTE_FILE,
                    upload_type=UploadType.FILE,
                    path=rel,
                    file_id=file_id,
                    file_size=size,
                    start=start,
                    end=end,
                    op_id=op_id,
                    files_count_in_this_op=files_count,
                )
                self._send(sock, head, chunk)
                self._expect_ok(sock)
                start = end
                if start >= size:
                    break


def decode_copy(head: ResponseHead, body: bytes):
    """Interpret a copy response: returns (data_type, value)"""
    if head.data_type == DataType.TEXT:
        return DataType.TEXT, body.decode('utf-8', errors='replace')
    if head.data_type == DataType.FILES:
        return DataType.FILES, head.paths or []
    return head.data_type, body
