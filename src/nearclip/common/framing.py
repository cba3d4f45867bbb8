"""
Length-prefixed framing for nearclip

Frame Format:
┌──────────────────┬──────────────────────────┐
│ Length (4B, LE)  │ Payload (Length bytes)   │
└──────────────────┴──────────────────────────┘

Head frames carry JSON and are capped at MAX_HEAD_SIZE. A head may be
followed by a raw, unframed body whose size is the head's "dataLen";
bodies are read with read_exact() and never go through the frame cap.
"""
import json
import struct
import logging
import socket
from typing import Any

from nearclip import config
from nearclip.common.errors import (
    IncompleteDataError,
    InvalidDataError,
    PeerClosedError,
)

logger = logging.getLogger(__name__)

LENGTH_PREFIX = struct.Struct('<I')


def read_exact(sock: socket.socket, size: int) -> bytes:
    """
    Read exactly `size` bytes from the socket.

    Raises:
        PeerClosedError: stream ended before the first byte
        IncompleteDataError: stream ended part way through
    """
    if size <= 0:
        return b""

    buf = bytearray()
    while len(buf) < size:
        chunk = sock.recv(min(size - len(buf), config.BUFFER_SIZE))
        if not chunk:
            if not buf:
                raise PeerClosedError(size, 0)
            raise IncompleteDataError(size, len(buf))
        buf.extend(chunk)
    return bytes(buf)


def read_frame(sock: socket.socket, max_size: int = config.MAX_HEAD_SIZE) -> bytes:
    """
    Read one frame and return its payload.

    Only the 4-byte prefix is consumed when the declared length is rejected.
    A stream that closes before any byte of the frame raises PeerClosedError;
    a stream that closes after the prefix raises IncompleteDataError.
    """
    prefix = read_exact(sock, LENGTH_PREFIX.size)
    (length,) = LENGTH_PREFIX.unpack(prefix)

    if length == 0 or length > max_size:
        raise InvalidDataError(f"invalid head len:{length}")

    try:
        return read_exact(sock, length)
    except IncompleteDataError as e:
        # The prefix arrived, so this is never a clean close
        raise IncompleteDataError(length, e.received) from e


def write_frame(sock: socket.socket, payload: bytes) -> None:
    """Write the length prefix, then the payload. Socket errors propagate."""
    sock.sendall(LENGTH_PREFIX.pack(len(payload)))
    sock.sendall(payload)


def read_json_frame(sock: socket.socket, max_size: int = config.MAX_HEAD_SIZE) -> Any:
    """Read one frame and decode it as UTF-8 JSON"""
    payload = read_frame(sock, max_size)
    try:
        return json.loads(payload.decode('utf-8'))
    except UnicodeDecodeError as e:
        raise InvalidDataError(f"invalid UTF-8 in head: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidDataError(f"invalid JSON in head: {e}") from e


def write_json_frame(sock: socket.socket, obj: Any) -> None:
    """Encode obj as compact JSON and write it as one frame"""
    payload = json.dumps(obj, ensure_ascii=False, separators=(',', ':')).encode('utf-8')
    write_frame(sock, payload)
