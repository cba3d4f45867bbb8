"""
Response writer for nearclip sessions

Each response is one JSON head frame, optionally followed by a raw body of
exactly `dataLen` bytes. The body is not framed again; the peer already
knows its length from the head.
"""
import json
import logging
import socket
from pathlib import Path
from typing import Optional

from nearclip import config
from nearclip.common.framing import write_frame
from nearclip.common.protocol import ResponseHead, StatusCode

logger = logging.getLogger(__name__)


class Responder:
    """Writes response heads and bodies to one connection"""

    def __init__(self, sock: socket.socket):
        self.sock = sock

    def _encode(self, head: ResponseHead) -> Optional[bytes]:
        try:
            return json.dumps(head.to_dict(), ensure_ascii=False, separators=(',', ':')).encode('utf-8')
        except (TypeError, ValueError) as e:
            logger.error(f"json marshal failed, err: {e}")
            return None

    def send_head(self, head: ResponseHead) -> bool:
        """Write one head frame. Returns False if nothing could be sent."""
        payload = self._encode(head)
        if payload is None:
            return False
        logger.debug(f"respHead: {head}")
        try:
            write_frame(self.sock, payload)
        except OSError as e:
            logger.error(f"write head failed, err: {e}")
            return False
        return True

    def write_result(self, code: int, msg: str, data_type: Optional[str] = None,
                     body: Optional[bytes] = None) -> bool:
        """Write a head and, if given, the raw body right after it"""
        head = ResponseHead(code=code, msg=msg, data_type=data_type or "")
        if body is not None:
            head.data_len = len(body)

        if not self.send_head(head):
            return False
        if body:
            try:
                self.sock.sendall(body)
            except OSError as e:
                logger.error(f"write body failed, err: {e}")
                return False
        return True

    def send_msg(self, msg: str) -> bool:
        return self.write_result(StatusCode.OK, msg)

    def send_with_body(self, msg: str, data_type: str, body: bytes) -> bool:
        return self.write_result(StatusCode.OK, msg, data_type, body)

    def send_file_range(self, msg: str, data_type: str, path: Path, start: int, length: int) -> bool:
        """
        Stream `length` bytes of `path` starting at `start` as the body.

        The head is only written once the file is open, so an unreadable file
        raises OSError before anything reaches the peer.
        """
        with open(path, 'rb') as f:
            f.seek(start)
            head = ResponseHead(code=StatusCode.OK, msg=msg, data_type=data_type, data_len=length)
            if not self.send_head(head):
                return False

            remaining = length
            try:
                while remaining > 0:
                    chunk = f.read(min(remaining, config.BUFFER_SIZE))
                    if not chunk:
                        # File shrank underneath us; the peer will see a short body
                        logger.error(f"file truncated while sending: {path}")
                        return False
                    self.sock.sendall(chunk)
                    remaining -= len(chunk)
            except OSError as e:
                logger.error(f"write body failed, err: {e}")
                return False
        return True

    def respond_error(self, code: int, msg: str) -> bool:
        return self.write_result(code, msg)

    def respond_client_error(self, msg: str) -> bool:
        return self.respond_error(StatusCode.CLIENT_ERROR, msg)

    def respond_auth_error(self, msg: str) -> bool:
        return self.respond_error(StatusCode.UNAUTHORIZED, msg)
