"""
Per-connection session handling for nearclip

A session reads a head frame, authenticates it, and dispatches on its
action. Most actions answer once and end the session; pasteFile and
download handle one step each and ask for another head on the same
connection until they report otherwise.

    AWAIT_HEAD -> AUTHENTICATING -> DISPATCHING -> AWAIT_HEAD | TERMINATED

serve_connection() is the supervisor around one session: whatever happens
inside, the failure is logged, recorded in the fault log, and the
connection is closed.
"""
import logging
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from nearclip import config
from nearclip.common.auth import Authenticator
from nearclip.common.clipboard_state import ClipboardKind, ClipboardState
from nearclip.common.crypto import Crypter
from nearclip.common.discovery import DiscoveryGate
from nearclip.common.enumerator import enumerate_paths
from nearclip.common.errors import (
    CryptoError,
    EnumerationError,
    ERROR_CLIPBOARD_EMPTY,
    ERROR_INVALID_DATA,
    IncompleteDataError,
    PeerClosedError,
    ProtocolError,
    TransferError,
)
from nearclip.common.fault_log import LazyFileWriter, record_fault
from nearclip.common.file_transfer import FileReceiver, UploadType, resolve_download_range
from nearclip.common.framing import read_exact, read_json_frame
from nearclip.common.protocol import (
    Action,
    DataType,
    MatchResponse,
    PathType,
    RequestHead,
    ResponseHead,
    StatusCode,
)
from nearclip.common.responder import Responder
from nearclip.platform.base import ClipboardBackend, Notifier

logger = logging.getLogger(__name__)

PING_REQUEST = b"ping"
PING_REPLY = b"pong"


class SessionState(Enum):
    AWAIT_HEAD = "await_head"
    AUTHENTICATING = "authenticating"
    DISPATCHING = "dispatching"
    TERMINATED = "terminated"


@dataclass
class SessionServices:
    """Everything a session needs from the rest of the process"""
    crypter: Crypter
    authenticator: Authenticator
    clipboard: ClipboardBackend
    state: ClipboardState
    receiver: FileReceiver
    discovery: DiscoveryGate
    device_name: str
    notifier: Optional[Notifier] = None
    fault_log: Optional[LazyFileWriter] = None


def local_address_of(sock: socket.socket) -> str:
    """Address this side of the connection is bound to, without the port"""
    try:
        name = sock.getsockname()
    except OSError:
        return ""
    if isinstance(name, tuple):
        return str(name[0])
    return name.decode() if isinstance(name, bytes) else str(name)


def preview_text(text: str, limit: int = config.NOTIFY_PREVIEW_CHARS) -> str:
    """First `limit` characters, with an ellipsis when cut"""
    if len(text) >= limit:
        return text[:limit] + "..."
    return text


class Session:
    """Request loop for one accepted connection"""

    def __init__(self, sock: socket.socket, services: SessionServices,
                 local_address: Optional[str] = None):
        self.sock = sock
        self.services = services
        self.local_address = local_address if local_address is not None else local_address_of(sock)
        self.responder = Responder(sock)
        self.state = SessionState.AWAIT_HEAD

        self._terminal: Dict[str, Callable[[RequestHead], None]] = {
            Action.PING: self.handle_ping,
            Action.PASTE_TEXT: self.handle_paste_text,
            Action.COPY: self.handle_copy,
            Action.MATCH: self.handle_match,
        }
        self._continuable: Dict[str, Callable[[RequestHead], bool]] = {
            Action.PASTE_FILE: self.handle_paste_file,
            Action.DOWNLOAD: self.handle_download,
        }

    def run(self):
        """Serve requests until a handler ends the session or the peer leaves"""
        try:
            while True:
                self.state = SessionState.AWAIT_HEAD
                head = self._read_head()
                if head is None:
                    return

                self.state = SessionState.AUTHENTICATING
                if not self._authenticate(head):
                    return

                self.state = SessionState.DISPATCHING
                if not self._dispatch(head):
                    return
        finally:
            self.state = SessionState.TERMINATED

    def _read_head(self) -> Optional[RequestHead]:
        try:
            head = RequestHead.from_dict(read_json_frame(self.sock))
        except PeerClosedError:
            logger.info(f"client closed, local addr:{self.local_address}")
            return None
        except ProtocolError as e:
            logger.error(f"read head failed, err: {e}")
            self.responder.respond_auth_error(str(e))
            return None
        except OSError as e:
            logger.warning(f"read head failed, err: {e}")
            return None

        logger.debug(f"head: {head}")
        return head

    def _authenticate(self, head: RequestHead) -> bool:
        result = self.services.authenticator.authenticate(head, self.local_address)
        if not result.ok:
            logger.info(f"auth rejected for {head.device_name or 'unknown device'}: {result.reason}")
            self.responder.respond_auth_error(result.reason)
        return result.ok

    def _dispatch(self, head: RequestHead) -> bool:
        """Run the handler; True means read another head on this connection"""
        handler = self._terminal.get(head.action)
        if handler is not None:
            handler(head)
            return False

        step = self._continuable.get(head.action)
        if step is not None:
            keep_going = step(head)
            logger.debug(f"{head.action} step done, continue: {keep_going}")
            return keep_going

        logger.error(f"unknown action: {head.action}")
        self.responder.respond_client_error(f"unknown action:{head.action}")
        return False

    def _read_body(self, head: RequestHead) -> Optional[bytes]:
        """Read the declared body; answers with a client error if it falls short"""
        try:
            return read_exact(self.sock, head.data_len)
        except IncompleteDataError as e:
            logger.error(f"read body error: {e}, dataLen:{head.data_len}")
            self.responder.respond_client_error(str(e))
            return None

    # ========== Terminal actions ==========

    def handle_ping(self, head: RequestHead):
        try:
            body = read_exact(self.sock, head.data_len)
        except IncompleteDataError as e:
            logger.error(f"read body error: {e}")
            return

        try:
            decrypted = self.services.crypter.decrypt(body)
        except CryptoError as e:
            logger.error(f"decrypt body error: {e}")
            return

        if decrypted != PING_REQUEST:
            logger.error(f"invalid ping data: {decrypted!r}")
            self.responder.respond_client_error(ERROR_INVALID_DATA)
            return

        reply = self.services.crypter.encrypt(PING_REPLY)
        self.responder.send_with_body("verified", DataType.TEXT, reply)

    def handle_paste_text(self, head: RequestHead):
        body = self._read_body(head)
        if body is None:
            return

        self.services.clipboard.write(ClipboardKind.TEXT, body)
        text = body.decode('utf-8', errors='replace')
        logger.info(f"Pasted text from {head.device_name or 'peer'} ({len(text)} chars)")

        ack = threading.Thread(
            target=self.responder.send_msg,
            args=("paste succeeded",),
            name="paste-text-ack",
            daemon=True,
        )
        ack.start()
        try:
            if self.services.notifier is not None:
                self.services.notifier.show(preview_text(text), head.device_name)
        finally:
            ack.join()

    def handle_copy(self, head: RequestHead):
        state = self.services.state
        snap = state.snapshot()

        # Files the user picked for sharing
        if snap.selected_files:
            if self._send_files(snap.selected_files):
                state.clear_selected_files(snap.selected_files)
            return

        # Files on the clipboard
        try:
            files = self.services.clipboard.read_files()
        except OSError as e:
            logger.error(f"read clipboard files error: {e}")
            files = []
        if files:
            selected = tuple(dict.fromkeys(files))
            state.select_files(selected)
            if self._send_files(selected):
                state.clear_selected_files(selected)
                try:
                    self.services.clipboard.clear()
                except OSError as e:
                    logger.error(f"clear clipboard error: {e}")
            return

        if snap.kind == ClipboardKind.EMPTY:
            self.responder.respond_client_error(ERROR_CLIPBOARD_EMPTY)
            return

        if snap.kind == ClipboardKind.TEXT:
            self.responder.send_with_body("", DataType.TEXT, snap.data)
            return

        if snap.kind == ClipboardKind.IMAGE:
            image_name = datetime.now().strftime(config.IMAGE_NAME_FORMAT) + ".png"
            self.responder.send_with_body(image_name, DataType.CLIP_IMAGE, snap.data)
            return

        logger.warning(f"nothing to send for clipboard kind {snap.kind}")

    def _send_files(self, paths: Sequence[str]) -> bool:
        """Send the manifest for `paths`; False if enumeration or the write failed"""
        try:
            manifest = enumerate_paths(paths)
        except EnumerationError as e:
            logger.error(f"send files error: {e}")
            self.responder.respond_client_error(str(e))
            return False

        self.services.state.publish(p.path for p in manifest if p.type == PathType.FILE)
        head = ResponseHead(code=StatusCode.OK, data_type=DataType.FILES, paths=manifest)
        if not self.responder.send_head(head):
            logger.error("send files error: manifest not delivered")
            return False
        logger.info(f"Sent manifest with {len(manifest)} entries")
        return True

    def handle_match(self, head: RequestHead):
        resp = MatchResponse(
            device_name=self.services.device_name,
            secret_key_hex=self.services.crypter.key_hex,
        )
        self.responder.send_msg(resp.to_json())
        logger.info(f"Matched with {head.device_name or 'unknown device'}")
        self.services.discovery.close()

    # ========== Continuable actions ==========

    def handle_paste_file(self, head: RequestHead) -> bool:
        receiver = self.services.receiver

        if head.upload_type == UploadType.DIR:
            try:
                receiver.make_dirs(head)
            except (TransferError, OSError) as e:
                logger.error(f"create dirs error: {e}")
                self.responder.respond_client_error(str(e))
                return False
            return self.responder.send_msg("dirs created")

        if head.upload_type != UploadType.FILE:
            self.responder.respond_client_error(f"unknown upload type:{head.upload_type}")
            return False

        try:
            receiver.validate_range(head)
            receiver.resolve(head.path)
        except TransferError as e:
            logger.error(f"paste file rejected: {e}")
            self.responder.respond_client_error(str(e))
            return False

        body = self._read_body(head)
        if body is None:
            return False

        try:
            done = receiver.write_chunk(head, body)
        except (TransferError, OSError) as e:
            logger.error(f"write chunk error: {e}")
            self.responder.respond_client_error(str(e))
            return False

        return self.responder.send_msg("file received" if done else "chunk received")

    def handle_download(self, head: RequestHead) -> bool:
        # Keep the stream aligned even if the peer sent a body we don't use
        if head.data_len and self._read_body(head) is None:
            return False

        if not self.services.state.is_published(head.path):
            logger.warning(f"download of unshared path refused: {head.path}")
            self.responder.respond_client_error(f"path not shared:{head.path}")
            return False

        try:
            start, length = resolve_download_range(head.path, head.start, head.end)
            return self.responder.send_file_range("", DataType.BINARY, Path(head.path), start, length)
        except (TransferError, OSError) as e:
            logger.error(f"download error: {e}")
            self.responder.respond_client_error(str(e))
            return False


def serve_connection(sock: socket.socket, services: SessionServices,
                     peer: str = "", local_address: Optional[str] = None):
    """
    Supervise one connection: run its session, record any fault, always close.
    """
    logger.info(f"remote addr: {peer or 'unknown'}")
    try:
        Session(sock, services, local_address).run()
    except Exception as e:
        logger.exception(f"session with {peer or 'unknown'} failed: {e}")
        if services.fault_log is not None:
            record_fault(services.fault_log, e, context=f"session {peer}")
    finally:
        sock.close()
