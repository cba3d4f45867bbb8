"""
Session harness for driving a server-side session from a test
"""
import socket
import threading
from typing import Optional, Tuple

from nearclip.common.auth import build_token
from nearclip.common.crypto import Crypter
from nearclip.common.framing import read_exact, read_json_frame, write_json_frame
from nearclip.common.protocol import Action, RequestHead, ResponseHead
from nearclip.session import SessionServices, serve_connection

# Address the session under test believes it is bound to
LOCAL_ADDRESS = "192.168.1.20"


class SessionHarness:
    """
    Drives one server-side session over a socketpair.

    The server end runs serve_connection() on its own thread; the test
    talks to it through the client end.
    """

    def __init__(self, services: SessionServices, crypter: Crypter,
                 local_address: str = LOCAL_ADDRESS):
        self.crypter = crypter
        self.local_address = local_address
        self.client, server = socket.socketpair()
        self.client.settimeout(5)
        self.thread = threading.Thread(
            target=serve_connection,
            args=(server, services, "test-peer", local_address),
            daemon=True,
        )
        self.thread.start()

    def head(self, action: str, token: Optional[str] = None, **fields) -> RequestHead:
        if token is None:
            token = "" if action == Action.MATCH else build_token(self.crypter, self.local_address)
        return RequestHead(action=action, device_name="test-peer", time_ip=token, **fields)

    def send(self, head: RequestHead, body: bytes = b""):
        """Send a head as-is, then the body"""
        write_json_frame(self.client, head.to_dict())
        if body:
            self.client.sendall(body)

    def request(self, action: str, body: bytes = b"", **fields):
        head = self.head(action, **fields)
        head.data_len = len(body)
        self.send(head, body)

    def receive(self) -> Tuple[ResponseHead, bytes]:
        head = ResponseHead.from_dict(read_json_frame(self.client, 1 << 24))
        body = read_exact(self.client, head.data_len) if head.data_len else b""
        return head, body

    def finish(self, timeout: float = 5.0):
        """Wait for the server side to end the session"""
        self.thread.join(timeout)
        assert not self.thread.is_alive(), "session did not terminate"

    def server_closed(self) -> bool:
        """True once the server closed its end and nothing is left unread"""
        return self.client.recv(1) == b""

    def close(self):
        self.client.close()
        self.thread.join(5)
