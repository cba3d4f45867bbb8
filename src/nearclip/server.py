"""
nearclip server - accepts peer connections and serves clipboard sessions

One daemon thread accepts connections; every accepted connection gets its
own thread running serve_connection(). Sessions share nothing but the
ClipboardState, the discovery gate and the file receiver.
"""
import socket
import logging
import threading
from pathlib import Path
from typing import Optional

from nearclip import config
from nearclip.common.auth import Authenticator
from nearclip.common.clipboard_state import ClipboardState
from nearclip.common.crypto import Crypter
from nearclip.common.discovery import DiscoveryGate, ServiceAdvertiser
from nearclip.common.fault_log import LazyFileWriter
from nearclip.common.file_transfer import FileReceiver
from nearclip.common.user_config import ServerConfig
from nearclip.platform.base import ClipboardBackend, Notifier
from nearclip.platform.memory import LogNotifier, MemoryClipboard
from nearclip.session import SessionServices, serve_connection

logger = logging.getLogger(__name__)


class ClipboardServer:
    """
    Serves clipboard sessions to paired peers:
    - Running a server socket with one thread per connection
    - Advertising over mDNS while discovery is enabled
    """

    def __init__(self,
                 server_config: ServerConfig,
                 clipboard: Optional[ClipboardBackend] = None,
                 state: Optional[ClipboardState] = None,
                 notifier: Optional[Notifier] = None,
                 host: str = '0.0.0.0',
                 advertise: bool = True,
                 fault_log_path: Path = config.FAULT_LOG_FILE):
        """
        Initialize the server

        Args:
            server_config: Loaded user configuration (must hold a secret key)
            clipboard: Clipboard backend; in-memory when omitted
            state: Shared clipboard state; created when omitted
            notifier: Notification sink; log-backed when omitted
            host: Interface to bind
            advertise: Register an mDNS service while discovery is open
            fault_log_path: Where unrecovered session faults are appended
        """
        self.config = server_config
        self.host = host
        self.port = server_config.port
        self.state = state or ClipboardState()
        self.clipboard = clipboard or MemoryClipboard(self.state)
        if notifier is None and server_config.show_notifications:
            notifier = LogNotifier()

        self.crypter = Crypter.from_hex(server_config.secret_key_hex)
        self.discovery = DiscoveryGate(enabled=server_config.allow_discovery)
        self.fault_log = LazyFileWriter(fault_log_path)

        self.services = SessionServices(
            crypter=self.crypter,
            authenticator=Authenticator(self.crypter, self.discovery),
            clipboard=self.clipboard,
            state=self.state,
            receiver=FileReceiver(server_config.effective_save_dir, notifier or LogNotifier()),
            discovery=self.discovery,
            device_name=server_config.effective_device_name,
            notifier=notifier,
            fault_log=self.fault_log,
        )

        self._advertiser: Optional[ServiceAdvertiser] = None
        if advertise:
            self._advertiser = ServiceAdvertiser(device_name=server_config.effective_device_name)
            self.discovery.add_close_listener(self._advertiser.stop)

        self._server_socket: Optional[socket.socket] = None
        self._server_thread: Optional[threading.Thread] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start accepting connections (and advertising, if discovery is on)"""
        if self._running:
            return

        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.bind((self.host, self.port))
        self._server_socket.listen(5)
        self._server_socket.settimeout(1.0)  # For clean shutdown
        self.port = self._server_socket.getsockname()[1]

        self._running = True
        self._server_thread = threading.Thread(target=self._server_loop, name="nearclip-accept", daemon=True)
        self._server_thread.start()

        if self._advertiser and self.discovery.is_enabled():
            self._advertiser.port = self.port
            self._advertiser.start()

        logger.info(f"Server started on {self.host}:{self.port}")

    def enable_discovery(self):
        """Accept one match request and advertise until it arrives"""
        self.discovery.open()
        if self._advertiser and self._running:
            self._advertiser.port = self.port
            self._advertiser.start()

    def stop(self):
        """Stop the server"""
        self._running = False

        if self._advertiser:
            self._advertiser.stop()

        if self._server_socket:
            self._server_socket.close()

        if self._server_thread:
            self._server_thread.join(timeout=2)

        self.fault_log.close()
        logger.info("Server stopped")

    def _server_loop(self):
        """Main server loop accepting connections"""
        while self._running:
            try:
                client_socket, addr = self._server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Server error: {e}")
                continue

            # Accepted sockets inherit the listener timeout; sessions block
            client_socket.settimeout(None)
            peer = f"{addr[0]}:{addr[1]}"
            handler = threading.Thread(
                target=serve_connection,
                args=(client_socket, self.services, peer),
                name=f"nearclip-session-{peer}",
                daemon=True,
            )
            handler.start()
