"""
Discovery mode for nearclip

While discovery is enabled the device advertises itself over mDNS/Zeroconf
and answers the unauthenticated "match" action, which hands the shared key
to a new peer. The first successful match closes the gate again.
"""
import socket
import logging
import threading
from typing import Callable, List, Optional

from zeroconf import ServiceInfo, Zeroconf

from nearclip import config

logger = logging.getLogger(__name__)


class DiscoveryGate:
    """Thread-safe "discovery allowed" flag with close listeners"""

    def __init__(self, enabled: bool = False):
        self._enabled = enabled
        self._lock = threading.Lock()
        self._listeners: List[Callable[[], None]] = []

    def is_enabled(self) -> bool:
        with self._lock:
            return self._enabled

    def add_close_listener(self, callback: Callable[[], None]):
        """Register a callback run (once per close) when the gate closes"""
        with self._lock:
            self._listeners.append(callback)

    def open(self):
        with self._lock:
            self._enabled = True
        logger.info("Discovery enabled")

    def close(self):
        """Stop accepting match requests and notify listeners"""
        with self._lock:
            was_enabled = self._enabled
            self._enabled = False
            listeners = list(self._listeners)

        if not was_enabled:
            return

        logger.info("Discovery disabled")
        for callback in listeners:
            try:
                callback()
            except Exception as e:
                logger.error(f"Discovery close listener failed: {e}")


def get_local_ip() -> str:
    """Get the local IP address of the interface used for the LAN"""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # Doesn't actually connect, just determines the local interface
        s.connect(('8.8.8.8', 80))
        return s.getsockname()[0]
    except OSError:
        return '127.0.0.1'
    finally:
        s.close()


class ServiceAdvertiser:
    """
    Advertises this device over mDNS while discovery is open
    """

    def __init__(self, port: int = config.PORT, device_name: str = ""):
        self.port = port
        self.device_name = device_name or socket.gethostname()
        self.zeroconf: Optional[Zeroconf] = None
        self.service_info: Optional[ServiceInfo] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.zeroconf is not None

    def start(self):
        """Register our service"""
        with self._lock:
            if self.zeroconf is not None:
                return

            local_ip = get_local_ip()
            hostname = socket.gethostname()
            service_name = f"nearclip-{hostname}.{config.SERVICE_NAME}"

            self.service_info = ServiceInfo(
                config.SERVICE_NAME,
                service_name,
                addresses=[socket.inet_aton(local_ip)],
                port=self.port,
                properties={'version': '1.0', 'name': self.device_name},
            )

            self.zeroconf = Zeroconf()
            try:
                self.zeroconf.register_service(self.service_info)
                logger.info(f"Registered service: {service_name} at {local_ip}:{self.port}")
            except Exception as e:
                logger.error(f"Failed to register service: {e}")

    def stop(self):
        """Unregister our service"""
        with self._lock:
            if self.zeroconf is None:
                return

            if self.service_info:
                try:
                    self.zeroconf.unregister_service(self.service_info)
                except Exception as e:
                    logger.warning(f"Failed to unregister service: {e}")

            self.zeroconf.close()
            self.zeroconf = None
            self.service_info = None
            logger.info("Stopped advertising")
