"""
Request authentication for nearclip

Every request except "match" carries a `timeIp` token: the hex encoding of
encrypt("<UTC timestamp> <address>"), where the address is the one the
sender connected to, i.e. the receiver's own local address. A token is
valid for AUTH_MAX_AGE_SECONDS after its timestamp.

"match" skips the token entirely and is only accepted while discovery is
enabled.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from nearclip import config
from nearclip.common.crypto import Crypter
from nearclip.common.discovery import DiscoveryGate
from nearclip.common.errors import (
    CryptoError,
    ERROR_EXPIRED_AUTH_DATA,
    ERROR_INVALID_AUTH_DATA,
    ERROR_SEARCH_NOT_ALLOWED,
)
from nearclip.common.protocol import Action, RequestHead

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    ok: bool
    reason: str = ""


def strip_port(address: str) -> str:
    """'192.168.1.5:9876' -> '192.168.1.5'; bare addresses pass through"""
    if address.count(':') == 1:
        return address.split(':', 1)[0]
    return address


def build_token(crypter: Crypter, address: str, now: Optional[datetime] = None) -> str:
    """Build the hex `timeIp` token a peer sends to `address`"""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime(config.AUTH_TIME_FORMAT)
    return crypter.encrypt(f"{stamp} {address}".encode('utf-8')).hex()


class Authenticator:
    """Validates request heads against the shared key and the local address"""

    def __init__(self, crypter: Crypter, discovery: DiscoveryGate,
                 max_age: float = config.AUTH_MAX_AGE_SECONDS):
        self.crypter = crypter
        self.discovery = discovery
        self.max_age = max_age

    def authenticate(self, head: RequestHead, local_address: str,
                     now: Optional[datetime] = None) -> AuthResult:
        """
        Check one request head.

        Args:
            head: The parsed request head
            local_address: Address this side of the connection is bound to
            now: Current time (UTC); defaults to the wall clock
        """
        if head.action == Action.MATCH:
            if self.discovery.is_enabled():
                return AuthResult(True)
            logger.info(f"search not allowed, deviceName:{head.device_name}")
            return AuthResult(False, ERROR_SEARCH_NOT_ALLOWED)

        if not head.time_ip:
            return AuthResult(False, "time-ip is empty")

        try:
            encrypted = bytes.fromhex(head.time_ip)
        except ValueError:
            return AuthResult(False, ERROR_INVALID_AUTH_DATA)

        try:
            decrypted = self.crypter.decrypt(encrypted)
        except CryptoError:
            return AuthResult(False, ERROR_INVALID_AUTH_DATA)

        try:
            text = decrypted.decode('utf-8')
        except UnicodeDecodeError:
            return AuthResult(False, ERROR_INVALID_AUTH_DATA)

        width = config.AUTH_TIME_WIDTH
        if len(text) < width:
            return AuthResult(False, "time-ip is too short")

        # One separator character sits between timestamp and address
        time_str, claimed_ip = text[:width], text[width + 1:]
        try:
            stamp = datetime.strptime(time_str, config.AUTH_TIME_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            return AuthResult(False, ERROR_INVALID_AUTH_DATA)

        now = now or datetime.now(timezone.utc)
        age = (now - stamp).total_seconds()
        if age > self.max_age:
            logger.info(f"time expired: {stamp.isoformat()}")
            return AuthResult(False, f"{ERROR_EXPIRED_AUTH_DATA}: {time_str}")

        my_ip = strip_port(local_address)
        if claimed_ip != my_ip:
            logger.info(f"ip not match: {claimed_ip} != {my_ip}")
            return AuthResult(False, f"ip not match: {claimed_ip} != {my_ip}")

        return AuthResult(True)
