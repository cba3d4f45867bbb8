"""
Encryption module for nearclip

Uses AES-256-GCM for authenticated encryption. Peers share the key out of
band (the match action hands it over as hex), so there is no key exchange.
"""
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from nearclip.common.errors import CryptoError


# Constants
NONCE_SIZE = 12  # 96 bits for GCM
TAG_SIZE = 16    # 128-bit authentication tag
KEY_SIZE = 32    # 256-bit key


def generate_key() -> bytes:
    """Generate a random 256-bit key"""
    return secrets.token_bytes(KEY_SIZE)


def generate_key_hex() -> str:
    """Generate a random 256-bit key, hex encoded for config storage"""
    return generate_key().hex()


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """
    Encrypt data using AES-256-GCM

    Returns:
        nonce (12 bytes) + ciphertext + tag (16 bytes)
    """
    nonce = os.urandom(NONCE_SIZE)
    aesgcm = AESGCM(key)
    # Tag is appended by AESGCM
    return nonce + aesgcm.encrypt(nonce, plaintext, None)


def decrypt(ciphertext: bytes, key: bytes) -> bytes:
    """
    Decrypt data using AES-256-GCM

    Raises:
        CryptoError: If the data is too short or authentication fails
    """
    if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
        raise CryptoError("Ciphertext too short")

    nonce = ciphertext[:NONCE_SIZE]
    aesgcm = AESGCM(key)
    try:
        return aesgcm.decrypt(nonce, ciphertext[NONCE_SIZE:], None)
    except InvalidTag as e:
        raise CryptoError("Decryption failed - data may be corrupted or tampered") from e


class Crypter:
    """Symmetric cipher bound to the shared secret"""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
        self._key = key

    @classmethod
    def from_hex(cls, key_hex: str) -> 'Crypter':
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as e:
            raise ValueError(f"secret key is not valid hex: {e}") from e
        return cls(key)

    @property
    def key_hex(self) -> str:
        return self._key.hex()

    def encrypt(self, plaintext: bytes) -> bytes:
        return encrypt(plaintext, self._key)

    def decrypt(self, ciphertext: bytes) -> bytes:
        return decrypt(ciphertext, self._key)
