"""
Errors for nearclip

Two layers live here:
- Exception types raised by the protocol core (framing, auth, transfer)
- User-friendly messages with suggestions, used by the CLI when a
  request to a peer fails
"""
from enum import Enum
from dataclasses import dataclass


# Wire error strings (sent to the peer in the response "msg" field)
ERROR_INVALID_AUTH_DATA = "invalid auth data"
ERROR_EXPIRED_AUTH_DATA = "expired auth data"
ERROR_INVALID_DATA = "invalid data"
ERROR_INCOMPLETE_DATA = "incomplete data"
ERROR_CLIPBOARD_EMPTY = "clipboard is empty"
ERROR_SEARCH_NOT_ALLOWED = "search not allowed"


class NearclipError(Exception):
    """Base class for all nearclip errors"""


class ProtocolError(NearclipError):
    """Malformed traffic on the wire"""


class InvalidDataError(ProtocolError):
    """Frame or body content that cannot be accepted"""

    def __init__(self, detail: str = ""):
        message = f"{ERROR_INVALID_DATA}: {detail}" if detail else ERROR_INVALID_DATA
        super().__init__(message)


class IncompleteDataError(ProtocolError):
    """The stream ended before the expected number of bytes arrived"""

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(f"{ERROR_INCOMPLETE_DATA}: expected {expected} bytes, got {received}")


class PeerClosedError(IncompleteDataError):
    """The peer closed the stream before sending anything of the next frame"""


class AuthError(NearclipError):
    """Request token rejected"""


class CryptoError(NearclipError):
    """Encryption or decryption failed"""


class EnumerationError(NearclipError):
    """A selected path could not be stat'ed or walked"""


class TransferError(NearclipError):
    """A file chunk could not be stored or served"""


@dataclass
class FriendlyError:
    """User-friendly error with message and suggestion"""
    message: str
    suggestion: str
    code: str = ""

    def __str__(self) -> str:
        result = f"Error: {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion
        }


class ErrorCode(Enum):
    """Error codes for categorization"""
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_TIMEOUT = "connection_timeout"
    AUTH_FAILED = "auth_failed"
    AUTH_EXPIRED = "auth_expired"
    SEARCH_DISABLED = "search_disabled"
    PROTOCOL_ERROR = "protocol_error"
    FILE_NOT_FOUND = "file_not_found"
    PERMISSION_DENIED = "permission_denied"
    PORT_IN_USE = "port_in_use"
    UNKNOWN = "unknown"


ERROR_MESSAGES = {
    ErrorCode.CONNECTION_REFUSED: FriendlyError(
        code="connection_refused",
        message="Connection was refused by the peer",
        suggestion="Check that nearclip is running on the peer device and the port matches"
    ),

    ErrorCode.CONNECTION_TIMEOUT: FriendlyError(
        code="connection_timeout",
        message="Connection timed out while trying to reach peer",
        suggestion="Check your network connection and firewall settings (port 9876 must be open)"
    ),

    ErrorCode.AUTH_FAILED: FriendlyError(
        code="auth_failed",
        message="The peer rejected our credentials",
        suggestion="Make sure both devices share the same secret key ('nearclip config --show')"
    ),

    ErrorCode.AUTH_EXPIRED: FriendlyError(
        code="auth_expired",
        message="The peer considers our request too old",
        suggestion="Check that the clocks of both devices are within five minutes of each other"
    ),

    ErrorCode.SEARCH_DISABLED: FriendlyError(
        code="search_disabled",
        message="The peer is not accepting new devices",
        suggestion="Start the peer with '--discoverable' and try again"
    ),

    ErrorCode.PROTOCOL_ERROR: FriendlyError(
        code="protocol_error",
        message="Communication protocol error with peer",
        suggestion="Ensure both devices are running compatible versions of nearclip"
    ),

    ErrorCode.FILE_NOT_FOUND: FriendlyError(
        code="file_not_found",
        message="The requested file was not found",
        suggestion="The file may have been moved or deleted. Try copying it again"
    ),

    ErrorCode.PERMISSION_DENIED: FriendlyError(
        code="permission_denied",
        message="Permission denied when accessing file or directory",
        suggestion="Check file permissions on the shared paths and the save directory"
    ),

    ErrorCode.PORT_IN_USE: FriendlyError(
        code="port_in_use",
        message="The listening port is already in use",
        suggestion="Another instance of nearclip may be running, or pass --port"
    ),

    ErrorCode.UNKNOWN: FriendlyError(
        code="unknown",
        message="An unexpected error occurred",
        suggestion="Check the log file for more details"
    ),
}


def get_error(code: ErrorCode) -> FriendlyError:
    """Get user-friendly error for a given error code"""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCode.UNKNOWN])


def get_error_from_exception(exc: Exception) -> FriendlyError:
    """Map common exceptions to user-friendly errors"""
    exc_str = str(exc).lower()
    exc_type = type(exc).__name__

    if isinstance(exc, ProtocolError):
        return get_error(ErrorCode.PROTOCOL_ERROR)

    if "connection refused" in exc_str or isinstance(exc, ConnectionRefusedError):
        return get_error(ErrorCode.CONNECTION_REFUSED)
    if "timed out" in exc_str or "timeout" in exc_str:
        return get_error(ErrorCode.CONNECTION_TIMEOUT)

    if ERROR_EXPIRED_AUTH_DATA in exc_str or "time expired" in exc_str:
        return get_error(ErrorCode.AUTH_EXPIRED)
    if ERROR_SEARCH_NOT_ALLOWED in exc_str:
        return get_error(ErrorCode.SEARCH_DISABLED)
    if isinstance(exc, AuthError) or "auth" in exc_str or "ip not match" in exc_str or "time-ip" in exc_str:
        return get_error(ErrorCode.AUTH_FAILED)

    if "no such file" in exc_str or "not found" in exc_str:
        return get_error(ErrorCode.FILE_NOT_FOUND)
    if "permission denied" in exc_str:
        return get_error(ErrorCode.PERMISSION_DENIED)
    if "address already in use" in exc_str:
        return get_error(ErrorCode.PORT_IN_USE)

    error = get_error(ErrorCode.UNKNOWN)
    # Include the exception type for debugging
    return FriendlyError(
        code=error.code,
        message=f"{error.message}: {exc_type}",
        suggestion=error.suggestion
    )

