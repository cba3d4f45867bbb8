"""
Global test fixtures for nearclip tests
"""
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from nearclip.common.auth import Authenticator
from nearclip.common.clipboard_state import ClipboardState
from nearclip.common.crypto import Crypter
from nearclip.common.discovery import DiscoveryGate
from nearclip.common.fault_log import LazyFileWriter
from nearclip.common.file_transfer import FileReceiver
from nearclip.session import SessionServices

from tests.fixtures.harness import SessionHarness
from tests.fixtures.mock_clipboard import MockClipboard, MockNotifier


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files"""
    path = Path(tempfile.mkdtemp(prefix="nearclip_test_"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def sample_file(temp_dir: Path) -> Path:
    """Create a sample text file for testing"""
    file_path = temp_dir / "sample.txt"
    file_path.write_text("Hello, World! This is a test file.")
    return file_path


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Minimal valid PNG image for testing"""
    # 1x1 transparent PNG
    return bytes([
        0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A,  # PNG signature
        0x00, 0x00, 0x00, 0x0D, 0x49, 0x48, 0x44, 0x52,  # IHDR chunk
        0x00, 0x00, 0x00, 0x01, 0x00, 0x00, 0x00, 0x01,
        0x08, 0x06, 0x00, 0x00, 0x00, 0x1F, 0x15, 0xC4,
        0x89, 0x00, 0x00, 0x00, 0x0A, 0x49, 0x44, 0x41,  # IDAT chunk
        0x54, 0x78, 0x9C, 0x63, 0x00, 0x01, 0x00, 0x00,
        0x05, 0x00, 0x01, 0x0D, 0x0A, 0x2D, 0xB4, 0x00,
        0x00, 0x00, 0x00, 0x49, 0x45, 0x4E, 0x44, 0xAE,  # IEND chunk
        0x42, 0x60, 0x82
    ])


@pytest.fixture
def encryption_key() -> bytes:
    """Sample 32-byte encryption key"""
    return b"0123456789abcdef0123456789abcdef"


@pytest.fixture
def sample_text() -> str:
    """Sample text for text transfer testing"""
    return "Hello, this is a clipboard sync test message!"


@pytest.fixture
def crypter(encryption_key: bytes) -> Crypter:
    return Crypter(encryption_key)


@pytest.fixture
def clipboard_state() -> ClipboardState:
    return ClipboardState()


@pytest.fixture
def mock_clipboard(clipboard_state: ClipboardState) -> MockClipboard:
    return MockClipboard(clipboard_state)


@pytest.fixture
def notifier() -> MockNotifier:
    return MockNotifier()


@pytest.fixture
def discovery() -> DiscoveryGate:
    return DiscoveryGate(enabled=False)


@pytest.fixture
def save_dir(temp_dir: Path) -> Path:
    path = temp_dir / "received"
    path.mkdir()
    return path


@pytest.fixture
def services(crypter, mock_clipboard, clipboard_state, discovery, notifier, save_dir, temp_dir) -> SessionServices:
    """Session collaborators wired to mocks"""
    fault_log = LazyFileWriter(temp_dir / "panic.log")
    yield SessionServices(
        crypter=crypter,
        authenticator=Authenticator(crypter, discovery),
        clipboard=mock_clipboard,
        state=clipboard_state,
        receiver=FileReceiver(save_dir, notifier),
        discovery=discovery,
        device_name="test-device",
        notifier=notifier,
        fault_log=fault_log,
    )
    fault_log.close()


@pytest.fixture
def harness(services, crypter) -> Generator[SessionHarness, None, None]:
    h = SessionHarness(services, crypter)
    yield h
    h.close()
