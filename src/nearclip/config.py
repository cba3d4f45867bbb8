"""
Configuration for nearclip
"""
import os
import sys
from pathlib import Path

# Network Settings
PORT = 9876
BUFFER_SIZE = 65536  # 64KB chunks for body streaming
MAX_HEAD_SIZE = 1024  # Head frames only; bodies use their own dataLen

# Authentication
AUTH_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
AUTH_TIME_WIDTH = 19  # len("2006-01-02 15:04:05")
AUTH_MAX_AGE_SECONDS = 300

# Clipboard
IMAGE_NAME_FORMAT = "%Y%m%d%H%M%S"
NOTIFY_PREVIEW_CHARS = 60

# File transfer
TRANSFER_IDLE_TIMEOUT = 600  # Seconds before an unfinished pasteFile operation is forgotten

# Peer Discovery
SERVICE_NAME = "_nearclip._tcp.local."

# Paths
if os.name == 'nt':  # Windows
    TEMP_DIR = Path(os.environ.get('TEMP', 'C:/Temp')) / 'nearclip'
else:  # macOS/Linux
    TEMP_DIR = Path('/tmp/nearclip')

# Logging
LOG_LEVEL = "INFO"
LOG_FILE = TEMP_DIR / "nearclip.log"
FAULT_LOG_FILE = TEMP_DIR / "panic.log"


def get_data_dir() -> Path:
    """Platform-specific directory for user data (config.json)."""
    if sys.platform == 'win32':
        base = Path(os.environ.get('LOCALAPPDATA', Path.home() / 'AppData' / 'Local'))
    elif sys.platform == 'darwin':
        base = Path.home() / 'Library' / 'Application Support'
    else:
        base = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))
    d = base / 'nearclip'
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_default_save_dir() -> Path:
    """Where pushed files land unless the user configures otherwise"""
    return Path.home() / 'Downloads' / 'nearclip'
